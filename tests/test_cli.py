"""
Command line interface tests
"""

import json
import logging
import argparse

import pytest

# Add src to path
import sys
from os.path import dirname, join
sys.path.insert(0, join(dirname(dirname(__file__)), 'src'))

from midiwire import cli
from midiwire.midi.tables import ChannelVoiceKind, SystemCommandKind


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep the user's config and logging handlers out of the tests"""
    monkeypatch.setenv('XDG_CONFIG_HOME', str(tmp_path))
    yield tmp_path
    logger = logging.getLogger('midiwire')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


def test_parse_kind_accepts_names():
    assert cli.parse_kind("NoteOn") is ChannelVoiceKind.NOTE_ON
    assert cli.parse_kind("note_on") is ChannelVoiceKind.NOTE_ON
    assert cli.parse_kind("TIMING_CLOCK") is SystemCommandKind.TIMING_CLOCK
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_kind("Unsupported")


def test_parse_byte():
    assert cli.parse_byte("90") == 0x90
    assert cli.parse_byte("0xF8") == 0xF8
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_byte("zz")
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_byte("100")


def test_decode_note_on(capsys):
    assert cli.main(["decode", "90", "3C", "64"]) == 0

    out = capsys.readouterr().out
    assert "NoteOn" in out
    assert "'note': 60" in out


def test_decode_json(capsys):
    assert cli.main(["decode", "--json", "E0", "00", "40"]) == 0

    info = json.loads(capsys.readouterr().out)
    assert info['kind'] == "PitchWheel"
    assert info['payload'] == {"pitchWheel": 8192, "channel": 0}
    assert info['published'] is True


def test_decode_system_command(capsys):
    assert cli.main(["decode", "--json", "F8"]) == 0

    info = json.loads(capsys.readouterr().out)
    assert info['kind'] == "TimingClock"
    assert info['length'] == 1
    assert info['published'] is False
    assert info['diagnostic'] == "MIDI Clock"


def test_decode_channel_aftertouch_unknown_length(capsys):
    assert cli.main(["decode", "D0", "40"]) == 0
    assert "length:    unknown" in capsys.readouterr().out


def test_decode_rejects_data_byte(capsys):
    assert cli.main(["decode", "3C", "64"]) == 1


def test_encode(capsys):
    assert cli.main(["encode", "NoteOn", "--channel", "1", "--data1", "60", "--data2", "100"]) == 0
    assert capsys.readouterr().out.strip() == "91 3C 64"


def test_encode_program_change_two_bytes(capsys):
    assert cli.main(["encode", "ProgramChange", "--data1", "5"]) == 0
    assert capsys.readouterr().out.strip() == "C0 05"


def test_encode_unknown_length_prints_all_bytes(capsys):
    assert cli.main(["encode", "ChannelAftertouch", "--data1", "64"]) == 0
    assert capsys.readouterr().out.strip() == "D0 40 00"


def test_init_config(capsys, tmp_path):
    target = tmp_path / "cfg" / "config.yaml"
    assert cli.main(["init-config", "--path", str(target)]) == 0
    assert target.exists()
    assert str(target) in capsys.readouterr().out


def test_describe():
    from midiwire.midi.event import MidiEvent

    info = cli.describe(MidiEvent.controller(7, 80, 1))
    assert info['kind'] == "ControllerChange"
    assert info['bytes'] == "B1 07 50"
    assert info['length'] == 3


def test_invalid_config_reported_with_solutions(capsys, isolated_config):
    config_path = isolated_config / "midiwire" / "config.yaml"
    config_path.parent.mkdir(parents=True)
    config_path.write_text("retry:\n  max_attempts: 0\n")

    assert cli.main(["decode", "F8"]) == 0

    err = capsys.readouterr().err
    assert "Configuration Could Not Be Loaded" in err
    assert "midiwire init-config --force" in err


def test_monitor_connection_failure_prints_solutions(capsys, monkeypatch):
    class UnreachableController:
        def __init__(self, error_handler, **kwargs):
            self.error_handler = error_handler

        def connect(self, port_name, auto_detect=True):
            self.error_handler.handle_error(ConnectionError("no port"), 'midi_connection',
                                            details={'port': port_name})
            return False

    monkeypatch.setattr(cli, 'MIDIInputController', UnreachableController)

    assert cli.main(["monitor", "--port", "Gone:0"]) == 1

    err = capsys.readouterr().err
    assert "MIDI Device Connection Failed" in err
    assert "port: Gone:0" in err
