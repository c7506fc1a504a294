"""
Unit tests for the MIDI event codec
"""

import unittest
import dataclasses
from unittest.mock import Mock

# Add src to path
import sys
from os.path import dirname, join
sys.path.insert(0, join(dirname(dirname(__file__)), 'src'))

from midiwire.bus import EventBus, Topic
from midiwire.midi.errors import UnknownLengthError, UnknownStatusError
from midiwire.midi.event import MidiEvent, decode_from_bytes, encode_from_fields
from midiwire.midi.tables import ChannelVoiceKind, SystemCommandKind


class TestDecode(unittest.TestCase):
    """Test decoding raw bytes"""

    def test_note_on_scenario(self):
        """Test 90 3C 64 decodes to NoteOn ch0 note 60 velocity 100"""
        event = decode_from_bytes(0x90, 0x3C, 0x64)

        self.assertIs(event.status, ChannelVoiceKind.NOTE_ON)
        self.assertIs(event.command, SystemCommandKind.NONE)
        self.assertEqual(event.channel, 0)
        self.assertEqual(event.data1, 60)
        self.assertEqual(event.data2, 100)
        self.assertEqual(event.length, 3)

    def test_pitch_wheel_center(self):
        """Test E0 00 40 is the pitch wheel centre"""
        event = decode_from_bytes(0xE0, 0x00, 0x40)

        self.assertIs(event.status, ChannelVoiceKind.PITCH_WHEEL)
        self.assertEqual(event.combined14, 8192)

    def test_controller_scenario(self):
        """Test B1 07 50 decodes to a 3-byte controller change"""
        event = decode_from_bytes(0xB1, 0x07, 0x50)

        self.assertIs(event.status, ChannelVoiceKind.CONTROLLER_CHANGE)
        self.assertEqual(event.channel, 1)
        self.assertEqual(event.data1, 7)
        self.assertEqual(event.data2, 80)
        self.assertEqual(event.length, 3)

    def test_controller_above_threshold_is_two_bytes(self):
        event = decode_from_bytes(0xB0, 123, 0)
        self.assertEqual(event.length, 2)

    def test_timing_clock_alone(self):
        """Test a single F8 byte"""
        event = MidiEvent.from_bytes([0xF8])

        self.assertIsNone(event.status)
        self.assertIs(event.command, SystemCommandKind.TIMING_CLOCK)
        self.assertEqual(event.length, 1)
        self.assertEqual(event.channel, 0)

    def test_data_bytes_masked(self):
        """Test bit 7 is always stripped from data bytes"""
        for status in range(0x80, 0xF0, 0x10):
            for b1, b2 in ((0xFF, 0x80), (0x80, 0xFF), (0x7F, 0x7F), (0x00, 0xC5)):
                event = decode_from_bytes(status, b1, b2)
                self.assertEqual(event.data1, b1 & 0x7F)
                self.assertEqual(event.data2, b2 & 0x7F)
                self.assertEqual(event.raw[0], status)

    def test_channel_extraction(self):
        """Test channel is the low nibble for every channel-voice kind"""
        for nibble in range(0x8, 0xF):
            for channel in range(16):
                b0 = (nibble << 4) | channel
                self.assertEqual(decode_from_bytes(b0, 1, 2).channel, b0 & 0xF)

    def test_channel_aftertouch_length_unknown(self):
        """Test channel aftertouch keeps an unset length"""
        event = decode_from_bytes(0xD3, 0x40)

        self.assertIs(event.status, ChannelVoiceKind.CHANNEL_AFTERTOUCH)
        self.assertIsNone(event.length)
        self.assertFalse(event.has_known_length)
        with self.assertRaises(UnknownLengthError):
            event.wire_bytes()

    def test_sysex_length_unknown(self):
        event = MidiEvent.from_bytes([0xF0, 0x43, 0x12, 0x00, 0xF7])

        self.assertIs(event.command, SystemCommandKind.SYSEX)
        self.assertIsNone(event.length)

    def test_song_position_keeps_both_bytes(self):
        event = decode_from_bytes(0xF2, 0x7F, 0x7F)

        self.assertIs(event.command, SystemCommandKind.SONG_POSITION)
        self.assertEqual(event.length, 3)
        self.assertEqual(event.combined14, 16383)

    def test_song_select_keeps_first_byte(self):
        event = decode_from_bytes(0xF3, 0x05, 0x09)

        self.assertEqual(event.length, 2)
        self.assertEqual(event.wire_bytes(), bytes([0xF3, 0x05]))

    def test_reserved_system_byte(self):
        """Test reserved bytes decode as UNSUPPORTED instead of failing"""
        event = decode_from_bytes(0xFD)

        self.assertIs(event.command, SystemCommandKind.UNSUPPORTED)
        self.assertEqual(event.length, 1)
        self.assertEqual(event.raw[0], 0xFD)

    def test_data_byte_as_status_rejected(self):
        """Test a byte without bit 7 is reported, not resynchronized"""
        with self.assertRaises(UnknownStatusError) as ctx:
            decode_from_bytes(0x3C, 0x64, 0x00)
        self.assertEqual(ctx.exception.status, 0x3C)

    def test_empty_packet_rejected(self):
        with self.assertRaises(UnknownStatusError):
            MidiEvent.from_bytes([])

    def test_extra_bytes_ignored(self):
        event = MidiEvent.from_bytes([0x80, 0x3C, 0x40, 0x99, 0x12])
        self.assertEqual(event.raw, (0x80, 0x3C, 0x40))


class TestEncode(unittest.TestCase):
    """Test encoding from fields"""

    def test_status_byte_construction(self):
        event = encode_from_fields(ChannelVoiceKind.NOTE_ON, 5, 60, 100)
        self.assertEqual(event.raw[0], 0x95)
        self.assertEqual(event.wire_bytes(), bytes([0x95, 60, 100]))

    def test_channel_masked(self):
        event = encode_from_fields(ChannelVoiceKind.NOTE_OFF, 0x13, 60, 0)
        self.assertEqual(event.channel, 3)

    def test_data_truncated_not_rejected(self):
        """Test out-of-range data is masked silently"""
        event = encode_from_fields(ChannelVoiceKind.POLYPHONIC_AFTERTOUCH, 0, 200, 255)
        self.assertEqual(event.data1, 200 & 0x7F)
        self.assertEqual(event.data2, 0x7F)

    def test_system_command(self):
        event = encode_from_fields(SystemCommandKind.START)
        self.assertEqual(event.wire_bytes(), bytes([0xFA]))
        self.assertEqual(event.channel, 0)

    def test_system_command_drops_unused_data(self):
        event = MidiEvent.from_command(SystemCommandKind.STOP, 0x12, 0x34)
        self.assertEqual(event.raw, (0xFC, 0, 0))

    def test_sentinel_commands_rejected(self):
        with self.assertRaises(UnknownStatusError):
            MidiEvent.from_command(SystemCommandKind.NONE)
        with self.assertRaises(UnknownStatusError):
            MidiEvent.from_command(SystemCommandKind.UNSUPPORTED)

    def test_round_trip(self):
        """Test encode followed by decode reproduces the fields"""
        for kind in ChannelVoiceKind:
            for channel in (0, 9, 15):
                for d1, d2 in ((0, 0), (60, 100), (127, 127), (200, 300)):
                    encoded = encode_from_fields(kind, channel, d1, d2)
                    decoded = decode_from_bytes(*encoded.raw)

                    self.assertIs(decoded.status, kind)
                    self.assertEqual(decoded.channel, channel)
                    self.assertEqual(decoded.data1, d1 & 0x7F)
                    self.assertEqual(decoded.data2, d2 & 0x7F)
                    self.assertEqual(decoded, encoded)

    def test_utility_constructors(self):
        self.assertEqual(MidiEvent.note_on(60, 100, 2).raw, (0x92, 60, 100))
        self.assertEqual(MidiEvent.note_off(60, 0, 2).raw, (0x82, 60, 0))
        self.assertEqual(MidiEvent.program_change(5, 1).wire_bytes(), bytes([0xC1, 5]))
        self.assertEqual(MidiEvent.controller(7, 80, 1).raw, (0xB1, 7, 80))


class TestFixedLengths(unittest.TestCase):
    """Test lengths reported by decoded events"""

    def test_two_byte_messages(self):
        self.assertEqual(decode_from_bytes(0xC0, 10).length, 2)
        self.assertEqual(decode_from_bytes(0xF3, 1).length, 2)

    def test_one_byte_messages(self):
        for status in (0xF8, 0xFA, 0xFC, 0xFE, 0xFF):
            self.assertEqual(decode_from_bytes(status).length, 1)

    def test_three_byte_messages(self):
        for status in (0x90, 0x80, 0xA0, 0xE0, 0xF2):
            self.assertEqual(decode_from_bytes(status, 1, 2).length, 3)


class TestCombined14(unittest.TestCase):
    """Test the 14-bit combined value"""

    def test_combination(self):
        for d1 in (0, 1, 64, 127):
            for d2 in (0, 1, 64, 127):
                event = encode_from_fields(ChannelVoiceKind.PITCH_WHEEL, 0, d1, d2)
                self.assertEqual(event.combined14, d1 + (d2 << 7))

    def test_boundary(self):
        event = encode_from_fields(ChannelVoiceKind.PITCH_WHEEL, 0, 127, 127)
        self.assertEqual(event.combined14, 16383)


class TestImmutability(unittest.TestCase):
    """Test events are immutable values"""

    def test_frozen(self):
        event = MidiEvent.note_on(60, 100)
        with self.assertRaises(dataclasses.FrozenInstanceError):
            event.length = 2

    def test_constructor_normalizes(self):
        event = MidiEvent([0x90, 0xBC, 0xE4], 3)
        self.assertEqual(event.raw, (0x90, 0x3C, 0x64))

    def test_constructor_rejects_data_status(self):
        with self.assertRaises(UnknownStatusError):
            MidiEvent((0x10, 0, 0), 3)

    def test_constructor_rejects_wrong_size(self):
        with self.assertRaises(ValueError):
            MidiEvent((0x90, 0), 2)


class TestNotificationPayload(unittest.TestCase):
    """Test mapping events to notification payloads"""

    def test_note_on_payload_published(self):
        bus = Mock()
        payload, published = decode_from_bytes(0x90, 0x3C, 0x64).to_notification_payload(bus)

        self.assertTrue(published)
        self.assertEqual(payload, {"note": 60, "velocity": 100, "channel": 0})
        bus.publish.assert_called_once_with(Topic.NOTE_ON, payload)

    def test_payload_fields_per_kind(self):
        cases = [
            ((0x81, 60, 10), Topic.NOTE_OFF, {"note": 60, "velocity": 10, "channel": 1}),
            ((0xA2, 61, 20), Topic.POLYPHONIC_AFTERTOUCH, {"note": 61, "pressure": 20, "channel": 2}),
            ((0xB3, 7, 80), Topic.CONTROLLER_CHANGE, {"control": 7, "value": 80, "channel": 3}),
            ((0xD4, 33, 0), Topic.CHANNEL_AFTERTOUCH, {"pressure": 33, "channel": 4}),
            ((0xC5, 12, 0), Topic.PROGRAM_CHANGE, {"program": 12, "channel": 5}),
            ((0xE6, 0, 64), Topic.PITCH_WHEEL, {"pitchWheel": 8192, "channel": 6}),
        ]
        for raw, topic, expected in cases:
            bus = Mock()
            payload, published = decode_from_bytes(*raw).to_notification_payload(bus)

            self.assertTrue(published)
            self.assertEqual(payload, expected)
            bus.publish.assert_called_once_with(topic, expected)

    def test_system_commands_not_published(self):
        """Test every system command returns an empty mapping"""
        for status in range(0xF0, 0x100):
            bus = Mock()
            payload, published = decode_from_bytes(status).to_notification_payload(bus)

            self.assertFalse(published)
            self.assertEqual(payload, {})
            bus.publish.assert_not_called()

    def test_timing_clock_diagnostic(self):
        event = decode_from_bytes(0xF8)
        with self.assertLogs('midiwire.midi.event', level='DEBUG') as logs:
            self.assertEqual(event.to_notification_payload(), ({}, False))
        self.assertIn("MIDI Clock", logs.output[0])

    def test_diagnostic_labels(self):
        self.assertEqual(decode_from_bytes(0xF0).diagnostic, "SysEx Command")
        self.assertEqual(decode_from_bytes(0xF7).diagnostic, "SysEx EOX")
        self.assertEqual(decode_from_bytes(0xFF).diagnostic, "MIDI System Reset")
        self.assertEqual(decode_from_bytes(0xFA).diagnostic, "Other MIDI System Command")
        self.assertIsNone(decode_from_bytes(0x90, 1, 1).diagnostic)

    def test_without_bus(self):
        payload, published = MidiEvent.program_change(3).to_notification_payload()
        self.assertTrue(published)
        self.assertEqual(payload, {"program": 3, "channel": 0})

    def test_publish_order_follows_calls(self):
        bus = EventBus()
        received = []
        bus.subscribe_all(lambda topic, payload: received.append(topic))

        MidiEvent.note_on(60, 100).to_notification_payload(bus)
        MidiEvent.controller(1, 64).to_notification_payload(bus)
        MidiEvent.note_off(60).to_notification_payload(bus)

        self.assertEqual(received, [Topic.NOTE_ON, Topic.CONTROLLER_CHANGE, Topic.NOTE_OFF])


class TestStringForm(unittest.TestCase):

    def test_str(self):
        self.assertEqual(str(MidiEvent.note_on(60, 100, 1)), "NoteOn ch=1 d1=60 d2=100 len=3")
        self.assertEqual(str(decode_from_bytes(0xF8)), "TimingClock (0xF8) len=1")
        self.assertEqual(str(decode_from_bytes(0xD0, 5)), "ChannelAftertouch ch=0 d1=5 d2=0 len=?")


if __name__ == '__main__':
    unittest.main()
