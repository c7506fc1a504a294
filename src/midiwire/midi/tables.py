"""
MIDI Classification Tables

Static lookup data for MIDI messages:
- status nibble (8-14) -> channel-voice kind
- status byte (0xF0-0xFF) -> system-command kind
- kind -> canonical on-wire length

All functions here are pure and never log.
"""

from enum import IntEnum
from typing import Dict, Optional, Union

from .errors import UnknownStatusError


class ChannelVoiceKind(IntEnum):
    """Channel-voice message kinds, valued by their status nibble"""
    NOTE_OFF = 0x8
    NOTE_ON = 0x9
    POLYPHONIC_AFTERTOUCH = 0xA
    CONTROLLER_CHANGE = 0xB
    PROGRAM_CHANGE = 0xC
    CHANNEL_AFTERTOUCH = 0xD
    PITCH_WHEEL = 0xE

    @property
    def canonical_name(self) -> str:
        return _CHANNEL_VOICE_NAMES[self]

    @property
    def status_nibble(self) -> int:
        return int(self)


class SystemCommandKind(IntEnum):
    """
    System-command kinds, valued by their full status byte.

    NONE and UNSUPPORTED are sentinels: NONE marks a message that is not a
    system command at all, UNSUPPORTED marks a reserved byte in 0xF0-0xFF.
    """
    NONE = 0x00
    UNSUPPORTED = -1
    SYSEX = 0xF0
    SONG_POSITION = 0xF2
    SONG_SELECT = 0xF3
    TUNE_REQUEST = 0xF6
    SYSEX_END = 0xF7
    TIMING_CLOCK = 0xF8
    START = 0xFA
    CONTINUE = 0xFB
    STOP = 0xFC
    ACTIVE_SENSING = 0xFE
    SYSTEM_RESET = 0xFF

    @property
    def canonical_name(self) -> str:
        return _SYSTEM_COMMAND_NAMES[self]

    @property
    def is_sentinel(self) -> bool:
        return self in (SystemCommandKind.NONE, SystemCommandKind.UNSUPPORTED)


class ControllerNumber(IntEnum):
    """Common controller numbers (first data byte of a controller change)"""
    BANK_SELECT = 0
    MODULATION_WHEEL = 1
    BREATH_CONTROL = 2
    FOOT_CONTROL = 4
    PORTAMENTO_TIME = 5
    DATA_ENTRY = 6
    MAIN_VOLUME = 7
    BALANCE = 8
    PAN = 10
    EXPRESSION = 11
    DAMPER_PEDAL = 64
    PORTAMENTO = 65
    SOSTENUTO = 66
    SOFT_PEDAL = 67
    DATA_ENTRY_PLUS = 96
    DATA_ENTRY_MINUS = 97
    ALL_SOUND_OFF = 120
    RESET_ALL_CONTROLLERS = 121
    LOCAL_CONTROL = 122
    ALL_NOTES_OFF = 123


MessageKind = Union[ChannelVoiceKind, SystemCommandKind]

_CHANNEL_VOICE_NAMES: Dict[ChannelVoiceKind, str] = {
    ChannelVoiceKind.NOTE_OFF: "NoteOff",
    ChannelVoiceKind.NOTE_ON: "NoteOn",
    ChannelVoiceKind.POLYPHONIC_AFTERTOUCH: "PolyphonicAftertouch",
    ChannelVoiceKind.CONTROLLER_CHANGE: "ControllerChange",
    ChannelVoiceKind.PROGRAM_CHANGE: "ProgramChange",
    ChannelVoiceKind.CHANNEL_AFTERTOUCH: "ChannelAftertouch",
    ChannelVoiceKind.PITCH_WHEEL: "PitchWheel",
}

_SYSTEM_COMMAND_NAMES: Dict[SystemCommandKind, str] = {
    SystemCommandKind.NONE: "None",
    SystemCommandKind.UNSUPPORTED: "Unsupported",
    SystemCommandKind.SYSEX: "SysEx",
    SystemCommandKind.SONG_POSITION: "SongPosition",
    SystemCommandKind.SONG_SELECT: "SongSelect",
    SystemCommandKind.TUNE_REQUEST: "TuneRequest",
    SystemCommandKind.SYSEX_END: "SysExEnd",
    SystemCommandKind.TIMING_CLOCK: "TimingClock",
    SystemCommandKind.START: "Start",
    SystemCommandKind.CONTINUE: "Continue",
    SystemCommandKind.STOP: "Stop",
    SystemCommandKind.ACTIVE_SENSING: "ActiveSensing",
    SystemCommandKind.SYSTEM_RESET: "SystemReset",
}

# Fixed lengths; None = no canonical length (variable or undetermined)
_FIXED_LENGTHS: Dict[MessageKind, Optional[int]] = {
    ChannelVoiceKind.NOTE_OFF: 3,
    ChannelVoiceKind.NOTE_ON: 3,
    ChannelVoiceKind.POLYPHONIC_AFTERTOUCH: 3,
    ChannelVoiceKind.PROGRAM_CHANGE: 2,
    ChannelVoiceKind.CHANNEL_AFTERTOUCH: None,
    ChannelVoiceKind.PITCH_WHEEL: 3,
    SystemCommandKind.SYSEX: None,
    SystemCommandKind.SONG_POSITION: 3,
    SystemCommandKind.SONG_SELECT: 2,
}

_SYSTEM_COMMANDS_BY_BYTE: Dict[int, SystemCommandKind] = {
    kind.value: kind for kind in SystemCommandKind if not kind.is_sentinel
}


def classify_channel_voice(nibble: int) -> ChannelVoiceKind:
    """
    Map a 4-bit status nibble to its channel-voice kind.

    Raises:
        UnknownStatusError: nibble is outside 8-14
    """
    try:
        return ChannelVoiceKind(nibble)
    except ValueError:
        raise UnknownStatusError(
            nibble << 4, f"Status nibble 0x{nibble & 0xF:X} is not a channel-voice message"
        ) from None


def classify_system_command(status: int) -> SystemCommandKind:
    """
    Map a full status byte in 0xF0-0xFF to its system-command kind.

    Reserved bytes (0xF1, 0xF4, 0xF5, 0xF9, 0xFD) map to UNSUPPORTED.

    Raises:
        UnknownStatusError: byte is outside 0xF0-0xFF
    """
    if not 0xF0 <= status <= 0xFF:
        raise UnknownStatusError(status, f"0x{status & 0xFF:02X} is not a system-command byte")
    return _SYSTEM_COMMANDS_BY_BYTE.get(status, SystemCommandKind.UNSUPPORTED)


def is_controller_three_bytes(control: int) -> bool:
    """Controller numbers below DATA_ENTRY_PLUS, plus LOCAL_CONTROL, carry a value byte"""
    return (control < ControllerNumber.DATA_ENTRY_PLUS
            or control == ControllerNumber.LOCAL_CONTROL)


def wire_length(kind: MessageKind, data1: Optional[int] = None) -> Optional[int]:
    """
    Canonical on-wire length for a message kind.

    Args:
        kind: Channel-voice or system-command kind
        data1: First data byte; required for CONTROLLER_CHANGE, whose length
            depends on the controller number

    Returns:
        1, 2 or 3, or None when the kind has no canonical length
        (CHANNEL_AFTERTOUCH, SYSEX)

    Raises:
        UnknownStatusError: kind is the NONE sentinel
        ValueError: CONTROLLER_CHANGE without a controller number
    """
    if kind == ChannelVoiceKind.CONTROLLER_CHANGE:
        if data1 is None:
            raise ValueError("Controller change length depends on the controller number")
        return 3 if is_controller_three_bytes(data1 & 0x7F) else 2

    if kind == SystemCommandKind.NONE:
        raise UnknownStatusError(kind, "NONE is not a message kind")

    if kind in _FIXED_LENGTHS:
        return _FIXED_LENGTHS[kind]

    # Remaining system commands are single status bytes
    return 1
