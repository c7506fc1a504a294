"""
MIDI Module

Message classification tables and the MIDI event codec.
The rtmidi input controller lives in .midi_handler.
"""

from .errors import MIDIError, UnknownLengthError, UnknownStatusError
from .tables import (
    ChannelVoiceKind,
    ControllerNumber,
    SystemCommandKind,
    classify_channel_voice,
    classify_system_command,
    wire_length,
)
from .event import MidiEvent, decode_from_bytes, encode_from_fields

__all__ = [
    'ChannelVoiceKind',
    'ControllerNumber',
    'MIDIError',
    'MidiEvent',
    'SystemCommandKind',
    'UnknownLengthError',
    'UnknownStatusError',
    'classify_channel_voice',
    'classify_system_command',
    'decode_from_bytes',
    'encode_from_fields',
    'wire_length',
]
