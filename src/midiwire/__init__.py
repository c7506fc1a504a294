"""
midiwire - MIDI message decoder/encoder
=======================================

Classifies raw MIDI byte triplets, extracts their fields, computes wire
lengths, builds wire bytes from fields and publishes decoded channel-voice
messages on an event bus.

Codec: midi/ (tables, event)
Event bus: bus.py
MIDI input: midi/midi_handler.py
Production features: production/ module
Configuration: config.py
"""

__version__ = "1.0.0"
__description__ = "MIDI message decoder/encoder with event-bus notifications"

from .bus import EventBus, Publisher, Topic
from .midi import (
    ChannelVoiceKind,
    ControllerNumber,
    MIDIError,
    MidiEvent,
    SystemCommandKind,
    UnknownLengthError,
    UnknownStatusError,
    classify_channel_voice,
    classify_system_command,
    decode_from_bytes,
    encode_from_fields,
    wire_length,
)
from .midi.midi_handler import MIDIInputController

__all__ = [
    'ChannelVoiceKind',
    'ControllerNumber',
    'EventBus',
    'MIDIError',
    'MIDIInputController',
    'MidiEvent',
    'Publisher',
    'SystemCommandKind',
    'Topic',
    'UnknownLengthError',
    'UnknownStatusError',
    'classify_channel_voice',
    'classify_system_command',
    'decode_from_bytes',
    'encode_from_fields',
    'wire_length',
]
