"""
MIDI Codec Errors

Exceptions raised by the classification tables and the event codec.
"""

from typing import Optional


class MIDIError(Exception):
    """Base class for MIDI codec errors"""
    pass


class UnknownStatusError(MIDIError, ValueError):
    """Byte 0 does not map to any channel-voice or system-command kind"""

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"Unknown MIDI status byte: 0x{status & 0xFF:02X}")


class UnknownLengthError(MIDIError):
    """Classification succeeded but the kind has no canonical wire length"""

    def __init__(self, kind):
        self.kind = kind
        super().__init__(f"No canonical wire length for {kind.canonical_name}")
