"""
MIDI Event Codec

MidiEvent holds up to three raw bytes plus the message's significant length
and knows how to build itself from wire bytes or from semantic fields.
Events are immutable; every decode/encode call returns a new value.

Decoded events are turned into notification payloads and handed to an
explicitly supplied publisher (see midiwire.bus).
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple, Union

from ..bus import Publisher, Topic
from .errors import UnknownLengthError, UnknownStatusError
from .tables import (
    ChannelVoiceKind,
    MessageKind,
    SystemCommandKind,
    classify_channel_voice,
    classify_system_command,
    wire_length,
)

log = logging.getLogger(__name__)

# Diagnostic labels for system commands, which are never published
SYSTEM_DIAGNOSTICS: Dict[SystemCommandKind, str] = {
    SystemCommandKind.TIMING_CLOCK: "MIDI Clock",
    SystemCommandKind.SYSEX: "SysEx Command",
    SystemCommandKind.SYSEX_END: "SysEx EOX",
    SystemCommandKind.SYSTEM_RESET: "MIDI System Reset",
}
OTHER_SYSTEM_DIAGNOSTIC = "Other MIDI System Command"


@dataclass(frozen=True)
class MidiEvent:
    """
    A single MIDI message.

    Attributes:
        raw: Exactly three bytes. raw[0] is the unmasked status byte,
            raw[1] and raw[2] always have bit 7 cleared.
        length: Number of significant bytes (1-3), or None when the kind has
            no canonical length (channel aftertouch, SysEx). Bytes past
            length carry no meaning.
    """
    raw: Tuple[int, int, int]
    length: Optional[int] = None

    def __post_init__(self):
        if len(self.raw) != 3:
            raise ValueError(f"MidiEvent needs exactly 3 raw bytes, got {len(self.raw)}")
        status = self.raw[0] & 0xFF
        if not status & 0x80:
            raise UnknownStatusError(status, f"0x{status:02X} is a data byte, not a status byte")
        object.__setattr__(self, 'raw', (status, self.raw[1] & 0x7F, self.raw[2] & 0x7F))

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    @classmethod
    def from_bytes(cls, packet: Sequence[int]) -> "MidiEvent":
        """
        Decode an event from a transport packet

        Args:
            packet: One or more bytes; missing data bytes read as 0 and
                bytes past the third are ignored

        Raises:
            UnknownStatusError: packet is empty or byte 0 is not a status byte
        """
        if not packet:
            raise UnknownStatusError(0, "Empty MIDI packet")

        b0 = packet[0]
        b1 = packet[1] if len(packet) > 1 else 0
        b2 = packet[2] if len(packet) > 2 else 0

        if not b0 & 0x80:
            raise UnknownStatusError(b0, f"0x{b0 & 0xFF:02X} is a data byte, not a status byte")

        if b0 < 0xF0:
            kind = classify_channel_voice(b0 >> 4)
            return cls.from_status(kind, b0 & 0xF, b1, b2)

        return cls._from_command_byte(b0, b1, b2)

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    @classmethod
    def from_status(cls, status: ChannelVoiceKind, channel: int,
                    byte1: int, byte2: int) -> "MidiEvent":
        """Build a channel-voice event; data bytes are masked to 7 bits"""
        status = classify_channel_voice(int(status))
        data1 = byte1 & 0x7F
        raw = ((status.status_nibble << 4) | (channel & 0xF), data1, byte2 & 0x7F)
        return cls(raw, wire_length(status, data1))

    @classmethod
    def from_command(cls, command: Union[SystemCommandKind, int],
                     byte1: int = 0, byte2: int = 0) -> "MidiEvent":
        """
        Build a system-command event

        Only the data bytes the command carries are kept: both for song
        position, the first for song select, none otherwise.
        """
        return cls._from_command_byte(int(command), byte1, byte2)

    @classmethod
    def _from_command_byte(cls, status: int, byte1: int, byte2: int) -> "MidiEvent":
        command = classify_system_command(status)

        if command == SystemCommandKind.SONG_POSITION:
            raw = (status, byte1 & 0x7F, byte2 & 0x7F)
        elif command == SystemCommandKind.SONG_SELECT:
            raw = (status, byte1 & 0x7F, 0)
        else:
            raw = (status, 0, 0)

        return cls(raw, wire_length(command))

    # Utility constructors for common events

    @classmethod
    def note_on(cls, note: int, velocity: int, channel: int = 0) -> "MidiEvent":
        return cls.from_status(ChannelVoiceKind.NOTE_ON, channel, note, velocity)

    @classmethod
    def note_off(cls, note: int, velocity: int = 0, channel: int = 0) -> "MidiEvent":
        return cls.from_status(ChannelVoiceKind.NOTE_OFF, channel, note, velocity)

    @classmethod
    def program_change(cls, program: int, channel: int = 0) -> "MidiEvent":
        return cls.from_status(ChannelVoiceKind.PROGRAM_CHANGE, channel, program, 0)

    @classmethod
    def controller(cls, control: int, value: int, channel: int = 0) -> "MidiEvent":
        return cls.from_status(ChannelVoiceKind.CONTROLLER_CHANGE, channel, control, value)

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    @property
    def is_channel_voice(self) -> bool:
        return self.raw[0] < 0xF0

    @property
    def status(self) -> Optional[ChannelVoiceKind]:
        """Channel-voice kind, or None for system commands"""
        if self.is_channel_voice:
            return ChannelVoiceKind(self.raw[0] >> 4)
        return None

    @property
    def command(self) -> SystemCommandKind:
        """System-command kind, NONE for channel-voice events"""
        if self.is_channel_voice:
            return SystemCommandKind.NONE
        return classify_system_command(self.raw[0])

    @property
    def kind(self) -> MessageKind:
        return self.status if self.is_channel_voice else self.command

    @property
    def channel(self) -> int:
        return self.raw[0] & 0xF if self.is_channel_voice else 0

    @property
    def data1(self) -> int:
        return self.raw[1]

    @property
    def data2(self) -> int:
        return self.raw[2]

    @property
    def combined14(self) -> int:
        """14-bit value for pitch wheel and song position (LSB first)"""
        return self.raw[1] + (self.raw[2] << 7)

    @property
    def has_known_length(self) -> bool:
        return self.length is not None

    @property
    def raw_bytes(self) -> bytes:
        """All three stored bytes, regardless of length"""
        return bytes(self.raw)

    def wire_bytes(self) -> bytes:
        """
        The significant bytes of this message

        Raises:
            UnknownLengthError: the kind has no canonical length
        """
        if self.length is None:
            raise UnknownLengthError(self.kind)
        return bytes(self.raw[:self.length])

    @property
    def diagnostic(self) -> Optional[str]:
        """Diagnostic label for system commands, None for channel-voice events"""
        if self.is_channel_voice:
            return None
        return SYSTEM_DIAGNOSTICS.get(self.command, OTHER_SYSTEM_DIAGNOSTIC)

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def to_notification_payload(self, bus: Optional[Publisher] = None) -> Tuple[Dict[str, int], bool]:
        """
        Map this event to named fields and publish them

        Args:
            bus: Publisher that receives one publish call when a mapping
                exists; pass None to only compute the mapping

        Returns:
            (mapping, True) for channel-voice events,
            ({}, False) for system commands
        """
        status = self.status

        if status is None:
            log.debug(f"{self.diagnostic} ({self.command.canonical_name}, 0x{self.raw[0]:02X})")
            return {}, False

        byte1 = self.data1
        byte2 = self.data2
        c = self.channel

        if status in (ChannelVoiceKind.NOTE_ON, ChannelVoiceKind.NOTE_OFF):
            payload = {"note": byte1, "velocity": byte2, "channel": c}
        elif status == ChannelVoiceKind.POLYPHONIC_AFTERTOUCH:
            payload = {"note": byte1, "pressure": byte2, "channel": c}
        elif status == ChannelVoiceKind.CONTROLLER_CHANGE:
            payload = {"control": byte1, "value": byte2, "channel": c}
        elif status == ChannelVoiceKind.CHANNEL_AFTERTOUCH:
            payload = {"pressure": byte1, "channel": c}
        elif status == ChannelVoiceKind.PROGRAM_CHANGE:
            payload = {"program": byte1, "channel": c}
        else:
            payload = {"pitchWheel": self.combined14, "channel": c}

        if bus is not None:
            bus.publish(Topic.for_kind(status), dict(payload))

        return payload, True

    def __str__(self) -> str:
        length = self.length if self.length is not None else "?"
        if self.is_channel_voice:
            return (f"{self.status.canonical_name} ch={self.channel} "
                    f"d1={self.data1} d2={self.data2} len={length}")
        return f"{self.command.canonical_name} (0x{self.raw[0]:02X}) len={length}"


def decode_from_bytes(b0: int, b1: int = 0, b2: int = 0) -> MidiEvent:
    """Decode an event from up to three raw bytes"""
    return MidiEvent.from_bytes((b0, b1, b2))


def encode_from_fields(kind: MessageKind, channel: int = 0,
                       byte1: int = 0, byte2: int = 0) -> MidiEvent:
    """
    Build an event from semantic fields

    Channel-voice kinds use channel; system kinds ignore it.
    """
    if isinstance(kind, ChannelVoiceKind):
        return MidiEvent.from_status(kind, channel, byte1, byte2)
    return MidiEvent.from_command(kind, byte1, byte2)
