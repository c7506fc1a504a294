"""
MIDI Handler Module

Reads raw MIDI packets from an rtmidi input port, decodes them into
MidiEvents and publishes the resulting notifications on an event bus.

Byte-stream framing is the transport's job: rtmidi already delivers whole
messages, so every packet handed to the codec starts with a status byte
unless the device misbehaves. Packets that fail to decode are reported to
the error handler and dropped here.
"""

import time
import threading
import logging
from typing import Optional, Dict, Callable, List, Sequence

try:
    import rtmidi
    RTMIDI_AVAILABLE = True
except ImportError:
    RTMIDI_AVAILABLE = False
    rtmidi = None

from ..bus import Publisher
from ..production.error_handler import ErrorSeverity, ProductionErrorHandler
from ..production.retry_manager import ProductionRetryManager
from .errors import UnknownStatusError
from .event import MidiEvent

log = logging.getLogger(__name__)


class MIDIConnectionError(ConnectionError):
    """An input port could not be opened"""
    pass


class MIDIInputController:
    """
    MIDI input handler for external MIDI devices.

    Features:
    - Port listing and keyword auto-detection
    - Connection retries with exponential backoff
    - Decoding of every incoming packet through MidiEvent
    - Publication of channel-voice notifications on the supplied bus
    - Optional per-event callback (for UIs and monitors)
    """

    DEFAULT_PORT_KEYWORDS = ['keyboard', 'piano', 'synth', 'midi']

    def __init__(self, bus: Optional[Publisher] = None,
                 callback: Optional[Callable[[MidiEvent], None]] = None,
                 error_handler: Optional[ProductionErrorHandler] = None,
                 retry_manager: Optional[ProductionRetryManager] = None,
                 port_keywords: Optional[List[str]] = None,
                 ignore_sysex: bool = True,
                 ignore_timing: bool = True,
                 ignore_active_sense: bool = True):
        self.bus = bus
        self.callback = callback
        self.error_handler = error_handler or ProductionErrorHandler()
        self.retry_manager = retry_manager or ProductionRetryManager()
        self.port_keywords = port_keywords or list(self.DEFAULT_PORT_KEYWORDS)
        self.ignore_sysex = ignore_sysex
        self.ignore_timing = ignore_timing
        self.ignore_active_sense = ignore_active_sense

        self._midi_in = None
        self._port_name: str = ""
        self._connected = False
        self._last_activity: float = 0.0

        self._stats_lock = threading.Lock()
        self._stats: Dict[str, int] = self._empty_stats()

        self.error_handler.register_recovery_strategy('midi_connection', self._recover_connection)

        if not RTMIDI_AVAILABLE:
            log.warning("python-rtmidi not available - MIDI input disabled")
            log.info("Install with: pip install python-rtmidi")

    @property
    def available(self) -> bool:
        """Check if MIDI input is available"""
        return RTMIDI_AVAILABLE

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def port_name(self) -> str:
        return self._port_name

    @property
    def last_activity(self) -> float:
        return self._last_activity

    def list_ports(self) -> List[str]:
        """List available MIDI input ports"""
        if not RTMIDI_AVAILABLE:
            return []

        midi_in = rtmidi.MidiIn()
        try:
            return list(midi_in.get_ports())
        finally:
            midi_in.delete()

    def find_port(self, keywords: Optional[Sequence[str]] = None) -> Optional[str]:
        """Auto-detect an input port whose name contains one of the keywords"""
        keywords = keywords if keywords is not None else self.port_keywords

        for port in self.list_ports():
            port_lower = port.lower()
            for keyword in keywords:
                if keyword.lower() in port_lower:
                    log.info(f"Auto-detected MIDI input: {port}")
                    return port

        return None

    def connect(self, port_name: Optional[str] = None, auto_detect: bool = True) -> bool:
        """
        Connect to MIDI input device

        Args:
            port_name: Specific port name (optional)
            auto_detect: Match port keywords if no port name is given, and
                fall back to another port if the chosen one cannot be opened

        Returns:
            True if connection successful
        """
        if not RTMIDI_AVAILABLE:
            return False

        if self._midi_in is not None:
            self.disconnect()

        if auto_detect and port_name is None:
            port_name = self.find_port()

        if port_name is None:
            ports = self.list_ports()
            if not ports:
                log.warning("No MIDI input devices found")
                return False
            port_name = ports[0]
            log.info(f"Using first available MIDI port: {port_name}")

        try:
            self.retry_manager.retry_sync(self._open_port, 'midi_connection', port_name)
        except MIDIConnectionError as e:
            self._connected = False
            recovered = self.error_handler.handle_error(
                e, 'midi_connection', ErrorSeverity.HIGH,
                {'port': port_name, 'auto_detect': auto_detect})
            if not recovered:
                return False

        log.info(f"MIDI connected: {self._port_name}")
        return True

    def _recover_connection(self, error: Exception, details: Dict) -> bool:
        """Fall back to another input port when the requested one cannot be opened"""
        if not details.get('auto_detect'):
            return False

        candidates = [p for p in self.list_ports() if p != details.get('port')]
        if not candidates:
            return False

        fallback = next((p for p in candidates
                         if any(k.lower() in p.lower() for k in self.port_keywords)),
                        candidates[0])
        log.info(f"Falling back to MIDI input: {fallback}")
        self._open_port(fallback)
        return True

    def _open_port(self, port_name: str):
        midi_in = rtmidi.MidiIn()
        try:
            ports = list(midi_in.get_ports())
            if port_name not in ports:
                raise MIDIConnectionError(f"MIDI port not found: {port_name}")

            midi_in.open_port(ports.index(port_name))
            midi_in.ignore_types(sysex=self.ignore_sysex,
                                 timing=self.ignore_timing,
                                 active_sense=self.ignore_active_sense)
            midi_in.set_callback(self._on_rtmidi_message)
        except MIDIConnectionError:
            midi_in.delete()
            raise
        except rtmidi.RtMidiError as e:
            midi_in.delete()
            raise MIDIConnectionError(f"Failed to open {port_name}: {e}") from e

        self._midi_in = midi_in
        self._port_name = port_name
        self._connected = True
        self._last_activity = time.time()

    def disconnect(self):
        """Disconnect from MIDI device"""
        if self._midi_in is None:
            return

        try:
            self._midi_in.cancel_callback()
            self._midi_in.close_port()
            log.info("MIDI disconnected")
        finally:
            self._midi_in.delete()
            self._midi_in = None
            self._connected = False

    def _on_rtmidi_message(self, event, data=None):
        """rtmidi callback: event is (message bytes, delta time)"""
        message, _delta = event
        try:
            self.process_message(message)
        except Exception as e:
            self.error_handler.handle_error(e, 'event_publish', ErrorSeverity.MEDIUM,
                                            {'bytes': _hex(message)})

    def process_message(self, message: Sequence[int]) -> Optional[MidiEvent]:
        """
        Decode one MIDI packet and publish its notification

        Args:
            message: Raw bytes as delivered by the transport

        Returns:
            The decoded event, or None if the packet was dropped
        """
        self._count('received')
        self._last_activity = time.time()

        try:
            event = MidiEvent.from_bytes(message)
        except UnknownStatusError as e:
            self._count('dropped')
            self.error_handler.handle_error(e, 'midi_decode', ErrorSeverity.LOW,
                                            {'bytes': _hex(message)})
            return None

        _payload, published = event.to_notification_payload(self.bus)
        self._count('published' if published else 'unpublished')

        log.debug(f"MIDI {event}")

        if self.callback:
            self.callback(event)

        return event

    def get_statistics(self) -> Dict[str, int]:
        """Counters for received, published, unpublished and dropped packets"""
        with self._stats_lock:
            return dict(self._stats)

    def reset_statistics(self):
        with self._stats_lock:
            self._stats = self._empty_stats()

    def _count(self, key: str):
        with self._stats_lock:
            self._stats[key] += 1

    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {'received': 0, 'published': 0, 'unpublished': 0, 'dropped': 0}


def _hex(message: Sequence[int]) -> str:
    return ' '.join(f"{b & 0xFF:02X}" for b in message)
