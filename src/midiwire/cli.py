"""
midiwire command line interface

    midiwire decode 90 3C 64
    midiwire encode NoteOn --channel 0 --data1 60 --data2 100
    midiwire ports
    midiwire monitor --port "USB MIDI Keyboard"
    midiwire init-config
"""

import sys
import json
import time
import signal
import logging
import argparse
from pathlib import Path
from typing import Dict, List, Optional

from .bus import EventBus, Topic
from .config import create_default_config, get_config_path, load_config
from .midi.errors import UnknownStatusError
from .midi.event import MidiEvent, encode_from_fields
from .midi.midi_handler import MIDIInputController
from .midi.tables import ChannelVoiceKind, MessageKind, SystemCommandKind
from .production.error_handler import ProductionErrorHandler
from .production.logging import setup_logging
from .production.retry_manager import ProductionRetryManager, RetryConfig, RetryStrategy

log = logging.getLogger(__name__)


def _kind_lookup() -> Dict[str, MessageKind]:
    kinds: Dict[str, MessageKind] = {}
    for kind in list(ChannelVoiceKind) + list(SystemCommandKind):
        if isinstance(kind, SystemCommandKind) and kind.is_sentinel:
            continue
        kinds[kind.canonical_name.lower()] = kind
        kinds[kind.name.lower()] = kind
    return kinds


def parse_kind(name: str) -> MessageKind:
    """Resolve 'NoteOn', 'note_on' or 'TIMING_CLOCK' to a message kind"""
    try:
        return _kind_lookup()[name.lower()]
    except KeyError:
        raise argparse.ArgumentTypeError(f"unknown message kind: {name}") from None


def parse_byte(text: str) -> int:
    """Parse a hex byte ('90', '0x90')"""
    try:
        value = int(text, 16)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a hex byte: {text}") from None
    if not 0 <= value <= 0xFF:
        raise argparse.ArgumentTypeError(f"byte out of range: {text}")
    return value


def describe(event: MidiEvent) -> Dict[str, object]:
    """Summary of an event for display"""
    payload, published = event.to_notification_payload()
    return {
        'kind': event.kind.canonical_name,
        'channel': event.channel,
        'length': event.length,
        'bytes': event.raw_bytes.hex(' ').upper(),
        'payload': payload,
        'published': published,
        'diagnostic': event.diagnostic,
    }


def cmd_decode(args) -> int:
    try:
        event = MidiEvent.from_bytes(args.bytes)
    except UnknownStatusError as e:
        log.error(str(e))
        return 1

    print(json.dumps(describe(event)) if args.json else _format(describe(event)))
    return 0


def cmd_encode(args) -> int:
    try:
        event = encode_from_fields(args.kind, args.channel, args.data1, args.data2)
    except UnknownStatusError as e:
        log.error(str(e))
        return 1

    if event.has_known_length:
        print(event.wire_bytes().hex(' ').upper())
    else:
        log.warning(f"{event.kind.canonical_name} has no canonical length, printing all 3 bytes")
        print(event.raw_bytes.hex(' ').upper())
    return 0


def cmd_ports(args) -> int:
    controller = MIDIInputController()
    if not controller.available:
        return 1

    ports = controller.list_ports()
    if not ports:
        print("No MIDI input ports found")
    for i, port in enumerate(ports):
        print(f"{i}: {port}")
    return 0


def cmd_monitor(args) -> int:
    config = args.settings
    transport = config.transport

    retry_manager = ProductionRetryManager()
    retry_manager.register_config('midi_connection', RetryConfig(
        max_attempts=config.retry.max_attempts,
        base_delay=config.retry.base_delay,
        max_delay=config.retry.max_delay,
        strategy=RetryStrategy.EXPONENTIAL_BACKOFF,
        retryable_exceptions=(ConnectionError, OSError)
    ))

    bus = EventBus()

    def print_notification(topic: Topic, payload: Dict[str, int]):
        if args.json:
            print(json.dumps({'topic': topic.value, **payload}), flush=True)
        else:
            fields = ' '.join(f"{k}={v}" for k, v in payload.items())
            print(f"{topic.value:<22} {fields}", flush=True)

    bus.subscribe_all(print_notification)

    controller = MIDIInputController(
        bus=bus,
        error_handler=args.error_handler,
        retry_manager=retry_manager,
        port_keywords=transport.port_keywords,
        ignore_sysex=transport.ignore_sysex,
        ignore_timing=transport.ignore_timing,
        ignore_active_sense=transport.ignore_active_sense,
    )

    port_name = args.port or transport.port_name
    if not controller.connect(port_name, auto_detect=transport.auto_detect):
        _print_errors(args.error_handler, 'midi_connection')
        return 1

    stop = {'requested': False}

    def signal_handler(sig, frame):
        stop['requested'] = True

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        while not stop['requested']:
            time.sleep(0.1)
    finally:
        controller.disconnect()
        stats = controller.get_statistics()
        log.info("Received {received}, published {published}, "
                 "unpublished {unpublished}, dropped {dropped}".format(**stats))
    return 0


def cmd_init_config(args) -> int:
    path = create_default_config(args.path, force=args.force)
    print(path)
    return 0


def _print_errors(error_handler: ProductionErrorHandler, context: str):
    """Print the recorded errors for a context with their solutions"""
    for error_ctx in error_handler.error_history:
        if error_ctx.context == context:
            print(error_handler.format_error(error_ctx), file=sys.stderr)


def _format(info: Dict[str, object]) -> str:
    length = info['length'] if info['length'] is not None else "unknown"
    lines = [
        f"kind:      {info['kind']}",
        f"bytes:     {info['bytes']}",
        f"length:    {length}",
        f"channel:   {info['channel']}",
    ]
    if info['published']:
        lines.append(f"payload:   {info['payload']}")
    else:
        lines.append(f"diagnostic: {info['diagnostic']}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='midiwire',
        description="midiwire - MIDI message decoder/encoder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s decode 90 3C 64                 # NoteOn ch0 note 60 vel 100
  %(prog)s decode F8                       # Timing clock
  %(prog)s encode PitchWheel --data2 64    # Pitch wheel centre
  %(prog)s monitor --port "Keystation"     # Print live notifications
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true',
                        help="Debug logging, including system-command diagnostics")
    parser.add_argument('--log-file', type=Path, default=None,
                        help="Write a rotating log file")

    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('decode', help="Decode raw hex bytes")
    p.add_argument('bytes', nargs='+', type=parse_byte, help="Hex bytes, status byte first")
    p.add_argument('--json', action='store_true', help="Print JSON")
    p.set_defaults(func=cmd_decode)

    p = sub.add_parser('encode', help="Encode a message from fields")
    p.add_argument('kind', type=parse_kind, help="Message kind, e.g. NoteOn or TimingClock")
    p.add_argument('--channel', '-c', type=int, default=0, help="Channel 0-15")
    p.add_argument('--data1', type=int, default=0, help="First data byte")
    p.add_argument('--data2', type=int, default=0, help="Second data byte")
    p.set_defaults(func=cmd_encode)

    p = sub.add_parser('ports', help="List MIDI input ports")
    p.set_defaults(func=cmd_ports)

    p = sub.add_parser('monitor', help="Print notifications from a MIDI input port")
    p.add_argument('--port', '-p', default=None, help="Input port name")
    p.add_argument('--config', default=None, help=f"Config file (default: {get_config_path()})")
    p.add_argument('--json', action='store_true', help="Print JSON lines")
    p.set_defaults(func=cmd_monitor)

    p = sub.add_parser('init-config', help="Write the default config file")
    p.add_argument('--path', default=None, help="Target path")
    p.add_argument('--force', action='store_true', help="Overwrite an existing file")
    p.set_defaults(func=cmd_init_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    args.error_handler = ProductionErrorHandler()
    config = load_config(getattr(args, 'config', None), args.error_handler)
    args.settings = config
    setup_logging(
        verbose=args.verbose or config.logging.verbose,
        log_file=args.log_file or (Path(config.logging.log_file) if config.logging.log_file else None),
        colors=config.logging.colors,
    )
    _print_errors(args.error_handler, 'config_load')

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
