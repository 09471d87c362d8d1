"""
Client configuration.
"""

import argparse
from dataclasses import dataclass
from typing import Optional

try:
    from .packet_writer import FORMATS, infer_format
    from .retrieval import BackfillPolicy
except ImportError:
    from packet_writer import FORMATS, infer_format
    from retrieval import BackfillPolicy


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_OUTPUT = "packets.json"
DEFAULT_ERROR_LOG = "error_log.txt"


@dataclass
class ClientConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    connect_timeout: Optional[float] = None
    read_timeout: Optional[float] = None
    backfill_policy: BackfillPolicy = BackfillPolicy.REUSE_CONNECTION
    check_extra_frames: bool = True
    output: str = DEFAULT_OUTPUT
    output_format: Optional[str] = None
    error_log: str = DEFAULT_ERROR_LOG
    verbose: bool = False

    def __post_init__(self):
        if not 0 < self.port < 65536:
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        for name in ("connect_timeout", "read_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.output_format is None:
            self.output_format = infer_format(self.output)
        if self.output_format not in FORMATS:
            raise ValueError(f"Unknown output format {self.output_format!r}")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ClientConfig":
        return cls(
            host=args.host,
            port=args.port,
            connect_timeout=args.connect_timeout,
            read_timeout=args.read_timeout,
            backfill_policy=(BackfillPolicy.CONNECTION_PER_REQUEST
                             if args.fresh_connection_per_resend
                             else BackfillPolicy.REUSE_CONNECTION),
            check_extra_frames=not args.no_extra_frame_check,
            output=args.output,
            output_format=args.format,
            error_log=args.error_log,
            verbose=args.verbose,
        )

    def retriever_kwargs(self) -> dict:
        """Keyword arguments for PacketRetriever."""
        return {
            "connect_timeout": self.connect_timeout,
            "read_timeout": self.read_timeout,
            "backfill_policy": self.backfill_policy,
            "check_extra_frames": self.check_extra_frames,
        }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='ABX Exchange Client - stream all packets, backfill missing '
                    'sequences, and write the ordered result.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Default exchange on 127.0.0.1:3000, write packets.json
  python fetch_packets.py

  # Another endpoint, CSV output, 5 second read timeout
  python fetch_packets.py --host 10.0.0.5 --port 3001 --output packets.csv --read-timeout 5

  # Try it against the local simulator (run in a separate terminal first):
  #   python mock_exchange_server.py --port 3000 --drop 3,6
"""
    )
    parser.add_argument('--host', default=DEFAULT_HOST,
                        help=f'Exchange host (default: {DEFAULT_HOST})')
    parser.add_argument('--port', type=int, default=DEFAULT_PORT,
                        help=f'Exchange TCP port (default: {DEFAULT_PORT})')
    parser.add_argument('--output', '-o', default=DEFAULT_OUTPUT, metavar='FILE',
                        help=f'Output file (default: {DEFAULT_OUTPUT})')
    parser.add_argument('--format', choices=FORMATS, default=None,
                        help='Output format (default: from the output file extension)')
    parser.add_argument('--error-log', default=DEFAULT_ERROR_LOG, metavar='FILE',
                        help=f'File that error records are appended to (default: {DEFAULT_ERROR_LOG})')
    parser.add_argument('--connect-timeout', type=float, default=None, metavar='SECONDS',
                        help='Connect timeout (default: none)')
    parser.add_argument('--read-timeout', type=float, default=None, metavar='SECONDS',
                        help='Per-read timeout (default: none)')
    parser.add_argument('--fresh-connection-per-resend', action='store_true',
                        help='Open a new connection for every resend request')
    parser.add_argument('--no-extra-frame-check', action='store_true',
                        help='Do not fail when a resend answer is followed by extra data')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    return parser
