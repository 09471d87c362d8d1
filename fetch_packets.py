#!/usr/bin/env python3
"""
ABX Exchange Client - Main entry point.

Streams every packet from the exchange, requests any missing sequences, and
writes the complete, sequence-ordered result to a JSON (or CSV) file.
Errors are appended to an error log file.

Usage:
    python fetch_packets.py [--host HOST] [--port PORT] [--output FILE]
"""

import logging
import sys
import time
from typing import List, Optional

try:
    from .config import ClientConfig, build_parser
    from .diagnostics import DiagnosticEvent, ErrorLogRecorder
    from .messages import Packet
    from .packet_store import PacketStore
    from .packet_writer import make_writer
    from .retrieval import PacketRetriever, RetrievalResult
except ImportError:
    from config import ClientConfig, build_parser
    from diagnostics import DiagnosticEvent, ErrorLogRecorder
    from messages import Packet
    from packet_store import PacketStore
    from packet_writer import make_writer
    from retrieval import PacketRetriever, RetrievalResult

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RETRIEVAL_FAILED = 1
EXIT_WRITE_FAILED = 2


def format_summary(packets: List[Packet]) -> str:
    """Per-symbol totals of the retrieved packets."""
    frame = PacketStore(packets).to_frame()
    if frame.empty:
        return "  (no packets)"

    frame["Buys"] = (frame["BuySellIndicator"] == "B").astype(int)
    frame["Sells"] = (frame["BuySellIndicator"] == "S").astype(int)
    by_symbol = frame.groupby("Symbol").agg(
        packets=("Sequence", "count"),
        buys=("Buys", "sum"),
        sells=("Sells", "sum"),
        quantity=("Quantity", "sum"),
    )

    lines = [f"  {'Symbol':8s} {'Packets':>8s} {'Buys':>6s} {'Sells':>6s} {'Quantity':>10s}"]
    for symbol, row in by_symbol.iterrows():
        lines.append(f"  {symbol!s:8s} {int(row['packets']):>8d} {int(row['buys']):>6d} "
                     f"{int(row['sells']):>6d} {int(row['quantity']):>10d}")
    return "\n".join(lines)


def print_result(result: RetrievalResult, config: ClientConfig, elapsed: float) -> None:
    stats = result.stats
    print()
    print("=" * 60)
    print("  RETRIEVAL COMPLETE")
    print("=" * 60)
    print(f"  Exchange:           {config.host}:{config.port}")
    print(f"  Packets streamed:   {stats.streamed:,}")
    print(f"  Missing sequences:  {len(result.missing_before_backfill):,}")
    print(f"  Packets backfilled: {stats.backfilled:,}")
    if result.mismatches:
        print(f"  Mismatched resends: {len(result.mismatches):,}")
    if result.unresolved:
        print(f"  Still missing:      {result.unresolved}")
    print(f"  Total packets:      {len(result.packets):,}")
    print(f"  Output:             {config.output}")
    print(f"  Elapsed time:       {elapsed:.2f}s")
    print()
    print(format_summary(result.packets))
    print("=" * 60)


def run(config: ClientConfig) -> int:
    """Retrieve, write, and report. Returns the process exit status."""
    with ErrorLogRecorder(config.error_log) as recorder:
        retriever = PacketRetriever(
            config.host, config.port,
            diagnostics=recorder,
            **config.retriever_kwargs())

        wall_start = time.time()
        result = retriever.run()
        elapsed = time.time() - wall_start

        if not result.ok:
            print(f"Error: {result.error}", file=sys.stderr)
            return EXIT_RETRIEVAL_FAILED

        writer = make_writer(config.output, config.output_format)
        if not writer.write(result.packets):
            recorder.record(DiagnosticEvent(
                kind="write_failure",
                message=f"Could not write {len(result.packets)} packets to {config.output}",
                details={"path": config.output}))
            print(f"Error: could not write {config.output}", file=sys.stderr)
            return EXIT_WRITE_FAILED

    print_result(result, config, elapsed)
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = ClientConfig.from_args(args)
    except ValueError as e:
        parser.error(str(e))

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print("=" * 60)
    print("  ABX EXCHANGE CLIENT")
    print("=" * 60)
    print(f"  Exchange:   {config.host}:{config.port}")
    print(f"  Output:     {config.output} ({config.output_format})")
    print(f"  Error log:  {config.error_log}")
    print(f"  Backfill:   {config.backfill_policy.value}")
    print("=" * 60)

    try:
        return run(config)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_RETRIEVAL_FAILED


if __name__ == '__main__':
    sys.exit(main())
