"""
Two-phase packet retrieval from the ABX exchange.

Phase 1 (stream all): open a connection, send callType 1, read 17-byte frames
until the server closes the connection.

Phase 2 (backfill): work out which sequences between the lowest and highest
received are missing and request each one with callType 2, one request and
one response at a time.

A run is all-or-nothing. Any connection or framing failure ends it, and the
result then carries the error and no packets. Nothing is retried here; retry
policy belongs to the caller.
"""

import logging
import socket
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

try:
    from .diagnostics import DiagnosticEvent
    from .errors import MalformedPacket, ProtocolViolation, RetrievalError, UnrepresentableSequence
    from .messages import Packet, decode_packet, encode_resend_request, encode_stream_all_request
    from .packet_store import PacketStore
    from .sequence_gaps import find_missing_sequences, unrepresentable_gaps
    from .tcp_packet_client import Outcome, PacketConnection
except ImportError:
    from diagnostics import DiagnosticEvent
    from errors import MalformedPacket, ProtocolViolation, RetrievalError, UnrepresentableSequence
    from messages import Packet, decode_packet, encode_resend_request, encode_stream_all_request
    from packet_store import PacketStore
    from sequence_gaps import find_missing_sequences, unrepresentable_gaps
    from tcp_packet_client import Outcome, PacketConnection

logger = logging.getLogger(__name__)


class BackfillPolicy(Enum):
    """How connections are used for resend requests."""
    REUSE_CONNECTION = "reuse"
    CONNECTION_PER_REQUEST = "per_request"


@dataclass
class RetrievalStats:
    streamed: int = 0
    backfilled: int = 0
    overwritten: int = 0
    resend_requests: int = 0
    connections_opened: int = 0


@dataclass
class RetrievalResult:
    """Outcome of a full retrieval run."""
    packets: List[Packet] = field(default_factory=list)
    error: Optional[RetrievalError] = None
    missing_before_backfill: List[int] = field(default_factory=list)
    unresolved: List[int] = field(default_factory=list)
    mismatches: List[Tuple[int, int]] = field(default_factory=list)  # (requested, received)
    stats: RetrievalStats = field(default_factory=RetrievalStats)

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class PacketRetriever:
    """
    Drives the stream-all and backfill phases against one exchange endpoint.

    Each call to run() builds its own PacketStore; nothing is shared between runs.
    """

    def __init__(self, host: str, port: int,
                 connect_timeout: Optional[float] = None,
                 read_timeout: Optional[float] = None,
                 backfill_policy: BackfillPolicy = BackfillPolicy.REUSE_CONNECTION,
                 check_extra_frames: bool = True,
                 diagnostics=None,
                 socket_factory: Callable[..., socket.socket] = socket.create_connection):
        """
        Args:
            host: Exchange host
            port: Exchange TCP port
            connect_timeout: Seconds to wait when connecting (None = block)
            read_timeout: Seconds to wait on each read (None = block)
            backfill_policy: Reuse one connection for all resends, or open one per resend
            check_extra_frames: Fail the run if a resend answer is followed by more data
            diagnostics: Object with record(DiagnosticEvent), or None
            socket_factory: Passed through to PacketConnection
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.backfill_policy = backfill_policy
        self.check_extra_frames = check_extra_frames
        self._diagnostics = diagnostics
        self._socket_factory = socket_factory

    def run(self) -> RetrievalResult:
        store = PacketStore()
        result = RetrievalResult()

        logger.info(f"Connecting to {self.host}:{self.port}...")
        phase = "stream_all"
        error = self._stream_all(store, result.stats)

        if error is None:
            # before listing gaps: the range between min and max can be 2**32 wide
            unsendable, total = unrepresentable_gaps(store.sequences())
            if total:
                phase = "backfill"
                error = UnrepresentableSequence(unsendable, total=total)

        if error is None:
            result.missing_before_backfill = find_missing_sequences(store.sequences())
            if result.missing_before_backfill:
                phase = "backfill"
                error = self._backfill(store, result)
            else:
                logger.info("No missing sequences, skipping backfill")

        if error is not None:
            logger.error(f"Retrieval failed during {phase}: {error}")
            self._record(DiagnosticEvent.from_error(
                error, phase=phase, host=self.host, port=self.port))
            result.error = error
            return result

        result.unresolved = find_missing_sequences(store.sequences())
        if result.unresolved:
            logger.warning(f"{len(result.unresolved)} sequences still missing after backfill: "
                           f"{result.unresolved}")
            self._record(DiagnosticEvent(
                kind="unresolved_gaps",
                message=f"{len(result.unresolved)} sequences still missing after backfill",
                details={"sequences": result.unresolved}))

        result.packets = store.ordered()
        logger.info(f"All packets collected: {len(result.packets)} "
                    f"({result.stats.streamed} streamed, {result.stats.backfilled} backfilled)")
        self._record(DiagnosticEvent(
            kind="run_completed",
            message=f"Collected {len(result.packets)} packets",
            details={"streamed": result.stats.streamed,
                     "backfilled": result.stats.backfilled,
                     "overwritten": result.stats.overwritten}))
        return result

    # ------------------------------------------------------------------
    # Phase 1
    # ------------------------------------------------------------------

    def _stream_all(self, store: PacketStore, stats: RetrievalStats) -> Optional[RetrievalError]:
        conn = self._open_connection(stats)
        try:
            outcome = conn.connect()
            if not outcome.ok:
                return outcome.error

            outcome = conn.send_request(encode_stream_all_request())
            if not outcome.ok:
                return outcome.error

            while True:
                outcome = conn.read_frame(allow_eof=True)
                if not outcome.ok:
                    return outcome.error
                if outcome.value is None:
                    break

                decoded = self._decode(outcome.value)
                if not decoded.ok:
                    return decoded.error

                logger.debug(f"Received {decoded.value}")
                self._store(store, decoded.value, stats)
                stats.streamed += 1
        finally:
            conn.close()

        logger.info(f"Initial data received: {stats.streamed} packets")
        self._record(DiagnosticEvent(
            kind="stream_completed",
            message=f"Stream delivered {stats.streamed} packets",
            details={"packets": stats.streamed}))
        return None

    # ------------------------------------------------------------------
    # Phase 2
    # ------------------------------------------------------------------

    def _backfill(self, store: PacketStore, result: RetrievalResult) -> Optional[RetrievalError]:
        missing = result.missing_before_backfill

        logger.info(f"Found {len(missing)} missing sequences, requesting missing packets...")
        self._record(DiagnosticEvent(
            kind="backfill_started",
            message=f"Requesting {len(missing)} missing sequences",
            details={"sequences": missing}))

        conn: Optional[PacketConnection] = None
        # sequences requested or received on the current connection
        answered: Set[int] = set()
        try:
            for sequence in missing:
                if conn is None:
                    conn = self._open_connection(result.stats)
                    answered = set()
                    outcome = conn.connect()
                    if not outcome.ok:
                        return outcome.error

                error = self._request_resend(conn, sequence, store, result, answered)
                if error is not None:
                    return error

                if self.backfill_policy is BackfillPolicy.CONNECTION_PER_REQUEST:
                    conn.close()
                    conn = None
        finally:
            if conn is not None:
                conn.close()

        return None

    def _request_resend(self, conn: PacketConnection, sequence: int,
                        store: PacketStore, result: RetrievalResult,
                        answered: Set[int]) -> Optional[RetrievalError]:
        """
        One request/response round trip for a single missing sequence.

        `answered` holds the sequences already requested or received on this
        connection. A response carrying one of them is a late extra frame from
        an earlier request, and every later response would be shifted by it.
        """
        outcome = conn.send_request(encode_resend_request(sequence))
        if not outcome.ok:
            return outcome.error
        result.stats.resend_requests += 1

        outcome = conn.read_frame()
        if not outcome.ok:
            return outcome.error

        decoded = self._decode(outcome.value)
        if not decoded.ok:
            return decoded.error
        packet = decoded.value

        if packet.sequence != sequence and packet.sequence in answered:
            return ProtocolViolation(
                f"Server sent more than one frame for resend of sequence {packet.sequence}: "
                f"received it again in answer to {sequence}")
        answered.update((sequence, packet.sequence))

        if packet.sequence != sequence:
            logger.warning(f"Requested sequence {sequence} but received {packet.sequence}")
            result.mismatches.append((sequence, packet.sequence))
            self._record(DiagnosticEvent(
                kind="sequence_mismatch",
                message=f"Requested sequence {sequence} but received {packet.sequence}",
                details={"requested": sequence, "received": packet.sequence}))

        logger.debug(f"Backfilled {packet}")
        self._store(store, packet, result.stats)
        result.stats.backfilled += 1

        if self.check_extra_frames:
            pending = conn.has_pending_data()
            if not pending.ok:
                return pending.error
            if pending.value:
                return ProtocolViolation(
                    f"Server sent more than one frame for resend of sequence {sequence}")

        return None

    # ------------------------------------------------------------------

    def _open_connection(self, stats: RetrievalStats) -> PacketConnection:
        stats.connections_opened += 1
        return PacketConnection(
            self.host, self.port,
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            socket_factory=self._socket_factory)

    @staticmethod
    def _decode(frame: bytes) -> Outcome:
        try:
            return Outcome(decode_packet(frame))
        except MalformedPacket as e:
            return Outcome(error=e)

    def _store(self, store: PacketStore, packet: Packet, stats: RetrievalStats) -> None:
        previous = store.add(packet)
        if previous is not None:
            stats.overwritten += 1
            self._record(DiagnosticEvent(
                kind="packet_replaced",
                message=f"Sequence {packet.sequence} received again, keeping latest",
                details={"sequence": packet.sequence}))

    def _record(self, event: DiagnosticEvent) -> None:
        """Hand an event to the diagnostic sink without letting it affect the run."""
        if self._diagnostics is None:
            return
        try:
            self._diagnostics.record(event)
        except Exception as e:
            logger.debug(f"Diagnostic sink failed on {event.kind}: {e}")


def retrieve_packets(host: str, port: int, **kwargs) -> List[Packet]:
    """Run a full retrieval and return the ordered packets, raising on failure."""
    result = PacketRetriever(host, port, **kwargs).run()
    result.raise_for_error()
    return result.packets
