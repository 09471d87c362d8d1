"""
Error kinds raised or returned by the packet retrieval client.

Every failure that aborts a retrieval run is one of these. The orchestrator
passes them around as values; wrappers such as retrieve_packets() raise them.
"""

from typing import Iterable, Optional


class RetrievalError(Exception):
    """Base class for all retrieval failures."""
    kind = "retrieval_error"


class ConnectionFailure(RetrievalError):
    """The TCP connection could not be established or was lost."""
    kind = "connection_failure"

    def __init__(self, message: str, host: str = "", port: int = 0,
                 cause: Optional[BaseException] = None):
        super().__init__(message)
        self.host = host
        self.port = port
        self.cause = cause


class IncompletePacket(RetrievalError):
    """The connection ended part-way through a frame."""
    kind = "incomplete_packet"

    def __init__(self, received: int, expected: int):
        super().__init__(
            f"Connection closed after {received} of {expected} bytes of a packet")
        self.received = received
        self.expected = expected


class MalformedPacket(RetrievalError):
    """A buffer could not be decoded as a packet."""
    kind = "malformed_packet"


class ProtocolViolation(RetrievalError):
    """The server did something the wire protocol does not allow."""
    kind = "protocol_violation"


class UnrepresentableSequence(ProtocolViolation):
    """A sequence number that does not fit in a resend request's payload byte."""
    kind = "unrepresentable_sequence"

    def __init__(self, sequences: Iterable[int], total: Optional[int] = None):
        """
        Args:
            sequences: The offending sequences, or the first few of them
            total: How many there are in all (default: len(sequences))
        """
        self.sequences = sorted(sequences)
        self.total = len(self.sequences) if total is None else total
        shown = ", ".join(str(s) for s in self.sequences[:10])
        if self.total > min(len(self.sequences), 10):
            shown += f", ... ({self.total} total)"
        super().__init__(
            f"Resend requests can only carry sequences 0-255; cannot request {shown}")
