"""
TCP connection to the ABX exchange.

Sends 2-byte request frames and reads 17-byte packet frames. A stream socket
can split a frame across any number of recv() calls, so reads accumulate until
the full frame has arrived or the peer closes.

Network conditions never raise out of this module: each step returns an
Outcome holding either a value or the RetrievalError that ended it.
"""

import logging
import socket
from dataclasses import dataclass
from typing import Any, Callable, Optional

try:
    from .errors import ConnectionFailure, IncompletePacket, RetrievalError
    from .messages import PACKET_SIZE
except ImportError:
    from errors import ConnectionFailure, IncompletePacket, RetrievalError
    from messages import PACKET_SIZE

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Result of one I/O step: a value, or the error that stopped it."""
    value: Any = None
    error: Optional[RetrievalError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PacketConnection:
    """One TCP connection to the exchange."""

    def __init__(self, host: str, port: int,
                 connect_timeout: Optional[float] = None,
                 read_timeout: Optional[float] = None,
                 socket_factory: Callable[..., socket.socket] = socket.create_connection):
        """
        Args:
            host: Exchange host
            port: Exchange TCP port
            connect_timeout: Seconds to wait for the connection (None = block)
            read_timeout: Seconds to wait on each recv() (None = block)
            socket_factory: Called as socket_factory((host, port), timeout=...)
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self._socket_factory = socket_factory
        self._socket: Optional[socket.socket] = None

        self.bytes_sent = 0
        self.bytes_received = 0

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def _failure(self, action: str, e: BaseException) -> ConnectionFailure:
        return ConnectionFailure(
            f"{action} {self.host}:{self.port} failed: {e}",
            host=self.host, port=self.port, cause=e)

    def connect(self) -> Outcome:
        try:
            self._socket = self._socket_factory(
                (self.host, self.port), timeout=self.connect_timeout)
            self._socket.settimeout(self.read_timeout)
        except OSError as e:
            self.close()
            return Outcome(error=self._failure("Connecting to", e))

        logger.debug(f"Connected to {self.host}:{self.port}")
        return Outcome(True)

    def close(self) -> None:
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

    def send_request(self, frame: bytes) -> Outcome:
        if not self._socket:
            return Outcome(error=ConnectionFailure(
                "Not connected", host=self.host, port=self.port))
        try:
            self._socket.sendall(frame)
        except OSError as e:
            return Outcome(error=self._failure("Sending request to", e))

        self.bytes_sent += len(frame)
        return Outcome(len(frame))

    def read_exact(self, size: int, allow_eof: bool = False) -> Outcome:
        """
        Read exactly `size` bytes.

        If `allow_eof` is set and the peer closes before sending anything,
        the outcome value is None (clean end of stream). A close part-way
        through is always an IncompletePacket.
        """
        if not self._socket:
            return Outcome(error=ConnectionFailure(
                "Not connected", host=self.host, port=self.port))

        buffer = bytearray()
        while len(buffer) < size:
            try:
                chunk = self._socket.recv(size - len(buffer))
            except OSError as e:
                return Outcome(error=self._failure("Reading from", e))

            if not chunk:
                if not buffer and allow_eof:
                    return Outcome(None)
                return Outcome(error=IncompletePacket(len(buffer), size))
            buffer += chunk

        self.bytes_received += size
        return Outcome(bytes(buffer))

    def read_frame(self, allow_eof: bool = False) -> Outcome:
        return self.read_exact(PACKET_SIZE, allow_eof=allow_eof)

    def has_pending_data(self) -> Outcome:
        """
        Peek without blocking; value is True if unread bytes are waiting.

        A closed peer reads as no pending data.
        """
        if not self._socket:
            return Outcome(False)

        previous_timeout = self._socket.gettimeout()
        self._socket.setblocking(False)
        try:
            peeked = self._socket.recv(1, socket.MSG_PEEK)
        except BlockingIOError:
            return Outcome(False)
        except OSError as e:
            return Outcome(error=self._failure("Checking for data from", e))
        finally:
            self._socket.settimeout(previous_timeout)

        return Outcome(bool(peeked))
