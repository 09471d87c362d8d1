#!/usr/bin/env python3
"""
Mock ABX exchange server.

Speaks the same wire protocol as the ABX exchange:
- callType 1: send every packet (minus any dropped ones), then close
- callType 2: send the one packet with the requested sequence, keep the connection open

Dropped sequences, fragmented writes, and a few kinds of misbehaviour can be
switched on to exercise the client's gap handling and framing.

Usage:
    python mock_exchange_server.py [--port PORT] [--count N] [--drop 3,6] [--chunk-size N]
"""

import argparse
import logging
import random
import socket
import threading
import time
from typing import Dict, Iterable, List, Optional, Sequence

try:
    from .messages import REQUEST_SIZE, CallType, Packet, encode_packet
except ImportError:
    from messages import REQUEST_SIZE, CallType, Packet, encode_packet

logger = logging.getLogger(__name__)

DEFAULT_SYMBOLS = ("MSFT", "AAPL", "AMZN", "META")


def generate_packets(count: int, symbols: Sequence[str] = DEFAULT_SYMBOLS,
                     start: int = 1, seed: int = 0) -> List[Packet]:
    """Deterministic packets with consecutive sequence numbers."""
    rng = random.Random(seed)
    return [
        Packet(
            symbol=rng.choice(symbols),
            side=rng.choice('BS'),
            quantity=rng.randint(1, 100) * 10,
            price=rng.randint(50, 500),
            sequence=seq,
        )
        for seq in range(start, start + count)
    ]


class MockExchangeServer:
    """
    TCP server serving a fixed set of packets.

    Each connected client gets its own handler thread.
    """

    def __init__(
        self,
        port: int,
        packets: Iterable[Packet],
        drop_sequences: Iterable[int] = (),
        chunk_size: int = 0,
        duplicate_resends: bool = False,
        truncate_stream_at: Optional[int] = None,
        host: str = '127.0.0.1',
    ):
        """
        Initialize the mock exchange.

        Args:
            port: TCP port to listen on (0 = pick a free one)
            packets: Packets to serve
            drop_sequences: Sequences left out of the stream-all response
            chunk_size: Write responses in pieces of this many bytes (0 = whole)
            duplicate_resends: Answer each resend request with the frame twice
            truncate_stream_at: Close the stream-all response after this many bytes
            host: Interface to bind
        """
        self.port = port
        self.host = host
        self._packets: Dict[int, Packet] = {p.sequence: p for p in packets}
        self._drop = set(drop_sequences)
        self._chunk_size = chunk_size
        self._duplicate_resends = duplicate_resends
        self._truncate_stream_at = truncate_stream_at

        self._server_socket: Optional[socket.socket] = None
        self._running = False
        self._accept_thread: Optional[threading.Thread] = None
        self._handlers: List[threading.Thread] = []

        self._stats_lock = threading.Lock()
        self.connections = 0
        self.stream_requests = 0
        self.resend_requests: List[int] = []

    def start(self) -> bool:
        """Start the server. Returns True on success."""
        try:
            self._server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            self._server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            self._server_socket.bind((self.host, self.port))
            self._server_socket.listen(10)
            self._server_socket.settimeout(1.0)  # For graceful shutdown
            self.port = self._server_socket.getsockname()[1]

            self._running = True
            self._accept_thread = threading.Thread(target=self._accept_loop, daemon=True)
            self._accept_thread.start()

            logger.info(f"Mock exchange started on port {self.port} "
                        f"({len(self._packets)} packets, {len(self._drop)} dropped)")
            return True

        except OSError as e:
            logger.error(f"Failed to start mock exchange: {e}")
            if self._server_socket:
                self._server_socket.close()
                self._server_socket = None
            return False

    def stop(self) -> None:
        """Stop the server."""
        self._running = False

        if self._accept_thread:
            self._accept_thread.join(timeout=2.0)
            self._accept_thread = None

        for handler in self._handlers:
            handler.join(timeout=2.0)
        self._handlers.clear()

        if self._server_socket:
            try:
                self._server_socket.close()
            except OSError:
                pass
            self._server_socket = None

        logger.info("Mock exchange stopped")

    def _accept_loop(self) -> None:
        """Accept new connections (runs in its own thread)."""
        while self._running:
            try:
                client_socket, addr = self._server_socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                continue

            with self._stats_lock:
                self.connections += 1

            handler = threading.Thread(
                target=self._handle_client, args=(client_socket, addr), daemon=True)
            self._handlers = [t for t in self._handlers if t.is_alive()]
            self._handlers.append(handler)
            handler.start()
            logger.debug(f"Client connected from {addr}")

    def _handle_client(self, client_socket: socket.socket, addr) -> None:
        """Serve one client (runs in per-client thread)."""
        buffer = b""
        client_socket.settimeout(1.0)

        try:
            while self._running:
                try:
                    data = client_socket.recv(4096)
                except socket.timeout:
                    continue
                if not data:
                    break

                buffer += data
                while len(buffer) >= REQUEST_SIZE:
                    request, buffer = buffer[:REQUEST_SIZE], buffer[REQUEST_SIZE:]
                    if not self._handle_request(client_socket, request):
                        return

        except OSError as e:
            logger.debug(f"Client {addr} error: {e}")
        finally:
            try:
                client_socket.close()
            except OSError:
                pass
            logger.debug(f"Client {addr} disconnected")

    def _handle_request(self, client_socket: socket.socket, request: bytes) -> bool:
        """Answer one request. Returns False when the connection should close."""
        call_type, payload = request[0], request[1]

        if call_type == CallType.STREAM_ALL:
            with self._stats_lock:
                self.stream_requests += 1
            data = b"".join(
                encode_packet(self._packets[seq])
                for seq in sorted(self._packets) if seq not in self._drop)
            if self._truncate_stream_at is not None:
                data = data[:self._truncate_stream_at]
            self._send(client_socket, data)
            return False

        if call_type == CallType.RESEND:
            with self._stats_lock:
                self.resend_requests.append(payload)
            packet = self._packets.get(payload)
            if packet is None:
                logger.warning(f"Resend requested for unknown sequence {payload}")
                return False
            data = encode_packet(packet)
            if self._duplicate_resends:
                data += data
            self._send(client_socket, data)
            return True

        logger.warning(f"Unknown call type {call_type}")
        return False

    def _send(self, client_socket: socket.socket, data: bytes) -> None:
        if not self._chunk_size:
            client_socket.sendall(data)
            return
        for i in range(0, len(data), self._chunk_size):
            client_socket.sendall(data[i:i + self._chunk_size])
            time.sleep(0.001)


def main():
    parser = argparse.ArgumentParser(description='Mock ABX Exchange Server')
    parser.add_argument('--port', type=int, default=3000,
                        help='TCP port (default: 3000)')
    parser.add_argument('--count', type=int, default=14,
                        help='Number of packets to serve (default: 14)')
    parser.add_argument('--drop', default='',
                        help='Comma separated sequences to leave out of the stream')
    parser.add_argument('--chunk-size', type=int, default=0, metavar='BYTES',
                        help='Send responses in pieces of this size (default: whole)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        drop = [int(s) for s in args.drop.split(',') if s.strip()]
    except ValueError:
        parser.error(f"--drop must be comma separated integers, got {args.drop!r}")

    server = MockExchangeServer(
        args.port, generate_packets(args.count),
        drop_sequences=drop, chunk_size=args.chunk_size)
    if not server.start():
        return 1

    print(f"Mock exchange listening on port {server.port} (Ctrl+C to quit)")
    try:
        while True:
            time.sleep(1.0)
    except KeyboardInterrupt:
        print("\nShutting down...")
    finally:
        server.stop()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
