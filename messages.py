"""
Message types and wire codec for the ABX exchange packet protocol.

Request frame (2 bytes):
    callType(1) | resendSeq(1)
    callType: 1 = stream all packets, 2 = resend one packet

Response frame (17 bytes, integers big-endian signed):
    symbol(4, ASCII) | buySellIndicator(1, ASCII) | quantity(4) | price(4) | sequence(4)
"""

import struct
from dataclasses import dataclass
from enum import IntEnum

try:
    from .errors import MalformedPacket, UnrepresentableSequence
except ImportError:
    from errors import MalformedPacket, UnrepresentableSequence


REQUEST_SIZE = 2
PACKET_SIZE = 17
MAX_RESEND_SEQUENCE = 255

_PACKET_STRUCT = struct.Struct('>4s1siii')


class CallType(IntEnum):
    """Request call types."""
    STREAM_ALL = 1
    RESEND = 2


@dataclass(frozen=True)
class RequestFrame:
    """A request sent to the exchange."""
    call_type: CallType
    payload: int = 0

    def serialize(self) -> bytes:
        """Serialize to wire format."""
        return bytes((int(self.call_type), self.payload))


@dataclass(frozen=True)
class Packet:
    """A trade packet received from the exchange."""
    symbol: str  # exactly 4 characters, not trimmed
    side: str  # 'B' or 'S', not validated
    quantity: int
    price: int
    sequence: int

    def to_dict(self) -> dict:
        """JSON-ready mapping using the ABX output field names."""
        return {
            "Symbol": self.symbol,
            "BuySellIndicator": self.side,
            "Quantity": self.quantity,
            "Price": self.price,
            "Sequence": self.sequence,
        }


def encode_stream_all_request() -> bytes:
    return RequestFrame(CallType.STREAM_ALL).serialize()


def encode_resend_request(sequence: int) -> bytes:
    """
    Encode a request to resend a single packet.

    The payload is one unsigned byte, so only sequences 0-255 can be asked for.
    Anything else raises UnrepresentableSequence instead of being wrapped.
    """
    if not 0 <= sequence <= MAX_RESEND_SEQUENCE:
        raise UnrepresentableSequence([sequence])
    return RequestFrame(CallType.RESEND, sequence).serialize()


def decode_resend_payload(frame: bytes) -> int:
    """Return the sequence number carried by a resend request frame."""
    if len(frame) != REQUEST_SIZE or frame[0] != CallType.RESEND:
        raise MalformedPacket(f"Not a resend request frame: {frame!r}")
    return frame[1]


def decode_packet(data: bytes) -> Packet:
    """
    Decode one 17-byte response frame.

    The caller must hand over exactly one frame; framing is the connection's job.
    """
    if len(data) != PACKET_SIZE:
        raise MalformedPacket(
            f"Packet must be {PACKET_SIZE} bytes, got {len(data)}")

    symbol, side, quantity, price, sequence = _PACKET_STRUCT.unpack(data)
    try:
        return Packet(
            symbol=symbol.decode('ascii'),
            side=side.decode('ascii'),
            quantity=quantity,
            price=price,
            sequence=sequence,
        )
    except UnicodeDecodeError as e:
        raise MalformedPacket(f"Non-ASCII text field in packet: {e}") from e


def encode_packet(packet: Packet) -> bytes:
    """Encode a packet the way the exchange sends it."""
    symbol = packet.symbol.encode('ascii')
    side = packet.side.encode('ascii')
    if len(symbol) != 4 or len(side) != 1:
        raise ValueError(
            f"Symbol must be 4 characters and side 1, got {packet.symbol!r}/{packet.side!r}")
    return _PACKET_STRUCT.pack(symbol, side, packet.quantity, packet.price, packet.sequence)
