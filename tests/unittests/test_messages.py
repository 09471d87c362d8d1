"""Tests for request encoding and packet decoding."""

import pytest
import struct
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from errors import MalformedPacket, ProtocolViolation, UnrepresentableSequence
from messages import (
    CallType,
    Packet,
    RequestFrame,
    PACKET_SIZE,
    decode_packet,
    decode_resend_payload,
    encode_packet,
    encode_resend_request,
    encode_stream_all_request,
)


def raw_packet(symbol: bytes, side: bytes, quantity: int, price: int, sequence: int) -> bytes:
    return symbol + side + struct.pack('>iii', quantity, price, sequence)


class TestRequestEncoding:
    """Tests for the 2-byte request frames."""

    def test_stream_all_request(self):
        assert encode_stream_all_request() == bytes([1, 0])

    def test_resend_request(self):
        assert encode_resend_request(7) == bytes([2, 7])

    def test_resend_request_bounds(self):
        assert encode_resend_request(0) == bytes([2, 0])
        assert encode_resend_request(255) == bytes([2, 255])

    def test_resend_payload_round_trip(self):
        for seq in (0, 1, 128, 254, 255):
            assert decode_resend_payload(encode_resend_request(seq)) == seq

    def test_resend_above_255_rejected(self):
        with pytest.raises(UnrepresentableSequence) as exc_info:
            encode_resend_request(256)
        assert exc_info.value.sequences == [256]
        assert "256" in str(exc_info.value)

    def test_resend_negative_rejected(self):
        with pytest.raises(UnrepresentableSequence):
            encode_resend_request(-1)

    def test_unrepresentable_is_protocol_violation(self):
        with pytest.raises(ProtocolViolation):
            encode_resend_request(1000)

    def test_request_frame_serialize(self):
        assert RequestFrame(CallType.RESEND, 42).serialize() == b'\x02\x2a'
        assert RequestFrame(CallType.STREAM_ALL).serialize() == b'\x01\x00'

    def test_decode_resend_payload_rejects_stream_all(self):
        with pytest.raises(MalformedPacket):
            decode_resend_payload(encode_stream_all_request())


class TestDecodePacket:
    """Tests for decode_packet."""

    def test_decode_example_packet(self):
        data = raw_packet(b"IBM\0", b"B", 100, 5000, 7)
        assert len(data) == PACKET_SIZE

        packet = decode_packet(data)
        assert packet.symbol == "IBM\0"
        assert packet.side == "B"
        assert packet.quantity == 100
        assert packet.price == 5000
        assert packet.sequence == 7

    def test_decode_sell(self):
        packet = decode_packet(raw_packet(b"MSFT", b"S", 50, 100, 1))
        assert packet.symbol == "MSFT"
        assert packet.side == "S"

    def test_big_endian_layout(self):
        data = b"AAPL" + b"B" + b"\x00\x00\x01\x00" + b"\x00\x01\x00\x00" + b"\x01\x00\x00\x00"
        packet = decode_packet(data)
        assert packet.quantity == 256
        assert packet.price == 65536
        assert packet.sequence == 16777216

    def test_negative_values(self):
        packet = decode_packet(raw_packet(b"AMZN", b"B", -5, -1, -2147483648))
        assert packet.quantity == -5
        assert packet.price == -1
        assert packet.sequence == -2147483648

    def test_side_not_validated(self):
        packet = decode_packet(raw_packet(b"META", b"X", 1, 1, 1))
        assert packet.side == "X"

    def test_symbol_not_trimmed(self):
        packet = decode_packet(raw_packet(b" GE ", b"B", 1, 1, 1))
        assert packet.symbol == " GE "

    def test_short_buffer(self):
        with pytest.raises(MalformedPacket):
            decode_packet(raw_packet(b"MSFT", b"B", 1, 1, 1)[:10])

    def test_long_buffer(self):
        with pytest.raises(MalformedPacket):
            decode_packet(raw_packet(b"MSFT", b"B", 1, 1, 1) + b"\x00")

    def test_empty_buffer(self):
        with pytest.raises(MalformedPacket):
            decode_packet(b"")

    def test_non_ascii_symbol(self):
        with pytest.raises(MalformedPacket):
            decode_packet(raw_packet(b"\xffBM\0", b"B", 1, 1, 1))

    def test_packet_is_immutable(self):
        packet = decode_packet(raw_packet(b"MSFT", b"B", 1, 1, 1))
        with pytest.raises(AttributeError):
            packet.sequence = 2


class TestEncodePacket:
    """Tests for encode_packet, used by the mock exchange."""

    def test_matches_wire_layout(self):
        packet = Packet("MSFT", "S", 100, 5000, 7)
        assert encode_packet(packet) == raw_packet(b"MSFT", b"S", 100, 5000, 7)

    def test_wrong_symbol_width(self):
        with pytest.raises(ValueError):
            encode_packet(Packet("GE", "B", 1, 1, 1))

    def test_wrong_side_width(self):
        with pytest.raises(ValueError):
            encode_packet(Packet("MSFT", "BS", 1, 1, 1))


class TestPacketToDict:

    def test_field_names(self):
        packet = Packet("MSFT", "B", 100, 5000, 7)
        assert packet.to_dict() == {
            "Symbol": "MSFT",
            "BuySellIndicator": "B",
            "Quantity": 100,
            "Price": 5000,
            "Sequence": 7,
        }
