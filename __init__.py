"""
ABX Exchange Client

Retrieves the complete trade packet stream from an ABX exchange:
- Stream-all request, reading fixed 17-byte packets until the server closes
- Gap detection over the received sequence numbers
- Targeted resend requests for each missing sequence
- Sequence-ordered output as JSON or CSV
"""

from .errors import (
    RetrievalError,
    ConnectionFailure,
    IncompletePacket,
    MalformedPacket,
    ProtocolViolation,
    UnrepresentableSequence,
)
from .messages import (
    CallType,
    Packet,
    RequestFrame,
    PACKET_SIZE,
    REQUEST_SIZE,
    MAX_RESEND_SEQUENCE,
    encode_stream_all_request,
    encode_resend_request,
    decode_resend_payload,
    decode_packet,
    encode_packet,
)
from .sequence_gaps import find_missing_sequences, unrepresentable_gaps
from .packet_store import PacketStore
from .tcp_packet_client import Outcome, PacketConnection
from .diagnostics import DiagnosticEvent, ErrorLogRecorder, LoggingDiagnosticSink
from .retrieval import (
    BackfillPolicy,
    PacketRetriever,
    RetrievalResult,
    RetrievalStats,
    retrieve_packets,
)
from .packet_writer import CsvPacketWriter, JsonPacketWriter, make_writer
from .config import ClientConfig
from .mock_exchange_server import MockExchangeServer, generate_packets

__all__ = [
    'RetrievalError',
    'ConnectionFailure',
    'IncompletePacket',
    'MalformedPacket',
    'ProtocolViolation',
    'UnrepresentableSequence',
    'CallType',
    'Packet',
    'RequestFrame',
    'PACKET_SIZE',
    'REQUEST_SIZE',
    'MAX_RESEND_SEQUENCE',
    'encode_stream_all_request',
    'encode_resend_request',
    'decode_resend_payload',
    'decode_packet',
    'encode_packet',
    'find_missing_sequences',
    'unrepresentable_gaps',
    'PacketStore',
    'Outcome',
    'PacketConnection',
    'DiagnosticEvent',
    'ErrorLogRecorder',
    'LoggingDiagnosticSink',
    'BackfillPolicy',
    'PacketRetriever',
    'RetrievalResult',
    'RetrievalStats',
    'retrieve_packets',
    'CsvPacketWriter',
    'JsonPacketWriter',
    'make_writer',
    'ClientConfig',
    'MockExchangeServer',
    'generate_packets',
]
