"""Tests for the keyed packet store."""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from messages import Packet
from packet_store import COLUMNS, PacketStore


def make_packet(sequence: int, symbol: str = "MSFT", quantity: int = 10) -> Packet:
    return Packet(symbol=symbol, side="B", quantity=quantity, price=100, sequence=sequence)


class TestPacketStore:

    def test_empty(self):
        store = PacketStore()
        assert len(store) == 0
        assert store.ordered() == []
        assert store.sequences() == []

    def test_add_returns_none_for_new(self):
        store = PacketStore()
        assert store.add(make_packet(1)) is None
        assert 1 in store
        assert 2 not in store

    def test_later_packet_replaces_earlier(self):
        store = PacketStore()
        first = make_packet(3, quantity=10)
        second = make_packet(3, quantity=20)
        store.add(first)

        assert store.add(second) == first
        assert len(store) == 1
        assert store.get(3) == second

    def test_ordered_by_sequence(self):
        store = PacketStore([make_packet(s) for s in (5, 1, 7, 3)])
        assert [p.sequence for p in store.ordered()] == [1, 3, 5, 7]

    def test_no_duplicates_after_backfill(self):
        store = PacketStore([make_packet(s) for s in (1, 2, 4, 5, 7)])
        for s in (3, 6, 4):
            store.add(make_packet(s))
        assert [p.sequence for p in store.ordered()] == [1, 2, 3, 4, 5, 6, 7]

    def test_sequences(self):
        store = PacketStore([make_packet(s) for s in (2, 9)])
        assert sorted(store.sequences()) == [2, 9]


class TestPacketStoreFrame:

    def test_columns_and_order(self):
        store = PacketStore([make_packet(2, "AAPL"), make_packet(1, "MSFT")])
        frame = store.to_frame()
        assert list(frame.columns) == COLUMNS
        assert list(frame["Sequence"]) == [1, 2]
        assert list(frame["Symbol"]) == ["MSFT", "AAPL"]

    def test_empty_frame(self):
        frame = PacketStore().to_frame()
        assert frame.empty
        assert list(frame.columns) == COLUMNS
