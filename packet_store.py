"""
Keyed packet store shared by both retrieval phases.

One store is built per retrieval run and handed from phase to phase.
A packet replaces any earlier packet with the same sequence number.
"""

import logging
from typing import Dict, Iterable, List, Optional

import pandas as pd

try:
    from .messages import Packet
except ImportError:
    from messages import Packet

logger = logging.getLogger(__name__)

COLUMNS = ["Symbol", "BuySellIndicator", "Quantity", "Price", "Sequence"]


class PacketStore:
    """Packets keyed by sequence number."""

    def __init__(self, packets: Iterable[Packet] = ()):
        self._packets: Dict[int, Packet] = {}
        for packet in packets:
            self.add(packet)

    def add(self, packet: Packet) -> Optional[Packet]:
        """Store a packet. Returns the packet it replaced, if any."""
        previous = self._packets.get(packet.sequence)
        self._packets[packet.sequence] = packet
        if previous is not None and previous != packet:
            logger.debug(f"Sequence {packet.sequence} replaced: {previous} -> {packet}")
        return previous

    def sequences(self) -> List[int]:
        return list(self._packets)

    def get(self, sequence: int) -> Optional[Packet]:
        return self._packets.get(sequence)

    def ordered(self) -> List[Packet]:
        """All stored packets, ascending by sequence."""
        return [self._packets[seq] for seq in sorted(self._packets)]

    def to_frame(self) -> pd.DataFrame:
        """Ordered packets as a DataFrame with the output column names."""
        rows = [p.to_dict() for p in self.ordered()]
        return pd.DataFrame(rows, columns=COLUMNS)

    def __len__(self) -> int:
        return len(self._packets)

    def __contains__(self, sequence: int) -> bool:
        return sequence in self._packets
