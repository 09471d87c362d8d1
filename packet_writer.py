"""
Writers for the final ordered packet list.

Output goes to a temporary file next to the target and is moved into place
only once fully written, so a failed write never leaves a partial file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Sequence

import pandas as pd

try:
    from .messages import Packet
    from .packet_store import COLUMNS
except ImportError:
    from messages import Packet
    from packet_store import COLUMNS

logger = logging.getLogger(__name__)

FORMATS = ("json", "csv")


class PacketWriter:
    """Base writer: subclasses implement _dump()."""

    def __init__(self, path: str):
        self.path = Path(path)

    def write(self, packets: Sequence[Packet]) -> bool:
        """Write packets. Returns True on success."""
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
                self._dump(packets, f)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Failed to write {self.path}: {e}")
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            return False

        logger.info(f"Wrote {len(packets)} packets to {self.path}")
        return True

    def _dump(self, packets: Sequence[Packet], f) -> None:
        raise NotImplementedError


class JsonPacketWriter(PacketWriter):
    """Indented JSON array, one object per packet."""

    def _dump(self, packets: Sequence[Packet], f) -> None:
        json.dump([p.to_dict() for p in packets], f, indent=2)
        f.write('\n')


class CsvPacketWriter(PacketWriter):
    """CSV with a header row."""

    def _dump(self, packets: Sequence[Packet], f) -> None:
        frame = pd.DataFrame([p.to_dict() for p in packets], columns=COLUMNS)
        frame.to_csv(f, index=False)


def infer_format(path: str) -> str:
    return "csv" if Path(path).suffix.lower() == ".csv" else "json"


def make_writer(path: str, fmt: str = None) -> PacketWriter:
    fmt = fmt or infer_format(path)
    if fmt == "json":
        return JsonPacketWriter(path)
    if fmt == "csv":
        return CsvPacketWriter(path)
    raise ValueError(f"Unknown output format {fmt!r}, expected one of {FORMATS}")
