"""
Gap detection over received sequence numbers.

The lowest and highest sequences seen bound what should exist; nothing below
the minimum or above the maximum is ever reported as missing.
"""

from typing import Iterable, List, Tuple

try:
    from .messages import MAX_RESEND_SEQUENCE
except ImportError:
    from messages import MAX_RESEND_SEQUENCE


def find_missing_sequences(sequences: Iterable[int]) -> List[int]:
    """Return the sequences strictly between min and max that were not seen, ascending."""
    seen = set(sequences)
    if len(seen) < 2:
        return []
    return [n for n in range(min(seen) + 1, max(seen)) if n not in seen]


def unrepresentable_gaps(sequences: Iterable[int], limit: int = 10) -> Tuple[List[int], int]:
    """
    Gaps that a resend request cannot carry (below 0 or above 255).

    Returns the first `limit` of them, ascending, and their total count.
    Work is bounded by the number of sequences seen, not by the width of
    the range, so {1, 2**31 - 1} is as cheap as {1, 3}.
    """
    seen = set(sequences)
    if len(seen) < 2:
        return [], 0

    low, high = min(seen), max(seen)
    # half-open [start, stop) intervals strictly inside (low, high)
    below = (low + 1, min(high, 0))
    above = (max(low + 1, MAX_RESEND_SEQUENCE + 1), high)

    shown: List[int] = []
    total = 0
    for start, stop in (below, above):
        if start >= stop:
            continue
        present = sum(1 for s in seen if start <= s < stop)
        total += (stop - start) - present

        n = start
        while n < stop and len(shown) < limit:
            if n not in seen:
                shown.append(n)
            n += 1

    return shown, total
