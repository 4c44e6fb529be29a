"""
Row-shape constraints across tiers.

basic   → values never increase from tier 0 (highest) to tier 29 (lowest)
smooth  → basic, plus adjacent tiers differ by at most one unit

`enforce` is the final pass of every allocation call and the only step that
may silently lower cells to restore the shape.
"""

from __future__ import annotations
from enum import Enum
from typing import List, Sequence

from .errors import ConfigurationError
from .matrix import ONE, ZERO, AllocationMatrix, to_decimal


class Variant(str, Enum):
    BASIC = "basic"
    SMOOTH = "smooth"

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, value) -> "Variant":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"unknown constraint variant {value!r} (expected 'basic' or 'smooth')"
            ) from None


def is_valid_row(row: Sequence, variant=Variant.BASIC) -> bool:
    smooth = Variant.parse(variant) is Variant.SMOOTH
    if any(c < ZERO for c in row):
        return False
    for prev, cur in zip(row, row[1:]):
        if cur > prev:
            return False
        if smooth and prev - cur > ONE:
            return False
    return True


def fits(row: Sequence, tier: int, value, smooth: bool) -> bool:
    """Would `row` stay valid with `row[tier] = value`? Assumes the rest of the row already is."""
    if value < ZERO:
        return False
    if tier > 0:
        prev = row[tier - 1]
        if value > prev or (smooth and prev - value > ONE):
            return False
    if tier < len(row) - 1:
        nxt = row[tier + 1]
        if nxt > value or (smooth and value - nxt > ONE):
            return False
    return True


def enforce_row(row: Sequence, variant=Variant.BASIC) -> List:
    smooth = Variant.parse(variant) is Variant.SMOOTH
    out = [to_decimal(c) for c in row]
    if not out:
        return out
    if out[0] < ZERO:
        out[0] = ZERO
    for j in range(1, len(out)):
        prev = out[j - 1]
        cur = min(out[j], prev)
        if smooth:
            cur = max(cur, max(prev - ONE, ZERO))
        elif cur < ZERO:
            cur = ZERO
        out[j] = cur
    return out


def enforce_rows(rows, variant=Variant.BASIC) -> List[List]:
    variant = Variant.parse(variant)
    return [enforce_row(r, variant) for r in rows]


def enforce(matrix, variant=Variant.BASIC):
    """Clamp every row into shape. Pure and idempotent; accepts an AllocationMatrix or plain rows."""
    if isinstance(matrix, AllocationMatrix):
        return AllocationMatrix(list(matrix.groups), enforce_rows(matrix.rows, variant), matrix.input_error)
    return enforce_rows(matrix, variant)
