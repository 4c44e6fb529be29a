"""
Tier matrices – shapes, labels and exact arithmetic shared by every stage.

• A matrix is one row per group, in the caller's group order (duplicates allowed).
• Every row holds TIER_COUNT cells; rank 0 is the highest tier (label D30),
  rank 29 the lowest (label D1).
• Everything is Decimal. Floats are converted through str() so 0.4 stays 0.4.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from .errors import InputError

logger = logging.getLogger(__name__)

TIER_COUNT = 30
TIER_LABELS = [f"D{TIER_COUNT - rank}" for rank in range(TIER_COUNT)]

ZERO = Decimal(0)
ONE = Decimal(1)


def tier_label(rank: int) -> str:
    if not 0 <= rank < TIER_COUNT:
        raise IndexError(f"tier rank out of range: {rank}")
    return TIER_LABELS[rank]


def to_decimal(value, what="value") -> Decimal:
    """Exact Decimal for a weight/target cell; None and NaN count as absent (zero)."""
    if value is None:
        return ZERO
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, bool):
        raise InputError(f"{what} is not a number: {value!r}")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, float):
        if math.isnan(value):
            return ZERO
        d = Decimal(str(value))
    else:
        try:
            d = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise InputError(f"{what} is not a number: {value!r}") from None
    if d.is_nan() or d.is_infinite():
        raise InputError(f"{what} is not a finite number: {value!r}")
    return d


def check_target(target) -> Decimal:
    if target is None:
        raise InputError("target is missing")
    t = to_decimal(target, "target")
    if t < ZERO:
        raise InputError(f"target must be non-negative, got {t}")
    return t


def normalize_weights(groups: Sequence[str], weights) -> List[List[Decimal]]:
    """
    Weight rows aligned with `groups`.

    `weights` is either a mapping group -> 30 values or a sequence of rows in
    group order. Raises InputError on empty/mismatched input or negative cells.
    """
    groups = list(groups) if groups is not None else []
    if not groups:
        raise InputError("group list is empty")
    if weights is None or len(weights) == 0:
        raise InputError("weight matrix is empty")

    if isinstance(weights, Mapping):
        missing = [g for g in groups if g not in weights]
        if missing:
            raise InputError(f"no weights for groups {missing}")
        raw_rows = [weights[g] for g in groups]
    else:
        raw_rows = list(weights)
        if len(raw_rows) != len(groups):
            raise InputError(f"weight matrix has {len(raw_rows)} rows for {len(groups)} groups")

    rows = []
    for g, raw in zip(groups, raw_rows):
        if raw is None or isinstance(raw, (str, bytes)) or len(raw) != TIER_COUNT:
            n = "no" if raw is None else len(raw)
            raise InputError(f"group {g!r} has {n} weights, expected {TIER_COUNT}")
        row = [to_decimal(v, f"weight[{g!r}][{rank}]") for rank, v in enumerate(raw)]
        if any(w < ZERO for w in row):
            raise InputError(f"group {g!r} has negative weights")
        rows.append(row)
    return rows


def zero_rows(n: int) -> List[List[Decimal]]:
    return [[ZERO] * TIER_COUNT for _ in range(n)]


def weighted_sum(rows, weight_rows) -> Decimal:
    """Σ allocation × weight – the delivered ("actual") amount."""
    total = ZERO
    for row, weights in zip(rows, weight_rows):
        for cell, w in zip(row, weights):
            if w:
                total += cell * w
    return total


@dataclass
class AllocationMatrix:
    """Per-group allocation rows returned by every allocation entry point."""

    groups: List[str]
    rows: List[List[Decimal]]
    input_error: Optional[InputError] = None

    @classmethod
    def zeros(cls, groups, input_error=None) -> "AllocationMatrix":
        groups = list(groups) if groups is not None else []
        return cls(groups, zero_rows(len(groups)), input_error)

    @property
    def ok(self) -> bool:
        return self.input_error is None

    def __len__(self):
        return len(self.rows)

    def __iter__(self):
        return iter(zip(self.groups, self.rows))

    def row(self, group: str) -> List[Decimal]:
        for g, r in zip(self.groups, self.rows):
            if g == group:
                return list(r)
        raise KeyError(group)

    __getitem__ = row

    def weighted_sum(self, weights) -> Decimal:
        return weighted_sum(self.rows, normalize_weights(self.groups, weights))

    def as_dict(self) -> Dict[str, List[Decimal]]:
        return {g: list(r) for g, r in zip(self.groups, self.rows)}

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame([list(r) for r in self.rows], columns=TIER_LABELS, dtype=object)
        frame.insert(0, 'group', self.groups)
        return frame
