"""
Coarse fill – greedy first cut that climbs toward the target from below.

Passes run tier-major, group-minor, left to right, adding one unit per cell
whenever the row keeps its shape and the running total stays ≤ target. The
loop stops at the first pass that commits nothing. The visiting order decides
which cells win when the budget runs short, so it must not change.
"""

from __future__ import annotations
import logging
from decimal import Decimal
from typing import List

from .constraints import Variant
from .matrix import ONE, TIER_COUNT, ZERO, AllocationMatrix, check_target, normalize_weights, zero_rows

logger = logging.getLogger(__name__)


def coarse_rows(weight_rows, target: Decimal, variant=Variant.BASIC) -> List[List[Decimal]]:
    smooth = Variant.parse(variant) is Variant.SMOOTH
    rows = zero_rows(len(weight_rows))
    total = ZERO
    passes = 0

    while True:
        passes += 1
        committed = 0
        for tier in range(TIER_COUNT):
            for g, row in enumerate(rows):
                w = weight_rows[g][tier]
                # zero weight never moves the total, so the pass would never settle
                if w <= ZERO or total + w > target:
                    continue
                bumped = row[tier] + ONE
                if tier > 0 and bumped > row[tier - 1]:
                    continue
                if smooth and tier < TIER_COUNT - 1 and bumped - row[tier + 1] > ONE:
                    continue
                row[tier] = bumped
                total += w
                committed += 1
        if not committed:
            break

    logger.info(f"[coarse] {passes} passes, total={total} of target={target}")
    return rows


def coarse_fill(groups, weights, target, variant=Variant.BASIC) -> AllocationMatrix:
    groups = list(groups) if groups is not None else []
    rows = coarse_rows(normalize_weights(groups, weights), check_target(target), variant)
    return AllocationMatrix(groups, rows)
