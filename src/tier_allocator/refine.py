"""
Local refinement – single-step hill climb on the coarse matrix.

Each iteration scans every (group, tier) cell, group-major then tier-minor,
trying +1 and then -1. A trial is only looked at if the row keeps its shape.
The move with the strictly smallest |target - Σ allocation × weight| wins
(first one found on ties) and is the only change committed. No improving
move → stop early.
"""

from __future__ import annotations
import logging
from decimal import Decimal
from typing import List, Optional

from .constraints import Variant, fits, is_valid_row
from .matrix import ONE, TIER_COUNT, ZERO, AllocationMatrix, check_target, normalize_weights, weighted_sum

logger = logging.getLogger(__name__)

STEPS = (ONE, -ONE)


def refine_rows(rows, weight_rows, target: Decimal, max_iterations: int,
                variant=Variant.BASIC) -> List[List[Decimal]]:
    variant = Variant.parse(variant)
    smooth = variant is Variant.SMOOTH
    # tuples: trials never write into the working matrix
    rows = [tuple(r) for r in rows]
    current_sum = weighted_sum(rows, weight_rows)
    current_error = abs(target - current_sum)
    start_error = current_error
    iterations = 0

    for iterations in range(1, max_iterations + 1):
        best_error = current_error
        best = None
        for g, row in enumerate(rows):
            row_ok = is_valid_row(row, variant)
            for tier in range(TIER_COUNT):
                for step in STEPS:
                    if step < ZERO and row[tier] <= ZERO:
                        continue
                    value = row[tier] + step
                    if row_ok:
                        if not fits(row, tier, value, smooth):
                            continue
                    elif not is_valid_row(row[:tier] + (value,) + row[tier + 1:], variant):
                        continue
                    error = abs(target - (current_sum + step * weight_rows[g][tier]))
                    if error < best_error:
                        best_error = error
                        best = (g, tier, step)

        if best is None:
            logger.info(f"[refine] no improving move at iteration {iterations}; error={current_error}")
            break

        g, tier, step = best
        row = rows[g]
        rows[g] = row[:tier] + (row[tier] + step,) + row[tier + 1:]
        current_sum += step * weight_rows[g][tier]
        current_error = best_error
        logger.debug(f"[refine] iter {iterations}: group#{g} tier {tier} {step:+} → error={current_error}")
    else:
        if max_iterations:
            logger.info(f"[refine] iteration budget ({max_iterations}) used up; error={current_error}")

    logger.info(f"[refine] error {start_error} → {current_error}")
    return [list(r) for r in rows]


def refine(matrix: AllocationMatrix, weights, target, max_iterations: Optional[int] = 100,
           variant=Variant.BASIC) -> AllocationMatrix:
    groups = list(matrix.groups)
    rows = refine_rows(matrix.rows, normalize_weights(groups, weights), check_target(target),
                       int(max_iterations or 0), variant)
    return AllocationMatrix(groups, rows)
