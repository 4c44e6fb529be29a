"""
Allocation engine – one cohort, start to finish.

    coarse fill  →  local refinement  →  final enforcement

Bad inputs never raise here: the caller gets an all-zero matrix of the right
shape with `input_error` set, and the problem is logged.
"""

from __future__ import annotations
import logging
import time
from decimal import Decimal
from typing import Optional

from .coarse import coarse_rows
from .constraints import Variant, enforce_rows
from .errors import ConfigurationError, InputError
from .matrix import AllocationMatrix, check_target, normalize_weights, weighted_sum
from .refine import refine_rows

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = {
    Variant.BASIC: 100,
    Variant.SMOOTH: 500,
}
ERROR_WARN_THRESHOLD = Decimal("200")  # log-only; the search never stops on it


class AllocationEngine:

    def __init__(self, variant=Variant.BASIC, max_iterations: Optional[int] = None):
        self.variant = Variant.parse(variant)
        if max_iterations is None:
            max_iterations = DEFAULT_MAX_ITERATIONS[self.variant]
        if int(max_iterations) < 0:
            raise ConfigurationError(f"max_iterations must be >= 0, got {max_iterations}")
        self.max_iterations = int(max_iterations)

    def run(self, groups, weights, target) -> AllocationMatrix:
        groups = list(groups) if groups is not None else []
        try:
            target = check_target(target)
            weight_rows = normalize_weights(groups, weights)
        except InputError as e:
            logger.error(f"[engine] invalid input: {e} → zero matrix for {len(groups)} groups")
            return AllocationMatrix.zeros(groups, input_error=e)

        t0 = time.time()
        rows = coarse_rows(weight_rows, target, self.variant)
        coarse_error = abs(target - weighted_sum(rows, weight_rows))
        rows = refine_rows(rows, weight_rows, target, self.max_iterations, self.variant)
        rows = enforce_rows(rows, self.variant)

        actual = weighted_sum(rows, weight_rows)
        error = abs(target - actual)
        logger.info(
            f"[engine] {self.variant.value} groups={len(groups)} target={target} actual={actual} "
            f"error={error} (coarse {coarse_error}) in {time.time() - t0:.2f}s"
        )
        if error > ERROR_WARN_THRESHOLD:
            logger.warning(f"[engine] residual error {error} above {ERROR_WARN_THRESHOLD}")
        return AllocationMatrix(groups, rows)


def allocate(groups, weights, target, variant=Variant.BASIC,
             max_iterations: Optional[int] = None) -> AllocationMatrix:
    return AllocationEngine(variant, max_iterations).run(groups, weights, target)
