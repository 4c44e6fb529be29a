"""
Proportional split – two named cohorts, each allocated on its own share.

• both cohorts present → ratios are mandatory, non-negative and must sum to 1;
  each cohort runs the engine on target × ratio
• one cohort present   → that cohort gets the whole target, ratios ignored
• neither present      → zero matrix flagged with an InputError

Groups that match neither cohort name keep a zero row. Rows come back in the
caller's group order.
"""

from __future__ import annotations
import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .constraints import Variant, enforce_rows
from .engine import AllocationEngine
from .errors import ConfigurationError, InputError
from .matrix import ONE, ZERO, AllocationMatrix, check_target, normalize_weights, to_decimal, zero_rows

logger = logging.getLogger(__name__)


def check_ratios(ratio_a, ratio_b) -> Tuple[Decimal, Decimal]:
    if ratio_a is None or ratio_b is None:
        raise ConfigurationError(
            f"both cohorts present: ratios are required (got ratio_a={ratio_a!r}, ratio_b={ratio_b!r})"
        )
    try:
        ra, rb = to_decimal(ratio_a, "ratio_a"), to_decimal(ratio_b, "ratio_b")
    except InputError as e:
        raise ConfigurationError(str(e)) from None
    if ra < ZERO or rb < ZERO:
        raise ConfigurationError(f"ratios must be non-negative (got {ra}, {rb})")
    if ra + rb != ONE:
        raise ConfigurationError(f"ratios must sum to 1 (got {ra} + {rb} = {ra + rb})")
    return ra, rb


class ProportionalSplitter:

    def __init__(self, cohort_a: str, cohort_b: str, variant=Variant.SMOOTH,
                 max_iterations: Optional[int] = None):
        if cohort_a == cohort_b:
            raise ConfigurationError(f"cohort names must differ (both {cohort_a!r})")
        self.cohort_a = cohort_a
        self.cohort_b = cohort_b
        self.engine = AllocationEngine(variant, max_iterations)

    @property
    def variant(self) -> Variant:
        return self.engine.variant

    def members(self, groups) -> Tuple[List[int], List[int]]:
        idx_a = [i for i, g in enumerate(groups) if g == self.cohort_a]
        idx_b = [i for i, g in enumerate(groups) if g == self.cohort_b]
        return idx_a, idx_b

    def sub_targets(self, groups, target, ratio_a=None, ratio_b=None) -> Dict[str, Decimal]:
        """Cohort name → the target its engine pass will chase. Empty when no cohort is present."""
        target = check_target(target)
        idx_a, idx_b = self.members(list(groups))
        if idx_a and idx_b:
            ra, rb = check_ratios(ratio_a, ratio_b)
            return {self.cohort_a: target * ra, self.cohort_b: target * rb}
        if idx_a:
            return {self.cohort_a: target}
        if idx_b:
            return {self.cohort_b: target}
        return {}

    def split_and_allocate(self, groups, weights, target, ratio_a=None, ratio_b=None) -> AllocationMatrix:
        groups = list(groups) if groups is not None else []
        try:
            target = check_target(target)
            weight_rows = normalize_weights(groups, weights)
        except InputError as e:
            logger.error(f"[split] invalid input: {e} → zero matrix for {len(groups)} groups")
            return AllocationMatrix.zeros(groups, input_error=e)

        idx_a, idx_b = self.members(groups)
        if not idx_a and not idx_b:
            e = InputError(f"no group named {self.cohort_a!r} or {self.cohort_b!r}")
            logger.error(f"[split] {e} → zero matrix")
            return AllocationMatrix.zeros(groups, input_error=e)

        plan = self.sub_targets(groups, target, ratio_a, ratio_b)
        if len(plan) == 2:
            logger.info(f"[split] {self.cohort_a}={plan[self.cohort_a]}  {self.cohort_b}={plan[self.cohort_b]}")
        else:
            (name,) = plan
            logger.info(f"[split] only {name!r} present → full target {target}")
            if ratio_a is not None or ratio_b is not None:
                logger.warning(f"[split] ratios ({ratio_a}, {ratio_b}) ignored: single cohort {name!r}")

        rows = zero_rows(len(groups))
        for name, idx in ((self.cohort_a, idx_a), (self.cohort_b, idx_b)):
            if not idx:
                continue
            part = self.engine.run([groups[i] for i in idx], [weight_rows[i] for i in idx], plan[name])
            if not part.ok:
                return AllocationMatrix.zeros(groups, input_error=part.input_error)
            for i, row in zip(idx, part.rows):
                rows[i] = list(row)

        return AllocationMatrix(groups, enforce_rows(rows, self.variant))


def allocate_proportional(groups, weights, target, cohort_a: str, cohort_b: str,
                          ratio_a=None, ratio_b=None, variant=Variant.SMOOTH,
                          max_iterations: Optional[int] = None) -> AllocationMatrix:
    splitter = ProportionalSplitter(cohort_a, cohort_b, variant, max_iterations)
    return splitter.split_and_allocate(groups, weights, target, ratio_a, ratio_b)
