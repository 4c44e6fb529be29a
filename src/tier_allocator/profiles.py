"""
Delivery profiles – one table instead of one service per delivery type.

Each delivery type only differs in which constraint variant it uses, how many
refinement iterations it may spend, and whether its groups are split into two
cohorts. The caller supplies the groups and weights for the type.

Ratio defaults: a profile with cohorts fails fast (ConfigurationError) when
both cohorts are present and no ratios are given. The old 40/60 urban/rural
fallback is kept only as the explicit `market_legacy` profile.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Tuple

from .constraints import Variant
from .engine import allocate
from .errors import ConfigurationError
from .matrix import AllocationMatrix
from .splitter import allocate_proportional

logger = logging.getLogger(__name__)

URBAN = "urban"
RURAL = "rural"
LEGACY_MARKET_RATIOS = (Decimal("0.4"), Decimal("0.6"))


@dataclass(frozen=True)
class DeliveryProfile:
    name: str
    description: str
    variant: Variant = Variant.BASIC
    max_iterations: Optional[int] = None
    cohorts: Optional[Tuple[str, str]] = None
    default_ratios: Optional[Tuple[Decimal, Decimal]] = None

    @property
    def proportional(self) -> bool:
        return self.cohorts is not None


PROFILES: Dict[str, DeliveryProfile] = {p.name: p for p in (
    DeliveryProfile("city", "tier, city-wide", Variant.BASIC, 100),
    DeliveryProfile("county", "tier + county", Variant.BASIC, 100),
    DeliveryProfile("urban_rural_code", "tier + urban/rural classification code", Variant.BASIC, 100),
    DeliveryProfile("business_format", "tier + business format", Variant.BASIC, 100),
    DeliveryProfile("market", "tier + market type (urban/rural split)", Variant.SMOOTH, 500,
                    cohorts=(URBAN, RURAL)),
    DeliveryProfile("market_legacy", "tier + market type, 40/60 when no ratios given", Variant.SMOOTH, 500,
                    cohorts=(URBAN, RURAL), default_ratios=LEGACY_MARKET_RATIOS),
)}


def get_profile(name) -> DeliveryProfile:
    if isinstance(name, DeliveryProfile):
        return name
    try:
        return PROFILES[str(name).strip()]
    except KeyError:
        raise ConfigurationError(f"unknown delivery profile {name!r} (known: {sorted(PROFILES)})") from None


def allocate_for_profile(profile, groups, weights, target, ratio_a=None, ratio_b=None) -> AllocationMatrix:
    p = get_profile(profile)
    if not p.proportional:
        if ratio_a is not None or ratio_b is not None:
            logger.warning(f"[profile] {p.name}: ratios ignored, profile has no cohorts")
        return allocate(groups, weights, target, p.variant, p.max_iterations)

    if ratio_a is None and ratio_b is None and p.default_ratios is not None:
        ratio_a, ratio_b = p.default_ratios
        logger.warning(f"[profile] {p.name}: no ratios supplied, using configured default {ratio_a}/{ratio_b}")
    cohort_a, cohort_b = p.cohorts
    return allocate_proportional(groups, weights, target, cohort_a, cohort_b,
                                 ratio_a, ratio_b, p.variant, p.max_iterations)
