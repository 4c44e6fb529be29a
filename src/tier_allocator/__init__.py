"""
Tier Allocator Package

Splits a target quantity across groups × 30 tiers so the weighted sum lands
close to the target while every group's row keeps its tier ordering.
"""

__version__ = "0.1.0"

from .constraints import Variant, enforce, is_valid_row
from .engine import AllocationEngine, allocate
from .errors import AllocationError, ConfigurationError, InputError
from .matrix import TIER_COUNT, TIER_LABELS, AllocationMatrix, tier_label, weighted_sum
from .profiles import PROFILES, DeliveryProfile, allocate_for_profile, get_profile
from .splitter import ProportionalSplitter, allocate_proportional

__all__ = [
    "allocate",
    "allocate_proportional",
    "allocate_for_profile",
    "AllocationEngine",
    "ProportionalSplitter",
    "AllocationMatrix",
    "DeliveryProfile",
    "PROFILES",
    "get_profile",
    "Variant",
    "enforce",
    "is_valid_row",
    "weighted_sum",
    "tier_label",
    "TIER_COUNT",
    "TIER_LABELS",
    "AllocationError",
    "InputError",
    "ConfigurationError",
]
