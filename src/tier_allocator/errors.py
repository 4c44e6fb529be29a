"""
Error taxonomy for the tier allocator.

• InputError          → bad inputs (empty groups, malformed weights, negative target).
                        The engine never raises it; it hands back a zero matrix
                        carrying the error instead.
• ConfigurationError  → bad call configuration (cohort ratios, unknown variant or
                        profile). Always raised.
"""

from __future__ import annotations


class AllocationError(ValueError):
    """Base class for everything the allocator reports."""


class InputError(AllocationError):
    pass


class ConfigurationError(AllocationError):
    pass
