from decimal import Decimal

import numpy as np
import pytest

from tier_allocator.matrix import TIER_COUNT


def pad(values, fill=0):
    return list(values) + [fill] * (TIER_COUNT - len(values))


@pytest.fixture
def paired_weights():
    """Two groups whose weights step down in pairs: A=[10,10,8,8,...], B=[5,5,4,4,...]."""
    return {
        'A': pad([10, 10, 8, 8, 6, 6, 4, 4, 2, 2]),
        'B': pad([5, 5, 4, 4, 3, 3, 2, 2, 1, 1]),
    }


@pytest.fixture
def flat_weights():
    """A=10 and B=4 on every tier; with target 27 the coarse fill stops 3 short."""
    return {'A': [10] * TIER_COUNT, 'B': [4] * TIER_COUNT}


def random_case(seed):
    rng = np.random.default_rng(seed)
    n = int(rng.integers(1, 5))
    groups = [f"g{i}" for i in range(n)]
    weights = {g: rng.integers(0, 40, size=TIER_COUNT).tolist() for g in groups}
    target = Decimal(int(rng.integers(0, 3000)))
    return groups, weights, target
