"""Pytest configuration and fixtures."""

import numpy as np
import pytest

import tapegrad as tg


@pytest.fixture
def rng():
    """Seeded random source for reproducibility."""
    return np.random.default_rng(42)


@pytest.fixture
def vec3():
    """Rank-1 tensor [1, 2, 3]."""
    return tg.Tensor1D[3]([1.0, 2.0, 3.0])


@pytest.fixture(params=sorted(tg.OPS))
def op(request):
    """Fixture that parametrizes over all elementwise operations."""
    return tg.OPS[request.param]
