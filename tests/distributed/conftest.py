"""Shared fixtures for the framework-agnostic moment and solver tests."""

import numpy as np
import pytest


@pytest.fixture
def moment_pair(rng):
    d = 3
    a = (rng.standard_normal((d, d)), rng.standard_normal(d), 10)
    b = (rng.standard_normal((d, d)), rng.standard_normal(d), 15)
    return a, b


@pytest.fixture
def block(rng):
    X = rng.standard_normal((40, 6))
    X[rng.uniform(size=X.shape) < 0.5] = 0.0
    return X
