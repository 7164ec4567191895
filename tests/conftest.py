"""Shared fixtures for gpupca tests."""

from __future__ import annotations

import numpy as np
import pytest
import scipy.sparse as sp


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def small_dense():
    return np.array(
        [
            [2.0, 0.0, 3.0, 4.0, 5.0],
            [0.0, 1.0, 0.0, 7.0, 0.0],
            [4.0, 0.0, 0.0, 6.0, 7.0],
        ]
    )


@pytest.fixture
def small_sparse(small_dense):
    return sp.csr_matrix(small_dense)


@pytest.fixture
def uniform_data(rng):
    return rng.uniform(size=(100, 20))


@pytest.fixture
def correlated_data(rng):
    latent = rng.standard_normal((500, 3)) * np.array([5.0, 2.0, 0.5])
    loadings = rng.standard_normal((3, 8))
    return latent @ loadings + 0.01 * rng.standard_normal((500, 8)) + 3.0
