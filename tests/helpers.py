"""Shared helpers for gpupca tests."""

from __future__ import annotations

import numpy as np
import pytest

from gpupca.core.backend import HAS_CUPY, set_backend


def reference_covariance(X):
    """Sample covariance assembled from ``(XᵀX, Σx, n)`` like ``RowMatrix.computeCovariance``."""
    X = np.asarray(X, dtype=np.float64)
    n = X.shape[0]
    mean = X.sum(axis=0) / n
    cov = (X.T @ X - n * np.outer(mean, mean)) / (n - 1)
    return (cov + cov.T) / 2.0


def reference_projection(X, k):
    """Project rows onto the top-k left singular vectors of the sample covariance."""
    X = np.asarray(X, dtype=np.float64)
    u, _, _ = np.linalg.svd(reference_covariance(X))
    return X @ u[:, :k]


def _cupy_available():
    """Check if CuPy is installed and a CUDA GPU is actually available."""
    if not HAS_CUPY:
        return False
    try:
        set_backend("cupy")
        set_backend("numpy")
        return True
    except (RuntimeError, ImportError):
        return False


HAS_CUPY_GPU = _cupy_available()

requires_cupy = pytest.mark.skipif(not HAS_CUPY_GPU, reason="CuPy not installed or no CUDA GPU")


def collect_column(df, col):
    """Collect a Spark vector column as a 2-D array, preserving row order."""
    return np.array([row[col].toArray() for row in df.select(col).collect()])
