"""Partition-level and driver-level steps shared by every backend."""

from __future__ import annotations

import warnings

import numpy as np
import scipy.sparse as sp

from ._gpu import _maybe_to_gpu_block
from ._moments import covariance_from_moments, partition_moments_gemm, partition_moments_spr
from ._partition import iter_matrix_rows, rows_to_dense
from ._solver import principal_components


def row_moments(rows, n_features, use_gemm, device=None):
    """Moments of one partition given as ``(indices, values)`` rows.

    Parameters
    ----------
    rows : iterable of (ndarray, ndarray)
        Partition rows.
    n_features : int
        Dimensionality of the rows.
    use_gemm : bool
        Densify the partition and use one matrix multiply instead of
        per-row packed updates.
    device : int or None, default None
        CUDA device for the gemm product.

    Returns
    -------
    tuple of (ndarray, ndarray, int) or None
        ``(G, col_sum, n)``, or None for an empty partition.
    """
    if use_gemm:
        X = rows_to_dense(rows, n_features)
        if X.shape[0] == 0:
            return None
        return partition_moments_gemm(_maybe_to_gpu_block(X, device))
    moments = partition_moments_spr(rows, n_features)
    return moments if moments[2] > 0 else None


def block_moments(X, use_gemm, device=None):
    """Moments of one in-memory row block (dense or ``scipy.sparse``).

    Parameters
    ----------
    X : ndarray or scipy.sparse matrix of shape (n_local, d)
        Row block.
    use_gemm : bool
        Gram accumulation path.
    device : int or None, default None
        CUDA device for the gemm product.

    Returns
    -------
    tuple of (ndarray, ndarray, int) or None
        ``(G, col_sum, n)``, or None for an empty block.
    """
    if X.shape[0] == 0:
        return None
    if use_gemm:
        dense = X.toarray() if sp.issparse(X) else np.asarray(X, dtype=np.float64)
        return partition_moments_gemm(_maybe_to_gpu_block(dense, device))
    return partition_moments_spr(iter_matrix_rows(X), X.shape[1])


def solve_moments(moments, config, device=None):
    """Turn reduced moments into components.

    Parameters
    ----------
    moments : tuple of (ndarray, ndarray, int) or None
        Global ``(G, col_sum, n)``.
    config : PCAConfig
        Fit settings.
    device : int or None, default None
        CUDA device for the eigensolver.

    Returns
    -------
    pc : ndarray of shape (d, k)
    explained_variance : ndarray of shape (k,)
    mean : ndarray of shape (d,)
    n_obs : int
    """
    if moments is None:
        raise ValueError("Input dataset is empty.")
    G, col_sum, n = moments
    if n < config.k:
        warnings.warn(
            f"Fitting {config.k} components on {n} rows; components beyond the data rank are not unique.",
            UserWarning,
            stacklevel=3,
        )
    cov, mean = covariance_from_moments(G, col_sum, n, mean_centering=config.mean_centering)
    pc, explained_variance = principal_components(
        cov,
        config.k,
        use_cusolver_svd=config.use_cusolver_svd,
        device=device,
    )
    return pc, explained_variance, mean, n
