"""Partition sufficient statistics for the covariance matrix.

Each partition contributes a moments triple ``(G, s, n)`` with the Gram
matrix :math:`G = X^T X`, the column sums :math:`s = X^T 1` and the row
count :math:`n`. Triples are summed on the driver (or tree-reduced on a
Dask cluster) and turned into a covariance by
:func:`covariance_from_moments`.
"""

from __future__ import annotations

import functools
import warnings

import numpy as np

from gpupca.core.backend import _array_module, to_numpy


def partition_moments_spr(rows, n_features):
    r"""Accumulate moments row by row with symmetric packed rank-1 updates.

    The upper triangle of :math:`G` is stored packed by columns, the layout
    of the BLAS ``spr`` routine, and each row adds :math:`x x^T` on its
    stored entries only. A sparse row therefore costs
    :math:`O(\mathrm{nnz}^2)`, and a sparse and a dense encoding of the same
    row produce bitwise identical sums because absent entries contribute
    exact zeros in the same accumulation order.

    Parameters
    ----------
    rows : iterable of (ndarray, ndarray)
        ``(indices, values)`` pairs, one per row, with sorted indices.
    n_features : int
        Dimensionality of the rows.

    Returns
    -------
    G : ndarray of shape (n_features, n_features)
        Local Gram matrix.
    col_sum : ndarray of shape (n_features,)
        Local column sums.
    n : int
        Number of rows in this partition.
    """
    packed = np.zeros(n_features * (n_features + 1) // 2, dtype=np.float64)
    col_sum = np.zeros(n_features, dtype=np.float64)
    n = 0
    for indices, values in rows:
        if len(indices) == n_features:
            pos, ii, jj = _dense_packed_positions(n_features)
        else:
            pos, ii, jj = packed_positions(indices)
        packed[pos] += values[ii] * values[jj]
        col_sum[indices] += values
        n += 1
    return unpack_upper(packed, n_features), col_sum, n


def partition_moments_gemm(X):
    """Compute moments of a dense row block with one matrix multiply.

    Runs on whichever device holds ``X``: a CuPy array is multiplied with
    cuBLAS, a NumPy array with the host BLAS.

    Parameters
    ----------
    X : ndarray of shape (n_local, n_features)
        Dense row block (NumPy or CuPy).

    Returns
    -------
    G : ndarray of shape (n_features, n_features)
        Local Gram matrix (NumPy).
    col_sum : ndarray of shape (n_features,)
        Local column sums (NumPy).
    n : int
        Number of rows in this partition.
    """
    xp = _array_module(X)
    try:
        return to_numpy(X.T @ X), to_numpy(X.sum(axis=0)), X.shape[0]
    except Exception as e:
        if xp is not np and "OutOfMemory" in type(e).__name__:
            raise MemoryError(
                "GPU out of memory while computing the Gram matrix. Use more partitions or set use_gemm=False."
            ) from None
        raise


def packed_positions(indices):
    """Packed upper-triangular positions for all index pairs ``i <= j``.

    Parameters
    ----------
    indices : ndarray of int
        Sorted coordinates of a row's stored entries.

    Returns
    -------
    pos : ndarray of int64
        Offsets into the column-packed upper triangle.
    ii, jj : ndarray of int64
        Positions within ``indices`` of the row and column of each pair.
    """
    ii, jj = np.triu_indices(len(indices))
    rows = indices[ii]
    cols = indices[jj]
    return cols * (cols + 1) // 2 + rows, ii, jj


@functools.lru_cache(maxsize=8)
def _dense_packed_positions(n_features):
    return packed_positions(np.arange(n_features, dtype=np.int64))


def unpack_upper(packed, n_features):
    """Expand a column-packed upper triangle into a full symmetric matrix."""
    rows, cols = np.triu_indices(n_features)
    values = packed[cols * (cols + 1) // 2 + rows]
    G = np.zeros((n_features, n_features), dtype=np.float64)
    G[rows, cols] = values
    G[cols, rows] = values
    return G


def covariance_from_moments(G, col_sum, n, mean_centering=True):
    r"""Build the sample covariance from global moments.

    .. math::

        C = \frac{G - n \mu \mu^T}{n - 1}, \qquad \mu = s / n

    Without mean centering the :math:`n \mu \mu^T` term is dropped.

    Parameters
    ----------
    G : ndarray of shape (d, d)
        Global Gram matrix.
    col_sum : ndarray of shape (d,)
        Global column sums.
    n : int
        Total number of rows.
    mean_centering : bool, default True
        Whether to remove the column means.

    Returns
    -------
    cov : ndarray of shape (d, d)
        Sample covariance (or scaled second moment) matrix.
    mean : ndarray of shape (d,)
        Column means.
    """
    if n < 2:
        raise ValueError(f"At least two rows are required to compute a covariance, got {n}.")
    mean = col_sum / n
    if mean_centering:
        cov = (G - n * np.outer(mean, mean)) / (n - 1)
    else:
        cov = G / (n - 1)
    # symmetrise the round-off of the rank-1 correction
    cov = (cov + cov.T) / 2.0
    if np.any(~np.isfinite(cov)):
        warnings.warn("Covariance matrix contains non-finite values; check the input data.", UserWarning, stacklevel=2)
    return cov, mean


def _sum_moment_pair(a, b):
    """Sum two (G, col_sum, n) tuples element-wise."""
    return a[0] + b[0], a[1] + b[1], a[2] + b[2]


def _reduce_moment_list(moment_list):
    """Driver-side sum of collected (G, col_sum, n) tuples.

    Parameters
    ----------
    moment_list : list of (ndarray, ndarray, int) or None
        Collected moment tuples from partitions.

    Returns
    -------
    tuple of (ndarray, ndarray, int) or None
        Summed (G, col_sum, n_total), or None when every entry was None.
    """
    result = None
    for item in moment_list:
        if item is None:
            continue
        result = item if result is None else _sum_moment_pair(result, item)
    return result


def _reduce_group(combine_fn, *items):
    """Reduce a group of items by applying combine_fn pairwise."""
    result = items[0]
    for item in items[1:]:
        result = combine_fn(result, item)
    return result
