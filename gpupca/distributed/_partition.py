"""Conversion of partition rows into the arrays the moment builders consume."""

from __future__ import annotations

import numpy as np
import scipy.sparse as sp


def vector_entries(vector, n_features):
    """Return the ``(indices, values)`` pair describing one input vector.

    Sparse vectors (anything exposing ``indices`` and ``values``, such as
    ``pyspark.ml.linalg.SparseVector``) keep only their stored entries.
    Dense vectors expose every coordinate.

    Parameters
    ----------
    vector : SparseVector, DenseVector or array_like
        One input row.
    n_features : int
        Expected dimensionality.

    Returns
    -------
    indices : ndarray of int64
        Sorted coordinates of the stored entries.
    values : ndarray of float64
        Entry values.

    Raises
    ------
    ValueError
        If the vector size differs from ``n_features``.
    """
    if hasattr(vector, "indices") and hasattr(vector, "values"):
        size = vector.size
        indices = np.asarray(vector.indices, dtype=np.int64)
        values = np.asarray(vector.values, dtype=np.float64)
    else:
        values = np.asarray(vector.toArray() if hasattr(vector, "toArray") else vector, dtype=np.float64).ravel()
        size = values.shape[0]
        indices = np.arange(size, dtype=np.int64)
    if size != n_features:
        raise ValueError(f"All vectors must have the same size: expected {n_features}, got {size}.")
    return indices, values


def iter_vector_rows(vectors, n_features):
    """Yield ``(indices, values)`` for each vector of an iterable."""
    for vector in vectors:
        yield vector_entries(vector, n_features)


def iter_matrix_rows(X):
    """Yield ``(indices, values)`` for each row of a dense or CSR matrix.

    Parameters
    ----------
    X : ndarray or scipy.sparse matrix of shape (n, d)
        Row block.
    """
    if sp.issparse(X):
        X = sp.csr_matrix(X, dtype=np.float64)
        X.sum_duplicates()
        X.sort_indices()
        for i in range(X.shape[0]):
            start, stop = X.indptr[i], X.indptr[i + 1]
            yield X.indices[start:stop].astype(np.int64), X.data[start:stop]
        return
    X = np.asarray(X, dtype=np.float64)
    indices = np.arange(X.shape[1], dtype=np.int64)
    for row in X:
        yield indices, row


def rows_to_dense(rows, n_features):
    """Stack ``(indices, values)`` rows into a dense ``(n, n_features)`` block."""
    rows = list(rows)
    X = np.zeros((len(rows), n_features), dtype=np.float64)
    for i, (indices, values) in enumerate(rows):
        X[i, indices] = values
    return X


def split_rows(X, n_partitions):
    """Split a matrix into at most ``n_partitions`` contiguous row blocks.

    Parameters
    ----------
    X : ndarray or scipy.sparse matrix of shape (n, d)
        Matrix to split.
    n_partitions : int
        Requested number of blocks.

    Returns
    -------
    list
        Non-empty row blocks, in row order.
    """
    if n_partitions < 1:
        raise ValueError(f"n_partitions must be at least 1, got {n_partitions}.")
    n = X.shape[0]
    bounds = np.linspace(0, n, min(n_partitions, max(n, 1)) + 1).astype(int)
    return [X[start:stop] for start, stop in zip(bounds[:-1], bounds[1:], strict=True) if stop > start]
