"""DataFrame compatibility layer and feature-matrix extraction."""

from typing import Any

import narwhals as nw
import numpy as np
import polars as pl
import scipy.sparse as sp

DataFrame = Any  # Any object implementing __arrow_c_stream__


def to_polars(df: Any) -> pl.DataFrame:
    """Convert any Arrow-compatible DataFrame to polars.

    Parameters
    ----------
    df : Any
        Input DataFrame. Supports any object implementing the Arrow PyCapsule
        Interface (__arrow_c_stream__), including:
        - polars DataFrame
        - pandas DataFrame (2.0+)
        - duckdb results
        - pyarrow Table
        - cudf DataFrame

    Returns
    -------
    pl.DataFrame
        Polars DataFrame.

    Raises
    ------
    TypeError
        If input doesn't implement __arrow_c_stream__.
    """
    if isinstance(df, pl.DataFrame):
        return df

    if hasattr(df, "__arrow_c_stream__"):
        return nw.from_arrow(df, backend=pl).to_native()

    msg = f"Expected object implementing '__arrow_c_stream__', got: {type(df).__name__}"
    raise TypeError(msg)


def feature_matrix(data, columns=None):
    """Return the ``(n, d)`` feature matrix held by ``data``.

    Parameters
    ----------
    data : ndarray, scipy.sparse matrix or DataFrame
        Rows to analyse. Sparse input is returned in CSR form, everything
        else as a float64 NumPy array.
    columns : list of str, optional
        Numeric columns forming the feature vector when ``data`` is a
        DataFrame. All columns are used when omitted.

    Returns
    -------
    ndarray or scipy.sparse.csr_matrix
        Feature matrix of shape ``(n, d)``.
    """
    if sp.issparse(data):
        if columns is not None:
            raise ValueError("columns can only be given for DataFrame input.")
        return sp.csr_matrix(data, dtype=np.float64)

    if isinstance(data, np.ndarray):
        if columns is not None:
            raise ValueError("columns can only be given for DataFrame input.")
        X = np.asarray(data, dtype=np.float64)
    else:
        df = to_polars(data)
        if columns is not None:
            missing = [c for c in columns if c not in df.columns]
            if missing:
                raise ValueError(f"Columns not found in DataFrame: {missing}")
            df = df.select(columns)
        non_numeric = [name for name, dtype in df.schema.items() if not dtype.is_numeric()]
        if non_numeric:
            raise TypeError(f"Feature columns must be numeric, got non-numeric columns: {non_numeric}")
        X = np.ascontiguousarray(df.to_numpy(), dtype=np.float64)

    if X.ndim == 1:
        X = X.reshape(-1, 1)
    if X.ndim != 2:
        raise ValueError(f"Expected a 2-dimensional feature matrix, got {X.ndim} dimensions.")
    return X
