"""GPU placement of partition row blocks."""

from __future__ import annotations

import numpy as np


def _to_gpu_block(X, device):
    """Copy a dense float64 row block to a CUDA device.

    Called on a worker after the partition rows have been densified for the
    gemm path. The returned CuPy array lives on ``device``, so the Gram
    product that follows runs there too.

    Parameters
    ----------
    X : ndarray of shape (n_local, d)
        Dense row block.
    device : int
        CUDA device ordinal.

    Returns
    -------
    cupy.ndarray
        Device-resident copy of ``X``.
    """
    import cupy as cp

    with cp.cuda.Device(device):
        return cp.asarray(np.ascontiguousarray(X, dtype=np.float64))


def _maybe_to_gpu_block(X, device):
    """Move ``X`` to ``device`` when one is given, else return it unchanged.

    Parameters
    ----------
    X : ndarray of shape (n_local, d)
        Dense row block.
    device : int or None
        CUDA device ordinal, or None to stay on the host.

    Returns
    -------
    ndarray
        ``X`` itself, or its CuPy copy on ``device``.
    """
    if device is None:
        return X
    return _to_gpu_block(X, device)


def device_label(device):
    """Human-readable device name recorded in fit metadata."""
    return "cpu" if device is None else f"cuda:{device}"
