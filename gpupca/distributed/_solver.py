"""Extraction of the top-k principal directions from a covariance matrix."""

from __future__ import annotations

import logging
import warnings

import numpy as np

from gpupca.core.backend import HAS_CUPY, _device_scope, to_numpy

log = logging.getLogger("gpupca.distributed.solver")


def svd_components(cov, k):
    """Top-k directions from a host SVD of the covariance.

    Parameters
    ----------
    cov : ndarray of shape (d, d)
        Symmetric covariance matrix.
    k : int
        Number of components.

    Returns
    -------
    pc : ndarray of shape (d, k)
        Leading left singular vectors.
    explained_variance : ndarray of shape (k,)
        Singular values normalised by their total.
    """
    u, s, _ = np.linalg.svd(to_numpy(cov))
    return u[:, :k], _explained_variance(s, k)


def eigh_components(cov, k, device=None):
    """Top-k directions from a symmetric eigendecomposition.

    When ``device`` is given the decomposition runs on that GPU through
    ``cupy.linalg.eigh`` (cuSOLVER ``syevd``); otherwise LAPACK is used.
    The sign of each eigenvector is whatever the solver returns.

    Parameters
    ----------
    cov : ndarray of shape (d, d)
        Symmetric covariance matrix.
    k : int
        Number of components.
    device : int or None, default None
        CUDA device ordinal, or None for the host.

    Returns
    -------
    pc : ndarray of shape (d, k)
        Eigenvectors of the k largest eigenvalues, in decreasing order.
    explained_variance : ndarray of shape (k,)
        Eigenvalues normalised by their total.
    """
    if device is not None and HAS_CUPY:
        import cupy as cp

        try:
            with _device_scope(device):
                w, v = cp.linalg.eigh(cp.asarray(cov))
                w, v = to_numpy(w), to_numpy(v)
        except Exception as e:
            if "OutOfMemory" in type(e).__name__:
                raise MemoryError(
                    "GPU out of memory during the eigendecomposition. Set use_cusolver_svd=False to solve on the host."
                ) from None
            raise
    else:
        w, v = np.linalg.eigh(to_numpy(cov))

    order = np.argsort(w)[::-1]
    w = np.clip(w[order], 0.0, None)
    return v[:, order[:k]], _explained_variance(w, k)


def principal_components(cov, k, use_cusolver_svd=True, device=None):
    """Dispatch to the configured solver.

    Parameters
    ----------
    cov : ndarray of shape (d, d)
        Covariance matrix.
    k : int
        Number of components.
    use_cusolver_svd : bool, default True
        Use the symmetric eigensolver (GPU when ``device`` is set) instead
        of the host SVD.
    device : int or None, default None
        CUDA device for the eigensolver.

    Returns
    -------
    pc : ndarray of shape (d, k)
    explained_variance : ndarray of shape (k,)
    """
    d = cov.shape[0]
    if not 0 < k <= d:
        raise ValueError(f"k must be between 1 and the number of features ({d}), got {k}.")
    if use_cusolver_svd:
        log.debug("eigh solver on %s for a %dx%d covariance", "cpu" if device is None else f"cuda:{device}", d, d)
        return eigh_components(cov, k, device=device)
    log.debug("svd solver on cpu for a %dx%d covariance", d, d)
    return svd_components(cov, k)


def _explained_variance(spectrum, k):
    total = spectrum.sum()
    if total <= 0:
        warnings.warn("Total variance is zero; explained variance is reported as zeros.", UserWarning, stacklevel=3)
        return np.zeros(k, dtype=np.float64)
    return spectrum[:k] / total
