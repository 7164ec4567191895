"""Result container for fitted principal components."""

from typing import NamedTuple

import numpy as np


class PCAResult(NamedTuple):
    """Container for a fitted PCA.

    Attributes
    ----------
    pc : ndarray of shape (n_features, k)
        Principal components, one orthonormal column per component, ordered
        by decreasing explained variance.
    explained_variance : ndarray of shape (k,)
        Proportion of the total variance captured by each component.
    n_features : int
        Dimensionality of the input vectors.
    k : int
        Number of components kept.
    n_obs : int
        Number of rows the model was fitted on.
    mean : ndarray of shape (n_features,), optional
        Column means of the training data.
    uid : str, optional
        Identifier of the estimator that produced the result.
    estimation_params : dict or None
        Dictionary containing the fit settings, or None for a result built
        without them:

        - gram_method: 'spr' or 'gemm'
        - solver: 'svd' or 'cusolver'
        - mean_centering: whether column means were removed
        - gpu_id: requested GPU ordinal
        - device: device the Gram matrix was computed on ('cpu' or 'cuda:N')
        - backend: 'local', 'dask' or 'spark'
    """

    pc: np.ndarray
    explained_variance: np.ndarray
    n_features: int
    k: int
    n_obs: int
    mean: np.ndarray | None = None
    uid: str | None = None
    estimation_params: dict | None = None


def pca_result(
    pc,
    explained_variance,
    n_obs,
    mean=None,
    uid=None,
    estimation_params=None,
):
    """Create a PCA result object.

    Parameters
    ----------
    pc : ndarray of shape (n_features, k)
        Principal components.
    explained_variance : ndarray of shape (k,)
        Explained variance ratios.
    n_obs : int
        Number of training rows.
    mean : ndarray, optional
        Column means.
    uid : str, optional
        Estimator identifier.
    estimation_params : dict, optional
        Fit settings.

    Returns
    -------
    PCAResult
        NamedTuple containing the fitted model.
    """
    pc = np.asarray(pc, dtype=np.float64)
    explained_variance = np.asarray(explained_variance, dtype=np.float64)

    if pc.ndim != 2:
        raise ValueError(f"pc must be a 2-dimensional matrix, got {pc.ndim} dimensions.")
    if explained_variance.shape != (pc.shape[1],):
        raise ValueError(
            f"explained_variance must have one entry per component: got shape {explained_variance.shape} "
            f"for {pc.shape[1]} components."
        )
    if mean is not None:
        mean = np.asarray(mean, dtype=np.float64)

    return PCAResult(
        pc=pc,
        explained_variance=explained_variance,
        n_features=pc.shape[0],
        k=pc.shape[1],
        n_obs=int(n_obs),
        mean=mean,
        uid=uid,
        estimation_params=estimation_params if estimation_params is not None else {},
    )
