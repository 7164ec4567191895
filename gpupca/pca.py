"""Principal component analysis on local, Dask or Spark data."""

from __future__ import annotations

import logging

import numpy as np
import scipy.sparse as sp

from gpupca.core.backend import get_backend, to_numpy
from gpupca.core.config import PCAConfig
from gpupca.core.dataframe import feature_matrix
from gpupca.core.parallel import parallel_map
from gpupca.core.results import pca_result
from gpupca.distributed._fit import block_moments, solve_moments
from gpupca.distributed._gpu import device_label
from gpupca.distributed._moments import _reduce_moment_list
from gpupca.distributed._partition import split_rows

log = logging.getLogger("gpupca.pca")


def pca(
    data,
    k,
    columns=None,
    input_col=None,
    use_gemm=True,
    use_cusolver_svd=True,
    gpu_id=-1,
    mean_centering=True,
    n_partitions=None,
    n_jobs=1,
    client=None,
):
    r"""Compute the top-k principal components of a dataset.

    The sample covariance

    .. math::

        C = \frac{1}{n - 1} \sum_{i=1}^n (x_i - \mu)(x_i - \mu)^T

    is assembled from the moments :math:`(X^T X, X^T 1, n)` of row blocks
    and its leading eigenvectors are returned as the components. Local data
    is processed in ``n_partitions`` blocks exactly as a cluster would
    process its partitions, so results agree with the distributed backends.

    The Gram products and the eigensolver run on the GPU when the CuPy
    backend is active (see :func:`~gpupca.core.backend.use_backend`).

    Parameters
    ----------
    data : ndarray, scipy.sparse matrix, DataFrame, Dask or Spark DataFrame
        Observations in rows. Dask DataFrames dispatch to
        :func:`~gpupca.dask.dask_pca` and Spark DataFrames to
        :func:`~gpupca.spark.spark_pca`.
    k : int
        Number of components.
    columns : list of str, optional
        Numeric feature columns for DataFrame input.
    input_col : str, optional
        Vector column for Spark input.
    use_gemm : bool, default True
        Accumulate Gram matrices with one matrix multiply per block instead
        of per-row symmetric packed (``spr``) updates.
    use_cusolver_svd : bool, default True
        Extract components with the symmetric eigensolver (cuSOLVER on GPU)
        instead of the host SVD. Component signs are then solver dependent.
    gpu_id : int, default -1
        GPU ordinal, ``-1`` for the current device.
    mean_centering : bool, default True
        Subtract column means when forming the covariance.
    n_partitions : int or None, default None
        Number of row blocks for local data, 1 when omitted. For Dask input,
        the minimum number of partitions, defaulting to the cluster thread
        count.
    n_jobs : int, default 1
        Threads used to process the blocks. -1 uses all cores.
    client : distributed.Client, optional
        Dask client used when ``data`` is a Dask DataFrame.

    Returns
    -------
    PCAResult
        Fitted components, explained variance, column means and fit
        settings.

    Examples
    --------
    >>> import numpy as np
    >>> from gpupca import pca
    >>> X = np.array([[2.0, 0.0, 3.0, 4.0, 5.0],
    ...               [0.0, 1.0, 0.0, 7.0, 0.0],
    ...               [4.0, 0.0, 0.0, 6.0, 7.0]])
    >>> result = pca(X, k=2, use_cusolver_svd=False)
    >>> result.pc.shape
    (5, 2)
    """
    if _is_spark(data):
        from gpupca.spark._pca import spark_pca

        if input_col is None:
            raise ValueError("input_col is required for Spark DataFrame input.")
        return spark_pca(
            data,
            input_col,
            k,
            use_gemm=use_gemm,
            use_cusolver_svd=use_cusolver_svd,
            gpu_id=gpu_id,
            mean_centering=mean_centering,
        )

    from gpupca.dask._utils import is_dask_collection

    if is_dask_collection(data):
        from gpupca.dask._pca import dask_pca

        return dask_pca(
            data,
            k,
            columns=columns,
            client=client,
            use_gemm=use_gemm,
            use_cusolver_svd=use_cusolver_svd,
            gpu_id=gpu_id,
            mean_centering=mean_centering,
            n_partitions=n_partitions,
        )

    if input_col is not None:
        raise ValueError("input_col is only supported for Spark DataFrame input.")

    config = PCAConfig(
        k=k,
        use_gemm=use_gemm,
        use_cusolver_svd=use_cusolver_svd,
        gpu_id=gpu_id,
        mean_centering=mean_centering,
    ).validate()

    X = feature_matrix(data, columns=columns)
    config.validate(X.shape[1])

    device = _local_device(config.gpu_id)
    blocks = split_rows(X, 1 if n_partitions is None else n_partitions)
    moment_list = parallel_map(
        block_moments,
        [(block, config.use_gemm, device if config.use_gemm else None) for block in blocks],
        n_jobs=n_jobs,
    )
    log.debug("pca: %d blocks of %d total rows on %s", len(blocks), X.shape[0], device_label(device))

    pc, explained_variance, mean, n_obs = solve_moments(
        _reduce_moment_list(moment_list),
        config,
        device=device if config.use_cusolver_svd else None,
    )
    return pca_result(
        pc,
        explained_variance,
        n_obs,
        mean=mean,
        estimation_params={**config.to_dict(), "device": device_label(device), "backend": "local"},
    )


def pca_transform(result, data, columns=None):
    """Project data onto fitted components.

    Rows are multiplied by the component matrix as they are; column means
    are not subtracted.

    Parameters
    ----------
    result : PCAResult
        Fitted model.
    data : ndarray, scipy.sparse matrix or DataFrame
        Rows to project, with the dimensionality used for fitting.
    columns : list of str, optional
        Feature columns for DataFrame input.

    Returns
    -------
    ndarray of shape (n, k)
        Projected rows.
    """
    X = feature_matrix(data, columns=columns)
    if X.shape[1] != result.n_features:
        raise ValueError(f"Expected {result.n_features} features, got {X.shape[1]}.")
    xp = get_backend()
    if sp.issparse(X):
        return np.asarray(X @ result.pc)
    return to_numpy(xp.asarray(X) @ xp.asarray(result.pc))


def _local_device(gpu_id):
    """Device ordinal for local work: set only when the CuPy backend is active."""
    if get_backend() is np:
        return None
    if gpu_id >= 0:
        return gpu_id
    import cupy as cp

    return cp.cuda.Device().id


def _is_spark(data):
    if "pyspark" not in type(data).__module__:
        return False
    from gpupca.spark._utils import is_spark_dataframe

    return is_spark_dataframe(data)
