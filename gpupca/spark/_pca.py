"""Entry point for distributed PCA on a Spark DataFrame."""

from __future__ import annotations

import logging

from gpupca.core.config import PCAConfig
from gpupca.core.results import pca_result
from gpupca.distributed._gpu import device_label

from ._utils import validate_spark_input, validate_vector_column


def spark_pca(
    data,
    input_col,
    k,
    use_gemm=True,
    use_cusolver_svd=True,
    gpu_id=-1,
    mean_centering=True,
):
    r"""Compute the principal components of a Spark vector column.

    Function-style counterpart of :class:`~gpupca.spark.feature.PCA` for
    callers that want the fitted arrays rather than a pipeline stage. The
    covariance

    .. math::

        C = \frac{1}{n - 1} \sum_i (x_i - \mu)(x_i - \mu)^T

    is assembled from per-partition moments computed on the executors and
    decomposed on the driver.

    Users do not need to call this function directly. Passing a Spark
    DataFrame to :func:`~gpupca.pca` dispatches here.

    Parameters
    ----------
    data : pyspark.sql.DataFrame
        Input DataFrame.
    input_col : str
        Column of ``pyspark.ml.linalg`` vectors.
    k : int
        Number of components.
    use_gemm : bool, default True
        Accumulate each partition's Gram matrix with one matrix multiply
        (GPU when available) instead of per-row packed updates.
    use_cusolver_svd : bool, default True
        Extract components with the symmetric eigensolver instead of the
        host SVD.
    gpu_id : int, default -1
        GPU ordinal, ``-1`` for the GPU assigned to each task.
    mean_centering : bool, default True
        Subtract column means when forming the covariance.

    Returns
    -------
    PCAResult
        Fitted components and explained variance.

    See Also
    --------
    pca : Local (non-distributed) PCA. Automatically dispatches to
        ``spark_pca`` when passed a Spark DataFrame.
    """
    from .feature import fit_components

    config = PCAConfig(
        k=k,
        use_gemm=use_gemm,
        use_cusolver_svd=use_cusolver_svd,
        gpu_id=gpu_id,
        mean_centering=mean_centering,
    ).validate()
    validate_spark_input(data, [input_col])
    validate_vector_column(data, input_col)
    logging.getLogger("py4j").setLevel(logging.ERROR)

    pc, explained_variance, mean, n_obs, device = fit_components(data, input_col, config)
    return pca_result(
        pc,
        explained_variance,
        n_obs,
        mean=mean,
        estimation_params={**config.to_dict(), "device": device_label(device), "backend": "spark"},
    )
