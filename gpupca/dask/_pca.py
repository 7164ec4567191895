"""Entry point for distributed PCA on a Dask DataFrame."""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from gpupca.core.backend import resolve_device
from gpupca.core.config import PCAConfig
from gpupca.core.results import pca_result
from gpupca.distributed._fit import solve_moments
from gpupca.distributed._gpu import device_label

from ._moments import distributed_moments
from ._utils import get_default_partitions, get_or_create_client, validate_dask_input


def dask_pca(
    data,
    k,
    columns=None,
    client=None,
    use_gemm=True,
    use_cusolver_svd=True,
    gpu_id=-1,
    mean_centering=True,
    n_partitions=None,
    split_every=8,
):
    r"""Compute the principal components of the numeric columns of a Dask DataFrame.

    Each partition's moments :math:`(X^T X, X^T 1, n)` are computed on the
    worker that holds it, on its GPU for the gemm path when one is usable,
    and tree-reduced to the driver, so the full dataset is never
    materialized on one machine.

    Users do not need to call this function directly. Passing a Dask
    DataFrame to :func:`~gpupca.pca` dispatches here.

    Parameters
    ----------
    data : dask.dataframe.DataFrame
        Input data, one row per observation.
    k : int
        Number of components.
    columns : list of str, optional
        Feature columns. All columns are used when omitted.
    client : distributed.Client, optional
        Dask distributed client. If None, a local client is created.
    use_gemm : bool, default True
        Accumulate Gram matrices with one matrix multiply per partition
        instead of per-row packed updates.
    use_cusolver_svd : bool, default True
        Extract components with the symmetric eigensolver instead of the
        host SVD.
    gpu_id : int, default -1
        GPU ordinal used on the workers and the driver.
    mean_centering : bool, default True
        Subtract column means when forming the covariance.
    n_partitions : int or None, default None
        Minimum number of partitions to spread the moment tasks over. Inputs
        with fewer partitions are repartitioned. Defaults to the total
        number of worker threads, see
        :func:`~gpupca.dask.get_default_partitions`.
    split_every : int, default 8
        Fan-in of the tree-reduce.

    Returns
    -------
    PCAResult
        Fitted components and explained variance.

    See Also
    --------
    pca : Local (non-distributed) PCA. Automatically dispatches to
        ``dask_pca`` when passed a Dask DataFrame.
    """
    config = PCAConfig(
        k=k,
        use_gemm=use_gemm,
        use_cusolver_svd=use_cusolver_svd,
        gpu_id=gpu_id,
        mean_centering=mean_centering,
    ).validate()
    if isinstance(columns, str):
        raise TypeError(f"columns must be a list of strings, not a string. Use columns=['{columns}'].")

    client = get_or_create_client(client)
    logging.getLogger("distributed.shuffle").setLevel(logging.ERROR)

    columns = list(data.columns) if columns is None else list(columns)
    validate_dask_input(data, columns)
    features = data[columns]
    non_numeric = [c for c, dtype in features.dtypes.items() if not pd.api.types.is_numeric_dtype(dtype)]
    if non_numeric:
        raise TypeError(f"Feature columns must be numeric, got non-numeric columns: {non_numeric}")
    config.validate(len(columns))

    if n_partitions is None:
        n_partitions = get_default_partitions(client)
    if n_partitions < 1:
        raise ValueError(f"n_partitions must be at least 1, got {n_partitions}.")
    if features.npartitions < n_partitions:
        features = features.repartition(npartitions=n_partitions)

    moments = distributed_moments(client, features, config.use_gemm, config.gpu_id, split_every=split_every)
    device = resolve_device(config.gpu_id) if config.use_cusolver_svd else None
    pc, explained_variance, mean, n_obs = solve_moments(moments, config, device=device)
    return pca_result(
        pc,
        explained_variance,
        n_obs,
        mean=mean,
        estimation_params={
            **config.to_dict(),
            "device": device_label(device),
            "backend": "dask",
            "columns": columns,
            "n_partitions": features.npartitions,
        },
    )


def dask_pca_transform(result, data, columns=None, prefix="pc"):
    """Project a Dask DataFrame onto fitted components, lazily.

    Parameters
    ----------
    result : PCAResult
        Fitted model.
    data : dask.dataframe.DataFrame
        Data to project.
    columns : list of str, optional
        Feature columns, in the order used for fitting. Defaults to the
        columns recorded at fit time, then to all columns.
    prefix : str, default "pc"
        Output columns are named ``"{prefix}_{i}"``.

    Returns
    -------
    dask.dataframe.DataFrame
        One float column per component, partitioned like ``data``.
    """
    if columns is None:
        columns = (result.estimation_params or {}).get("columns", list(data.columns))
    columns = list(columns)
    validate_dask_input(data, columns)
    if len(columns) != result.n_features:
        raise ValueError(f"Expected {result.n_features} feature columns, got {len(columns)}.")

    out_cols = [f"{prefix}_{i}" for i in range(result.k)]
    meta = pd.DataFrame({c: pd.Series(dtype=np.float64) for c in out_cols})
    return data[columns].map_partitions(_project_partition, result.pc, out_cols, meta=meta)


def _project_partition(pdf, pc, out_cols):
    projected = pdf.to_numpy(dtype=np.float64) @ pc
    return pd.DataFrame(projected, columns=out_cols, index=pdf.index)
