"""Distributed covariance moments via Spark ``mapPartitions`` and driver-side reduce."""

from __future__ import annotations

import logging
import re

from gpupca.distributed._fit import row_moments
from gpupca.distributed._moments import _reduce_moment_list
from gpupca.distributed._partition import iter_vector_rows

from ._gpu import _task_device

log = logging.getLogger("gpupca.spark.moments")

_SIZE_ERROR = re.compile(r"All vectors must have the same size: expected \d+, got \d+\.")


def distributed_moments(sdf, input_col, n_features, use_gemm, gpu_id=-1):
    """Compute global ``(G, col_sum, n)`` moments of a vector column.

    Each Spark task turns its partition into ``(indices, values)`` rows and
    accumulates its local moments, on the task's GPU for the gemm path when
    one is usable. The small :math:`d \\times d` results are collected to
    the driver in partition order and summed.

    Parameters
    ----------
    sdf : pyspark.sql.DataFrame
        Input DataFrame.
    input_col : str
        Column of ``pyspark.ml.linalg`` vectors.
    n_features : int
        Vector dimensionality.
    use_gemm : bool
        Gram accumulation path.
    gpu_id : int, default -1
        Requested device ordinal, ``-1`` for the task-assigned GPU.

    Returns
    -------
    tuple of (ndarray, ndarray, int) or None
        Global moments, or None if no partition held a row.

    Raises
    ------
    ValueError
        If a row holds a vector whose size differs from ``n_features``.
    """
    from pyspark.sql import functions as F

    def _compute_moments(rows):
        device = _task_device(gpu_id) if use_gemm else None
        vectors = (row[0] for row in rows)
        moments = row_moments(iter_vector_rows(vectors, n_features), n_features, use_gemm, device)
        if moments is not None:
            yield moments

    vectors = sdf.select(input_col).where(F.col(input_col).isNotNull())
    try:
        moment_list = vectors.rdd.mapPartitions(_compute_moments).collect()
    except Exception as e:
        message = _vector_size_error(e)
        if message is None:
            raise
        raise ValueError(message) from None
    log.info("distributed_moments: %d non-empty partitions → driver reduce", len(moment_list))
    return _reduce_moment_list(moment_list)


def _vector_size_error(exc):
    """Recover the vector size message from an executor failure, if that is what failed."""
    match = _SIZE_ERROR.search(str(exc))
    return match.group(0) if match else None
