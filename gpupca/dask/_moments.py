"""Distributed covariance moments via tree-reduce."""

from __future__ import annotations

import logging

import numpy as np

from gpupca.core.backend import resolve_device
from gpupca.distributed._fit import block_moments
from gpupca.distributed._moments import _reduce_group, _sum_moment_pair

log = logging.getLogger("gpupca.dask.moments")


def partition_moments(pdf, use_gemm, gpu_id=-1):
    """Compute the moments of one pandas partition on a worker.

    Parameters
    ----------
    pdf : pandas.DataFrame
        Partition holding only the feature columns.
    use_gemm : bool
        Gram accumulation path.
    gpu_id : int, default -1
        Requested device ordinal for the gemm product, ``-1`` for device 0
        when the worker has a usable GPU.

    Returns
    -------
    tuple of (ndarray, ndarray, int) or None
        Local ``(G, col_sum, n)``, or None for an empty partition.
    """
    X = pdf.to_numpy(dtype=np.float64)
    device = resolve_device(gpu_id) if use_gemm else None
    return block_moments(X, use_gemm, device)


def tree_reduce(client, futures, combine_fn, split_every=8):
    """Tree-reduce a list of futures with configurable fan-in.

    Groups ``split_every`` futures per reduction step and reduces each
    group in a single task on one worker, following the pattern used by
    Dask's internal reductions. With 64 futures and ``split_every=8``
    this produces 9 tasks (8 + 1) instead of the 63 tasks created by
    pairwise reduction.

    Parameters
    ----------
    client : distributed.Client
        Dask distributed client.
    futures : list of Future
        Futures to reduce.
    combine_fn : callable
        Pairwise combiner ``(a, b) -> c``.
    split_every : int, default 8
        Number of futures to combine per reduction step.

    Returns
    -------
    result
        The fully reduced result, materialized on the driver.
    """
    if split_every < 2:
        raise ValueError(f"split_every must be at least 2, got {split_every}.")
    while len(futures) > 1:
        new_futures = []
        for i in range(0, len(futures), split_every):
            group = futures[i : i + split_every]
            if len(group) == 1:
                new_futures.append(group[0])
            else:
                new_futures.append(client.submit(_reduce_group, combine_fn, *group))
        futures = new_futures
    return futures[0].result()


def distributed_moments(client, ddf, use_gemm, gpu_id=-1, split_every=8):
    """Compute global ``(G, col_sum, n)`` moments of a Dask DataFrame.

    Submits :func:`partition_moments` for each partition and tree-reduces
    the results, skipping empty partitions.

    Parameters
    ----------
    client : distributed.Client
        Dask distributed client.
    ddf : dask.dataframe.DataFrame
        DataFrame holding only the feature columns.
    use_gemm : bool
        Gram accumulation path.
    gpu_id : int, default -1
        Requested device ordinal on the workers.
    split_every : int, default 8
        Fan-in of the tree-reduce.

    Returns
    -------
    tuple of (ndarray, ndarray, int) or None
        Global moments, or None when every partition is empty.
    """
    part_futures = client.compute(ddf.to_delayed())
    log.info("distributed_moments: %d partitions → tree-reduce", len(part_futures))
    futures = [client.submit(partition_moments, pf, use_gemm, gpu_id) for pf in part_futures]
    return tree_reduce(client, futures, _sum_optional_moments, split_every=split_every)


def _sum_optional_moments(a, b):
    """Sum two moment tuples where either may be None (empty partition)."""
    if a is None:
        return b
    if b is None:
        return a
    return _sum_moment_pair(a, b)
