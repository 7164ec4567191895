"""Thread-pool execution of per-chunk moment computations."""

from __future__ import annotations

import contextvars
import os
from concurrent.futures import ThreadPoolExecutor, as_completed


def parallel_map(func, args_list, n_jobs=1):
    """Execute ``func(*args)`` for each entry of ``args_list``, optionally in parallel.

    The local PCA path splits its rows into chunks and computes one set of
    moments per chunk. The Gram products are NumPy/CuPy calls that release
    the GIL, so threads are used instead of processes and no chunk is ever
    pickled.

    ``ContextVar`` values (the active backend set by
    :func:`~gpupca.core.backend.use_backend`) are carried into each worker
    thread with :func:`contextvars.copy_context`.

    Parameters
    ----------
    func : callable
        Function to call for each set of arguments.
    args_list : list of tuples
        Arguments for each call.
    n_jobs : int
        1 = sequential (default), -1 = all cores, >1 = that many workers.

    Returns
    -------
    list
        Results in the same order as ``args_list``.
    """
    if n_jobs == 0 or n_jobs < -1:
        raise ValueError(f"n_jobs must be -1 or a positive integer, got {n_jobs}.")
    if n_jobs == 1 or len(args_list) <= 1:
        return [func(*args) for args in args_list]

    max_workers = os.cpu_count() if n_jobs == -1 else n_jobs
    results = [None] * len(args_list)

    # Context.run() must not be entered concurrently on one context object.
    contexts = [contextvars.copy_context() for _ in args_list]

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        future_to_idx = {
            executor.submit(ctx.run, func, *args): i
            for i, (ctx, args) in enumerate(zip(contexts, args_list, strict=True))
        }
        for future in as_completed(future_to_idx):
            results[future_to_idx[future]] = future.result()
    return results
