"""GPU device selection for Spark tasks."""

from __future__ import annotations

from gpupca.core.backend import resolve_device


def _get_gpu_device_id():
    """Get the GPU device ID assigned to the current Spark task.

    Uses ``TaskContext.get().resources().get("gpu")`` following the XGBoost
    PySpark pattern, falling back to device 0 if not available.

    Returns
    -------
    int
        GPU device ID.
    """
    try:
        from pyspark import TaskContext

        ctx = TaskContext.get()
        if ctx is not None:
            resources = ctx.resources()
            if "gpu" in resources:
                addrs = resources["gpu"].addresses
                if addrs:
                    return int(addrs[0])
    except (ImportError, RuntimeError, AttributeError):
        pass
    return 0


def _task_device(gpu_id):
    """Device for work running inside a Spark task.

    Parameters
    ----------
    gpu_id : int
        Requested ordinal, ``-1`` to use the GPU assigned to the task.

    Returns
    -------
    int or None
        CUDA device ordinal, or None when the task has no usable GPU.
    """
    return resolve_device(gpu_id, assigned=_get_gpu_device_id)
