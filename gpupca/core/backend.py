"""GPU backend dispatch for array operations."""

from __future__ import annotations

import contextlib
import functools
import logging
import shutil
from contextvars import ContextVar

import numpy as np

try:
    import cupy as cp

    HAS_CUPY = True
except ImportError:
    HAS_CUPY = False
    cp = None

__all__ = [
    "HAS_CUPY",
    "_array_module",
    "get_backend",
    "gpu_available",
    "resolve_device",
    "set_backend",
    "to_device",
    "to_numpy",
    "use_backend",
]

log = logging.getLogger("gpupca.core.backend")

_active_backend: ContextVar[str] = ContextVar("gpupca_backend", default="numpy")
_rmm_initialized = False


def set_backend(name):
    """Set the active array backend.

    Parameters
    ----------
    name : {"numpy", "cupy"}
        Backend to activate. Setting "cupy" requires CuPy to be installed.
    """
    name = _validate_backend_name(name)
    if name == "cupy":
        _init_rmm_pool()
    _active_backend.set(name)


def get_backend():
    """Return the active array module (``numpy`` or ``cupy``).

    Returns
    -------
    module
        ``numpy`` when the backend is "numpy", ``cupy`` when "cupy".
    """
    if _active_backend.get() == "cupy":
        return cp
    return np


@contextlib.contextmanager
def use_backend(name):
    """Context manager that temporarily activates a backend.

    The previous backend is restored when the context exits, even if an
    exception is raised. Each ``copy_context()`` snapshot inherits the
    value set here, so ``use_backend`` composes correctly with
    :func:`~gpupca.core.parallel.parallel_map`.

    Parameters
    ----------
    name : {"numpy", "cupy"}
        Backend to activate for the duration of the block.
    """
    name = _validate_backend_name(name)
    if name == "cupy":
        _init_rmm_pool()
    token = _active_backend.set(name)
    try:
        yield
    finally:
        _active_backend.reset(token)


def to_device(arr, device=None):
    """Move an array to the active device.

    Parameters
    ----------
    arr : array_like
        Input array (NumPy or CuPy).
    device : int or None, default None
        CUDA device ordinal to place the array on when the CuPy backend is
        active. ``None`` keeps CuPy's current device.

    Returns
    -------
    ndarray
        Array on the active device.
    """
    xp = get_backend()
    if xp is cp:
        if isinstance(arr, cp.ndarray) and device is None:
            return arr
        with _device_scope(device):
            return cp.asarray(arr)
    if HAS_CUPY and hasattr(cp, "ndarray") and isinstance(arr, cp.ndarray):
        return cp.asnumpy(arr)
    return np.asarray(arr)


def to_numpy(arr):
    """Ensure the array is a CPU NumPy array.

    Parameters
    ----------
    arr : array_like
        Input array (NumPy or CuPy).

    Returns
    -------
    numpy.ndarray
        CPU NumPy array.
    """
    if HAS_CUPY and hasattr(cp, "ndarray") and isinstance(arr, cp.ndarray):
        return cp.asnumpy(arr)
    return np.asarray(arr)


def _array_module(*arrays):
    """Return ``cupy`` if any array is a CuPy ndarray, else ``numpy``.

    Partition functions running on Spark executors or Dask workers use this
    to pick the matching ``xp`` module, because the ``ContextVar`` behind
    :func:`get_backend` does not propagate to worker processes.

    Parameters
    ----------
    *arrays : array_like
        One or more arrays to inspect.

    Returns
    -------
    module
        ``cupy`` if any input is a CuPy ndarray, ``numpy`` otherwise.
    """
    if HAS_CUPY and hasattr(cp, "ndarray"):
        for arr in arrays:
            if isinstance(arr, cp.ndarray):
                return cp
    return np


def gpu_available():
    """Return True when CuPy is importable and at least one CUDA device responds."""
    if not HAS_CUPY:
        return False
    if hasattr(cp, "is_available"):
        return bool(cp.is_available())
    try:
        cp.array([1.0])
    except (RuntimeError, AttributeError):
        return False
    return True


def resolve_device(gpu_id=-1, assigned=None):
    """Pick the CUDA device a computation should run on.

    Parameters
    ----------
    gpu_id : int, default -1
        Requested device ordinal. ``-1`` defers to ``assigned``.
    assigned : callable or None, default None
        Zero-argument callable returning the device assigned by the cluster
        manager (for example the Spark task's GPU resource). Defaults to 0.

    Returns
    -------
    int or None
        Device ordinal, or ``None`` when the computation must stay on the
        host because CuPy or a GPU is missing.
    """
    if gpu_id is None or gpu_id < -1:
        raise ValueError(f"gpu_id must be -1 or a non-negative device ordinal, got {gpu_id!r}.")
    if not gpu_available():
        if gpu_id >= 0:
            log.warning("GPU %d requested but no CUDA device is usable; computing on the host", gpu_id)
        return None
    if gpu_id >= 0:
        return gpu_id
    return assigned() if assigned is not None else 0


@contextlib.contextmanager
def _device_scope(device):
    """Enter ``cupy.cuda.Device(device)`` when a device ordinal is given."""
    if device is None or not HAS_CUPY:
        yield
        return
    with cp.cuda.Device(device):
        yield


@functools.lru_cache(1)
def _detect_cuda_version():
    """Try to detect the CUDA major version."""
    import re
    import subprocess

    try:
        out = subprocess.check_output(
            ["nvidia-smi"],
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=5,
        )
        for line in out.splitlines():
            if "CUDA Version" in line:
                part = line.split("CUDA Version:")[-1].strip().rstrip("|").strip()
                return int(part.split(".")[0])
    except (OSError, ValueError):
        pass

    if shutil.which("nvcc") is not None:
        try:
            out = subprocess.check_output(
                ["nvcc", "--version"],
                stderr=subprocess.DEVNULL,
                text=True,
                timeout=5,
            )
            m = re.search(r"release (\d+)\.", out)
            if m:
                return int(m.group(1))
        except (OSError, ValueError):
            pass

    return None


def _cupy_install_message():
    """Build an actionable CuPy install error message."""
    cuda_ver = _detect_cuda_version()
    if cuda_ver is not None:
        wheel = f"cupy-cuda{cuda_ver}x"
        return (
            f"CuPy is not installed. Detected CUDA {cuda_ver}.x on this machine.\n"
            f"Install the matching wheel:\n"
            f"  pip install {wheel}"
        )
    return (
        "CuPy is not installed. Install the wheel matching your CUDA version "
        "(run 'nvidia-smi' or 'nvcc --version' to check):\n"
        "  pip install cupy-cuda11x   # CUDA 11.x\n"
        "  pip install cupy-cuda12x   # CUDA 12.x"
    )


def _validate_backend_name(name):
    """Validate and normalise a backend name.

    Parameters
    ----------
    name : str
        Backend name (case-insensitive).

    Returns
    -------
    str
        Normalised backend name (``"numpy"`` or ``"cupy"``).
    """
    name = name.lower()
    if name not in ("numpy", "cupy"):
        raise ValueError(f"Unknown backend {name!r}. Choose 'numpy' or 'cupy'.")
    if name == "cupy" and not HAS_CUPY:
        raise ImportError(_cupy_install_message())
    if name == "cupy" and not gpu_available():
        raise RuntimeError(
            "CuPy is installed but no CUDA GPU is available. Check your CUDA installation or use backend='numpy'."
        )
    return name


def _init_rmm_pool():
    """Activate the RMM memory-pool allocator for CuPy.

    When ``rmm`` is installed, CuPy's per-allocation ``cudaMalloc`` calls are
    replaced with a pool allocator that grows on demand. If ``rmm`` is not
    installed, this is a silent no-op. An allocator configured by the user
    before the first call is left in place.
    """
    global _rmm_initialized
    if _rmm_initialized:
        return
    try:
        from rmm.allocators.cupy import rmm_cupy_allocator

        if cp.cuda.get_allocator() == rmm_cupy_allocator:
            _rmm_initialized = True
            return

        import rmm

        rmm.reinitialize(pool_allocator=True, initial_pool_size=0)
        cp.cuda.set_allocator(rmm_cupy_allocator)
        _rmm_initialized = True
    except Exception:  # noqa: BLE001
        pass
