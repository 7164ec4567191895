"""GPU-accelerated principal component analysis for local, Dask and Spark data."""

from gpupca.core.backend import HAS_CUPY, get_backend, set_backend, to_device, to_numpy, use_backend
from gpupca.core.config import GramMethod, PCAConfig, SVDSolver
from gpupca.core.results import PCAResult, pca_result
from gpupca.pca import pca, pca_transform

__version__ = "0.1.0"

__all__ = [
    "HAS_CUPY",
    "GramMethod",
    "PCAConfig",
    "PCAResult",
    "SVDSolver",
    "get_backend",
    "pca",
    "pca_result",
    "pca_transform",
    "set_backend",
    "to_device",
    "to_numpy",
    "use_backend",
]
