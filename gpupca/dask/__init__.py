"""Dask distributed backend for gpupca."""

from ._pca import dask_pca, dask_pca_transform
from ._utils import get_default_partitions, get_or_create_client, is_dask_collection, validate_dask_input

__all__ = [
    "dask_pca",
    "dask_pca_transform",
    "get_default_partitions",
    "get_or_create_client",
    "is_dask_collection",
    "validate_dask_input",
]
