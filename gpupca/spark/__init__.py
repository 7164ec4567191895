"""PySpark distributed backend for gpupca."""

from ._pca import spark_pca
from ._utils import is_spark_dataframe, validate_spark_input
from .feature import PCA, PCAModel

__all__ = [
    "PCA",
    "PCAModel",
    "is_spark_dataframe",
    "spark_pca",
    "validate_spark_input",
]
