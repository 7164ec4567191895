"""Shared Spark utilities and reusable helpers."""

from __future__ import annotations


def is_spark_dataframe(data) -> bool:
    """Check if data is a PySpark DataFrame.

    Parameters
    ----------
    data : object
        Input data to check.

    Returns
    -------
    bool
        True if data is a ``pyspark.sql.DataFrame``.
    """
    try:
        from pyspark.sql import DataFrame as SparkDataFrame

        return isinstance(data, SparkDataFrame)
    except ImportError:
        _type_name = type(data).__module__ + "." + type(data).__qualname__
        if "pyspark" in _type_name.lower():
            raise ImportError(
                f"Input data appears to be a PySpark object ({_type_name}) but "
                "the spark extra is not installed. Install with: "
                "pip install 'gpupca[spark]'"
            ) from None
        return False


def validate_spark_input(sdf, required_cols):
    """Validate that a Spark DataFrame has the required columns.

    Parameters
    ----------
    sdf : pyspark.sql.DataFrame
        The Spark DataFrame to validate.
    required_cols : list of str
        Column names that must be present.

    Raises
    ------
    ValueError
        If any required columns are missing.
    """
    missing = [c for c in required_cols if c not in sdf.columns]
    if missing:
        raise ValueError(f"Columns not found in Spark DataFrame: {missing}")


def validate_output_column(sdf, output_col):
    """Raise if ``output_col`` would overwrite an existing column."""
    if output_col in sdf.columns:
        raise ValueError(f"Output column {output_col} already exists.")


def validate_vector_column(sdf, col):
    """Raise ``TypeError`` unless ``col`` holds ``pyspark.ml.linalg`` vectors."""
    from pyspark.ml.linalg import VectorUDT

    dtype = sdf.schema[col].dataType
    if not isinstance(dtype, VectorUDT):
        raise TypeError(f"Column {col} must be of type vector but was {dtype.simpleString()}.")


def vector_column_size(sdf, col):
    """Size of the vectors in ``col``, read from the first non-null row.

    Parameters
    ----------
    sdf : pyspark.sql.DataFrame
        Input DataFrame.
    col : str
        Vector column name.

    Returns
    -------
    int
        Vector dimensionality.

    Raises
    ------
    ValueError
        If the column has no non-null rows.
    """
    from pyspark.sql import functions as F

    first = sdf.select(col).where(F.col(col).isNotNull()).first()
    if first is None:
        raise ValueError("Input dataset is empty.")
    return int(first[0].size)

