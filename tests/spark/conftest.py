"""Shared fixtures for Spark backend tests."""

import pytest


def _spark_available():
    """Return True if a local SparkSession can be created."""
    try:
        from pyspark.sql import SparkSession

        spark = (
            SparkSession.builder.master("local[1]").appName("_probe").config("spark.ui.enabled", "false").getOrCreate()
        )
        spark.stop()
        return True
    except (RuntimeError, OSError, ImportError):
        return False


_HAS_SPARK = None


def has_spark():
    """Cached check for Spark availability."""
    global _HAS_SPARK
    if _HAS_SPARK is None:
        _HAS_SPARK = _spark_available()
    return _HAS_SPARK


@pytest.fixture(scope="module")
def spark_session():
    """Shared SparkSession fixture that skips when Java is not available."""
    if not has_spark():
        pytest.skip("Spark/Java not available")
    from pyspark.sql import SparkSession

    spark = (
        SparkSession.builder.master("local[2]")
        .appName("gpupca_test")
        .config("spark.ui.enabled", "false")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.default.parallelism", "2")
        .getOrCreate()
    )
    yield spark
    spark.stop()


@pytest.fixture
def mixed_vectors():
    from pyspark.ml.linalg import Vectors

    return [
        Vectors.dense([2.0, 0.0, 3.0, 4.0, 5.0]),
        Vectors.sparse(5, [(1, 1.0), (3, 7.0)]),
        Vectors.dense([4.0, 0.0, 0.0, 6.0, 7.0]),
    ]


@pytest.fixture
def vector_df(spark_session, mixed_vectors):
    return spark_session.createDataFrame([(v,) for v in mixed_vectors], ["features"])


@pytest.fixture
def uniform_vector_df(spark_session, uniform_data):
    from pyspark.ml.linalg import Vectors

    rows = [(Vectors.dense(row),) for row in uniform_data]
    return spark_session.createDataFrame(rows, ["features"]).coalesce(2)

