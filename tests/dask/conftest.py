"""Shared fixtures for Dask backend tests."""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture(scope="module")
def dask_client():
    distributed = pytest.importorskip("distributed")

    cluster = distributed.LocalCluster(n_workers=2, threads_per_worker=1, processes=False)
    client = distributed.Client(cluster)
    yield client
    client.close()
    cluster.close()


@pytest.fixture
def feature_frame(correlated_data):
    pdf = pd.DataFrame(correlated_data, columns=[f"x{i}" for i in range(8)])
    pdf["label"] = np.where(correlated_data[:, 0] > 3.0, "a", "b")
    return pdf


@pytest.fixture
def moment_pair(rng):
    d = 3
    a = (rng.standard_normal((d, d)), rng.standard_normal(d), 10)
    b = (rng.standard_normal((d, d)), rng.standard_normal(d), 15)
    return a, b
