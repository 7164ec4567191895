"""Tests for the PCA result container."""

import numpy as np
import pytest

from gpupca.core.results import PCAResult, pca_result


def test_pca_result_derives_shapes():
    result = pca_result(np.eye(4)[:, :2], [0.6, 0.3], n_obs=10)
    assert isinstance(result, PCAResult)
    assert result.n_features == 4
    assert result.k == 2
    assert result.n_obs == 10
    assert result.mean is None
    assert result.estimation_params == {}


def test_pca_result_keeps_metadata():
    result = pca_result(np.eye(3)[:, :1], [1.0], n_obs=5, mean=[1, 2, 3], uid="PCA_abc", estimation_params={"k": 1})
    assert result.uid == "PCA_abc"
    assert result.mean.dtype == np.float64
    assert result.estimation_params == {"k": 1}


def test_pca_result_is_immutable():
    result = pca_result(np.eye(2), [0.5, 0.5], n_obs=3)
    with pytest.raises(AttributeError):
        result.k = 1


def test_pca_result_rejects_vector_pc():
    with pytest.raises(ValueError, match="2-dimensional"):
        pca_result(np.ones(3), [1.0], n_obs=3)


def test_pca_result_rejects_mismatched_variance():
    with pytest.raises(ValueError, match="one entry per component"):
        pca_result(np.eye(3)[:, :2], [1.0, 0.5, 0.1], n_obs=3)


def test_direct_results_have_no_params():
    result = PCAResult(pc=np.eye(2), explained_variance=np.ones(2), n_features=2, k=2, n_obs=3)
    assert result.estimation_params is None


def test_factory_results_do_not_share_params():
    first = pca_result(np.eye(2), [0.5, 0.5], n_obs=3)
    second = pca_result(np.eye(2), [0.5, 0.5], n_obs=3)

    assert first.estimation_params == {}
    assert first.estimation_params is not second.estimation_params
