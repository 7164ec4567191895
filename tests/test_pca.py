"""Tests for the local PCA entry point."""

import numpy as np
import pandas as pd
import polars as pl
import pytest
import scipy.sparse as sp

from gpupca import PCAResult, pca, pca_transform
from tests.helpers import reference_projection


def test_pca_using_spr(small_dense, small_sparse):
    result = pca(small_sparse, k=3, use_gemm=False, use_cusolver_svd=False)
    projected = pca_transform(result, small_dense)

    assert projected.shape == (3, 3)
    np.testing.assert_allclose(projected, reference_projection(small_dense, 3), atol=1e-5)


def test_pca_using_gemm(small_dense):
    result = pca(small_dense, k=3, use_gemm=True, use_cusolver_svd=False)
    projected = pca_transform(result, small_dense)

    assert projected.shape == (3, 3)
    np.testing.assert_allclose(projected, reference_projection(small_dense, 3), atol=1e-5)


@pytest.mark.parametrize("use_gemm", [True, False])
def test_partitioned_fit_on_rank_deficient_data(small_dense, use_gemm):
    result = pca(small_dense, k=3, use_gemm=use_gemm, use_cusolver_svd=False, n_partitions=2)
    np.testing.assert_allclose(pca_transform(result, small_dense), reference_projection(small_dense, 3), atol=1e-5)


def test_pca_using_cusolver(uniform_data):
    result = pca(uniform_data, k=3, use_gemm=False, use_cusolver_svd=True)
    projected = pca_transform(result, uniform_data)

    assert projected.shape == (100, 3)
    np.testing.assert_allclose(np.abs(projected), np.abs(reference_projection(uniform_data, 3)), atol=1e-5)


@pytest.mark.parametrize("use_gemm", [True, False])
@pytest.mark.parametrize("use_cusolver_svd", [True, False])
def test_sparse_and_dense_give_identical_models(small_dense, small_sparse, use_gemm, use_cusolver_svd):
    kwargs = {"k": 3, "use_gemm": use_gemm, "use_cusolver_svd": use_cusolver_svd, "n_partitions": 2}
    dense = pca(small_dense, **kwargs)
    sparse = pca(small_sparse, **kwargs)

    np.testing.assert_array_equal(dense.pc, sparse.pc)
    np.testing.assert_array_equal(dense.explained_variance, sparse.explained_variance)


def test_spr_and_gemm_agree(correlated_data):
    spr = pca(correlated_data, k=3, use_gemm=False, use_cusolver_svd=False)
    gemm = pca(correlated_data, k=3, use_gemm=True, use_cusolver_svd=False)

    np.testing.assert_allclose(spr.explained_variance, gemm.explained_variance, rtol=1e-10)
    np.testing.assert_allclose(np.abs(spr.pc), np.abs(gemm.pc), atol=1e-8)


def test_components_are_orthonormal(correlated_data):
    result = pca(correlated_data, k=3)
    np.testing.assert_allclose(result.pc.T @ result.pc, np.eye(3), atol=1e-10)


@pytest.mark.parametrize("use_cusolver_svd", [True, False])
def test_explained_variance_sorted_and_non_negative(correlated_data, use_cusolver_svd):
    result = pca(correlated_data, k=5, use_cusolver_svd=use_cusolver_svd)
    ev = result.explained_variance

    assert np.all(ev >= 0)
    assert np.all(np.diff(ev) <= 0)
    assert ev.sum() <= 1.0 + 1e-12


def test_explained_variance_matches_reference(correlated_data):
    s = np.linalg.svd(np.cov(correlated_data, rowvar=False), compute_uv=False)
    result = pca(correlated_data, k=4, use_cusolver_svd=False)
    np.testing.assert_allclose(result.explained_variance, s[:4] / s.sum(), rtol=1e-8)


def test_result_fields(correlated_data):
    result = pca(correlated_data, k=2, use_gemm=False)

    assert isinstance(result, PCAResult)
    assert result.k == 2
    assert result.n_features == 8
    assert result.n_obs == 500
    np.testing.assert_allclose(result.mean, correlated_data.mean(axis=0))
    assert result.estimation_params["gram_method"] == "spr"
    assert result.estimation_params["solver"] == "cusolver"
    assert result.estimation_params["backend"] == "local"
    assert result.estimation_params["device"] == "cpu"


@pytest.mark.parametrize("n_partitions,n_jobs", [(4, 1), (7, 2), (3, -1)])
def test_partitioned_fit_matches_single_block(correlated_data, n_partitions, n_jobs):
    single = pca(correlated_data, k=3)
    split = pca(correlated_data, k=3, n_partitions=n_partitions, n_jobs=n_jobs)

    assert split.n_obs == single.n_obs
    np.testing.assert_allclose(split.explained_variance, single.explained_variance, rtol=1e-10)
    np.testing.assert_allclose(np.abs(split.pc), np.abs(single.pc), atol=1e-8)


def test_more_partitions_than_rows(small_dense):
    result = pca(small_dense, k=2, n_partitions=10)
    assert result.n_obs == 3


def test_without_mean_centering(correlated_data):
    n = correlated_data.shape[0]
    second_moment = correlated_data.T @ correlated_data / (n - 1)
    s = np.linalg.svd(second_moment, compute_uv=False)

    result = pca(correlated_data, k=2, mean_centering=False, use_cusolver_svd=False)
    np.testing.assert_allclose(result.explained_variance, s[:2] / s.sum(), rtol=1e-8)


def test_polars_input_with_columns(correlated_data):
    df = pl.DataFrame({f"x{i}": correlated_data[:, i] for i in range(8)}).with_columns(pl.lit("a").alias("label"))
    cols = [f"x{i}" for i in range(8)]

    from_df = pca(df, k=2, columns=cols)
    from_array = pca(correlated_data, k=2)

    np.testing.assert_allclose(from_df.explained_variance, from_array.explained_variance)
    np.testing.assert_allclose(pca_transform(from_df, df, columns=cols), pca_transform(from_array, correlated_data))


def test_pandas_input(correlated_data):
    df = pd.DataFrame(correlated_data, columns=[f"x{i}" for i in range(8)])
    result = pca(df, k=2)
    assert result.pc.shape == (8, 2)


def test_transform_sparse_input(small_dense, small_sparse):
    result = pca(small_dense, k=2)
    np.testing.assert_allclose(pca_transform(result, small_sparse), pca_transform(result, small_dense))


def test_transform_does_not_center(correlated_data):
    result = pca(correlated_data, k=2)
    np.testing.assert_allclose(pca_transform(result, correlated_data), correlated_data @ result.pc)


def test_transform_dimension_mismatch(correlated_data):
    result = pca(correlated_data, k=2)
    with pytest.raises(ValueError, match="Expected 8 features"):
        pca_transform(result, correlated_data[:, :5])


@pytest.mark.parametrize("k", [0, -1, 2.5])
def test_invalid_k(small_dense, k):
    with pytest.raises(ValueError, match="k must be a positive integer"):
        pca(small_dense, k=k)


def test_k_larger_than_features(small_dense):
    with pytest.raises(ValueError, match="k must not exceed the number of features"):
        pca(small_dense, k=6)


def test_single_row_raises():
    with pytest.raises(ValueError, match="At least two rows"):
        pca(np.array([[1.0, 2.0, 3.0]]), k=1)


def test_empty_input_raises():
    with pytest.raises(ValueError, match="empty"):
        pca(np.empty((0, 3)), k=1)


def test_fewer_rows_than_k_warns(small_dense):
    with pytest.warns(UserWarning, match="beyond the data rank"):
        result = pca(small_dense, k=4)
    assert result.pc.shape == (5, 4)


def test_zero_variance_warns():
    with pytest.warns(UserWarning, match="Total variance is zero"):
        result = pca(np.zeros((4, 3)), k=2)
    np.testing.assert_array_equal(result.explained_variance, np.zeros(2))


def test_input_col_rejected_for_local_data(small_dense):
    with pytest.raises(ValueError, match="input_col is only supported"):
        pca(small_dense, k=2, input_col="features")


def test_columns_rejected_for_array_input(small_dense):
    with pytest.raises(ValueError, match="columns can only be given"):
        pca(small_dense, k=2, columns=["a"])


def test_dask_dataframe_dispatches(correlated_data):
    pytest.importorskip("distributed")
    dd = pytest.importorskip("dask.dataframe")
    from distributed import Client, LocalCluster

    pdf = pd.DataFrame(correlated_data, columns=[f"x{i}" for i in range(8)])
    ddf = dd.from_pandas(pdf, npartitions=3)
    with LocalCluster(n_workers=1, threads_per_worker=1, processes=False) as cluster, Client(cluster) as client:
        result = pca(ddf, k=2, client=client)

    assert result.estimation_params["backend"] == "dask"
    np.testing.assert_allclose(result.explained_variance, pca(correlated_data, k=2).explained_variance, rtol=1e-8)


def test_sparse_matrix_formats_agree(small_dense):
    csr = pca(sp.csr_matrix(small_dense), k=2, use_gemm=False)
    csc = pca(sp.csc_matrix(small_dense), k=2, use_gemm=False)
    np.testing.assert_array_equal(csr.pc, csc.pc)
