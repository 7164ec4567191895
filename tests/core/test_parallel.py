"""Tests for the thread-pool map used by the local fit."""

import contextvars

import pytest

from gpupca.core.parallel import parallel_map

_marker = contextvars.ContextVar("marker", default="unset")


def _square(x):
    return x * x


@pytest.mark.parametrize("n_jobs", [1, 2, -1])
def test_results_keep_input_order(n_jobs):
    assert parallel_map(_square, [(i,) for i in range(10)], n_jobs=n_jobs) == [i * i for i in range(10)]


def test_context_is_propagated():
    token = _marker.set("set")
    try:
        seen = parallel_map(_marker.get, [()] * 3, n_jobs=3)
    finally:
        _marker.reset(token)
    assert seen == ["set", "set", "set"]


def test_empty_args():
    assert parallel_map(_square, [], n_jobs=4) == []


@pytest.mark.parametrize("n_jobs", [0, -2])
def test_invalid_n_jobs(n_jobs):
    with pytest.raises(ValueError, match="n_jobs"):
        parallel_map(_square, [(1,)], n_jobs=n_jobs)
