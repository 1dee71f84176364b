import numpy as np
import pytest

from budgetsvm.config.svm_config import LandmarkSampling
from budgetsvm.core.budgeted_vector import VectorKind
from budgetsvm.dataloader.streaming_dataset import StreamingDataset
from budgetsvm.training.landmarks import select_landmarks
from budgetsvm.utils.errors import ConfigurationError

TWO_CLUSTERS = [
    "1 1:0.1 2:0.1",
    "1 1:0.2",
    "1 2:0.2",
    "-1 1:10 2:10",
    "-1 1:10.1 2:10",
    "-1 1:10 2:9.9",
]


@pytest.fixture
def clusters(write_libsvm):
    with StreamingDataset(write_libsvm(TWO_CLUSTERS, "clusters.txt")) as data:
        data.load_next_chunk()
        yield data


def _dense_rows(data):
    return [tuple(r) for r in data.to_csr(data.dimension_highest_seen).toarray()]


def test_random_landmarks_are_distinct_rows(clusters):
    lms = select_landmarks(clusters, 3, LandmarkSampling.RANDOM, seed=0, chunk_width=1)
    rows = _dense_rows(clusters)
    got = [tuple(lm.vector.to_dense()) for lm in lms]

    assert len(lms) == 3
    assert all(lm.kind == VectorKind.LANDMARK for lm in lms)
    assert all(g in rows for g in got)
    assert len(set(got)) == 3


def test_random_landmarks_reproducible_with_seed(clusters):
    a = select_landmarks(clusters, 2, seed=42)
    b = select_landmarks(clusters, 2, seed=42)
    for x, y in zip(a, b):
        np.testing.assert_array_equal(x.vector.to_dense(), y.vector.to_dense())


def test_budget_larger_than_chunk_warns(clusters, recording_reporter, messages):
    lms = select_landmarks(clusters, 10, seed=1, reporter=recording_reporter)
    assert len(lms) == 6
    assert any("landmark points instead of 10" in m for m in messages)


def test_kmedoids_with_k_equal_rows_returns_every_row(clusters):
    lms = select_landmarks(clusters, 6, LandmarkSampling.KMEDOIDS, seed=3)
    got = sorted(tuple(lm.vector.to_dense()) for lm in lms)
    assert got == sorted(_dense_rows(clusters))


def test_kmedoids_returns_rows(clusters):
    lms = select_landmarks(clusters, 2, LandmarkSampling.KMEDOIDS, seed=0)
    rows = _dense_rows(clusters)
    got = [tuple(lm.vector.to_dense()) for lm in lms]
    assert len(set(got)) == 2
    assert all(g in rows for g in got)


def test_kmeans_centers_match_cluster_means(clusters):
    lms = select_landmarks(clusters, 2, LandmarkSampling.KMEANS, seed=0)
    centers = sorted(tuple(lm.vector.to_dense()) for lm in lms)
    np.testing.assert_allclose(centers[0], [0.1, 0.1], atol=1e-6)
    np.testing.assert_allclose(centers[1], [10.1 / 3 + 20 / 3, 29.9 / 3], atol=1e-6)


def test_explicit_dimension(clusters):
    lms = select_landmarks(clusters, 2, dimension=5, seed=0)
    assert all(lm.dimension == 5 for lm in lms)


def test_invalid_budget_is_fatal(clusters):
    with pytest.raises(ConfigurationError):
        select_landmarks(clusters, 0)


def test_empty_chunk_is_fatal(four_rows_file):
    with StreamingDataset(four_rows_file) as data:
        with pytest.raises(ConfigurationError):
            select_landmarks(data, 2)
