import numpy as np
import pytest

from budgetsvm.core.chunked_vector import ChunkedVector, chunk_count, last_chunk_length
from budgetsvm.dataloader.streaming_dataset import StreamingDataset
from budgetsvm.utils.errors import VectorIndexError


# ----------------------------------------------------------------------
# shape helpers
# ----------------------------------------------------------------------
@pytest.mark.parametrize(
    "dim,width,count,last",
    [(10, 4, 3, 2), (8, 4, 2, 4), (1, 4, 1, 1), (0, 4, 0, 4), (1000, 1000, 1, 1000)],
)
def test_chunk_count_and_last_length(dim, width, count, last):
    assert chunk_count(dim, width) == count
    assert last_chunk_length(dim, width) == last


# ----------------------------------------------------------------------
# get / set
# ----------------------------------------------------------------------
def test_new_vector_is_all_absent_zero():
    v = ChunkedVector(10, 4)
    assert v.num_chunks == 3
    assert v.allocated_chunks == 0
    assert all(v[i] == 0.0 for i in range(10))
    assert v.sqr_l2_norm == 0.0


def test_set_then_get_round_trip_and_untouched_zero():
    rng = np.random.default_rng(0)
    v = ChunkedVector(50, 7)
    written = {}
    for idx in rng.choice(50, size=15, replace=False):
        val = float(rng.normal())
        v[int(idx)] = val
        written[int(idx)] = val

    for i in range(50):
        assert v[i] == written.get(i, 0.0)


def test_set_allocates_only_covering_chunk():
    v = ChunkedVector(10, 4)
    v[5] = 2.0
    assert v.allocated_chunks == 1
    assert v.chunk(0) is None
    assert v.chunk(1) is not None
    assert v.chunk(2) is None


def test_last_chunk_has_logical_length():
    v = ChunkedVector(10, 4)
    v[9] = 1.0
    assert len(v.chunk(2)) == 2


def test_zero_write_to_absent_chunk_does_not_allocate():
    v = ChunkedVector(10, 4)
    v[3] = 0.0
    assert v.allocated_chunks == 0


def test_chunk_view_is_read_only():
    v = ChunkedVector(4, 4)
    v[0] = 1.0
    with pytest.raises(ValueError):
        v.chunk(0)[0] = 5.0


@pytest.mark.parametrize("idx", [-1, 10, 11])
def test_out_of_range_access_is_fatal(idx):
    v = ChunkedVector(10, 4)
    with pytest.raises(VectorIndexError):
        v[idx] = 1.0
    with pytest.raises(VectorIndexError):
        _ = v[idx]


def test_invalid_construction():
    with pytest.raises(VectorIndexError):
        ChunkedVector(10, 0)
    with pytest.raises(VectorIndexError):
        ChunkedVector(-1, 4)


# ----------------------------------------------------------------------
# norm cache
# ----------------------------------------------------------------------
def test_norm_cache_tracks_overwrites():
    v = ChunkedVector(6, 2)
    v[0] = 3.0
    v[5] = 4.0
    assert v.sqr_l2_norm == pytest.approx(25.0)
    v[0] = 1.0
    assert v.sqr_l2_norm == pytest.approx(17.0)
    v[5] = 0.0
    assert v.sqr_l2_norm == pytest.approx(1.0)


@pytest.mark.parametrize("seed", range(5))
def test_squared_norm_matches_dense_reference(seed):
    rng = np.random.default_rng(seed)
    dim, width = int(rng.integers(1, 200)), int(rng.integers(1, 30))
    v = ChunkedVector(dim, width)
    dense = np.zeros(dim)
    for idx in rng.choice(dim, size=min(dim, 25), replace=False):
        val = float(rng.normal())
        v[int(idx)] = val
        dense[idx] = val

    assert v.squared_norm() == pytest.approx(float(dense @ dense))
    assert v.sqr_l2_norm == pytest.approx(float(dense @ dense))
    np.testing.assert_allclose(v.to_dense(), dense)


def test_clear_resets_values_and_norm():
    v = ChunkedVector(6, 2)
    v[1] = 2.0
    v.clear()
    assert v.allocated_chunks == 0
    assert v.sqr_l2_norm == 0.0


def test_restore_sqr_norm_overrides_cache():
    v = ChunkedVector(3, 2)
    v[0] = 2.0
    v.restore_sqr_norm(4.0)
    assert v.sqr_l2_norm == 4.0
    assert v.recompute_sqr_norm() == pytest.approx(4.0)


# ----------------------------------------------------------------------
# extend_dimensionality
# ----------------------------------------------------------------------
def test_extend_same_dimension_is_noop():
    v = ChunkedVector(10, 4)
    v[2] = 1.5
    v[9] = -2.0
    before = v.to_dense().copy()
    v.extend_dimensionality(10)
    v.extend_dimensionality(10, bias_term=1.0)
    np.testing.assert_array_equal(v.to_dense(), before)
    assert v.dimension == 10


def test_extend_within_last_chunk_preserves_values():
    v = ChunkedVector(5, 4)
    v[4] = 3.0
    v.extend_dimensionality(7)
    assert v.num_chunks == 2
    assert v[4] == 3.0
    assert v[5] == 0.0 and v[6] == 0.0
    assert len(v.chunk(1)) == 3


def test_extend_across_chunks_widens_last_chunk():
    v = ChunkedVector(5, 4)
    v[4] = 3.0
    v.extend_dimensionality(13)
    assert v.num_chunks == 4
    assert len(v.chunk(1)) == 4
    assert v.chunk(2) is None and v.chunk(3) is None
    assert v[4] == 3.0
    assert v.sqr_l2_norm == pytest.approx(9.0)


def test_extend_relocates_bias_coordinate():
    v = ChunkedVector(4, 3)
    v[0] = 1.0
    v[3] = 0.7  # bias 在末尾
    v.extend_dimensionality(9, bias_term=1.0)
    assert v[8] == pytest.approx(0.7)
    assert v[3] == 0.0
    assert v[0] == 1.0
    assert v.sqr_l2_norm == pytest.approx(1.0 + 0.49)


def test_extend_shrink_is_fatal():
    v = ChunkedVector(10, 4)
    with pytest.raises(VectorIndexError):
        v.extend_dimensionality(9)


def test_extend_empty_vector():
    v = ChunkedVector(0, 4)
    v.extend_dimensionality(6)
    assert v.num_chunks == 2
    v[5] = 1.0
    assert v[5] == 1.0


# ----------------------------------------------------------------------
# construction helpers
# ----------------------------------------------------------------------
def test_create_from_row_with_bias(four_rows_file):
    with StreamingDataset(four_rows_file, chunk_size=10) as data:
        data.load_next_chunk()
        v = ChunkedVector(4, 2)
        v.create_from_row(data, 0, bias_term=1.0)

    np.testing.assert_allclose(v.to_dense(), [1.0, 0.0, 2.0, 1.0])
    assert v.sqr_l2_norm == pytest.approx(6.0)


def test_create_from_row_clears_previous_content(four_rows_file):
    with StreamingDataset(four_rows_file) as data:
        data.load_next_chunk()
        v = ChunkedVector(3, 2)
        v[0] = 9.0
        v.create_from_row(data, 1)
    np.testing.assert_allclose(v.to_dense(), [0.0, 1.0, 0.0])


def test_create_from_dense_too_long_is_fatal():
    v = ChunkedVector(2, 2)
    with pytest.raises(VectorIndexError):
        v.create_from_dense([1.0, 2.0, 3.0])


def test_combine_is_convex_combination():
    a = ChunkedVector(5, 2)
    b = ChunkedVector(5, 2)
    a.create_from_dense([1.0, 0.0, 2.0, 0.0, 0.0])
    b.create_from_dense([0.0, 4.0, 2.0, 0.0, 1.0])
    a.combine(b, 0.25)
    expected = 0.25 * np.array([1.0, 0.0, 2.0, 0.0, 0.0]) + 0.75 * np.array([0.0, 4.0, 2.0, 0.0, 1.0])
    np.testing.assert_allclose(a.to_dense(), expected)
    assert a.sqr_l2_norm == pytest.approx(float(expected @ expected))


def test_combine_shape_mismatch_is_fatal():
    with pytest.raises(VectorIndexError):
        ChunkedVector(5, 2).combine(ChunkedVector(6, 2), 0.5)


def test_copy_is_independent():
    a = ChunkedVector(4, 2)
    a[1] = 2.0
    b = a.copy()
    b[1] = 5.0
    assert a[1] == 2.0
    assert a.sqr_l2_norm == pytest.approx(4.0)


def test_nonzero_items_sorted():
    v = ChunkedVector(10, 3)
    for idx, val in [(9, 1.0), (0, 2.0), (4, -1.0)]:
        v[idx] = val
    assert list(v.nonzero_items()) == [(0, 2.0), (4, -1.0), (9, 1.0)]
