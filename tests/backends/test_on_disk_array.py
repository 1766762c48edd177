import numpy as np
import pytest

from mdfiles.backends.on_disk_array import OnDiskArray, normalize_index_to_array

DATA = np.arange(4 * 5 * 3, dtype=np.float64).reshape(4, 5, 3)


def take(frames, atoms, xyz_dim) -> np.ndarray:
    return DATA[np.ix_(frames, atoms, xyz_dim)]


@pytest.mark.parametrize(
    ("index", "expected"),
    [
        (None, [0, 1, 2, 3, 4]),
        (slice(None), [0, 1, 2, 3, 4]),
        (slice(1, 4), [1, 2, 3]),
        (slice(0, 0), []),
        (slice(None, None, 2), [0, 2, 4]),
        (slice(-2, None), [3, 4]),
        (slice(None, -1), [0, 1, 2, 3]),
        (slice(None, None, -1), [4, 3, 2, 1, 0]),
        (slice(2, 99), [2, 3, 4]),
        (3, [3]),
        (-1, [4]),
        (np.int64(2), [2]),
        (np.array([4, 0, -2]), [4, 0, 3]),
    ],
)
def test_normalize_index_to_array(index, expected: list[int]) -> None:
    result = normalize_index_to_array(index, 5)
    assert result.dtype == np.int64
    np.testing.assert_array_equal(result, expected)


@pytest.mark.parametrize(
    "index", [5, -6, np.array([1, 5]), np.array([[0, 1]]), "0", 1.0]
)
def test_normalize_index_to_array_raises(index) -> None:
    with pytest.raises(IndexError):
        normalize_index_to_array(index, 5)


@pytest.fixture
def on_disk_array() -> OnDiskArray:
    return OnDiskArray(take, DATA.shape, "float32")


@pytest.mark.parametrize(
    "key",
    [
        (slice(None),),
        (slice(1, 3), slice(None), slice(None)),
        (np.array([3, 0]), slice(None, None, 2), slice(None)),
        (2,),
        (1, 4),
        (slice(None), 0, 2),
        (-1, slice(1, 3), 0),
    ],
)
def test_on_disk_array_getitem(on_disk_array, key) -> None:
    result = on_disk_array[key]
    expected = DATA[key]

    assert result.dtype == np.float32
    assert result.shape == expected.shape
    np.testing.assert_array_equal(result, expected)


def test_on_disk_array_getitem_single_key(on_disk_array) -> None:
    np.testing.assert_array_equal(on_disk_array[1], DATA[1])


def test_on_disk_array_too_many_indices(on_disk_array) -> None:
    with pytest.raises(IndexError):
        on_disk_array[0, 0, 0, 0]


def test_on_disk_array_length_one_dims_are_kept() -> None:
    arr = OnDiskArray(take, (4, 1, 3))
    result = arr[0, :, :]
    assert result.shape == (1, 3)
