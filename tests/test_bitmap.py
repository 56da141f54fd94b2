import random

import pytest

from filesystem import Bitmap, VirtualDisk
from fs_errors import OutOfRange


@pytest.fixture
def bitmap():
    return Bitmap(VirtualDisk(512, 256), bitmap_block=1, reserved=(0, 1))


def test_new_bitmap_is_all_free(bitmap):
    assert all(bitmap.is_free(i) for i in range(256))
    assert bitmap.used_blocks() == set()
    assert bitmap.free_blocks_count() == 254


def test_mark_used_persists_bits_in_bitmap_block(bitmap):
    bitmap.mark_used([2, 9])
    raw = bitmap.disk.read_block(1)
    assert raw[0] == 0b00000100
    assert raw[1] == 0b00000010
    assert bitmap.to_bytes() == raw
    assert not bitmap.is_free(2)
    assert not bitmap.is_free(9)


def test_mark_free_clears_bits(bitmap):
    bitmap.mark_used([2, 3, 4])
    bitmap.mark_free([3])
    assert bitmap.used_blocks() == {2, 4}
    assert bitmap.disk.read_block(1)[0] == 0b00010100


def test_reserved_blocks_cannot_be_marked_used(bitmap):
    with pytest.raises(ValueError):
        bitmap.mark_used([0])
    with pytest.raises(ValueError):
        bitmap.mark_used([1])


def test_out_of_range(bitmap):
    with pytest.raises(OutOfRange):
        bitmap.is_free(256)
    with pytest.raises(OutOfRange):
        bitmap.mark_used([300])


def test_find_run_skips_reserved_and_used(bitmap):
    assert bitmap.find_run(3) == [2, 3, 4]
    bitmap.mark_used([3])
    assert bitmap.find_run(1) == [2]
    assert bitmap.find_run(2) == [4, 5]


def test_find_run_returns_none_without_long_enough_run():
    bitmap = Bitmap(VirtualDisk(16, 8), bitmap_block=1, reserved=(0, 1))
    bitmap.mark_used([3, 5, 7])
    assert bitmap.find_run(2) is None
    assert bitmap.find_run(1) == [2]


def test_find_run_of_whole_data_area(bitmap):
    assert bitmap.find_run(254) == list(range(2, 256))
    assert bitmap.find_run(255) is None


def test_find_any_is_first_fit_ascending(bitmap):
    bitmap.mark_used([2, 4])
    assert bitmap.find_any(3) == [3, 5, 6]


def test_find_any_respects_limit(bitmap):
    bitmap.mark_used(range(2, 253))
    assert bitmap.find_any(3) == [253, 254, 255]
    assert bitmap.find_any(3, limit=255) is None
    assert bitmap.find_any(2, limit=255) == [253, 254]


def test_find_any_random_selection_is_reproducible(bitmap):
    first = bitmap.find_any(5, rng=random.Random(7))
    second = bitmap.find_any(5, rng=random.Random(7))
    assert first == second
    assert len(set(first)) == 5
    assert all(b >= 2 and bitmap.is_free(b) for b in first)
