import pytest

from filesystem import VirtualDisk
from fs_errors import OutOfRange, SizeMismatch


def test_fresh_disk_is_zeroed():
    disk = VirtualDisk(512, 256)
    assert disk.read_block(0) == b'\x00' * 512
    assert disk.read_block(255) == b'\x00' * 512


def test_write_overwrites_block_in_place():
    disk = VirtualDisk(16, 8)
    disk.write_block(3, b'a' * 16)
    disk.write_block(3, b'b' * 16)
    assert disk.read_block(3) == b'b' * 16
    assert disk.read_block(2) == b'\x00' * 16


@pytest.mark.parametrize('block_num', [-1, 8, 100])
def test_out_of_range(block_num):
    disk = VirtualDisk(16, 8)
    with pytest.raises(OutOfRange):
        disk.read_block(block_num)
    with pytest.raises(OutOfRange):
        disk.write_block(block_num, b'\x00' * 16)


@pytest.mark.parametrize('size', [0, 15, 17])
def test_size_mismatch(size):
    disk = VirtualDisk(16, 8)
    with pytest.raises(SizeMismatch):
        disk.write_block(2, b'x' * size)
    assert disk.read_block(2) == b'\x00' * 16


def test_read_blocks_concatenates_in_order():
    disk = VirtualDisk(4, 8)
    disk.write_block(5, b'5555')
    disk.write_block(2, b'2222')
    assert disk.read_blocks([5, 2]) == b'55552222'
