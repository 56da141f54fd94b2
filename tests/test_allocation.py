import pytest

from allocation import (ChainedAllocation, ContiguousAllocation, FileMetadata,
                        IndexBlock, IndexedAllocation, create_strategy)
from filesystem import Bitmap, DiskConfig, VirtualDisk
from fs_errors import (CorruptChain, CorruptIndex, FileTooLarge,
                       InsufficientSpace, InvalidAllocationMethod)


def make_disk(config):
    disk = VirtualDisk(config.block_size, config.total_blocks)
    bitmap = Bitmap(disk, config.bitmap_block, config.reserved_blocks)
    return disk, bitmap


def test_contiguous_pads_last_chunk_and_decodes_padded():
    config = DiskConfig()
    disk, bitmap = make_disk(config)
    strategy = ContiguousAllocation(config)
    data = b'x' * 1000

    blocks = strategy.layout(bitmap, len(data))
    assert blocks == [2, 3]
    metadata = strategy.encode(disk, blocks, data)

    assert metadata == FileMetadata('contiguous', 2, 2, 1000)
    assert disk.read_block(3) == b'x' * 488 + b'\x00' * 24
    assert strategy.decode(disk, metadata) == data + b'\x00' * 24
    assert strategy.walk(disk, metadata) == {2, 3}


def test_contiguous_layout_fails_without_run():
    config = DiskConfig(block_size=16, total_blocks=8, max_name_length=4)
    disk, bitmap = make_disk(config)
    bitmap.mark_used([4, 6])
    with pytest.raises(InsufficientSpace):
        ContiguousAllocation(config).layout(bitmap, 3 * 16)


def test_chained_writes_next_pointers_in_allocation_order():
    config = DiskConfig()
    disk, _ = make_disk(config)
    strategy = ChainedAllocation(config)
    data = bytes(range(256)) * 5

    metadata = strategy.encode(disk, [5, 3, 9], data)

    assert strategy.payload_size == 511
    assert disk.read_block(5)[-1] == 3
    assert disk.read_block(3)[-1] == 9
    assert disk.read_block(9)[-1] == 0xFF
    assert disk.read_block(5)[:511] == data[:511]
    assert metadata.start_block == 5
    assert strategy.block_list(disk, metadata) == [5, 3, 9]
    assert strategy.decode(disk, metadata)[:len(data)] == data


def test_chained_cycle_is_reported():
    config = DiskConfig()
    disk, _ = make_disk(config)
    strategy = ChainedAllocation(config)
    metadata = strategy.encode(disk, [2, 3, 4], b'y' * 1200)

    # last block points back into the chain
    raw = bytearray(disk.read_block(4))
    raw[-1] = 2
    disk.write_block(4, bytes(raw))

    with pytest.raises(CorruptChain):
        strategy.decode(disk, metadata)
    with pytest.raises(CorruptChain):
        strategy.walk(disk, metadata)


def test_chained_pointer_outside_disk_is_reported():
    config = DiskConfig(block_size=64, total_blocks=64)
    disk, _ = make_disk(config)
    strategy = ChainedAllocation(config)
    metadata = strategy.encode(disk, [2], b'z')

    raw = bytearray(disk.read_block(2))
    raw[-1] = 100
    disk.write_block(2, bytes(raw))

    with pytest.raises(CorruptChain):
        strategy.decode(disk, metadata)


def test_pointer_strategies_skip_block_equal_to_sentinel():
    config = DiskConfig()
    _, bitmap = make_disk(config)
    bitmap.mark_used(range(2, 254))
    strategy = ChainedAllocation(config)

    assert strategy.layout(bitmap, 10) == [254]
    with pytest.raises(InsufficientSpace):
        strategy.layout(bitmap, 600)


def test_two_byte_pointers_reach_every_block():
    config = DiskConfig(pointer_size=2)
    _, bitmap = make_disk(config)
    bitmap.mark_used(range(2, 254))
    strategy = ChainedAllocation(config)

    assert strategy.payload_size == 510
    assert strategy.layout(bitmap, 600) == [254, 255]


def test_indexed_writes_index_block():
    config = DiskConfig()
    disk, bitmap = make_disk(config)
    strategy = IndexedAllocation(config)
    data = b'q' * 1100

    blocks = strategy.layout(bitmap, len(data))
    assert blocks == [2, 3, 4, 5]
    metadata = strategy.encode(disk, blocks, data)

    index = disk.read_block(2)
    assert index[:3] == bytes([3, 4, 5])
    assert index[3:] == b'\xff' * 509
    assert metadata == FileMetadata('indexed', 2, 3, 1100)
    assert metadata.index_block == 2
    assert strategy.walk(disk, metadata) == {2, 3, 4, 5}
    assert strategy.decode(disk, metadata) == data + b'\x00' * (3 * 512 - 1100)


def test_indexed_corrupt_entry_is_reported():
    config = DiskConfig(block_size=64, total_blocks=64)
    disk, _ = make_disk(config)
    strategy = IndexedAllocation(config)
    metadata = strategy.encode(disk, [2, 3], b'data')

    raw = bytearray(disk.read_block(2))
    raw[0] = 200
    disk.write_block(2, bytes(raw))

    with pytest.raises(CorruptIndex):
        strategy.decode(disk, metadata)


def test_indexed_layout_limited_by_index_capacity():
    config = DiskConfig(block_size=16, total_blocks=64, pointer_size=2, max_name_length=4)
    _, bitmap = make_disk(config)
    strategy = IndexedAllocation(config)

    assert strategy.entries_per_block == 8
    assert len(strategy.layout(bitmap, 8 * 16)) == 9
    with pytest.raises(FileTooLarge):
        strategy.layout(bitmap, 9 * 16)


def test_index_block_with_two_byte_entries():
    idx = IndexBlock(16, 2, [2, 300, 7])
    raw = idx.to_bytes()
    assert raw[:6] == b'\x00\x02\x01\x2c\x00\x07'
    assert raw[6:] == b'\xff' * 10
    assert IndexBlock.from_bytes(raw, 2).indices == [2, 300, 7]


def test_empty_payload_still_takes_one_block():
    config = DiskConfig()
    _, bitmap = make_disk(config)
    assert ContiguousAllocation(config).layout(bitmap, 0) == [2]
    assert len(IndexedAllocation(config).layout(bitmap, 0)) == 2


def test_create_strategy():
    config = DiskConfig()
    assert isinstance(create_strategy('Indexed', config), IndexedAllocation)
    assert create_strategy('chained', config).name == 'chained'
    with pytest.raises(InvalidAllocationMethod):
        create_strategy('fat32', config)
