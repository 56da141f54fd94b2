"""
操作系统课程设计 - 块分配策略模块
功能：连续分配、链接分配、索引分配
三种策略共享同一个位图与文件表，由引擎在构造时选定其一
"""

import random
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set, Tuple, TYPE_CHECKING

from fs_errors import (CorruptChain, CorruptIndex, FileTooLarge,
                       InsufficientSpace, InvalidAllocationMethod)

if TYPE_CHECKING:
    from filesystem import Bitmap, DiskConfig, VirtualDisk

# 文件表镜像中的分配方式编码
METHOD_CODES = {
    'contiguous': 1,
    'chained': 2,
    'indexed': 3,
}
METHOD_NAMES = {code: name for name, code in METHOD_CODES.items()}


# ==================== 数据结构定义 ====================

@dataclass
class FileMetadata:
    """
    文件表项 - 分配元数据
    连续: start_block + block_count
    链接: start_block (长度由链隐含，block_count 仅作记录)
    索引: start_block 即索引块号
    """
    method: str
    start_block: int = -1
    block_count: int = 0          # 数据块数，不含索引块
    size: int = 0                 # 原始字节数，用于读取时截断填充

    @property
    def index_block(self) -> int:
        return self.start_block


class IndexBlock:
    """索引块 - 按分配顺序存放数据块号，未用槽位填哨兵"""

    def __init__(self, block_size: int, pointer_size: int, indices: Optional[List[int]] = None):
        self.block_size = block_size
        self.pointer_size = pointer_size
        self.sentinel = (1 << (8 * pointer_size)) - 1
        self.capacity = block_size // pointer_size
        self.indices: List[int] = list(indices or [])

    def to_bytes(self) -> bytes:
        if len(self.indices) > self.capacity:
            raise ValueError(f"索引项过多: {len(self.indices)} > {self.capacity}")
        data = b''.join(b.to_bytes(self.pointer_size, 'big') for b in self.indices)
        # 剩余槽位（以及不足一个槽位的尾部字节）全部置为 0xFF
        return data.ljust(self.block_size, b'\xff')

    @classmethod
    def from_bytes(cls, data: bytes, pointer_size: int) -> 'IndexBlock':
        idx = cls(len(data), pointer_size)
        for i in range(idx.capacity):
            offset = i * pointer_size
            block_num = int.from_bytes(data[offset:offset + pointer_size], 'big')
            if block_num == idx.sentinel:
                break
            idx.indices.append(block_num)
        return idx


# ==================== 分配策略 ====================

class AllocationStrategy:
    """
    分配策略基类
    layout: 根据字节数向位图申请块
    encode: 把数据按策略格式写入这些块，返回文件表项
    decode: 根据文件表项读回数据
    walk:   文件当前占用的全部块号
    """

    name = ''

    def __init__(self, config: 'DiskConfig'):
        self.config = config
        self.block_size = config.block_size
        self.total_blocks = config.total_blocks

    @property
    def payload_size(self) -> int:
        """每个数据块可存放的有效字节数"""
        return self.block_size

    def blocks_needed(self, data_size: int) -> int:
        # 空文件同样占用一个块
        return max(1, -(-data_size // self.payload_size))

    def layout(self, bitmap: 'Bitmap', data_size: int) -> List[int]:
        raise NotImplementedError

    def encode(self, disk: 'VirtualDisk', blocks: List[int], data: bytes) -> FileMetadata:
        raise NotImplementedError

    def decode(self, disk: 'VirtualDisk', metadata: FileMetadata) -> bytes:
        raise NotImplementedError

    def block_list(self, disk: 'VirtualDisk', metadata: FileMetadata) -> List[int]:
        """按访问顺序列出文件占用的块"""
        raise NotImplementedError

    def walk(self, disk: 'VirtualDisk', metadata: FileMetadata) -> Set[int]:
        return set(self.block_list(disk, metadata))

    def _chunks(self, data: bytes, count: int) -> Iterator[bytes]:
        size = self.payload_size
        for i in range(count):
            yield data[i * size:(i + 1) * size].ljust(size, b'\x00')


class ContiguousAllocation(AllocationStrategy):
    """连续分配 - 文件占用一段相邻的块，顺序访问 O(1) 定位，但有外部碎片"""

    name = 'contiguous'

    def layout(self, bitmap, data_size):
        count = self.blocks_needed(data_size)
        run = bitmap.find_run(count)
        if run is None:
            raise InsufficientSpace(f"没有长度为 {count} 的连续空闲块")
        return run

    def encode(self, disk, blocks, data):
        for block_num, chunk in zip(blocks, self._chunks(data, len(blocks))):
            disk.write_block(block_num, chunk)
        return FileMetadata(self.name, blocks[0], len(blocks), len(data))

    def decode(self, disk, metadata):
        return disk.read_blocks(self.block_list(disk, metadata))

    def block_list(self, disk, metadata):
        return list(range(metadata.start_block, metadata.start_block + metadata.block_count))


class PointerAllocation(AllocationStrategy):
    """使用块内指针的策略基类（链接、索引）"""

    def __init__(self, config):
        super().__init__(config)
        self.pointer_size = config.pointer_size
        self.sentinel = (1 << (8 * self.pointer_size)) - 1
        # 块号 >= 哨兵值的块无法用指针表示，不参与分配
        self.limit = min(self.total_blocks, self.sentinel)
        self.rng = random.Random(config.seed) if config.random_selection else None

    def _find_blocks(self, bitmap, count: int) -> List[int]:
        blocks = bitmap.find_any(count, limit=self.limit, rng=self.rng)
        if blocks is None:
            raise InsufficientSpace(f"空闲块不足，需要 {count} 块")
        return blocks

    def _pack(self, block_num: int) -> bytes:
        return block_num.to_bytes(self.pointer_size, 'big')

    def _unpack(self, raw: bytes) -> int:
        return int.from_bytes(raw, 'big')


class ChainedAllocation(PointerAllocation):
    """
    链接分配 - 每块最后 pointer_size 字节存放下一块号，末块存哨兵
    分配无碎片，但顺序访问需要沿链遍历
    """

    name = 'chained'

    @property
    def payload_size(self):
        return self.block_size - self.pointer_size

    def layout(self, bitmap, data_size):
        return self._find_blocks(bitmap, self.blocks_needed(data_size))

    def encode(self, disk, blocks, data):
        chunks = self._chunks(data, len(blocks))
        for i, (block_num, chunk) in enumerate(zip(blocks, chunks)):
            next_block = blocks[i + 1] if i + 1 < len(blocks) else self.sentinel
            disk.write_block(block_num, chunk + self._pack(next_block))
        return FileMetadata(self.name, blocks[0], len(blocks), len(data))

    def _follow(self, disk, start_block: int) -> Iterator[Tuple[int, bytes]]:
        """沿链遍历，产出 (块号, 有效数据)；超过 N 步视为环路"""
        current = start_block
        steps = 0
        while current != self.sentinel:
            if not 0 <= current < self.total_blocks:
                raise CorruptChain(f"链指针越界: {current}")
            if steps >= self.total_blocks:
                raise CorruptChain(f"链长度超过 {self.total_blocks} 块，检测到环路")
            steps += 1
            raw = disk.read_block(current)
            yield current, raw[:self.payload_size]
            current = self._unpack(raw[self.payload_size:])

    def decode(self, disk, metadata):
        return b''.join(chunk for _, chunk in self._follow(disk, metadata.start_block))

    def block_list(self, disk, metadata):
        return [block_num for block_num, _ in self._follow(disk, metadata.start_block)]


class IndexedAllocation(PointerAllocation):
    """索引分配 - 额外占用一个索引块，支持对任意数据块的随机访问"""

    name = 'indexed'

    @property
    def entries_per_block(self) -> int:
        return self.block_size // self.pointer_size

    def layout(self, bitmap, data_size):
        count = self.blocks_needed(data_size)
        if count > self.entries_per_block:
            raise FileTooLarge(f"索引块最多记录 {self.entries_per_block} 个数据块，需要 {count}")
        # 第一个块作为索引块，其余为数据块
        return self._find_blocks(bitmap, count + 1)

    def encode(self, disk, blocks, data):
        index_block, data_blocks = blocks[0], blocks[1:]
        for block_num, chunk in zip(data_blocks, self._chunks(data, len(data_blocks))):
            disk.write_block(block_num, chunk)
        idx = IndexBlock(self.block_size, self.pointer_size, data_blocks)
        disk.write_block(index_block, idx.to_bytes())
        return FileMetadata(self.name, index_block, len(data_blocks), len(data))

    def data_blocks(self, disk, metadata) -> List[int]:
        idx = IndexBlock.from_bytes(disk.read_block(metadata.index_block), self.pointer_size)
        for block_num in idx.indices:
            if not 0 <= block_num < self.total_blocks:
                raise CorruptIndex(f"索引块 {metadata.index_block} 含越界块号: {block_num}")
        return idx.indices

    def decode(self, disk, metadata):
        return disk.read_blocks(self.data_blocks(disk, metadata))

    def block_list(self, disk, metadata):
        return [metadata.index_block] + self.data_blocks(disk, metadata)


ALLOCATION_METHODS: Dict[str, type] = {
    ContiguousAllocation.name: ContiguousAllocation,
    ChainedAllocation.name: ChainedAllocation,
    IndexedAllocation.name: IndexedAllocation,
}


def create_strategy(method: str, config: 'DiskConfig') -> AllocationStrategy:
    """按名称创建分配策略"""
    strategy_cls = ALLOCATION_METHODS.get(method.lower())
    if strategy_cls is None:
        raise InvalidAllocationMethod(
            f"未知的分配方式: {method} (可选: {', '.join(ALLOCATION_METHODS)})")
    return strategy_cls(config)
