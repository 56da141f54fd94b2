"""
操作系统课程设计 - 文件系统模块
功能：模拟磁盘、位图管理、文件分配表、文件操作
分配方式：连续分配 / 链接分配 / 索引分配（构造时选定）
"""

import math
import re
import struct
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from allocation import (FileMetadata, METHOD_CODES, METHOD_NAMES,
                        AllocationStrategy, create_strategy)
from fs_errors import (FileAlreadyExists, FileNotFound, FileSystemException,
                       FileTableFull, FileTooLarge, InvalidName, OutOfRange,
                       SizeMismatch)

# ==================== 常量定义 ====================
BLOCK_SIZE = 512         # 每个盘块大小 512B
TOTAL_BLOCKS = 256       # 总盘块数

# 磁盘布局
TABLE_BLOCK = 0          # 文件分配表镜像：1个块
BITMAP_BLOCK = 1         # 位图：1个块 (256位 = 32字节)

MAX_BLOCKS_PER_FILE = 10 # 单文件最大块数
MAX_FILENAME = 8         # 文件名最大长度
NAME_PATTERN = r'[a-z]+' # 严格模式：仅小写字母
POINTER_SIZE = 1         # 链指针 / 索引项宽度(字节)

# 文件表项: 文件名 + 分配方式 + 起始块/索引块 + 块数 + 字节数
TABLE_ENTRY_FIELDS = 'BHHI'


def table_entry_format(max_name_length: int) -> str:
    return '<%ds%s' % (max_name_length, TABLE_ENTRY_FIELDS)


# ==================== 配置 ====================

@dataclass
class DiskConfig:
    """磁盘与文件系统配置 - 所有参数均可调整"""
    block_size: int = BLOCK_SIZE
    total_blocks: int = TOTAL_BLOCKS
    table_block: int = TABLE_BLOCK
    bitmap_block: int = BITMAP_BLOCK
    max_blocks_per_file: int = MAX_BLOCKS_PER_FILE
    max_name_length: int = MAX_FILENAME
    name_pattern: Optional[str] = NAME_PATTERN   # None 表示宽松模式
    pointer_size: int = POINTER_SIZE
    exact_length: bool = True       # 读取时按原始长度截断块尾填充
    random_selection: bool = False  # 链接/索引分配随机选块（需配合 seed）
    seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

    @property
    def reserved_blocks(self) -> Tuple[int, int]:
        return self.table_block, self.bitmap_block

    @property
    def data_blocks(self) -> int:
        return self.total_blocks - len(self.reserved_blocks)

    @property
    def max_file_size(self) -> int:
        return self.max_blocks_per_file * self.block_size

    @property
    def table_entry_size(self) -> int:
        return struct.calcsize(table_entry_format(self.max_name_length))

    @property
    def table_capacity(self) -> int:
        return self.block_size // self.table_entry_size

    def validate(self):
        """验证配置合理性"""
        if self.block_size <= 0:
            raise ValueError("块大小必须>0")
        if self.total_blocks <= len(self.reserved_blocks):
            raise ValueError("数据区必须有空间")
        if self.total_blocks > 0x10000:
            raise ValueError("块数超过文件表可表示范围(65536)")
        if (self.total_blocks + 7) // 8 > self.block_size:
            raise ValueError("位图无法放入一个块")
        for block_num in self.reserved_blocks:
            if not 0 <= block_num < self.total_blocks:
                raise ValueError(f"保留块越界: {block_num}")
        if self.table_block == self.bitmap_block:
            raise ValueError("文件表块与位图块不能相同")
        if not 0 < self.pointer_size < self.block_size:
            raise ValueError("指针宽度必须在 1 与块大小之间")
        if self.max_blocks_per_file < 1:
            raise ValueError("单文件最大块数必须>=1")
        if self.max_name_length < 1:
            raise ValueError("文件名最大长度必须>=1")
        if self.table_capacity < 1:
            raise ValueError("文件表项大于一个块")
        if self.name_pattern is not None:
            re.compile(self.name_pattern)
        return True

    def validate_name(self, name: str) -> Tuple[bool, str]:
        """验证文件名，返回 (是否合法, 原因)"""
        if not name:
            return False, "名称不能为空"
        if len(name.encode('utf-8')) > self.max_name_length:
            return False, f"名称超过{self.max_name_length}字符"
        if '\x00' in name:
            return False, "名称包含空字符"
        if self.name_pattern is not None and not re.fullmatch(self.name_pattern, name):
            return False, f"名称不符合规则 {self.name_pattern}"
        return True, ""


# ==================== 虚拟磁盘类 ====================

class VirtualDisk:
    """虚拟磁盘 - 内存中的定长块数组，不含任何分配策略"""

    def __init__(self, block_size: int = BLOCK_SIZE, total_blocks: int = TOTAL_BLOCKS):
        self.block_size = block_size
        self.total_blocks = total_blocks
        self.blocks = [bytearray(block_size) for _ in range(total_blocks)]

    def _check_range(self, block_num: int):
        if not 0 <= block_num < self.total_blocks:
            raise OutOfRange(f"块号越界: {block_num} (0-{self.total_blocks - 1})")

    def read_block(self, block_num: int) -> bytes:
        """读取指定块"""
        self._check_range(block_num)
        return bytes(self.blocks[block_num])

    def write_block(self, block_num: int, data: bytes):
        """原地覆盖写入指定块，数据必须恰好一个块长"""
        self._check_range(block_num)
        if len(data) != self.block_size:
            raise SizeMismatch(f"写入长度 {len(data)} 与块大小 {self.block_size} 不符")
        self.blocks[block_num][:] = data

    def read_blocks(self, block_nums: Iterable[int]) -> bytes:
        """按顺序读取多个块并拼接"""
        return b''.join(self.read_block(num) for num in block_nums)


# ==================== 位图 ====================

class Bitmap:
    """
    位示图 - 空闲块管理
    每块一位，1 表示已使用；位数据持久化在磁盘的位图块中
    保留块（文件表块、位图块）不参与分配，对应位保持为 0
    """

    def __init__(self, disk: VirtualDisk, bitmap_block: int = BITMAP_BLOCK,
                 reserved: Iterable[int] = (TABLE_BLOCK, BITMAP_BLOCK)):
        self.disk = disk
        self.bitmap_block = bitmap_block
        self.total_blocks = disk.total_blocks
        self.reserved = frozenset(reserved) | {bitmap_block}
        self.bits = bytearray(disk.read_block(bitmap_block)[:(self.total_blocks + 7) // 8])

    def _check(self, block_num: int):
        if not 0 <= block_num < self.total_blocks:
            raise OutOfRange(f"块号越界: {block_num}")

    def _save(self):
        self.disk.write_block(self.bitmap_block, bytes(self.bits).ljust(self.disk.block_size, b'\x00'))

    def is_free(self, block_num: int) -> bool:
        """检查块是否空闲"""
        self._check(block_num)
        return not (self.bits[block_num // 8] & (1 << (block_num % 8)))

    def mark_used(self, block_nums: Iterable[int]):
        """标记块为已使用并写回位图块"""
        for block_num in block_nums:
            self._check(block_num)
            if block_num in self.reserved:
                raise ValueError(f"保留块不可分配: {block_num}")
            self.bits[block_num // 8] |= (1 << (block_num % 8))
        self._save()

    def mark_free(self, block_nums: Iterable[int]):
        """标记块为空闲并写回位图块"""
        for block_num in block_nums:
            self._check(block_num)
            self.bits[block_num // 8] &= ~(1 << (block_num % 8)) & 0xFF
        self._save()

    def _allocatable(self, block_num: int) -> bool:
        return block_num not in self.reserved and self.is_free(block_num)

    def find_run(self, count: int) -> Optional[List[int]]:
        """首次适应：从低块号向上找第一段长度为 count 的连续空闲块"""
        if count <= 0:
            return []
        run_start, run_length = -1, 0
        for i in range(self.total_blocks):
            if not self._allocatable(i):
                run_length = 0
                continue
            if run_length == 0:
                run_start = i
            run_length += 1
            if run_length == count:
                return list(range(run_start, run_start + count))
        return None

    def find_any(self, count: int, limit: Optional[int] = None,
                 rng=None) -> Optional[List[int]]:
        """
        找 count 个空闲块，不要求连续
        limit: 只考虑块号小于 limit 的块
        rng:   给定时随机选块，否则按块号升序首次适应
        """
        end = self.total_blocks if limit is None else min(limit, self.total_blocks)
        free = [i for i in range(end) if self._allocatable(i)]
        if len(free) < count:
            return None
        if rng is not None:
            return rng.sample(free, count)
        return free[:count]

    def used_blocks(self) -> Set[int]:
        return {i for i in range(self.total_blocks) if not self.is_free(i)}

    def free_blocks_count(self) -> int:
        """返回可分配的空闲块数量"""
        return sum(1 for i in range(self.total_blocks) if self._allocatable(i))

    def get_bitmap_status(self) -> List[bool]:
        """获取位图状态列表，用于可视化"""
        return [not self.is_free(i) for i in range(self.total_blocks)]

    def to_bytes(self) -> bytes:
        """原始位图块内容"""
        return self.disk.read_block(self.bitmap_block)


# ==================== 文件分配表 ====================

class FileTable:
    """文件分配表 - 文件名到分配元数据的映射，每次变更后镜像写入保留的表块"""

    def __init__(self, disk: VirtualDisk, table_block: int = TABLE_BLOCK,
                 max_name_length: int = MAX_FILENAME):
        self.disk = disk
        self.table_block = table_block
        self.entry_format = table_entry_format(max_name_length)
        self.entry_size = struct.calcsize(self.entry_format)
        self.capacity = disk.block_size // self.entry_size
        self.entries: Dict[str, FileMetadata] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, name: str) -> Optional[FileMetadata]:
        return self.entries.get(name)

    def items(self):
        return list(self.entries.items())

    def is_full(self) -> bool:
        return len(self.entries) >= self.capacity

    def insert(self, name: str, metadata: FileMetadata):
        self.entries[name] = metadata
        self.save()

    def remove(self, name: str) -> FileMetadata:
        metadata = self.entries.pop(name)
        self.save()
        return metadata

    def to_bytes(self) -> bytes:
        data = b''.join(
            struct.pack(self.entry_format, name.encode('utf-8'), METHOD_CODES[meta.method],
                        meta.start_block, meta.block_count, meta.size)
            for name, meta in self.entries.items())
        return data.ljust(self.disk.block_size, b'\x00')

    @classmethod
    def from_bytes(cls, data: bytes, max_name_length: int = MAX_FILENAME) -> Dict[str, FileMetadata]:
        """解析表块镜像，跳过全 0 的空表项"""
        entry_format = table_entry_format(max_name_length)
        entry_size = struct.calcsize(entry_format)
        entries = {}
        for offset in range(0, len(data) - entry_size + 1, entry_size):
            raw = data[offset:offset + entry_size]
            if all(b == 0 for b in raw):
                continue
            name_raw, code, start_block, block_count, size = struct.unpack(entry_format, raw)
            name = name_raw.rstrip(b'\x00').decode('utf-8')
            entries[name] = FileMetadata(METHOD_NAMES[code], start_block, block_count, size)
        return entries

    def save(self):
        self.disk.write_block(self.table_block, self.to_bytes())


# ==================== 文件系统类 ====================

class FileSystem:
    """
    文件系统 - 分配引擎
    组合虚拟磁盘、位图、文件表与分配策略，提供创建/读取/更新/删除
    每个公开操作持有同一把锁，整体串行执行
    """

    def __init__(self, method: str = 'contiguous', config: Optional[DiskConfig] = None):
        self.config = config or DiskConfig()
        self.disk = VirtualDisk(self.config.block_size, self.config.total_blocks)
        self.bitmap = Bitmap(self.disk, self.config.bitmap_block, self.config.reserved_blocks)
        self.table = FileTable(self.disk, self.config.table_block, self.config.max_name_length)
        self.strategy: AllocationStrategy = create_strategy(method, self.config)
        self.lock = threading.RLock()

    @property
    def method(self) -> str:
        return self.strategy.name

    def _lookup(self, filename: str) -> FileMetadata:
        metadata = self.table.get(filename)
        if metadata is None:
            raise FileNotFound(f"文件 '{filename}' 不存在")
        return metadata

    def create_file(self, filename: str, content: bytes):
        """
        创建新文件
        先完成 layout/encode，再标记位图、登记文件表；
        前两步失败时位图和文件表均不变
        """
        with self.lock:
            ok, reason = self.config.validate_name(filename)
            if not ok:
                raise InvalidName(f"非法文件名 '{filename}': {reason}")
            if filename in self.table:
                raise FileAlreadyExists(f"文件 '{filename}' 已存在")
            content = bytes(content)
            if len(content) > self.config.max_file_size:
                raise FileTooLarge(
                    f"文件大小 {len(content)}B 超过限制({self.config.max_file_size}B)")
            if self.table.is_full():
                raise FileTableFull(f"文件表已满({self.table.capacity}项)")

            blocks = self.strategy.layout(self.bitmap, len(content))
            metadata = self.strategy.encode(self.disk, blocks, content)
            self.bitmap.mark_used(blocks)
            self.table.insert(filename, metadata)

    def read_file(self, filename: str) -> bytes:
        """读取文件内容"""
        with self.lock:
            metadata = self._lookup(filename)
            content = self.strategy.decode(self.disk, metadata)
            if self.config.exact_length:
                content = content[:metadata.size]
            return content

    def update_file(self, filename: str, content: bytes):
        """
        整体替换文件内容：先删除再创建
        注意：不是原子操作，若创建失败（如空间不足）文件保持已删除状态，不回滚
        """
        with self.lock:
            self._lookup(filename)
            self.delete_file(filename)
            self.create_file(filename, content)

    def delete_file(self, filename: str):
        """删除文件，释放其遍历到的全部块"""
        with self.lock:
            metadata = self._lookup(filename)
            blocks = self.strategy.walk(self.disk, metadata)
            self.bitmap.mark_free(blocks)
            self.table.remove(filename)

    def read_block(self, block_num: int) -> bytes:
        """读取原始磁盘块（诊断用）"""
        with self.lock:
            return self.disk.read_block(block_num)

    def get_bitmap(self) -> bytes:
        """原始位图块"""
        with self.lock:
            return self.bitmap.to_bytes()

    def get_file_info(self, filename: str) -> Dict:
        """获取文件元数据及其块列表"""
        with self.lock:
            metadata = self._lookup(filename)
            block_list = self.strategy.block_list(self.disk, metadata)
            return {
                'name': filename,
                'size': metadata.size,
                'method': metadata.method,
                'start_block': metadata.start_block,
                'blocks': len(block_list),
                'block_list': block_list,
            }

    def list_files(self) -> List[Dict]:
        """列出文件表中所有文件"""
        with self.lock:
            return [self.get_file_info(name) for name, _ in self.table.items()]

    def get_block_owners(self) -> Dict[int, str]:
        """块号 -> 文件名"""
        with self.lock:
            owners = {}
            for name, metadata in self.table.items():
                for block_num in self.strategy.walk(self.disk, metadata):
                    owners[block_num] = name
            return owners

    def check_consistency(self) -> List[str]:
        """
        检查位图与文件表是否一致，返回问题列表（空列表表示一致）
        - 已用位集合 == 所有文件遍历块的并集
        - 任意两个文件的块集合不相交
        """
        with self.lock:
            problems = []
            owners: Dict[int, str] = {}
            for name, metadata in self.table.items():
                try:
                    blocks = self.strategy.walk(self.disk, metadata)
                except FileSystemException as e:
                    problems.append(f"文件 '{name}' 无法遍历: {e}")
                    continue
                for block_num in sorted(blocks):
                    if block_num in owners:
                        problems.append(f"块 {block_num} 同时属于 '{owners[block_num]}' 与 '{name}'")
                    else:
                        owners[block_num] = name

            used = self.bitmap.used_blocks()
            for block_num in sorted(used - set(owners)):
                problems.append(f"块 {block_num} 已标记使用但没有文件引用")
            for block_num in sorted(set(owners) - used):
                problems.append(f"块 {block_num} 被 '{owners[block_num]}' 引用但标记为空闲")
            return problems

    def get_disk_info(self) -> Dict:
        """获取磁盘信息"""
        with self.lock:
            free = self.bitmap.free_blocks_count()
            return {
                'method': self.method,
                'total_blocks': self.config.total_blocks,
                'block_size': self.config.block_size,
                'reserved_blocks': list(self.config.reserved_blocks),
                'data_blocks': self.config.data_blocks,
                'free_blocks': free,
                'used_blocks': self.config.data_blocks - free,
                'files_count': len(self.table),
                'table_capacity': self.table.capacity,
                'max_file_size': self.config.max_file_size,
            }

    def get_bitmap_visual(self) -> List[List[bool]]:
        """获取位图可视化数据（近似方形网格，末行可能不满）"""
        with self.lock:
            status = self.bitmap.get_bitmap_status()
            cols = math.ceil(math.sqrt(len(status)))
            return [status[i:i + cols] for i in range(0, len(status), cols)]
