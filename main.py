#!/usr/bin/env python3
"""
操作系统课程设计 - 主程序
功能：包装分配引擎，提供命令行界面进行交互操作

用法:
    python main.py [contiguous|chained|indexed] [demo]
"""

import sys
from typing import List, Optional, Tuple

from allocation import ALLOCATION_METHODS
from filesystem import FileSystem, DiskConfig
from fs_errors import FileSystemException
from logger import logger, setup_logging
from visualization import Visualizer

# ==================== 系统管理类 ====================

class DiskSimulator:
    """
    磁盘分配模拟器
    只调用文件系统的公开操作并打印结果，本身不维护任何磁盘状态
    """

    def __init__(self, method: str = 'contiguous', config: Optional[DiskConfig] = None):
        self.fs = FileSystem(method, config)
        self.visualizer = Visualizer()
        print(f"[系统] 文件系统初始化完成 (分配方式: {self.fs.method}, "
              f"{self.fs.config.total_blocks}块 × {self.fs.config.block_size}B)")
        logger.info("simulator started, method=%s", self.fs.method)

    def _fail(self, action: str, error: Exception):
        print(f"  ✗ {action}失败: {error}")
        logger.warning("%s failed: %s: %s", action, error.__class__.__name__, error)

    # ==================== 文件操作命令 ====================

    def cmd_create_file(self, filename: str, content: bytes) -> bool:
        """创建文件命令"""
        print(f"\n[命令] 创建文件: {filename} ({len(content)}B)")
        try:
            self.fs.create_file(filename, content)
        except FileSystemException as e:
            self._fail("创建", e)
            return False
        info = self.fs.get_file_info(filename)
        print(f"  ✓ 文件 '{filename}' 创建成功，占用块: {info['block_list']}")
        logger.info("created %s blocks=%s", filename, info['block_list'])
        return True

    def cmd_read_file(self, filename: str) -> Optional[bytes]:
        """读取文件命令"""
        print(f"\n[命令] 读取文件: {filename}")
        try:
            data = self.fs.read_file(filename)
        except FileSystemException as e:
            self._fail("读取", e)
            return None
        print(f"  文件内容 ({len(data)}B): {data.decode('utf-8', errors='replace')}")
        return data

    def cmd_update_file(self, filename: str, content: bytes) -> bool:
        """更新文件命令（删除后重建，失败时文件保持已删除）"""
        print(f"\n[命令] 更新文件: {filename} ({len(content)}B)")
        try:
            self.fs.update_file(filename, content)
        except FileSystemException as e:
            self._fail("更新", e)
            return False
        print(f"  ✓ 文件 '{filename}' 更新成功")
        logger.info("updated %s", filename)
        return True

    def cmd_delete_file(self, filename: str) -> bool:
        """删除文件命令"""
        print(f"\n[命令] 删除文件: {filename}")
        try:
            self.fs.delete_file(filename)
        except FileSystemException as e:
            self._fail("删除", e)
            return False
        print(f"  ✓ 文件 '{filename}' 删除成功")
        logger.info("deleted %s", filename)
        return True

    def cmd_list_directory(self) -> List[dict]:
        """显示文件分配表"""
        print("\n[命令] 文件分配表")
        try:
            files = self.fs.list_files()
        except FileSystemException as e:
            self._fail("列出文件表", e)
            return []

        if not files:
            print("  (文件表为空)")
            return []

        print(f"\n  {'文件名':<10} {'大小':>8} {'起始块':>6} {'块数':>4}  块号")
        print("  " + "-" * 60)
        for f in files:
            print(f"  {f['name']:<10} {f['size']:>7}B {f['start_block']:>6} {f['blocks']:>4}  {f['block_list']}")
        return files

    # ==================== 主机文件互拷 ====================

    def cmd_export_file(self, filename: str, host_path: str) -> bool:
        """把模拟磁盘中的文件复制到真实文件系统"""
        print(f"\n[命令] 导出文件: {filename} -> {host_path}")
        try:
            data = self.fs.read_file(filename)
            with open(host_path, 'wb') as f:
                f.write(data)
        except (FileSystemException, OSError) as e:
            self._fail("导出", e)
            return False
        print(f"  ✓ 已写入 {host_path} ({len(data)}B)")
        return True

    def cmd_import_file(self, host_path: str, filename: str) -> bool:
        """把真实文件系统中的文件复制进模拟磁盘"""
        print(f"\n[命令] 导入文件: {host_path} -> {filename}")
        try:
            with open(host_path, 'rb') as f:
                data = f.read()
        except OSError as e:
            self._fail("导入", e)
            return False
        return self.cmd_create_file(filename, data)

    # ==================== 系统信息命令 ====================

    def cmd_disk_info(self) -> dict:
        """显示磁盘信息"""
        print("\n[命令] 磁盘信息")
        info = self.fs.get_disk_info()

        print(f"\n  磁盘配置:")
        print(f"    分配方式: {info['method']}")
        print(f"    块大小: {info['block_size']} 字节")
        print(f"    总块数: {info['total_blocks']} (保留块 {info['reserved_blocks']})")
        print(f"    单文件上限: {info['max_file_size']} 字节")

        print(f"\n  使用情况:")
        print(f"    已使用块: {info['used_blocks']}")
        print(f"    空闲块: {info['free_blocks']}")
        usage = info['used_blocks'] / info['data_blocks'] * 100
        print(f"    使用率: {usage:.1f}%")
        print(f"    文件数: {info['files_count']}/{info['table_capacity']}")
        return info

    def cmd_show_bitmap(self, per_row: int = 32) -> bytes:
        """显示空闲空间位图，每行 per_row 块"""
        print("\n[命令] 空闲空间位图 (1=已使用, 0=空闲)")
        raw = self.fs.get_bitmap()
        status = self.fs.bitmap.get_bitmap_status()
        for start in range(0, len(status), per_row):
            row = ''.join('1' if used else '0' for used in status[start:start + per_row])
            print(f"  {start:>5}: {row}")
        return raw

    def cmd_show_block(self, block_num: int) -> Optional[bytes]:
        """以十六进制显示一个磁盘块"""
        print(f"\n[命令] 磁盘块 {block_num}")
        try:
            data = self.fs.read_block(block_num)
        except FileSystemException as e:
            self._fail("读取块", e)
            return None
        for offset in range(0, len(data), 16):
            print(f"  {offset:04x}: {data[offset:offset + 16].hex(' ')}")
        return data

    # ==================== 可视化命令 ====================

    def cmd_visualize_bitmap(self, save_path: str = "bitmap.png") -> str:
        """生成位图可视化"""
        print(f"\n[命令] 生成位图可视化 -> {save_path}")
        fig = self.visualizer.create_bitmap_figure(self.fs.get_bitmap_visual(),
                                                   self.fs.config.reserved_blocks)
        self.visualizer.save_figure(fig, save_path)
        print(f"  ✓ 已保存到 {save_path}")
        return save_path

    def cmd_visualize_allocation(self, save_path: str = "allocation.png") -> str:
        """生成文件块分布可视化"""
        print(f"\n[命令] 生成文件块分布可视化 -> {save_path}")
        fig = self.visualizer.create_allocation_figure(
            self.fs.get_block_owners(), self.fs.config.total_blocks,
            self.fs.config.reserved_blocks, title=f"文件块分布 ({self.fs.method})")
        self.visualizer.save_figure(fig, save_path)
        print(f"  ✓ 已保存到 {save_path}")
        return save_path

    def cmd_visualize_disk(self, save_path: str = "disk_info.png") -> str:
        """生成磁盘信息可视化"""
        print(f"\n[命令] 生成磁盘信息可视化 -> {save_path}")
        fig = self.visualizer.create_disk_info_figure(self.fs.get_disk_info(), self.fs.list_files())
        self.visualizer.save_figure(fig, save_path)
        print(f"  ✓ 已保存到 {save_path}")
        return save_path


# ==================== 演示程序 ====================

def run_demo(method: str = 'contiguous'):
    """运行演示程序"""
    sim = DiskSimulator(method)

    print("\n" + "=" * 60)
    print(f"              开始系统演示 ({method})")
    print("=" * 60)

    print("\n>>> 1. 创建测试文件")
    sim.cmd_create_file("hello", b"Hello, World! " * 40)
    sim.cmd_create_file("data", b"Data file content. " * 100)
    sim.cmd_create_file("log", b"Log entry\n" * 30)

    print("\n>>> 2. 文件分配表")
    sim.cmd_list_directory()

    print("\n>>> 3. 读取文件")
    sim.cmd_read_file("log")

    print("\n>>> 4. 删除中间文件并写入更大的文件（观察碎片）")
    sim.cmd_delete_file("hello")
    sim.cmd_create_file("big", b"B" * 3000)
    sim.cmd_update_file("log", b"Updated log\n" * 60)

    print("\n>>> 5. 系统状态")
    sim.cmd_list_directory()
    sim.cmd_disk_info()
    sim.cmd_show_bitmap()

    print("\n>>> 6. 错误处理")
    sim.cmd_create_file("Bad_Name", b"x")
    sim.cmd_read_file("missing")

    print("\n" + "=" * 60)
    print("              演示完成")
    print("=" * 60)


# ==================== 交互式Shell ====================

def run_shell(method: str = 'contiguous'):
    """运行交互式Shell"""
    sim = DiskSimulator(method)

    print("\n输入 'help' 查看可用命令, 'quit' 退出\n")

    while True:
        try:
            cmd_line = input("FS> ").strip()
            if not cmd_line:
                continue

            parts = cmd_line.split()
            cmd = parts[0].lower()
            args = parts[1:]

            if cmd in ['quit', 'exit', 'q']:
                break
            elif cmd == 'help':
                print_help()
            elif cmd in ['create', 'update']:
                if len(args) >= 2:
                    content = ' '.join(args[1:]).encode('utf-8')
                    if cmd == 'create':
                        sim.cmd_create_file(args[0], content)
                    else:
                        sim.cmd_update_file(args[0], content)
                else:
                    print(f"用法: {cmd} <文件名> <内容>")
            elif cmd in ['read', 'cat']:
                if len(args) >= 1:
                    sim.cmd_read_file(args[0])
                else:
                    print("用法: read <文件名>")
            elif cmd in ['delete', 'rm']:
                if len(args) >= 1:
                    sim.cmd_delete_file(args[0])
                else:
                    print("用法: delete <文件名>")
            elif cmd in ['ls', 'dir', 'table']:
                sim.cmd_list_directory()
            elif cmd == 'bitmap':
                sim.cmd_show_bitmap()
            elif cmd == 'block':
                if len(args) >= 1 and args[0].isdigit():
                    sim.cmd_show_block(int(args[0]))
                else:
                    print("用法: block <块号>")
            elif cmd == 'export':
                if len(args) >= 2:
                    sim.cmd_export_file(args[0], args[1])
                else:
                    print("用法: export <文件名> <主机路径>")
            elif cmd == 'import':
                if len(args) >= 2:
                    sim.cmd_import_file(args[0], args[1])
                else:
                    print("用法: import <主机路径> <文件名>")
            elif cmd == 'disk':
                sim.cmd_disk_info()
            elif cmd == 'viz':
                viz_type = args[0] if args else ''
                if viz_type == 'bitmap':
                    sim.cmd_visualize_bitmap()
                elif viz_type == 'alloc':
                    sim.cmd_visualize_allocation()
                elif viz_type == 'disk':
                    sim.cmd_visualize_disk()
                else:
                    print("用法: viz <bitmap|alloc|disk>")
            else:
                print(f"未知命令: {cmd}, 输入 'help' 查看帮助")

        except KeyboardInterrupt:
            print("\n")
            continue
        except EOFError:
            break
        except Exception as e:
            logger.exception("unexpected error")
            print(f"错误: {e}")


def print_help():
    """打印帮助信息"""
    print("""
可用命令:
  文件操作:
    create <文件名> <内容>      创建文件
    read <文件名>               显示文件内容
    update <文件名> <内容>      整体替换文件内容
    delete <文件名>             删除文件
    ls / table                  显示文件分配表

  主机互拷:
    export <文件名> <主机路径>  模拟磁盘 -> 真实文件
    import <主机路径> <文件名>  真实文件 -> 模拟磁盘

  系统信息:
    disk                        显示磁盘信息
    bitmap                      显示空闲空间位图
    block <块号>                显示磁盘块内容

  可视化:
    viz bitmap                  生成位图可视化
    viz alloc                   生成文件块分布可视化
    viz disk                    生成磁盘信息可视化

  其他:
    help                        显示帮助
    quit / exit                 退出
""")


def parse_args(argv: List[str]) -> Tuple[str, bool]:
    """解析命令行: [分配方式] [demo]"""
    method = 'contiguous'
    demo = False
    for arg in argv:
        if arg == 'demo':
            demo = True
        elif arg.lower() in ALLOCATION_METHODS:
            method = arg.lower()
        else:
            raise SystemExit(f"未知参数: {arg} (分配方式: {', '.join(ALLOCATION_METHODS)})")
    return method, demo


# ==================== 主程序入口 ====================

if __name__ == "__main__":
    setup_logging()
    method, demo = parse_args(sys.argv[1:])
    if demo:
        run_demo(method)
    else:
        run_shell(method)
