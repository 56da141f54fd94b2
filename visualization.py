"""
操作系统课程设计 - 可视化模块
功能：磁盘位图可视化、文件块分布可视化、磁盘使用情况
"""

import matplotlib
matplotlib.use('Agg')  # 非交互式后端
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
import matplotlib.gridspec as gridspec
from matplotlib import colors as mcolors
import numpy as np
from typing import Dict, Iterable, List, Optional
from io import BytesIO

# ========== 修复中文显示 ==========
plt.rcParams['font.sans-serif'] = ['Noto Sans CJK SC', 'WenQuanYi Zen Hei', 'SimHei', 'DejaVu Sans']
plt.rcParams['axes.unicode_minus'] = False
plt.rcParams['font.family'] = 'sans-serif'
# ==================================

# 颜色配置
COLORS = {
    'free': '#90EE90',       # 浅绿色 - 空闲块
    'used': '#FF6B6B',       # 红色 - 已使用块
    'system': '#FFD93D',     # 黄色 - 系统保留块
    'empty': '#FFFFFF',      # 白色 - 网格中超出磁盘的位置
}


def _rgb(hex_color: str) -> List[float]:
    return list(mcolors.to_rgb(hex_color))


class Visualizer:
    """可视化器 - 生成各种可视化图表"""

    def _draw_grid(self, ax, color_matrix: np.ndarray, title: str):
        rows, cols = color_matrix.shape[:2]
        ax.imshow(color_matrix, aspect='equal')

        # 添加网格线
        ax.set_xticks(np.arange(-0.5, cols, 1), minor=True)
        ax.set_yticks(np.arange(-0.5, rows, 1), minor=True)
        ax.grid(which='minor', color='white', linestyle='-', linewidth=0.5)

        step = max(1, cols // 8)
        ax.set_xticks(np.arange(0, cols, step))
        ax.set_yticks(np.arange(0, rows, step))
        ax.set_xticklabels(np.arange(0, cols, step))
        ax.set_yticklabels(np.arange(0, rows, step) * cols)

        ax.set_xlabel('块号 (列偏移)', fontsize=12)
        ax.set_ylabel('块号 (行起始)', fontsize=12)
        ax.set_title(title, fontsize=14, fontweight='bold')

    def create_bitmap_figure(self, bitmap_data: List[List[bool]],
                             reserved: Iterable[int] = (0, 1),
                             title: str = "磁盘位图可视化") -> Figure:
        """
        创建磁盘位图可视化图
        bitmap_data: 按行排列的布尔数组，True表示已使用；末行可以不满
        """
        fig, ax = plt.subplots(figsize=(10, 10))
        reserved = set(reserved)

        rows = len(bitmap_data)
        cols = len(bitmap_data[0]) if rows > 0 else 16

        # 创建颜色矩阵
        color_matrix = np.ones((rows, cols, 3))
        for i in range(rows):
            for j in range(cols):
                block_num = i * cols + j
                if j >= len(bitmap_data[i]):
                    color_matrix[i, j] = _rgb(COLORS['empty'])
                elif block_num in reserved:
                    color_matrix[i, j] = _rgb(COLORS['system'])
                elif bitmap_data[i][j]:
                    color_matrix[i, j] = _rgb(COLORS['used'])
                else:
                    color_matrix[i, j] = _rgb(COLORS['free'])

        self._draw_grid(ax, color_matrix, title)

        # 添加图例
        legend_elements = [
            plt.Rectangle((0, 0), 1, 1, facecolor=COLORS['system'], label='系统保留'),
            plt.Rectangle((0, 0), 1, 1, facecolor=COLORS['used'], label='已使用'),
            plt.Rectangle((0, 0), 1, 1, facecolor=COLORS['free'], label='空闲'),
        ]
        ax.legend(handles=legend_elements, loc='upper right', fontsize=10)

        plt.tight_layout()
        return fig

    def create_allocation_figure(self, owners: Dict[int, str], total_blocks: int,
                                 reserved: Iterable[int] = (0, 1),
                                 title: Optional[str] = None) -> Figure:
        """
        创建文件块分布图 - 每个文件一种颜色
        连续分配呈色带，链接/索引分配呈离散分布
        """
        fig, ax = plt.subplots(figsize=(10, 10))
        reserved = set(reserved)

        cols = int(np.ceil(np.sqrt(total_blocks)))
        rows = int(np.ceil(total_blocks / cols))

        names = sorted(set(owners.values()))
        cmap = matplotlib.colormaps['tab20']
        file_colors = {name: cmap(i % cmap.N)[:3] for i, name in enumerate(names)}

        color_matrix = np.ones((rows, cols, 3))
        for block_num in range(rows * cols):
            i, j = divmod(block_num, cols)
            if block_num >= total_blocks:
                color_matrix[i, j] = _rgb(COLORS['empty'])
            elif block_num in reserved:
                color_matrix[i, j] = _rgb(COLORS['system'])
            elif block_num in owners:
                color_matrix[i, j] = file_colors[owners[block_num]]
            else:
                color_matrix[i, j] = _rgb(COLORS['free'])

        self._draw_grid(ax, color_matrix, title or "文件块分布")

        legend_elements = [plt.Rectangle((0, 0), 1, 1, facecolor=COLORS['system'], label='系统保留')]
        legend_elements += [plt.Rectangle((0, 0), 1, 1, facecolor=file_colors[name], label=name)
                            for name in names[:20]]
        ax.legend(handles=legend_elements, loc='upper left', bbox_to_anchor=(1.01, 1), fontsize=9)

        plt.tight_layout()
        return fig

    def create_disk_info_figure(self, disk_info: Dict,
                                file_list: List[Dict],
                                title: str = "磁盘与文件信息") -> Figure:
        """创建磁盘信息和文件列表可视化"""
        fig = plt.figure(figsize=(14, 6))
        gs = gridspec.GridSpec(1, 2, width_ratios=[1, 1.5])

        # 1. 磁盘使用率
        ax1 = fig.add_subplot(gs[0, 0])
        self._draw_disk_usage(ax1, disk_info)

        # 2. 文件列表
        ax2 = fig.add_subplot(gs[0, 1])
        self._draw_file_list(ax2, file_list)

        fig.suptitle(f"{title} ({disk_info.get('method', '')})", fontsize=14, fontweight='bold')
        plt.tight_layout()
        return fig

    def _draw_disk_usage(self, ax, disk_info: Dict):
        """绘制磁盘使用率饼图"""
        used = disk_info.get('used_blocks', 0)
        free = disk_info.get('free_blocks', 0)

        sizes = [used, free]
        labels = [f'已使用\n{used}块', f'空闲\n{free}块']
        colors = [COLORS['used'], COLORS['free']]

        if used + free > 0:
            ax.pie(sizes, explode=(0.05, 0), labels=labels, colors=colors,
                   autopct='%1.1f%%', startangle=90, textprops={'fontsize': 10})

        total = disk_info.get('data_blocks', used + free)
        ax.text(0, 0, f'数据区\n{total}块', ha='center', va='center',
                fontsize=12, fontweight='bold')

        ax.set_title('磁盘使用率', fontsize=12)

    def _draw_file_list(self, ax, file_list: List[Dict]):
        """绘制文件表"""
        ax.axis('off')

        if not file_list:
            ax.text(0.5, 0.5, '无文件', ha='center', va='center', fontsize=12)
            return

        headers = ['文件名', '大小', '块数', '块号']
        cell_text = []

        for f in file_list[:12]:  # 最多显示12个文件
            block_text = ','.join(str(b) for b in f['block_list'][:8])
            if len(f['block_list']) > 8:
                block_text += ',...'
            cell_text.append([f['name'], f"{f['size']}B", str(f['blocks']), block_text])

        table = ax.table(cellText=cell_text, colLabels=headers,
                         loc='center', cellLoc='center')
        table.auto_set_font_size(False)
        table.set_fontsize(9)
        table.scale(1.2, 1.5)

        for i in range(len(headers)):
            table[(0, i)].set_facecolor('#6BCB77')
            table[(0, i)].set_text_props(fontweight='bold')

        ax.set_title('文件分配表', fontsize=12)

    def save_figure(self, fig: Figure, filename: str, dpi: int = 150):
        """保存图表到文件"""
        fig.savefig(filename, dpi=dpi, bbox_inches='tight',
                    facecolor='white', edgecolor='none')
        plt.close(fig)

    def figure_to_bytes(self, fig: Figure, dpi: int = 150) -> bytes:
        """将图表转换为PNG字节数据"""
        buf = BytesIO()
        fig.savefig(buf, format='png', dpi=dpi, bbox_inches='tight',
                    facecolor='white', edgecolor='none')
        buf.seek(0)
        data = buf.getvalue()
        plt.close(fig)
        return data
