import pytest

from filesystem import FileSystem
from visualization import Visualizer

PNG_MAGIC = b'\x89PNG'


@pytest.fixture
def populated():
    fs = FileSystem('chained')
    fs.create_file('alpha', b'a' * 1200)
    fs.create_file('beta', b'b' * 300)
    return fs


def test_bitmap_figure(populated):
    viz = Visualizer()
    fig = viz.create_bitmap_figure(populated.get_bitmap_visual(), populated.config.reserved_blocks)
    assert viz.figure_to_bytes(fig, dpi=40).startswith(PNG_MAGIC)


def test_allocation_figure(populated):
    viz = Visualizer()
    fig = viz.create_allocation_figure(populated.get_block_owners(), populated.config.total_blocks)
    assert viz.figure_to_bytes(fig, dpi=40).startswith(PNG_MAGIC)


def test_allocation_figure_partial_last_row():
    viz = Visualizer()
    fig = viz.create_allocation_figure({2: 'aa', 3: 'aa', 7: 'bb'}, total_blocks=10)
    assert viz.figure_to_bytes(fig, dpi=40).startswith(PNG_MAGIC)


def test_disk_info_figure(populated):
    viz = Visualizer()
    fig = viz.create_disk_info_figure(populated.get_disk_info(), populated.list_files())
    assert viz.figure_to_bytes(fig, dpi=40).startswith(PNG_MAGIC)


def test_disk_info_figure_without_files(tmp_path):
    fs = FileSystem('indexed')
    viz = Visualizer()
    path = tmp_path / 'disk.png'
    viz.save_figure(viz.create_disk_info_figure(fs.get_disk_info(), fs.list_files()), str(path), dpi=40)
    assert path.read_bytes().startswith(PNG_MAGIC)
