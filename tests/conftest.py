import pytest

from filesystem import DiskConfig, FileSystem

METHODS = ['contiguous', 'chained', 'indexed']


@pytest.fixture(params=METHODS)
def fs(request):
    return FileSystem(request.param)


@pytest.fixture
def make_fs():
    def _make(method='contiguous', **overrides):
        return FileSystem(method, DiskConfig(**overrides))
    return _make
