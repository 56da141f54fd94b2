"""
文件系统异常定义
引擎内部不做恢复，所有失败都以具体异常类型抛给调用方
"""


class FileSystemException(Exception):
    pass


class InvalidName(FileSystemException):
    pass


class FileTooLarge(FileSystemException):
    pass


class InsufficientSpace(FileSystemException):
    pass


class FileNotFound(FileSystemException):
    pass


class FileAlreadyExists(FileSystemException):
    pass


class FileTableFull(FileSystemException):
    pass


class OutOfRange(FileSystemException):
    """块号越界 - 编程错误，不是用户错误"""
    pass


class SizeMismatch(FileSystemException):
    """写入数据长度与块大小不符"""
    pass


class CorruptChain(FileSystemException):
    pass


class CorruptIndex(FileSystemException):
    pass


class InvalidAllocationMethod(FileSystemException):
    pass
