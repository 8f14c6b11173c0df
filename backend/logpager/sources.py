import os
import mmap
from abc import ABC, abstractmethod

class SourceReadError(OSError):
    """Raised when a byte range cannot be read from a source."""

class BaseByteSource(ABC):
    """
    字节源基类。
    A finite, randomly sliceable byte sequence of known length. The indexer
    and the reader only ever read sub-ranges; sources are never modified.
    """
    name = ""

    @property
    @abstractmethod
    def size(self) -> int:
        """Total length in bytes"""

    @abstractmethod
    def _read(self, start: int, end: int) -> bytes:
        pass

    def read(self, start: int, end: int) -> bytes:
        """Returns exactly end - start bytes of [start, end) or raises SourceReadError."""
        if start < 0 or end < start or end > self.size:
            raise SourceReadError(f"Invalid range [{start}, {end}) for {self.size} byte source")
        try:
            data = self._read(start, end)
        except (OSError, ValueError) as e:
            # closed mmap raises ValueError
            raise SourceReadError(f"Failed to read [{start}, {end}) from {self.name}: {e}") from e
        if len(data) != end - start:
            raise SourceReadError(f"Short read from {self.name}: expected {end - start} bytes, got {len(data)}")
        return data

    def close(self):
        pass

class LocalFileSource(BaseByteSource):
    """本地文件 (mmap)。Empty files are not mapped."""

    def __init__(self, path):
        self.path = str(path)
        self.name = os.path.basename(self.path)
        # 使用 open() 而不是 os.open() 以获得更好的 Windows 文件共享支持
        self.file_obj = open(self.path, 'rb')
        self._size = os.fstat(self.file_obj.fileno()).st_size
        self.mmap = None
        if self._size > 0:
            self.mmap = mmap.mmap(self.file_obj.fileno(), 0, access=mmap.ACCESS_READ)

    @property
    def size(self) -> int:
        return self._size

    def _read(self, start, end):
        if self.mmap is None:
            if self.file_obj is None:
                raise ValueError("source is closed")
            return b""
        return self.mmap[start:end]

    def close(self):
        if self.mmap:
            self.mmap.close()
            self.mmap = None
        if self.file_obj:
            self.file_obj.close()
            self.file_obj = None

class MemorySource(BaseByteSource):
    """内存字节源 (用于测试及内存数据)"""

    def __init__(self, data: bytes, name="memory_buffer.log"):
        self.data = bytes(data)
        self.name = name

    @property
    def size(self) -> int:
        return len(self.data)

    def _read(self, start, end):
        return self.data[start:end]

def to_path(uri: str) -> str:
    if uri.startswith("file://"):
        return uri[7:]
    return uri

def open_source(uri: str) -> BaseByteSource:
    """Opens a local path or file:// URI."""
    return LocalFileSource(to_path(uri))
