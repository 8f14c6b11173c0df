import array
from dataclasses import dataclass, field
from typing import Callable, Optional

from logpager.encodings import get_newline_pattern, normalize_encoding
from logpager.sources import BaseByteSource

DEFAULT_CHUNK_SIZE = 1024 * 1024

class IndexCancelled(Exception):
    """Raised when a build is stopped before it scanned the whole source."""

@dataclass
class LineIndex:
    """
    行索引结果。
    offsets[i] 是第 i 行首字节在文件中的偏移量，offsets[0] 总是 0。
    A file ending on a terminator keeps a final entry equal to file_size,
    which does not count as a line.
    """
    offsets: array.array = field(default_factory=lambda: array.array('Q', [0]))
    file_size: int = 0
    encoding: str = "utf-8"

    @property
    def line_count(self) -> int:
        if self.offsets[-1] < self.file_size:
            return len(self.offsets)
        return len(self.offsets) - 1

    def range_for(self, line_start: int, line_end: int):
        """
        Byte span [byte_start, byte_end) covering lines [line_start, line_end).
        Line numbers past the table map to file_size.
        """
        n = len(self.offsets)
        byte_start = self.offsets[line_start] if 0 <= line_start < n else self.file_size
        byte_end = self.offsets[line_end] if 0 <= line_end < n else self.file_size
        return byte_start, byte_end

def build_index(source: BaseByteSource,
                encoding: Optional[str] = None,
                chunk_size: int = DEFAULT_CHUNK_SIZE,
                on_progress: Optional[Callable[[int, int], None]] = None,
                is_running: Optional[Callable[[], bool]] = None) -> LineIndex:
    """
    按块扫描换行符，建立行偏移量索引。

    The source is read strictly in chunks of chunk_size bytes. The bytes at the
    end of one chunk that could still be the start of a terminator are carried
    into the next scan buffer, so a multi-byte terminator split by a chunk
    boundary is found exactly once. The result does not depend on chunk_size.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    encoding = normalize_encoding(encoding)
    newline = get_newline_pattern(encoding)
    nl_len = len(newline)
    file_size = source.size

    offsets = array.array('Q', [0])  # 第一行的偏移量总是 0
    carry = b""

    for pos in range(0, file_size, chunk_size):
        if is_running is not None and not is_running():
            raise IndexCancelled()

        end = min(pos + chunk_size, file_size)
        buf = carry + source.read(pos, end)
        base = pos - len(carry)

        i = 0
        while True:
            found = buf.find(newline, i)
            if found == -1:
                break
            i = found + nl_len
            offsets.append(base + i)

        # Keep only bytes not consumed by a match that could begin a terminator
        carry = buf[max(i, len(buf) - nl_len + 1):]

        if on_progress is not None:
            on_progress(end, file_size)

    return LineIndex(offsets=offsets, file_size=file_size, encoding=encoding)
