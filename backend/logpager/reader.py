from typing import List

from logpager.encodings import codec_for
from logpager.indexer import LineIndex
from logpager.sources import BaseByteSource

class LineReader:
    """
    按需解码读取器。
    Pairs a source with a finished LineIndex and decodes line windows on
    demand. Instances are immutable snapshots: a rebuild creates a new reader.
    """

    def __init__(self, source: BaseByteSource, index: LineIndex):
        self.source = source
        self.index = index
        self.codec = codec_for(index.encoding)

    @property
    def line_count(self) -> int:
        return self.index.line_count

    @property
    def file_size(self) -> int:
        return self.index.file_size

    def range_for(self, line_start: int, line_end: int):
        return self.index.range_for(line_start, line_end)

    def read_lines(self, line_start: int, count: int) -> List[str]:
        """
        读取 [line_start, line_start + count) 范围内的行。
        Out-of-range requests return an empty list. Malformed bytes are replaced
        and a byte-order mark is kept as content.
        """
        if line_start < 0 or count <= 0 or line_start >= self.line_count:
            return []

        line_end = min(line_start + count, self.line_count)
        byte_start, byte_end = self.range_for(line_start, line_end)
        data = self.source.read(byte_start, byte_end)
        # utf_8 / utf_16_le / utf_16_be codecs do not strip a BOM
        text = data.decode(self.codec, errors='replace')

        # The terminator of the last line leaves one empty trailing piece
        pieces = text.split("\n")[:line_end - line_start]
        return [p[:-1] if p.endswith("\r") else p for p in pieces]
