from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from logpager.encodings import DEFAULT_ENCODING, normalize_encoding

SAMPLE_SIZE = 8192

class DetectionResult(BaseModel):
    """Encoding guess handed to the caller before a CreateIndex request."""
    encoding: str
    confidence: float = Field(ge=0, le=1)
    method: Literal["BOM", "statistical", "default"]

    @field_validator("encoding")
    @classmethod
    def _supported(cls, v):
        if normalize_encoding(v) != v:
            raise ValueError(f"unsupported encoding: {v}")
        return v

def _default() -> DetectionResult:
    return DetectionResult(encoding=DEFAULT_ENCODING, confidence=0.5, method="default")

def detect_bom(buffer: bytes) -> Optional[DetectionResult]:
    """BOM (Byte Order Mark) 检测"""
    head = bytes(buffer[:4])
    if head.startswith(b"\xef\xbb\xbf"):
        return DetectionResult(encoding="utf-8", confidence=1.0, method="BOM")
    if head.startswith(b"\xff\xfe"):
        return DetectionResult(encoding="utf-16le", confidence=1.0, method="BOM")
    if head.startswith(b"\xfe\xff"):
        return DetectionResult(encoding="utf-16be", confidence=1.0, method="BOM")
    return None

def _utf8_sequence_length(byte: int) -> int:
    if byte & 0xE0 == 0xC0: return 2
    if byte & 0xF0 == 0xE0: return 3
    if byte & 0xF8 == 0xF0: return 4
    return 0

def _has_shift_jis_patterns(data: bytes) -> bool:
    sjis_like = 0
    i = 0
    while i < len(data) - 1:
        b1, b2 = data[i], data[i + 1]
        if (0x81 <= b1 <= 0x9F or 0xE0 <= b1 <= 0xFC) and (0x40 <= b2 <= 0x7E or 0x80 <= b2 <= 0xFC):
            sjis_like += 2
            i += 1
        i += 1
    return sjis_like / len(data) > 0.1

def _has_euc_jp_patterns(data: bytes) -> bool:
    euc_like = 0
    i = 0
    while i < len(data) - 1:
        if 0xA1 <= data[i] <= 0xFE and 0xA1 <= data[i + 1] <= 0xFE:
            euc_like += 2
            i += 1
        i += 1
    return euc_like / len(data) > 0.1

def detect_statistical(buffer: bytes) -> DetectionResult:
    """
    统计分析 (采样前 8KB)。
    Counts printable ASCII / whitespace bytes and well-formed UTF-8 multibyte
    sequences, then falls back to Shift_JIS and EUC-JP pair heuristics.
    """
    data = bytes(buffer[:SAMPLE_SIZE])
    if not data:
        return _default()

    ascii_count = 0
    valid = 0
    i = 0
    n = len(data)
    while i < n:
        byte = data[i]
        if byte <= 0x7F:
            ascii_count += 1
            if 0x20 <= byte <= 0x7E or byte in (0x09, 0x0A, 0x0D):
                valid += 1
        else:
            seq = _utf8_sequence_length(byte)
            if seq and i + seq - 1 < n and all(data[i + j] & 0xC0 == 0x80 for j in range(1, seq)):
                valid += seq
                i += seq - 1
        i += 1

    valid_ratio = valid / n
    ascii_ratio = ascii_count / n

    if valid_ratio > 0.95:
        return DetectionResult(encoding="utf-8", confidence=valid_ratio, method="statistical")
    if ascii_ratio > 0.99:
        return DetectionResult(encoding="ascii", confidence=ascii_ratio, method="statistical")
    if _has_shift_jis_patterns(data):
        return DetectionResult(encoding="shift_jis", confidence=0.7, method="statistical")
    if _has_euc_jp_patterns(data):
        return DetectionResult(encoding="euc-jp", confidence=0.7, method="statistical")
    return _default()

def detect_file_encoding(buffer: bytes) -> DetectionResult:
    """BOM first, then statistics. An empty buffer yields the default."""
    if not buffer:
        return _default()
    return detect_bom(buffer) or detect_statistical(buffer)
