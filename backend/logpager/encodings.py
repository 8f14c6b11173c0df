from typing import Dict, List, Optional
from dataclasses import dataclass

DEFAULT_ENCODING = "utf-8"

@dataclass(frozen=True)
class EncodingInfo:
    """A selectable text encoding as presented to the frontend."""
    value: str
    label: str
    group: str
    codec: str  # Python codec name used for decoding

    def to_dict(self):
        return {"value": self.value, "label": self.label, "group": self.group}

SUPPORTED_ENCODINGS: List[EncodingInfo] = [
    # Unicode
    EncodingInfo("utf-8", "UTF-8", "Unicode", "utf_8"),
    EncodingInfo("utf-16le", "UTF-16 Little Endian", "Unicode", "utf_16_le"),
    EncodingInfo("utf-16be", "UTF-16 Big Endian", "Unicode", "utf_16_be"),

    # Japanese
    EncodingInfo("shift_jis", "Shift_JIS", "Japanese", "shift_jis"),
    EncodingInfo("euc-jp", "EUC-JP", "Japanese", "euc_jp"),
    EncodingInfo("iso-2022-jp", "ISO-2022-JP", "Japanese", "iso2022_jp"),

    # Western European
    EncodingInfo("windows-1252", "Windows-1252", "Western European", "cp1252"),
    EncodingInfo("iso-8859-1", "ISO-8859-1 (Latin-1)", "Western European", "latin_1"),

    # Chinese
    EncodingInfo("gb2312", "GB2312", "Chinese", "gb2312"),
    EncodingInfo("gbk", "GBK", "Chinese", "gbk"),
    EncodingInfo("gb18030", "GB18030", "Chinese", "gb18030"),
    EncodingInfo("big5", "Big5", "Chinese", "big5"),

    # Korean
    EncodingInfo("euc-kr", "EUC-KR", "Korean", "euc_kr"),
    EncodingInfo("iso-2022-kr", "ISO-2022-KR", "Korean", "iso2022_kr"),

    # Cyrillic
    EncodingInfo("windows-1251", "Windows-1251", "Cyrillic", "cp1251"),
    EncodingInfo("koi8-r", "KOI8-R", "Cyrillic", "koi8_r"),

    # Other
    EncodingInfo("ascii", "ASCII", "Other", "ascii"),
    EncodingInfo("iso-8859-2", "ISO-8859-2", "Other", "iso8859_2"),
    EncodingInfo("iso-8859-15", "ISO-8859-15", "Other", "iso8859_15"),
]

_BY_VALUE: Dict[str, EncodingInfo] = {e.value: e for e in SUPPORTED_ENCODINGS}

# Line terminator bytes per encoding; everything not listed is ASCII-compatible
_NEWLINE_PATTERNS = {
    "utf-16le": b"\x0a\x00",
    "utf-16be": b"\x00\x0a",
}

def normalize_encoding(encoding: Optional[str]) -> str:
    """Returns a supported encoding value, falling back to the default."""
    if not encoding:
        return DEFAULT_ENCODING
    value = encoding.strip().lower()
    return value if value in _BY_VALUE else DEFAULT_ENCODING

def codec_for(encoding: Optional[str]) -> str:
    return _BY_VALUE[normalize_encoding(encoding)].codec

def get_newline_pattern(encoding: Optional[str]) -> bytes:
    """
    Byte sequence that terminates a line in the given encoding.
    Unknown encodings use the default encoding's pattern.
    """
    return _NEWLINE_PATTERNS.get(normalize_encoding(encoding), b"\x0a")

def get_encoding_groups() -> Dict[str, List[EncodingInfo]]:
    """Groups encodings for the selector, keeping declaration order."""
    groups: Dict[str, List[EncodingInfo]] = {}
    for info in SUPPORTED_ENCODINGS:
        groups.setdefault(info.group, []).append(info)
    return groups
