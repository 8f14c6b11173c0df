from logpager.detector import detect_bom, detect_file_encoding, detect_statistical
from logpager.encodings import (
    DEFAULT_ENCODING, SUPPORTED_ENCODINGS, codec_for, get_encoding_groups, normalize_encoding,
)


def test_detect_bom():
    assert detect_bom(b"\xef\xbb\xbfhello").encoding == "utf-8"
    assert detect_bom(b"\xff\xfeh\x00").encoding == "utf-16le"
    assert detect_bom(b"\xfe\xff\x00h").encoding == "utf-16be"
    assert detect_bom(b"hello") is None

    result = detect_bom(b"\xff\xfe")
    assert result.method == "BOM"
    assert result.confidence == 1.0


def test_empty_buffer_is_default():
    result = detect_file_encoding(b"")
    assert result.encoding == DEFAULT_ENCODING
    assert result.method == "default"
    assert result.confidence == 0.5


def test_plain_ascii_is_utf8():
    result = detect_file_encoding(b"GET /index.html HTTP/1.1\r\nHost: example.com\r\n" * 20)
    assert result.encoding == "utf-8"
    assert result.method == "statistical"
    assert result.confidence > 0.95


def test_multibyte_utf8():
    result = detect_statistical("日本語のテキストです。\n".encode("utf-8") * 20)
    assert result.encoding == "utf-8"


def test_shift_jis():
    result = detect_statistical("あいうえお\n".encode("shift_jis") * 20)
    assert result.encoding == "shift_jis"
    assert result.confidence == 0.7


def test_euc_jp():
    result = detect_statistical("あいうえお\n".encode("euc_jp") * 20)
    assert result.encoding == "euc-jp"


def test_unknown_bytes_fall_back_to_default():
    result = detect_statistical(b"\xff" * 100)
    assert result.encoding == DEFAULT_ENCODING
    assert result.method == "default"


def test_bom_wins_over_statistics():
    result = detect_file_encoding(b"\xff\xfe" + "abc".encode("utf-16-le"))
    assert result.encoding == "utf-16le"


def test_encoding_catalogue():
    assert normalize_encoding("UTF-16LE") == "utf-16le"
    assert normalize_encoding("") == DEFAULT_ENCODING
    assert normalize_encoding("ebcdic") == DEFAULT_ENCODING
    assert codec_for("windows-1251") == "cp1251"
    assert codec_for("nope") == "utf_8"
    for info in SUPPORTED_ENCODINGS:
        "x".encode(info.codec)

    groups = get_encoding_groups()
    assert list(groups)[0] == "Unicode"
    assert [e.value for e in groups["Japanese"]] == ["shift_jis", "euc-jp", "iso-2022-jp"]
    assert sum(len(v) for v in groups.values()) == len(SUPPORTED_ENCODINGS)
