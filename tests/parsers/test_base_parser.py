import pytest

from mdfiles.parsers.base_parser import (
    LineCursor,
    extract_field,
    parse_float,
    parse_int,
    read_lines,
    scan_ints,
)


@pytest.mark.parametrize(
    ("line", "start", "width", "expected"),
    [
        ("ATOM      1  N", 0, 6, "ATOM  "),
        ("ATOM      1  N", 6, 5, "    1"),
        ("ATOM      1  N", 12, 4, " N"),
        ("ATOM", 10, 4, ""),
    ],
)
def test_extract_field(line: str, start: int, width: int, expected: str) -> None:
    assert extract_field(line, start, width) == expected


@pytest.mark.parametrize(
    ("field", "expected"),
    [
        ("  12.500", 12.5),
        ("-0.834000", -0.834),
        ("1.5e2", 150.0),
        (".25", 0.25),
        ("3.0abc", 3.0),
        ("", 0.0),
        ("    ", 0.0),
        ("abc", 0.0),
    ],
)
def test_parse_float(field: str, expected: float) -> None:
    assert parse_float(field) == pytest.approx(expected)


@pytest.mark.parametrize(
    ("field", "expected"),
    [
        ("    1", 1),
        ("-12", -12),
        ("+7", 7),
        ("42A", 42),
        ("", 0),
        ("   ", 0),
        ("x1", 0),
    ],
)
def test_parse_int(field: str, expected: int) -> None:
    assert parse_int(field) == expected


@pytest.mark.parametrize(
    ("line", "limit", "expected"),
    [
        ("       1       2       3       4", 8, [1, 2, 3, 4]),
        ("1 2 3 4 5 6 7 8 9", 8, [1, 2, 3, 4, 5, 6, 7, 8]),
        ("1 2x 3", 8, [1, 2]),
        ("", 8, []),
        ("abc", 8, []),
    ],
)
def test_scan_ints(line: str, limit: int, expected: list[int]) -> None:
    assert scan_ints(line, limit) == expected


def test_read_lines_strips_line_endings(fs) -> None:
    fs.create_file("mixed.txt", contents=b"first\r\nsecond  \nthird")
    assert read_lines("mixed.txt") == ["first", "second  ", "third"]


def test_read_lines_keeps_byte_columns(fs) -> None:
    fs.create_file("latin.txt", contents=b"\xe9AB\n")
    line = read_lines("latin.txt")[0]
    assert extract_field(line, 1, 2) == "AB"


def test_read_lines_missing_file(fs) -> None:
    with pytest.raises(OSError):
        read_lines("missing.txt")


def test_line_cursor_iterates_in_order() -> None:
    cursor = LineCursor(["a", "b", "c"])
    assert list(cursor) == ["a", "b", "c"]
    assert cursor.at_end()
    assert cursor.readline() is None


def test_line_cursor_push_back() -> None:
    cursor = LineCursor(["a", "b"])
    assert next(cursor) == "a"
    cursor.push_back()
    assert cursor.position == 0
    assert cursor.readline() == "a"


def test_line_cursor_push_back_at_start() -> None:
    cursor = LineCursor(["a"])
    cursor.push_back()
    assert cursor.position == 0
