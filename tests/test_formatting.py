"""Tests for snippet selection and fencing."""

import pytest

from teams_share.formatting import (
    format_code_snippet,
    guess_language,
    parse_line_range,
    read_selection,
    select_lines,
)

SOURCE = "line1\nline2\nline3\nline4\n"


def test_fence_with_language():
    assert format_code_snippet("x = 1", "python") == "```python\nx = 1\n```"


def test_fence_without_language():
    assert format_code_snippet("hi") == "```\nhi\n```"


@pytest.mark.parametrize("value,expected", [
    ("2-3", (2, 3)),
    ("2:3", (2, 3)),
    ("3", (3, 3)),
    ("3-", (3, None)),
])
def test_parse_line_range(value, expected):
    assert parse_line_range(value) == expected


@pytest.mark.parametrize("value", ["0-2", "5-2", "abc", ""])
def test_parse_line_range_rejects(value):
    with pytest.raises(ValueError):
        parse_line_range(value)


def test_select_range():
    assert select_lines(SOURCE, "2-3") == "line2\nline3"


def test_select_open_ended():
    assert select_lines(SOURCE, "3-") == "line3\nline4"


def test_select_all_strips_trailing_newline():
    assert select_lines(SOURCE) == "line1\nline2\nline3\nline4"


def test_empty_selection_rejected():
    with pytest.raises(ValueError):
        select_lines(SOURCE, "10-12")
    with pytest.raises(ValueError):
        select_lines("   \n\n")


def test_read_selection(tmp_path):
    path = tmp_path / "snippet.py"
    path.write_text(SOURCE, encoding="utf-8")
    assert read_selection(path, "1") == "line1"


def test_guess_language_from_extension():
    assert guess_language("script.py", "print('hi')\n") == "python"


def test_guess_language_without_path():
    assert guess_language(None) == ""
