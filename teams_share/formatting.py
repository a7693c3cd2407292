"""Snippet selection and code-fence formatting."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

from rich.syntax import Syntax

_RANGE_RE = re.compile(r"^\s*(\d+)\s*(?:[-:]\s*(\d+)?)?\s*$")


def format_code_snippet(text: str, language: Optional[str] = None) -> str:
    """Wrap ``text`` in a markdown code fence, tagged with ``language`` if given."""
    return f"```{language or ''}\n{text}\n```"


def parse_line_range(value: str) -> tuple[int, Optional[int]]:
    """Parse ``"10-20"``, ``"10:20"``, ``"10-"`` or ``"10"`` (1-based, inclusive)."""
    match = _RANGE_RE.match(value)
    if not match:
        raise ValueError(f"Invalid line range: {value!r}. Use START-END, e.g. 10-20")

    start = int(match.group(1))
    if match.group(2):
        end: Optional[int] = int(match.group(2))
    elif "-" in value or ":" in value:
        end = None
    else:
        end = start

    if start < 1 or (end is not None and end < start):
        raise ValueError(f"Invalid line range: {value!r}")
    return start, end


def select_lines(text: str, lines: Optional[str] = None) -> str:
    """Return the selected line range of ``text`` (all of it when ``lines`` is None).

    Raises ValueError if the selection is empty.
    """
    if lines:
        start, end = parse_line_range(lines)
        all_lines = text.splitlines()
        selected = "\n".join(all_lines[start - 1:end])
    else:
        selected = text.rstrip("\n")

    if not selected.strip():
        raise ValueError("Selected text is empty")
    return selected


def read_selection(path: Path, lines: Optional[str] = None) -> str:
    return select_lines(Path(path).read_text(encoding="utf-8"), lines)


def guess_language(path: Optional[str], code: Optional[str] = None) -> str:
    """Best-guess language tag for the fence; empty when unknown."""
    if not path:
        return ""
    lexer = Syntax.guess_lexer(str(path), code=code)
    return "" if lexer in ("default", "text") else lexer
