"""Diagnostics for capture-list compilation.

This module provides:
- Span / SourceText: Source locations and offset-to-position mapping
- Diagnostic: A located, human-readable problem with an optional fix-it
- CaptureError and subclasses: Exceptions carrying one or more diagnostics
- render: Compiler-style text rendering with a source excerpt
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Literal, Optional, Tuple


def line_starts(text: str) -> List[int]:
    """Return the offset of the first character of every line in *text*."""
    return [0] + [i + 1 for i, ch in enumerate(text) if ch == "\n"]


def byte_to_char_column(line: str, byte_column: int) -> int:
    """Convert an ``ast`` (UTF-8 byte) column into a character column."""
    return len(line.encode("utf-8")[:byte_column].decode("utf-8", errors="ignore"))


@dataclass(frozen=True)
class Span:
    """A range of source text.

    Lines are 1-based, columns are 0-based character offsets.
    """

    line: int
    column: int
    end_line: int
    end_column: int
    filename: str = "<capture>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }


class SourceText:
    """Text of one invocation together with where it sits in its file.

    Parameters
    ----------
    text : str
        The text between the invocation's parentheses
    filename : str
        File the text came from
    line : int
        Line (1-based) of the first character of *text*
    column : int
        Column (0-based) of the first character of *text*
    """

    def __init__(
        self,
        text: str,
        filename: str = "<capture>",
        line: int = 1,
        column: int = 0,
    ):
        self.text = text
        self.filename = filename
        self.line = line
        self.column = column
        self._starts = line_starts(text)

    def position(self, offset: int) -> Tuple[int, int]:
        """Map an offset into :attr:`text` to an absolute (line, column)."""
        offset = max(0, min(offset, len(self.text)))
        index = bisect_right(self._starts, offset) - 1
        column = offset - self._starts[index]
        if index == 0:
            column += self.column
        return self.line + index, column

    def span(self, start: int, end: Optional[int] = None) -> Span:
        line, column = self.position(start)
        end_line, end_column = self.position(start if end is None else end)
        return Span(line, column, end_line, end_column, self.filename)


@dataclass
class Diagnostic:
    """A single problem found while compiling an invocation.

    Attributes
    ----------
    code : str
        Short rule identifier (syntax, duplicate-capture, ...)
    message : str
        What went wrong
    span : Span, optional
        Where it went wrong
    hint : str, optional
        Suggested fix
    notes : List[str]
        Extra context
    severity : str
        "error" or "warning"
    """

    code: str
    message: str
    span: Optional[Span] = None
    hint: Optional[str] = None
    notes: List[str] = field(default_factory=list)
    severity: Literal["error", "warning"] = "error"

    def format(self) -> str:
        """One-line ``file:line:col: error[code]: message`` form."""
        location = ""
        if self.span is not None:
            location = f"{self.span.filename}:{self.span.line}:{self.span.column + 1}: "
        return f"{location}{self.severity}[{self.code}]: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "severity": self.severity,
            "message": self.message,
            "span": self.span.to_dict() if self.span else None,
            "hint": self.hint,
            "notes": list(self.notes),
        }


class CaptureError(Exception):
    """Base class for capture compilation failures.

    Carries every diagnostic collected for the failing invocation(s).
    """

    def __init__(self, diagnostics: Iterable[Diagnostic]):
        self.diagnostics = list(diagnostics)
        super().__init__("\n".join(d.format() for d in self.diagnostics))


class CaptureSyntaxError(CaptureError):
    """Raised when a capture list does not match the grammar."""


class CapturePlanError(CaptureError):
    """Raised when a parsed capture list fails validation."""


class IsolationError(CaptureError):
    """Raised when a strict closure uses a name it did not capture."""


class GeneratedCodeError(CaptureError):
    """Raised when Python rejects the expanded code."""


class DuplicationError(CaptureError, TypeError):
    """Raised at closure creation when a ``clone`` value cannot be duplicated."""


def render(diagnostic: Diagnostic, source: Optional[str] = None) -> str:
    """Render a diagnostic with a caret-underlined excerpt of *source*.

    Example output::

        error[duplicate-capture]: cannot supply multiple captures for `a`
          --> demo.py:3:27
           |
         3 |     f = capture!(clone a, ref a, lambda: a)
           |                           ^^^^^
           = help: remove one of the entries
    """
    lines = [f"{diagnostic.severity}[{diagnostic.code}]: {diagnostic.message}"]
    span = diagnostic.span
    gutter = 1
    if span is not None:
        gutter = len(str(span.line))
        pad = " " * gutter
        lines.append(f"{pad}--> {span.filename}:{span.line}:{span.column + 1}")
        source_lines = source.split("\n") if source is not None else []
        if 1 <= span.line <= len(source_lines):
            text = source_lines[span.line - 1].rstrip("\r")
            if span.end_line == span.line:
                width = max(1, span.end_column - span.column)
            else:
                width = max(1, len(text) - span.column)
            lines.append(f"{pad} |")
            lines.append(f"{span.line} | {text}")
            lines.append(f"{pad} | {' ' * span.column}{'^' * width}")
    pad = " " * gutter
    for note in diagnostic.notes:
        lines.append(f"{pad} = note: {note}")
    if diagnostic.hint:
        lines.append(f"{pad} = help: {diagnostic.hint}")
    return "\n".join(lines)
