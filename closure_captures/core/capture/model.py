"""Data model for parsed capture lists."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .diagnostics import SourceText, Span


class CaptureMode(str, Enum):
    """How a captured value becomes available inside the closure."""

    MOVE = "move"  # relocate the named value
    DUPLICATE = "clone"  # bind a duplicate, the original stays usable
    REFERENCE = "ref"  # bind the same object, no copy
    EXPRESSION = "with"  # bind the result of an arbitrary expression
    ALL = "all"  # no binding, implicit capture stays in effect

    @property
    def binds(self) -> bool:
        return self is not CaptureMode.ALL


@dataclass(frozen=True)
class CaptureEntry:
    """One declared capture.

    Attributes
    ----------
    identifier : str
        Name bound inside the closure
    mode : CaptureMode
        Capture mode
    source_expression : str
        Python expression producing the value (the identifier itself unless
        given with ``=``)
    span : Span, optional
        Location of the entry in the invocation
    explicit_source : bool
        True when the entry was written with ``= expression``
    """

    identifier: str
    mode: CaptureMode
    source_expression: str
    span: Optional[Span] = None
    explicit_source: bool = False

    @property
    def directive(self) -> str:
        """The entry written back in capture-list syntax."""
        text = f"{self.mode.value} {self.identifier}"
        if self.explicit_source:
            text += f" = {self.source_expression}"
        return text


@dataclass(frozen=True)
class ClosureLiteral:
    """The ``lambda`` that ends an invocation.

    ``text`` excludes the ``move`` qualifier; ``origin`` is the location of
    the first character of ``text``.
    """

    text: str
    is_move: bool = False
    span: Optional[Span] = None
    origin: Optional[Span] = None

    @property
    def source(self) -> str:
        return f"move {self.text}" if self.is_move else self.text

    def source_text(self) -> SourceText:
        if self.origin is None:
            return SourceText(self.text)
        return SourceText(
            self.text, self.origin.filename, self.origin.line, self.origin.column
        )


@dataclass
class ClosureSpec:
    """One parsed invocation, before validation."""

    captures: List[CaptureEntry]
    body: ClosureLiteral
    strict: bool = False
    entry_point: str = "capture"

    @property
    def identifiers(self) -> List[str]:
        return [entry.identifier for entry in self.captures]
