"""
Grammar parser for capture lists.

Parses the text between the parentheses of an invocation::

    invocation      := entry (',' entry)* ',' closure-literal ','?
    entry           := mode? identifier ('=' expression)?
    mode            := 'move' | 'clone' | 'ref' | 'all' | 'with'
    closure-literal := 'move'? lambda-expression

Parsing continues past a malformed entry so that every problem in the list
is reported at once.
"""

from __future__ import annotations

import ast
import io
import keyword
import tokenize
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .diagnostics import CaptureSyntaxError, Diagnostic, SourceText, line_starts
from .model import CaptureEntry, CaptureMode, ClosureLiteral, ClosureSpec

MODE_KEYWORDS = {
    "move": CaptureMode.MOVE,
    "clone": CaptureMode.DUPLICATE,
    "ref": CaptureMode.REFERENCE,
    "all": CaptureMode.ALL,
    "with": CaptureMode.EXPRESSION,
}

EXPECTED_MSG = "expected `move`, `clone`, `ref`, `all`, `with` or an identifier"

_SKIPPED = {
    tokenize.NL,
    tokenize.NEWLINE,
    tokenize.COMMENT,
    tokenize.INDENT,
    tokenize.DEDENT,
    tokenize.ENDMARKER,
}
_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = set(_PAIRS.values())


@dataclass(frozen=True)
class Token:
    """A token with offsets into the invocation text."""

    type: int
    string: str
    start: int
    end: int

    def is_op(self, value: str) -> bool:
        return self.type == tokenize.OP and self.string == value


@dataclass
class Segment:
    """Tokens between two top-level commas.

    ``end`` is the offset of the comma that closes the segment (or the end of
    the text for the last one).
    """

    tokens: List[Token]
    start: int
    end: int

    @property
    def is_empty(self) -> bool:
        return not self.tokens

    @property
    def starts_closure(self) -> bool:
        toks = self.tokens
        if not toks or toks[0].type != tokenize.NAME:
            return False
        if toks[0].string == "lambda":
            return True
        return (
            toks[0].string == "move"
            and len(toks) > 1
            and toks[1].type == tokenize.NAME
            and toks[1].string == "lambda"
        )


def _syntax_error(source: SourceText, message: str, start: int, end: int) -> CaptureSyntaxError:
    return CaptureSyntaxError(
        [Diagnostic(code="syntax", message=message, span=source.span(start, end))]
    )


def tokenize_invocation(source: SourceText) -> List[Token]:
    """Tokenize the invocation text.

    The text is wrapped in brackets so that line breaks and indentation
    inside a multi-line invocation tokenize the way they do inside the
    invocation's own parentheses.
    """
    text = source.text
    wrapped = f"({text}\n)"
    starts = line_starts(wrapped)

    def offset(position: Tuple[int, int]) -> int:
        row, col = position
        row = min(max(row, 1), len(starts))
        return max(0, min(starts[row - 1] + col - 1, len(text)))

    raw: List[Token] = []
    try:
        for tok in tokenize.generate_tokens(io.StringIO(wrapped).readline):
            if tok.type in _SKIPPED:
                continue
            if tok.type == tokenize.ERRORTOKEN and tok.string.isspace():
                continue
            token = Token(tok.type, tok.string, offset(tok.start), offset(tok.end))
            if tok.type == tokenize.ERRORTOKEN:
                raise _syntax_error(
                    source, f"unexpected character `{tok.string}`", token.start, token.end
                )
            raw.append(token)
    except tokenize.TokenError as exc:
        position = offset(exc.args[1]) if len(exc.args) > 1 else len(text)
        raise _syntax_error(
            source, f"unterminated capture list: {exc.args[0]}", position, position
        ) from exc
    except SyntaxError as exc:
        position = len(text)
        if exc.lineno is not None:
            position = offset((exc.lineno, max((exc.offset or 1) - 1, 0)))
        raise _syntax_error(source, f"invalid capture list: {exc.msg}", position, position) from exc

    stack: List[Token] = []
    for index, token in enumerate(raw):
        if token.type != tokenize.OP:
            continue
        if token.string in _PAIRS:
            stack.append(token)
        elif token.string in _CLOSERS:
            closes_wrapper = len(stack) == 1 and index != len(raw) - 1
            if not stack or _PAIRS[stack[-1].string] != token.string or closes_wrapper:
                raise _syntax_error(
                    source, f"unmatched `{token.string}`", token.start, token.end
                )
            stack.pop()

    return raw[1:-1]


def split_segments(tokens: List[Token], length: int) -> List[Segment]:
    """Split tokens at commas that are not nested in brackets."""
    segments = []
    current: List[Token] = []
    start = 0
    depth = 0

    for token in tokens:
        if token.type == tokenize.OP and token.string in _PAIRS:
            depth += 1
        elif token.type == tokenize.OP and token.string in _CLOSERS:
            depth -= 1
        elif depth == 0 and token.is_op(","):
            segments.append(Segment(current, start, token.start))
            current = []
            start = token.end
            continue
        current.append(token)

    segments.append(Segment(current, start, length))
    return segments


def _parses(text: str) -> Optional[SyntaxError]:
    """Return the SyntaxError raised by *text* as an expression, if any."""
    try:
        ast.parse(f"({text}\n)", mode="eval")
    except SyntaxError as exc:
        return exc
    return None


class CaptureParser:
    """Parses one invocation into a :class:`ClosureSpec`.

    Parameters
    ----------
    source : SourceText
        The invocation text and its location
    default_mode : CaptureMode
        Mode given to a bare identifier
    strict : bool
        Whether the invocation only allows declared captures
    entry_point : str
        Name of the invocation (for messages)
    """

    def __init__(
        self,
        source: SourceText,
        default_mode: CaptureMode = CaptureMode.MOVE,
        strict: bool = False,
        entry_point: str = "capture",
    ):
        self.source = source
        self.default_mode = default_mode
        self.strict = strict
        self.entry_point = entry_point
        self.diagnostics: List[Diagnostic] = []

    def parse(self) -> ClosureSpec:
        tokens = tokenize_invocation(self.source)
        segments = split_segments(tokens, len(self.source.text))

        captures: List[CaptureEntry] = []
        body: Optional[ClosureLiteral] = None
        closure_seen = False
        index = 0

        while index < len(segments):
            segment = segments[index]
            if segment.is_empty:
                if index == len(segments) - 1:
                    break
                self._error(
                    f"{EXPECTED_MSG}, found `,`", segment.end, segment.end + 1
                )
                index += 1
                continue
            if segment.starts_closure:
                closure_seen = True
                body = self._parse_closure(segments[index:])
                break
            entry, index = self._parse_entry(segments, index)
            if entry is not None:
                captures.append(entry)

        if not closure_seen:
            end = len(self.source.text.rstrip())
            self._error(
                "expected a closure literal (`lambda ...`) after the capture list",
                end,
                end,
                hint=f"end the invocation with the closure, e.g. "
                f"`{self.entry_point}!(clone x, lambda: x)`",
            )

        if self.diagnostics:
            raise CaptureSyntaxError(self.diagnostics)

        return ClosureSpec(
            captures=captures,
            body=body,
            strict=self.strict,
            entry_point=self.entry_point,
        )

    # ----------------------------------------------------------------- entries

    def _parse_entry(
        self, segments: List[Segment], index: int
    ) -> Tuple[Optional[CaptureEntry], int]:
        segment = segments[index]
        toks = segment.tokens
        first = toks[0]
        next_index = index + 1

        if first.type != tokenize.NAME:
            self._error(f"{EXPECTED_MSG}, found `{first.string}`", first.start, first.end)
            return None, next_index

        mode_token = None
        rest = toks
        if first.string == "with" or (
            first.string in MODE_KEYWORDS and len(toks) > 1 and not toks[1].is_op("=")
        ):
            mode_token = first
            rest = toks[1:]
            if not rest:
                self._error(
                    f"expected an identifier after `{first.string}`", first.start, first.end
                )
                return None, next_index

        name_token = rest[0]
        rest = rest[1:]
        if name_token.type != tokenize.NAME or keyword.iskeyword(name_token.string):
            self._error(
                f"expected an identifier, found `{name_token.string}`",
                name_token.start,
                name_token.end,
            )
            return None, next_index

        source_expression = None
        if rest:
            if not rest[0].is_op("="):
                self._error(
                    f"unexpected `{rest[0].string}` in capture entry, expected `,` or `=`",
                    rest[0].start,
                    toks[-1].end,
                )
                return None, next_index
            if len(rest) == 1:
                self._error("expected an expression after `=`", rest[0].start, rest[0].end)
                return None, next_index
            source_expression, next_index = self._parse_expression(
                segments, index, rest[1].start
            )
            if source_expression is None:
                return None, next_index

        end = segments[next_index - 1].tokens[-1].end
        identifier = name_token.string
        if mode_token is not None:
            mode = MODE_KEYWORDS[mode_token.string]
        elif source_expression is not None:
            mode = CaptureMode.EXPRESSION
        else:
            mode = self.default_mode

        if mode is CaptureMode.ALL and source_expression is not None:
            self._error("`all` captures take no expression", first.start, end)
            return None, next_index
        if mode is CaptureMode.EXPRESSION and source_expression is None:
            self._error(
                f"`with {identifier}` needs a value",
                first.start,
                end,
                hint=f"write `with {identifier} = <expression>`",
            )
            return None, next_index
        if mode is CaptureMode.MOVE and source_expression is not None:
            node = ast.parse(f"({source_expression}\n)", mode="eval").body
            if not isinstance(node, ast.Name):
                self._error(
                    "`move` can only relocate a plain name",
                    rest[1].start,
                    end,
                    hint=f"use `with {identifier} = ...` to bind the result of an expression",
                )
                return None, next_index
            source_expression = node.id

        return (
            CaptureEntry(
                identifier=identifier,
                mode=mode,
                source_expression=source_expression or identifier,
                span=self.source.span(first.start, end),
                explicit_source=source_expression is not None,
            ),
            next_index,
        )

    def _parse_expression(
        self, segments: List[Segment], index: int, start: int
    ) -> Tuple[Optional[str], int]:
        """Read an entry expression starting at offset *start*.

        An expression with a top-level comma (a ``lambda`` with several
        parameters, say) spans several segments; it is extended one segment
        at a time until it parses, but never into the closure literal.
        """
        text = self.source.text
        first_error = None
        for position in range(index, len(segments)):
            segment = segments[position]
            if position > index and (segment.is_empty or segment.starts_closure):
                break
            candidate = text[start:segment.tokens[-1].end]
            error = _parses(candidate)
            if error is None:
                return candidate, position + 1
            if first_error is None:
                first_error = error

        end = segments[index].tokens[-1].end
        self._error(f"invalid expression: {first_error.msg}", start, end)
        return None, index + 1

    # ----------------------------------------------------------------- closure

    def _parse_closure(self, segments: List[Segment]) -> Optional[ClosureLiteral]:
        first = segments[0]
        is_move = first.tokens[0].string == "move"
        start = first.tokens[0].start
        lambda_start = first.tokens[1].start if is_move else start

        filled = [segment for segment in segments if not segment.is_empty]
        end = filled[-1].tokens[-1].end
        text = self.source.text[lambda_start:end]

        try:
            node = ast.parse(f"({text}\n)", mode="eval").body
        except SyntaxError as exc:
            self._error(f"invalid closure literal: {exc.msg}", lambda_start, end)
            return None
        if not isinstance(node, ast.Lambda):
            self._error(
                "the closure literal must be a single `lambda` expression ending "
                "the invocation",
                lambda_start,
                end,
                hint="wrap tuple results in parentheses: `lambda: (a, b)`",
            )
            return None

        origin = self.source.span(lambda_start, lambda_start)
        return ClosureLiteral(
            text=text,
            is_move=is_move,
            span=self.source.span(start, end),
            origin=origin,
        )

    def _error(self, message: str, start: int, end: int, hint: Optional[str] = None) -> None:
        self.diagnostics.append(
            Diagnostic(
                code="syntax",
                message=message,
                span=self.source.span(start, end),
                hint=hint,
            )
        )


def parse_invocation(
    text: str,
    strict: bool = False,
    default_mode: CaptureMode = CaptureMode.MOVE,
    entry_point: str = "capture",
    filename: str = "<capture>",
    line: int = 1,
    column: int = 0,
) -> ClosureSpec:
    """Convenience function to parse one invocation's text."""
    source = SourceText(text, filename, line, column)
    parser = CaptureParser(
        source, default_mode=default_mode, strict=strict, entry_point=entry_point
    )
    return parser.parse()
