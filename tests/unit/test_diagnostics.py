"""Unit tests for diagnostics and rendering."""

from closure_captures.core.capture import (
    CaptureError,
    CapturePlanError,
    Diagnostic,
    DuplicationError,
    Span,
    render,
)
from closure_captures.core.capture.diagnostics import SourceText, byte_to_char_column


class TestSourceText:
    """Tests for offset to position mapping."""

    def test_first_line_adds_column(self):
        source = SourceText("clone a, lambda: a", line=4, column=16)
        assert source.position(6) == (4, 22)

    def test_later_lines_start_at_zero(self):
        source = SourceText("clone a,\n  lambda: a", line=4, column=16)
        assert source.position(11) == (5, 2)

    def test_offset_clamped(self):
        source = SourceText("abc")
        assert source.position(100) == (1, 3)

    def test_span(self):
        span = SourceText("clone a", filename="m.py").span(6, 7)
        assert span == Span(1, 6, 1, 7, "m.py")


def test_byte_to_char_column():
    assert byte_to_char_column("é = 1", 3) == 2


class TestDiagnostic:
    """Tests for Diagnostic formatting."""

    def test_format(self):
        diagnostic = Diagnostic("syntax", "bad entry", Span(3, 4, 3, 9, "m.py"))
        assert diagnostic.format() == "m.py:3:5: error[syntax]: bad entry"

    def test_format_without_span(self):
        assert Diagnostic("x", "msg").format() == "error[x]: msg"

    def test_to_dict(self):
        diagnostic = Diagnostic("syntax", "bad", Span(1, 0, 1, 1), hint="fix", notes=["n"])
        record = diagnostic.to_dict()
        assert record["span"]["line"] == 1
        assert record["hint"] == "fix"
        assert record["notes"] == ["n"]


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_message_lists_diagnostics(self):
        error = CapturePlanError([Diagnostic("a", "first"), Diagnostic("b", "second")])
        assert str(error) == "error[a]: first\nerror[b]: second"
        assert isinstance(error, CaptureError)

    def test_duplication_error_is_type_error(self):
        assert issubclass(DuplicationError, TypeError)
        assert issubclass(DuplicationError, CaptureError)


class TestRender:
    """Tests for compiler-style rendering."""

    def test_excerpt_and_caret(self):
        source = "x = 1\nf = capture!(clone a, ref a, lambda: a)\n"
        diagnostic = Diagnostic(
            "duplicate-capture",
            "cannot supply multiple captures for `a`",
            Span(2, 22, 2, 27, "m.py"),
            hint="remove one",
            notes=["first here"],
        )
        lines = render(diagnostic, source).splitlines()
        assert lines[0] == "error[duplicate-capture]: cannot supply multiple captures for `a`"
        assert lines[1] == " --> m.py:2:23"
        assert lines[3] == "2 | f = capture!(clone a, ref a, lambda: a)"
        assert lines[4] == "  | " + " " * 22 + "^^^^^"
        assert lines[5] == "  = note: first here"
        assert lines[6] == "  = help: remove one"

    def test_without_source(self):
        diagnostic = Diagnostic("syntax", "bad", Span(1, 0, 1, 1, "m.py"))
        assert render(diagnostic) == "error[syntax]: bad\n --> m.py:1:1"
