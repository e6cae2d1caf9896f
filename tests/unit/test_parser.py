"""Unit tests for the capture-list parser."""

import pytest

from closure_captures.core.capture import CaptureMode, CaptureSyntaxError, parse_invocation
from closure_captures.core.capture.parser import split_segments, tokenize_invocation
from closure_captures.core.capture.diagnostics import SourceText


def codes(error):
    return [d.code for d in error.diagnostics]


class TestTokenize:
    """Tests for tokenize_invocation and split_segments."""

    def test_offsets_match_text(self):
        """Test token offsets index into the original text."""
        text = "clone a, lambda: a"
        tokens = tokenize_invocation(SourceText(text))
        assert [text[t.start:t.end] for t in tokens] == [t.string for t in tokens]
        assert tokens[0].string == "clone"

    def test_multiline_offsets(self):
        """Test offsets on later lines of a multi-line invocation."""
        text = "\n    clone a,\n    lambda: a,\n"
        tokens = tokenize_invocation(SourceText(text))
        for token in tokens:
            assert text[token.start:token.end] == token.string

    def test_nested_commas_stay_in_segment(self):
        """Test commas inside brackets do not split entries."""
        text = "with t = (1, 2), lambda: t"
        tokens = tokenize_invocation(SourceText(text))
        segments = split_segments(tokens, len(text))
        assert len(segments) == 2
        assert segments[1].starts_closure

    def test_unmatched_closer(self):
        """Test a stray closing bracket is reported."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            tokenize_invocation(SourceText("clone a), lambda: a"))
        assert "unmatched" in exc_info.value.diagnostics[0].message


class TestEntries:
    """Tests for capture entry parsing."""

    def test_modes(self):
        """Test each mode keyword."""
        spec = parse_invocation("move a, clone b, ref c, all d, with e = 1, lambda: 0")
        modes = [entry.mode for entry in spec.captures]
        assert modes == [
            CaptureMode.MOVE,
            CaptureMode.DUPLICATE,
            CaptureMode.REFERENCE,
            CaptureMode.ALL,
            CaptureMode.EXPRESSION,
        ]
        assert spec.identifiers == ["a", "b", "c", "d", "e"]

    def test_bare_identifier_uses_default_mode(self):
        """Test a bare identifier takes the entry point's default."""
        spec = parse_invocation("a, lambda: a", default_mode=CaptureMode.DUPLICATE)
        assert spec.captures[0].mode is CaptureMode.DUPLICATE
        assert spec.captures[0].source_expression == "a"

    def test_assignment_is_expression_mode(self):
        """Test `x = expr` without a keyword."""
        spec = parse_invocation("total = a + b, lambda: total")
        entry = spec.captures[0]
        assert entry.mode is CaptureMode.EXPRESSION
        assert entry.source_expression == "a + b"
        assert entry.explicit_source

    def test_clone_with_source_expression(self):
        """Test `clone x = expr` duplicates the value of expr."""
        spec = parse_invocation("clone items = data['items'], lambda: items")
        entry = spec.captures[0]
        assert entry.mode is CaptureMode.DUPLICATE
        assert entry.source_expression == "data['items']"

    def test_move_renames_plain_name(self):
        """Test `move x = y` relocates y under the name x."""
        spec = parse_invocation("move x = y, lambda: x")
        assert spec.captures[0].source_expression == "y"

    def test_move_of_expression_rejected(self):
        """Test `move x = expr` needs a plain name."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("move x = y.z, lambda: x")
        assert "plain name" in exc_info.value.diagnostics[0].message

    def test_mode_word_as_identifier(self):
        """Test a mode keyword followed by `=` is an ordinary name."""
        spec = parse_invocation("move = 3, lambda: move")
        assert spec.captures[0].identifier == "move"
        assert spec.captures[0].mode is CaptureMode.EXPRESSION

    def test_expression_with_lambda_parameters(self):
        """Test an entry expression containing top-level commas."""
        spec = parse_invocation("with add = lambda x, y: x + y, lambda: add(1, 2)")
        assert spec.captures[0].source_expression == "lambda x, y: x + y"
        assert spec.body.text == "lambda: add(1, 2)"

    def test_entry_span(self):
        """Test entry spans are absolute positions."""
        spec = parse_invocation("clone a, ref b, lambda: a", line=10, column=20)
        span = spec.captures[1].span
        assert (span.line, span.column, span.end_column) == (10, 29, 34)


class TestClosure:
    """Tests for the closure literal."""

    def test_move_qualifier(self):
        """Test `move lambda` sets is_move and strips the keyword."""
        spec = parse_invocation("clone v, move lambda: v")
        assert spec.body.is_move
        assert spec.body.text == "lambda: v"
        assert spec.body.source == "move lambda: v"

    def test_trailing_comma(self):
        """Test a trailing comma after the closure is accepted."""
        spec = parse_invocation("clone a,\n lambda x, y: a + x + y,\n")
        assert spec.body.text == "lambda x, y: a + x + y"

    def test_closure_only(self):
        """Test an invocation with no captures."""
        spec = parse_invocation("lambda: 1")
        assert spec.captures == []

    def test_missing_closure(self):
        """Test a capture list without a closure literal."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("clone a, ref b")
        assert "closure literal" in exc_info.value.diagnostics[0].message

    def test_closure_must_end_invocation(self):
        """Test extra items after the closure are rejected."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("clone a, lambda: a, b")
        assert "single `lambda`" in exc_info.value.diagnostics[0].message

    def test_empty_invocation(self):
        """Test an empty invocation reports the missing closure."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("")
        assert len(exc_info.value.diagnostics) == 1


class TestErrors:
    """Tests for malformed capture lists."""

    def test_keyword_as_identifier(self):
        """Test a reserved word where an identifier is expected."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("clone for, lambda: 1")
        assert "found `for`" in exc_info.value.diagnostics[0].message

    def test_non_identifier_entry(self):
        """Test an entry that does not start with a name."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("1, lambda: 1")
        assert exc_info.value.diagnostics[0].message.startswith("expected `move`")

    def test_with_requires_value(self):
        """Test `with x` without `= expr`."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("with x, lambda: x")
        assert exc_info.value.diagnostics[0].hint == "write `with x = <expression>`"

    def test_all_takes_no_expression(self):
        """Test `all x = expr` is rejected."""
        with pytest.raises(CaptureSyntaxError):
            parse_invocation("all x = 1, lambda: x")

    def test_unexpected_token_after_identifier(self):
        """Test junk after an entry's identifier."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("clone a b, lambda: a")
        assert "unexpected `b`" in exc_info.value.diagnostics[0].message

    def test_empty_entry(self):
        """Test two commas in a row."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("clone a,, lambda: a")
        assert "found `,`" in exc_info.value.diagnostics[0].message

    def test_unterminated(self):
        """Test an unclosed bracket inside the list."""
        with pytest.raises(CaptureSyntaxError):
            parse_invocation("with x = (1, lambda: x")

    def test_all_errors_reported(self):
        """Test parsing continues after a bad entry."""
        with pytest.raises(CaptureSyntaxError) as exc_info:
            parse_invocation("clone for, 1, with y, lambda: 0")
        assert len(exc_info.value.diagnostics) == 3
        assert set(codes(exc_info.value)) == {"syntax"}
