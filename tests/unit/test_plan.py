"""Unit tests for capture plan validation."""

import pytest

from closure_captures.core.capture import CapturePlanError, build_plan, parse_invocation
from closure_captures.core.capture.validator import validate_spec, validate_strict, validate_unique


class TestValidateUnique:
    """Tests for duplicate identifier detection."""

    def test_unique_passes(self):
        """Test distinct identifiers produce no diagnostics."""
        spec = parse_invocation("clone a, ref b, lambda: a + b")
        assert validate_unique(spec) == []

    def test_duplicate_reports_later_entry(self):
        """Test the second entry is reported with a note on the first."""
        spec = parse_invocation("clone a, ref a, lambda: a")
        errors = validate_unique(spec)
        assert len(errors) == 1
        error = errors[0]
        assert error.code == "duplicate-capture"
        assert "`a`" in error.message
        assert error.span.column == 9
        assert "`clone a`" in error.notes[0]

    def test_case_sensitive(self):
        """Test identifiers differing only in case are distinct."""
        spec = parse_invocation("clone a, clone A, lambda: a + A")
        assert validate_unique(spec) == []

    def test_duplicate_expression_entries(self):
        """Test `with` entries count towards uniqueness too."""
        spec = parse_invocation("with x = 1, x = 2, lambda: x")
        assert len(validate_unique(spec)) == 1


class TestValidateStrict:
    """Tests for `all` entries under strict mode."""

    def test_all_allowed_when_not_strict(self):
        spec = parse_invocation("all a, lambda: a")
        assert validate_strict(spec) == []

    def test_all_rejected_when_strict(self):
        """Test `all` cannot relax a strict closure."""
        spec = parse_invocation("all a, lambda: a", strict=True, entry_point="capture_only")
        errors = validate_strict(spec)
        assert [e.code for e in errors] == ["all-in-strict"]
        assert "capture_only!" in errors[0].message

    def test_combined(self):
        """Test validate_spec returns both kinds of problems."""
        spec = parse_invocation("all a, clone a, lambda: a", strict=True)
        codes = sorted(e.code for e in validate_spec(spec))
        assert codes == ["all-in-strict", "duplicate-capture"]


class TestBuildPlan:
    """Tests for build_plan and CapturePlan."""

    def test_raises_plan_error(self):
        spec = parse_invocation("clone a, ref a, lambda: a")
        with pytest.raises(CapturePlanError):
            build_plan(spec)

    def test_duplication_obligations(self):
        """Test each clone entry owes a duplication check."""
        plan = build_plan(parse_invocation("clone a, ref b, clone c = d, lambda: a"))
        assert plan.duplication_obligations == ["a", "c"]

    def test_bindings_skip_all(self):
        """Test `all` entries produce no binding."""
        plan = build_plan(parse_invocation("all a, clone b, with c = 1, lambda: a"))
        assert plan.bound_names == ["b", "c"]
        assert plan.implicit == ["a"]

    def test_relocations(self):
        """Test moved outer names are listed once, in order."""
        plan = build_plan(parse_invocation("move b, clone a, move c = a2, lambda: b"))
        assert plan.relocations == ["b", "a2"]

    def test_move_of_earlier_binding_is_not_a_relocation(self):
        """Test moving a name bound by an earlier entry leaves the outer name alone."""
        plan = build_plan(parse_invocation("with t = 1, move u = t, lambda: u"))
        assert plan.relocations == []

    def test_strict_follows_spec(self):
        plan = build_plan(parse_invocation("clone a, lambda: a", strict=True))
        assert plan.strict
