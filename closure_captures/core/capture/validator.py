"""Validation logic for parsed capture lists."""

from typing import Dict, List

from .diagnostics import Diagnostic
from .model import CaptureEntry, CaptureMode, ClosureSpec


def validate_unique(spec: ClosureSpec) -> List[Diagnostic]:
    """
    Check that no identifier is captured twice.

    The later entry is reported, with a note pointing at the first one.
    """
    errors = []
    seen: Dict[str, CaptureEntry] = {}

    for entry in spec.captures:
        first = seen.get(entry.identifier)
        if first is None:
            seen[entry.identifier] = entry
            continue
        notes = []
        if first.span is not None:
            notes.append(
                f"`{entry.identifier}` is first captured by `{first.directive}` "
                f"at line {first.span.line}, column {first.span.column + 1}"
            )
        errors.append(
            Diagnostic(
                code="duplicate-capture",
                message=f"cannot supply multiple captures for `{entry.identifier}`",
                span=entry.span,
                notes=notes,
                hint="remove one of the entries, or bind the second value under "
                "a new name with `with new_name = ...`",
            )
        )

    return errors


def validate_strict(spec: ClosureSpec) -> List[Diagnostic]:
    """Check that `all` entries are not combined with strict mode."""
    errors = []
    if not spec.strict:
        return errors

    for entry in spec.captures:
        if entry.mode is CaptureMode.ALL:
            errors.append(
                Diagnostic(
                    code="all-in-strict",
                    message=f"`all {entry.identifier}` cannot be used with "
                    f"`{spec.entry_point}!`, which only allows declared captures",
                    span=entry.span,
                    hint=f"capture `{entry.identifier}` explicitly with `ref` or "
                    "`clone`, or use the non-strict entry point",
                )
            )

    return errors


def validate_spec(spec: ClosureSpec) -> List[Diagnostic]:
    """
    Validate a parsed invocation.

    Returns list of diagnostics (empty if valid).
    """
    return validate_unique(spec) + validate_strict(spec)
