"""Capture plan construction."""

from dataclasses import dataclass, field
from typing import List

from .diagnostics import CapturePlanError
from .model import CaptureEntry, CaptureMode, ClosureLiteral, ClosureSpec
from .validator import validate_spec


@dataclass
class CapturePlan:
    """A validated, ordered capture list ready for code generation.

    Attributes
    ----------
    spec : ClosureSpec
        The validated invocation
    duplication_obligations : List[str]
        Identifiers whose duplication capability is still owed; the generated
        code checks them when the closure is created
    """

    spec: ClosureSpec
    duplication_obligations: List[str] = field(default_factory=list)

    @property
    def strict(self) -> bool:
        return self.spec.strict

    @property
    def body(self) -> ClosureLiteral:
        return self.spec.body

    @property
    def bindings(self) -> List[CaptureEntry]:
        """Entries that bind a name, in declared order."""
        return [entry for entry in self.spec.captures if entry.mode.binds]

    @property
    def bound_names(self) -> List[str]:
        return [entry.identifier for entry in self.bindings]

    @property
    def implicit(self) -> List[str]:
        """Identifiers listed with `all`."""
        return [
            entry.identifier
            for entry in self.spec.captures
            if entry.mode is CaptureMode.ALL
        ]

    @property
    def relocations(self) -> List[str]:
        """Outer names moved into the closure.

        A `move` whose source was already bound by an earlier entry moves
        that binding, not the outer variable, so it is not listed.
        """
        bound = set()
        result = []
        for entry in self.spec.captures:
            if entry.mode is CaptureMode.MOVE:
                source = entry.source_expression
                if source not in bound and source not in result:
                    result.append(source)
            if entry.mode.binds:
                bound.add(entry.identifier)
        return result


def build_plan(spec: ClosureSpec) -> CapturePlan:
    """Validate *spec* and record the duplication checks it owes."""
    errors = validate_spec(spec)
    if errors:
        raise CapturePlanError(errors)

    obligations = [
        entry.identifier
        for entry in spec.captures
        if entry.mode is CaptureMode.DUPLICATE
    ]
    return CapturePlan(spec=spec, duplication_obligations=obligations)
