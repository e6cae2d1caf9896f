"""
Code generation for capture plans.

An invocation expands to a single expression. Each binding gets its own
immediately invoked one-parameter lambda, so it lives in a fresh scope and
every later entry (and the closure) sees it::

    capture!(clone a, with b = a + 1, lambda x: a + b + x)

    ((lambda a: (lambda b: (lambda x: a + b + x))((a + 1)))(duplicate((a), 'a')))

Names moved out of the enclosing scope are returned as ``relocations``; the
host statement that contains the invocation is responsible for unbinding
them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .model import CaptureEntry, CaptureMode
from .plan import CapturePlan
from .scope import ScopeInfo, free_names


@dataclass
class Expansion:
    """Result of generating code for one invocation."""

    expression: str
    plan: CapturePlan
    relocations: List[str] = field(default_factory=list)

    @property
    def relocation_statement(self) -> str:
        if not self.relocations:
            return ""
        return "del " + ", ".join(self.relocations)


class CodeGenerator:
    """Emits the replacement expression for a validated plan.

    Parameters
    ----------
    runtime_module : str
        Importable module providing ``duplicate``
    """

    def __init__(self, runtime_module: str = "closure_captures"):
        self.runtime_module = runtime_module

    def generate(
        self,
        plan: CapturePlan,
        scope: Optional[ScopeInfo] = None,
        newlines: int = 0,
    ) -> Expansion:
        """
        Generate the expansion of *plan*.

        Parameters
        ----------
        plan : CapturePlan
            Validated plan
        scope : ScopeInfo, optional
            Names visible at the invocation, used to decide what a ``move``
            closure snapshots
        newlines : int
            Line breaks the invocation spanned; the expression is padded to
            the same count so following lines keep their numbers

        Returns
        -------
        Expansion
        """
        expression = self._closure(plan, scope)
        for entry in reversed(plan.bindings):
            expression = f"(lambda {entry.identifier}: {expression})({self._value(entry)})"

        padding = "\n" * max(0, newlines - expression.count("\n"))
        return Expansion(
            expression=f"({expression}{padding})",
            plan=plan,
            relocations=plan.relocations,
        )

    def _value(self, entry: CaptureEntry) -> str:
        source = entry.source_expression
        if entry.mode is CaptureMode.MOVE:
            return source
        if entry.mode is CaptureMode.DUPLICATE:
            return f"{self._runtime('duplicate')}(({source}), {entry.identifier!r})"
        return f"({source})"

    def _closure(self, plan: CapturePlan, scope: Optional[ScopeInfo]) -> str:
        """The closure literal, with its ``move`` qualifier applied.

        A ``move`` closure takes every enclosing variable it uses by value at
        creation time, which in Python means binding each one to a parameter
        of an enclosing lambda.
        """
        body = plan.body
        text = f"({body.text})"
        if not body.is_move:
            return text

        scope = scope or ScopeInfo()
        bound = set(plan.bound_names)
        snapshot = [
            free.name
            for free in free_names(body.text)
            if free.name not in bound and scope.may_be_local(free.name)
        ]
        if not snapshot:
            return text
        names = ", ".join(snapshot)
        return f"(lambda {names}: {text})({names})"

    def _runtime(self, name: str) -> str:
        return f"__import__({self.runtime_module!r}, fromlist=({name!r},)).{name}"
