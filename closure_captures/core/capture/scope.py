"""
Free-identifier analysis and strict isolation.

Every Python function sees its lexical environment, so a strict closure
cannot be fenced off by wrapping it in another function. Instead the
closure literal's free identifiers are computed with :mod:`symtable` and
compared with the declared captures before any code is generated.
"""

from __future__ import annotations

import ast
import builtins
import symtable
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Set

from .diagnostics import Diagnostic, IsolationError, byte_to_char_column, line_starts

BUILTIN_NAMES: FrozenSet[str] = frozenset(dir(builtins))

# Names every module namespace has besides its own assignments
MODULE_NAMES: FrozenSet[str] = frozenset(
    {"__name__", "__file__", "__doc__", "__spec__", "__loader__", "__package__",
     "__builtins__", "__annotations__", "__cached__"}
)

_HOLDER = "__closure__"
_PREFIX = f"{_HOLDER} = ("


@dataclass(frozen=True)
class FreeName:
    """First use of a free identifier, as an offset into the closure text."""

    name: str
    offset: int


@dataclass(frozen=True)
class ScopeInfo:
    """What is visible where an invocation appears.

    Attributes
    ----------
    locals : FrozenSet[str], optional
        Names bound by enclosing functions, lambdas and comprehensions
        (None if unknown)
    globals : FrozenSet[str], optional
        Module-level names (None if unknown)
    """

    locals: Optional[FrozenSet[str]] = None
    globals: Optional[FrozenSet[str]] = None

    def reachable(self, name: str) -> bool:
        """True if a strict closure may use *name* without capturing it."""
        if self.locals is not None and name in self.locals:
            return False
        if self.globals is not None and name in self.globals:
            return True
        if name in BUILTIN_NAMES:
            return True
        return self.locals is not None and self.globals is None

    def may_be_local(self, name: str) -> bool:
        """True if *name* could refer to an enclosing function's variable."""
        if self.locals is not None:
            return name in self.locals
        if self.globals is not None and name in self.globals:
            return False
        return name not in BUILTIN_NAMES


def _collect_globals(table: symtable.SymbolTable, names: Set[str]) -> None:
    for symbol in table.get_symbols():
        if symbol.is_referenced() and symbol.is_global():
            names.add(symbol.get_name())
    for child in table.get_children():
        _collect_globals(child, names)


def free_names(closure_text: str) -> List[FreeName]:
    """
    Return the free identifiers of a ``lambda`` expression.

    Parameter defaults count, since they are evaluated where the closure is
    created. Names are ordered by their first use.
    """
    code = f"{_PREFIX}{closure_text}\n)\n"
    table = symtable.symtable(code, "<closure>", "exec")

    names = {
        symbol.get_name()
        for symbol in table.get_symbols()
        if symbol.is_referenced()
    }
    for child in table.get_children():
        _collect_globals(child, names)
    names.discard(_HOLDER)

    starts = line_starts(code)
    lines = code.split("\n")
    first_use: Dict[str, int] = {}
    for node in ast.walk(ast.parse(code)):
        if isinstance(node, ast.Name) and node.id in names:
            column = byte_to_char_column(lines[node.lineno - 1], node.col_offset)
            offset = starts[node.lineno - 1] + column - len(_PREFIX)
            if node.id not in first_use or offset < first_use[node.id]:
                first_use[node.id] = offset

    return sorted(
        (FreeName(name, offset) for name, offset in first_use.items()),
        key=lambda free: free.offset,
    )


def check_isolation(plan, scope: Optional[ScopeInfo] = None) -> None:
    """
    Reject a strict closure that uses names it did not capture.

    Parameters
    ----------
    plan : CapturePlan
        Validated plan of a strict invocation
    scope : ScopeInfo, optional
        Names visible at the invocation; unknown scopes only allow builtins

    Raises
    ------
    IsolationError
        Naming every offending identifier at its first use
    """
    scope = scope or ScopeInfo()
    captured = set(plan.spec.identifiers)
    source = plan.body.source_text()
    entry_point = plan.spec.entry_point

    diagnostics = []
    for free in free_names(plan.body.text):
        if free.name in captured or scope.reachable(free.name):
            continue
        diagnostics.append(
            Diagnostic(
                code="unresolved-capture",
                message=f"cannot find value `{free.name}` in this scope",
                span=source.span(free.offset, free.offset + len(free.name)),
                notes=[f"`{entry_point}!` closures only see their declared captures"],
                hint=f"add `ref {free.name}` or `clone {free.name}` to the capture list",
            )
        )

    if diagnostics:
        raise IsolationError(diagnostics)
