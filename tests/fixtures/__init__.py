"""Sample modules and helpers for capture tests."""

from textwrap import dedent
from typing import Any, Dict

from closure_captures.core.capture import CaptureCompiler

CLONE_AND_MOVE = dedent(
    """\
    def make(a, b):
        f = capture!(clone a, move b, lambda: a + b)
        return f
    """
)

WITH_ORDERING = dedent(
    """\
    def make(base):
        return capture!(
            clone base,
            with doubled = base * 2,
            with total = base + doubled,
            lambda: (base, doubled, total),
        )
    """
)

STRICT_MISSING = dedent(
    """\
    def make(a, b):
        return capture_only!(clone a, move lambda: a + b)
    """
)

MULTIPLE_ERRORS = dedent(
    """\
    def first(a):
        return capture!(clone a, ref a, lambda: a)

    def second(a, b):
        return capture_only!(clone a, lambda: a + b)
    """
)

MOVE_IN_HEADER = dedent(
    """\
    def run(items):
        for f in [capture!(items, lambda: len(items))]:
            print(f())
    """
)

NO_INVOCATIONS = dedent(
    """\
    def plain(x):
        return lambda: x
    """
)


def expand(source: str, compiler: CaptureCompiler = None) -> str:
    """Expand *source* with a default compiler."""
    compiler = compiler or CaptureCompiler()
    return compiler.expand_source(source, "<test>")


def run_module(source: str, compiler: CaptureCompiler = None) -> Dict[str, Any]:
    """Expand *source*, execute it, and return its namespace."""
    namespace: Dict[str, Any] = {"__name__": "capture_test"}
    exec(compile(expand(source, compiler), "<test>", "exec"), namespace)
    return namespace
