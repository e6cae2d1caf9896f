"""
Runtime support for capture closures.

``duplicate`` is called by expanded code for every ``clone`` entry.
``capture`` and ``capture_only`` compile a capture list at run time against
the caller's frame, for code that is not run through the source expander::

    from closure_captures import capture

    def make_adder(step):
        return capture("clone step, lambda x: x + step")
"""

import copy
import logging
import sys
import types
from typing import Any, Callable, Optional

from .compiler import CaptureCompiler
from .diagnostics import CaptureError, Diagnostic, DuplicationError
from .scope import ScopeInfo

logger = logging.getLogger(__name__)

# Values of these types never change, so the value itself is its duplicate
IMMUTABLE_TYPES = (
    type(None),
    type(Ellipsis),
    bool,
    int,
    float,
    complex,
    str,
    bytes,
    range,
    frozenset,
    types.FunctionType,
    types.BuiltinFunctionType,
    type,
)

_compiler: Optional[CaptureCompiler] = None


def duplicate(value: Any, name: str = "value") -> Any:
    """
    Return an independent duplicate of *value*.

    Uses the value's own ``clone()`` method when it has one, returns
    immutable values unchanged, and otherwise makes a shallow copy.

    Raises
    ------
    DuplicationError
        If *value* supports none of these
    """
    clone = getattr(value, "clone", None)
    if callable(clone) and not isinstance(value, type):
        return clone()
    if isinstance(value, IMMUTABLE_TYPES):
        return value
    if isinstance(value, tuple) and all(isinstance(item, IMMUTABLE_TYPES) for item in value):
        return value
    try:
        return copy.copy(value)
    except (TypeError, copy.Error) as exc:
        raise DuplicationError(
            [
                Diagnostic(
                    code="missing-duplication",
                    message=f"`{name}` of type `{type(value).__name__}` cannot be duplicated",
                    notes=[str(exc)],
                    hint=f"capture it with `ref {name}` instead",
                )
            ]
        ) from exc


def frame_scope(frame: types.FrameType) -> ScopeInfo:
    """Names visible in *frame*, as seen by a capture list compiled there."""
    code = frame.f_code
    if frame.f_locals is frame.f_globals:
        local_names = frozenset()
    else:
        local_names = frozenset(frame.f_locals) | frozenset(
            code.co_varnames + code.co_cellvars + code.co_freevars
        )
    return ScopeInfo(locals=local_names, globals=frozenset(frame.f_globals))


def get_compiler() -> CaptureCompiler:
    """Shared compiler for run-time invocations."""
    global _compiler
    if _compiler is None:
        _compiler = CaptureCompiler()
    return _compiler


def _evaluate(text: str, entry_point: str, frame: types.FrameType) -> Callable:
    code = frame.f_code
    expansion = get_compiler().expand(
        text,
        entry_point=entry_point,
        scope=frame_scope(frame),
        filename=code.co_filename,
        line=frame.f_lineno,
    )
    if expansion.relocations:
        names = ", ".join(f"`{name}`" for name in expansion.relocations)
        raise CaptureError(
            [
                Diagnostic(
                    code="runtime-relocation",
                    message=f"cannot move {names} out of a running frame",
                    hint="capture with `clone` or `ref`, or expand the module "
                    "with `closure-captures expand` to use `move`",
                )
            ]
        )

    logger.debug(f"{code.co_filename}:{frame.f_lineno}: evaluating {entry_point}()")
    if frame.f_locals is frame.f_globals:
        return eval(expansion.expression, frame.f_globals)
    # locals become parameters of an outer lambda so globals stay live
    values = {name: value for name, value in frame.f_locals.items() if name.isidentifier()}
    factory = eval(f"lambda {', '.join(values)}: ({expansion.expression})", frame.f_globals)
    return factory(**values)


def capture(text: str) -> Callable:
    """Build a closure from a capture list, in the caller's scope."""
    frame = sys._getframe(1)
    try:
        return _evaluate(text, "capture", frame)
    finally:
        del frame


def capture_only(text: str) -> Callable:
    """Like :func:`capture`, but the closure may only use what it captures."""
    frame = sys._getframe(1)
    try:
        return _evaluate(text, "capture_only", frame)
    finally:
        del frame
