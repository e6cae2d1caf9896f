"""closure-captures: explicit capture lists for Python closures.

A capture list states, per variable, how a closure gets hold of it:

- ``move x``: the closure takes the value and ``x`` is unbound afterwards
- ``clone x``: the closure gets an independent duplicate
- ``ref x``: the closure shares the same object
- ``x = expr`` / ``with x = expr``: the closure gets the value of ``expr``
- ``all x``: no binding, ordinary closure capture

``capture!(...)`` invocations in source files are expanded ahead of time
with ``closure-captures expand``; ``capture()`` does the same at run time.

Example usage:
    >>> from closure_captures import capture
    >>> def make_counter(start):
    ...     return capture("clone start, lambda: start + 1")
    >>> make_counter(41)()
    42
"""

__version__ = "0.1.0"

from .core.capture import (
    CaptureCompiler,
    CaptureConfig,
    CaptureError,
    DuplicationError,
    IsolationError,
    capture,
    capture_only,
    duplicate,
    expand_capture,
    expand_source,
)

__all__ = [
    "__version__",
    "CaptureCompiler",
    "CaptureConfig",
    "CaptureError",
    "DuplicationError",
    "IsolationError",
    "capture",
    "capture_only",
    "duplicate",
    "expand_capture",
    "expand_source",
]
