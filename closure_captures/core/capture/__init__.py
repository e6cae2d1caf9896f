"""Capture-list compiler for Python closures."""

from .compiler import CaptureCompiler, expand_capture, expand_source
from .config import CaptureConfig, EntryPoint
from .diagnostics import (
    CaptureError,
    CapturePlanError,
    CaptureSyntaxError,
    Diagnostic,
    DuplicationError,
    GeneratedCodeError,
    IsolationError,
    Span,
    render,
)
from .export import diagnostics_to_records, format_plan_summary
from .generator import CodeGenerator, Expansion
from .model import CaptureEntry, CaptureMode, ClosureLiteral, ClosureSpec
from .parser import parse_invocation
from .plan import CapturePlan, build_plan
from .runtime import capture, capture_only, duplicate
from .scope import ScopeInfo, check_isolation, free_names
from .source import SourceExpander, find_invocations

__all__ = [
    "CaptureConfig",
    "EntryPoint",
    "CaptureMode",
    "CaptureEntry",
    "ClosureLiteral",
    "ClosureSpec",
    "parse_invocation",
    "CapturePlan",
    "build_plan",
    "ScopeInfo",
    "free_names",
    "check_isolation",
    "CodeGenerator",
    "Expansion",
    "CaptureCompiler",
    "expand_capture",
    "expand_source",
    "SourceExpander",
    "find_invocations",
    "capture",
    "capture_only",
    "duplicate",
    "format_plan_summary",
    "diagnostics_to_records",
    "Diagnostic",
    "Span",
    "render",
    "CaptureError",
    "CaptureSyntaxError",
    "CapturePlanError",
    "IsolationError",
    "GeneratedCodeError",
    "DuplicationError",
]
