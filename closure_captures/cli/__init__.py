"""Command-line interface for closure-captures.

Example Usage
-------------
    # From command line:
    closure-captures --help
    closure-captures expand handlers.py -o handlers_expanded.py
    closure-captures check src/*.py --report captures.jsonl
    closure-captures show "clone a, move lambda: a + 1"
"""

from .main import cli, main

__all__ = [
    "cli",
    "main",
]
