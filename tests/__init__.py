"""Test suite for closure-captures.

Test organization:
- fixtures/: Sample modules and helpers for running expanded code
- unit/: Unit tests for individual modules

Run tests with:
    pytest tests/
    pytest tests/unit/
    pytest tests/ -v --tb=short
"""
