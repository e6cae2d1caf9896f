"""Core modules for closure-captures.

- capture: parsing, planning, isolation checks, code generation, source
  expansion and runtime support for capture lists
"""
