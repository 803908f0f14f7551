"""
Gate package.

Reference operation gate: checks access before reads and writes, filters
and redacts query results, and runs schema validation only after access is
granted so a denied write never reports constraint details.
"""

from .operations import OperationGate

__all__ = ["OperationGate"]
