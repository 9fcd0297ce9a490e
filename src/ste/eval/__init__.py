"""Evaluator helper modules for STE templates."""

__all__ = [
    "access",
    "blocks",
    "common",
    "control",
    "expr",
    "filters",
    "include",
    "loops",
    "mutation",
    "objects",
]
