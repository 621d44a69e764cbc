"""
Scalar Transforms
=================

Local rewrites of single nodes or small neighbourhoods.

- algebraic_simplify.py : identity/absorbing element removal for Add and Multiply
"""

from .algebraic_simplify import (
    AlgebraicSimplificationPass,
    canonicalize_constant,
    create_binary_matcher,
    default_rule_registry,
    simplify_add,
    simplify_multiply,
)

__all__ = [
    "AlgebraicSimplificationPass",
    "canonicalize_constant",
    "create_binary_matcher",
    "default_rule_registry",
    "simplify_add",
    "simplify_multiply",
]
