"""
Graph Rewriting Transforms
==========================

transforms/
└── scalar/              # local rewrites
    └── algebraic_simplify.py   # x*0, x*1, x+0

Importing this package registers every pass with PassRegistry.
"""

from .scalar import (
    AlgebraicSimplificationPass,
    default_rule_registry,
)

__all__ = [
    "AlgebraicSimplificationPass",
    "default_rule_registry",
]
