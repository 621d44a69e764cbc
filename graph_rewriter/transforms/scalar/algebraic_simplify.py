"""
Algebraic Simplification Pass
=============================

Removes arithmetic on identity and absorbing elements:

- Multiply(x, 0) -> 0   (a zero constant shaped like the Multiply)
- Multiply(x, 1) -> x
- Add(x, 0)      -> x

The constant operand may be a Constant of any rank or a Constant seen through
Broadcast nodes. Each rule is a plain function from a node to "did I rewrite
it"; the pass dispatches on op_type through a RuleRegistry it is given, so a
caller can run any subset of rules or add its own.
"""

from __future__ import annotations

import numpy as np

from graph_rewriter.core import (
    ADD,
    MULTIPLY,
    Any,
    BasePass,
    Label,
    Matcher,
    Op,
    PassRegistry,
    RuleRegistry,
    check_replacement,
    replace_node,
)
from graph_rewriter.utils.graph_utils import (
    create_const_node,
    is_broadcast,
    is_constant,
    is_one,
    is_zero,
    make_zero,
)
from graph_rewriter.utils.logger import (
    logger as logging,
    log_optimization,
    trace_transformation,
)

# ==============================================================================
# Helper functions (used by the rules)
# ==============================================================================


def canonicalize_constant(cnst, value):
    """Zero-rank view of `cnst` for comparing against `value`.

    A zero-rank constant is returned as is. A larger constant whose elements
    all equal `value` yields a fresh zero-rank constant holding `value`; it
    exists only for the comparison and is never put into the graph. Any other
    constant has no canonical form and gives None.
    """
    if cnst.rank == 0:
        return cnst
    if np.all(cnst.value == value):
        return create_const_node(value, cnst.dtype, shape=())
    return None


def create_binary_matcher(op_type):
    """Matcher for op_type(x, c) where c is a constant, possibly broadcast."""
    label = Label(alias="x")
    const_label = Any(is_constant, transparent=is_broadcast, alias="const")
    matcher = Matcher(Op(op_type, label, const_label, alias="root"))
    return matcher, label, const_label


def _replace(node, replacement):
    check_replacement(node, replacement)
    replace_node(node, replacement)


# ==============================================================================
# Rules
# ==============================================================================


@trace_transformation
def simplify_multiply(node):
    matcher, label, const_label = create_binary_matcher(MULTIPLY)
    if not matcher.match(node):
        return False

    pattern_map = matcher.get_pattern_map()
    x = pattern_map[label]
    cnst = pattern_map[const_label]

    can_const = canonicalize_constant(cnst, 0)
    if can_const is not None and is_zero(can_const):
        if cnst.dtype == node.dtype and cnst.shape == node.shape:
            zero = cnst
        else:
            zero = make_zero(node.dtype, node.shape)
        _replace(node, zero)
        return True

    can_const = canonicalize_constant(cnst, 1)
    if can_const is not None and is_one(can_const):
        _replace(node, x)
        return True

    return False


@trace_transformation
def simplify_add(node):
    matcher, label, const_label = create_binary_matcher(ADD)
    if not matcher.match(node):
        return False

    pattern_map = matcher.get_pattern_map()
    x = pattern_map[label]
    cnst = pattern_map[const_label]

    can_const = canonicalize_constant(cnst, 0)
    if can_const is not None and is_zero(can_const):
        _replace(node, x)
        return True

    return False


def default_rule_registry():
    """A fresh registry holding the built-in identity rules."""
    return RuleRegistry({ADD: simplify_add, MULTIPLY: simplify_multiply})


# ==============================================================================
# The pass
# ==============================================================================


@PassRegistry.register("algebraic_simplify", opt_level=1, priority=7)
class AlgebraicSimplificationPass(BasePass):
    """One sweep of the registered rules over a function in topological order."""

    def __init__(self, rules=None):
        super().__init__(name="AlgebraicSimplification")
        self.rules = rules if rules is not None else default_rule_registry()

    @log_optimization
    def run_on_function(self, function):
        replaced = False
        for node in function.get_ordered_ops():
            if node.is_output() or node.is_parameter():
                continue
            # Dropped by an earlier rewrite in this sweep
            if node.released:
                continue

            rule = self.rules.get(node.op_type)
            if rule is None:
                logging.debug(f"No rule for {node.op_type}, skipping {node.name}")
                continue

            if rule(node):
                replaced = True
        return replaced
