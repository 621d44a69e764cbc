"""
Graph construction and analysis utilities.

Stateless helpers for building nodes and inspecting a graph, kept apart from
the engine in graph_rewriter.core so that rules and tests share one way of
creating nodes.
"""

import collections
import numpy as np
from typing import Dict, Iterable, List, Optional

from ..core import (
    ADD,
    BROADCAST,
    CONSTANT,
    MULTIPLY,
    PARAMETER,
    RESULT,
    MalformedGraphError,
    Node,
)


# =======================
# Node construction
# =======================


def create_node(op_type, inputs=None, shape=None, dtype=None, name=None):
    """Creates a node of any kind.

    Shape and dtype default to those of the first operand.
    """
    inputs = list(inputs or [])
    if shape is None or dtype is None:
        if not inputs:
            raise MalformedGraphError(
                f"{op_type} without operands needs an explicit shape and dtype"
            )
        shape = inputs[0].shape if shape is None else shape
        dtype = inputs[0].dtype if dtype is None else dtype
    return Node(op_type, inputs, shape, dtype, name=name)


def create_parameter(shape, dtype=np.float32, name=None):
    return Node(PARAMETER, [], shape, dtype, name=name)


def create_const_node(value, dtype=np.float32, shape=(), name: Optional[str] = None):
    """Creates a Constant node; a scalar `value` is splatted to `shape`."""
    shape = tuple(shape)
    data = np.asarray(value, dtype=np.dtype(dtype))
    if data.shape != shape:
        try:
            data = np.broadcast_to(data, shape).copy()
        except ValueError:
            raise MalformedGraphError(
                f"Cannot build a constant of shape {list(shape)} from a value of shape {list(data.shape)}"
            )
    return Node(CONSTANT, [], shape, dtype, value=data, name=name)


def make_zero(dtype, shape):
    return create_const_node(0, dtype, shape)


def make_one(dtype, shape):
    return create_const_node(1, dtype, shape)


def create_broadcast(arg: Node, shape, name=None):
    """Broadcasts `arg` to `shape` under numpy broadcasting rules."""
    shape = tuple(shape)
    try:
        broadcast_shape = np.broadcast_shapes(arg.shape, shape)
    except ValueError:
        broadcast_shape = None
    if broadcast_shape != shape:
        raise MalformedGraphError(
            f"Cannot broadcast {arg.name} of shape {list(arg.shape)} to {list(shape)}"
        )
    return Node(BROADCAST, [arg], shape, arg.dtype, name=name)


def _create_elementwise(op_type, lhs: Node, rhs: Node, name=None):
    if lhs.shape != rhs.shape:
        raise MalformedGraphError(
            f"{op_type} operands differ in shape: {list(lhs.shape)} vs {list(rhs.shape)}"
        )
    if lhs.dtype != rhs.dtype:
        raise MalformedGraphError(
            f"{op_type} operands differ in dtype: {lhs.dtype} vs {rhs.dtype}"
        )
    return Node(op_type, [lhs, rhs], lhs.shape, lhs.dtype, name=name)


def create_add(lhs, rhs, name=None):
    return _create_elementwise(ADD, lhs, rhs, name)


def create_multiply(lhs, rhs, name=None):
    return _create_elementwise(MULTIPLY, lhs, rhs, name)


def create_result(arg, name=None):
    return Node(RESULT, [arg], arg.shape, arg.dtype, name=name)


# =======================
# Node predicates
# =======================


def is_constant(node: Node) -> bool:
    return node.op_type == CONSTANT


def is_broadcast(node: Node) -> bool:
    return node.op_type == BROADCAST


def _is_scalar_with_value(node, value):
    return is_constant(node) and node.rank == 0 and node.value.item() == value


def is_zero(node: Node) -> bool:
    """True for a zero-rank constant holding exactly 0."""
    return _is_scalar_with_value(node, 0)


def is_one(node: Node) -> bool:
    """True for a zero-rank constant holding exactly 1."""
    return _is_scalar_with_value(node, 1)


# =======================
# Graph analysis
# =======================


def compute_reference_counts(nodes: Iterable[Node]) -> Dict[Node, int]:
    """Number of operand slots that read each node."""
    reference_counts: Dict[Node, int] = collections.defaultdict(int)
    for node in nodes:
        for operand in node.operands:
            reference_counts[operand] += 1
    return reference_counts


def is_valid_topological_order(nodes: List[Node]) -> bool:
    """Every operand of every node sits at a strictly earlier position."""
    position = {}
    for i, node in enumerate(nodes):
        if node in position:
            return False
        position[node] = i
    for i, node in enumerate(nodes):
        for operand in node.operands:
            if position.get(operand, len(nodes)) >= i:
                return False
    return True
