import numpy as np

from ..core import Function
from .graph_utils import create_node, create_parameter, create_add, create_multiply


def create_random_dag(
    num_parameters=4,
    depth=5,
    width=4,
    max_fan_in=3,
    seed=0,
    shape=(1,),
    name="random_dag",
):
    """Generates a layered DAG with random fan-in for ordering tests.

    Every node of a layer draws its operands from all earlier nodes, so
    sharing (diamonds) and long-range edges both occur. Nodes left without
    consumers become results.
    """
    rng = np.random.default_rng(seed)
    params = [create_parameter(shape, name=f"p{i}") for i in range(num_parameters)]
    nodes = list(params)

    for layer in range(depth):
        layer_nodes = []
        for j in range(width):
            fan_in = int(rng.integers(1, max_fan_in + 1))
            picks = rng.choice(len(nodes), size=fan_in, replace=True)
            operands = [nodes[int(k)] for k in picks]
            node_name = f"n{layer}_{j}"
            if fan_in == 2:
                builder = create_add if rng.random() < 0.5 else create_multiply
                node = builder(operands[0], operands[1], name=node_name)
            else:
                node = create_node("Sum", operands, name=node_name)
            layer_nodes.append(node)
        nodes.extend(layer_nodes)

    sinks = [n for n in nodes[num_parameters:] if not n.consumer_inputs]
    return Function(sinks, params, name=name)


def create_diamond_graph(shape=(4,)):
    """p -> (a, b) -> join. Returns the function and its named nodes."""
    p = create_parameter(shape, name="p")
    a = create_node("Negative", [p], name="a")
    b = create_node("Abs", [p], name="b")
    join = create_add(a, b, name="join")
    f = Function([join], [p], name="diamond")
    return f, {"p": p, "a": a, "b": b, "join": join}
