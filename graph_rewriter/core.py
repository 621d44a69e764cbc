import itertools
import numpy as np
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from .utils.logger import logger as logging, log_match


# Operator kinds with structural meaning to the engine
PARAMETER = "Parameter"
CONSTANT = "Constant"
BROADCAST = "Broadcast"
ADD = "Add"
MULTIPLY = "Multiply"
RESULT = "Result"


class MalformedGraphError(ValueError):
    """The graph violates a structural invariant (cycle, dangling operand, bad signature)."""


class CycleDetected(MalformedGraphError):
    pass


class ShapeTypeViolation(AssertionError):
    """A rewrite tried to replace a node with one of a different type or shape."""


class PatternMapUnavailable(RuntimeError):
    pass


class Input:
    """An operand slot of a node.

    The slots of a node are fixed at construction. Rewiring moves the slot's
    source and keeps the source's consumer set in sync.
    """

    __slots__ = ("node", "index", "_source", "_attached")

    def __init__(self, node: "Node", index: int, source: "Node"):
        self.node = node
        self.index = index
        self._source = source
        self._attached = True
        source._consumer_inputs[self] = None

    @property
    def source(self) -> "Node":
        return self._source

    def replace_source(self, new_source: "Node"):
        if self._attached:
            self._source._consumer_inputs.pop(self, None)
            new_source._consumer_inputs[self] = None
        self._source = new_source

    def detach(self):
        self._source._consumer_inputs.pop(self, None)
        self._attached = False

    def __repr__(self):
        return f"Input({self.node.name}[{self.index}] <- {self._source.name})"


class Node:
    """A graph vertex producing one typed output."""

    _ids = itertools.count()

    def __init__(
        self,
        op_type: str,
        inputs: Iterable["Node"] = (),
        shape: Iterable[int] = (),
        dtype=np.float32,
        value=None,
        name: Optional[str] = None,
    ):
        self.id = next(Node._ids)
        self.op_type = op_type
        self.shape: Tuple[int, ...] = tuple(int(d) for d in shape)
        self.dtype = np.dtype(dtype)
        self.name = name or f"{op_type}_{self.id}"
        self.released = False
        # Insertion-ordered set of the slots that read this node
        self._consumer_inputs: Dict[Input, None] = {}

        self.value = None
        if op_type == CONSTANT and value is None:
            raise MalformedGraphError(f"Constant {self.name} has no value")
        if value is not None:
            data = np.asarray(value, dtype=self.dtype)
            if data.shape != self.shape:
                raise MalformedGraphError(
                    f"Value of {self.name} has shape {list(data.shape)}, expected {list(self.shape)}"
                )
            self.value = data

        self.inputs: Tuple[Input, ...] = tuple(
            Input(self, i, source) for i, source in enumerate(inputs)
        )

    @property
    def operands(self) -> Tuple["Node", ...]:
        return tuple(slot.source for slot in self.inputs)

    @property
    def consumer_inputs(self) -> List[Input]:
        return list(self._consumer_inputs)

    @property
    def consumers(self) -> List["Node"]:
        """Distinct nodes reading this node, in the order they attached."""
        seen = {}
        for slot in self._consumer_inputs:
            seen.setdefault(slot.node, None)
        return list(seen)

    @property
    def rank(self) -> int:
        return len(self.shape)

    def is_parameter(self) -> bool:
        return self.op_type == PARAMETER

    def is_constant(self) -> bool:
        return self.op_type == CONSTANT

    def is_output(self) -> bool:
        return self.op_type == RESULT

    def __repr__(self):
        operands = ", ".join(n.name for n in self.operands)
        return (
            f"Node(name={self.name}, op_type={self.op_type}, inputs=[{operands}], "
            f"shape={list(self.shape)}, dtype={self.dtype})"
        )


def topological_sort(roots) -> List[Node]:
    """Orders every node reachable from `roots` so that operands come first.

    Depth-first postorder; roots are processed in the given order and operands
    in operand order, so an unmodified graph always sorts the same way.
    """
    if isinstance(roots, Node):
        roots = [roots]

    ordered: List[Node] = []
    visited = set()
    on_path = set()

    for root in roots:
        if root in visited:
            continue
        on_path.add(root)
        stack = [(root, iter(root.operands))]
        while stack:
            node, pending = stack[-1]
            for operand in pending:
                if operand in on_path:
                    raise CycleDetected(
                        f"Cycle detected: {operand.name} is reachable from itself via {node.name}"
                    )
                if operand not in visited:
                    on_path.add(operand)
                    stack.append((operand, iter(operand.operands)))
                    break
            else:
                stack.pop()
                on_path.discard(node)
                visited.add(node)
                ordered.append(node)

    return ordered


class Function:
    """A graph unit with fixed parameters and results.

    Results are held through `Result` wrapper nodes so that replacing the node
    that feeds a result never changes the function signature.
    """

    def __init__(self, results, parameters, name="function"):
        self.name = name
        self.parameters: List[Node] = list(parameters)
        for param in self.parameters:
            if not param.is_parameter():
                raise MalformedGraphError(
                    f"{param.name} ({param.op_type}) is not a Parameter"
                )

        if isinstance(results, Node):
            results = [results]
        self.results: List[Node] = [
            r if r.is_output() else Node(RESULT, [r], r.shape, r.dtype, name=f"{r.name}/result")
            for r in results
        ]
        if not self.results:
            raise MalformedGraphError(f"Function '{name}' has no results")

        self.validate()

    def get_ordered_ops(self) -> List[Node]:
        ordered = topological_sort(self.results)
        reached = set(ordered)
        ordered.extend(p for p in self.parameters if p not in reached)
        return ordered

    def signature(self):
        """Parameters by identity and results by dtype/shape."""
        return (
            tuple(p.id for p in self.parameters),
            tuple((r.dtype, r.shape) for r in self.results),
        )

    def validate(self):
        parameters = set(self.parameters)
        results = set(self.results)
        if len(parameters) != len(self.parameters):
            raise MalformedGraphError(f"Function '{self.name}' lists a parameter twice")

        for node in self.get_ordered_ops():
            if node.is_parameter() and node not in parameters:
                raise MalformedGraphError(
                    f"Dangling operand: parameter {node.name} is not a parameter of '{self.name}'"
                )
            if node.is_output():
                if node not in results:
                    raise MalformedGraphError(
                        f"Result {node.name} is not a result of '{self.name}'"
                    )
                if node._consumer_inputs:
                    raise MalformedGraphError(
                        f"Result {node.name} of '{self.name}' has consumers: "
                        f"{[c.name for c in node.consumers]}"
                    )
                if len(node.inputs) != 1:
                    raise MalformedGraphError(
                        f"Result {node.name} must have exactly one operand"
                    )
            if node.released:
                raise MalformedGraphError(f"Released node {node.name} is still reachable")
            for slot in node.inputs:
                if slot not in slot.source._consumer_inputs:
                    raise MalformedGraphError(
                        f"Consumer edge {slot} is missing from {slot.source.name}"
                    )

    def __repr__(self):
        return (
            f"Function(name={self.name}, parameters={[p.name for p in self.parameters]}, "
            f"results={[r.name for r in self.results]})"
        )


# =======================
# Graph mutation
# =======================


def release_node(node: Node) -> bool:
    """Drops a node that nothing references any more.

    Its operand slots are detached, which may in turn release its operands.
    Parameters are never released. Returns whether `node` was released.
    """
    worklist = [node]
    while worklist:
        current = worklist.pop()
        if current.released or current._consumer_inputs or current.is_parameter():
            continue
        current.released = True
        for slot in current.inputs:
            slot.detach()
            worklist.append(slot.source)
    return node.released


def _depends_on(node: Node, target: Node) -> bool:
    """Whether `target` is reachable from `node` through operand edges."""
    visited = set()
    stack = [node]
    while stack:
        current = stack.pop()
        if current is target:
            return True
        if current in visited:
            continue
        visited.add(current)
        stack.extend(current.operands)
    return False


def replace_node(target: Node, replacement: Node):
    """Points every consumer of `target` at `replacement`, then drops `target`.

    Type and shape are not checked here; see check_replacement.
    """
    if target is replacement:
        return
    if target.is_parameter() or target.is_output():
        raise MalformedGraphError(
            f"Cannot replace {target.op_type} node {target.name}"
        )
    if _depends_on(replacement, target):
        raise MalformedGraphError(
            f"Replacing {target.name} with {replacement.name} would create a cycle"
        )

    for slot in target.consumer_inputs:
        slot.replace_source(replacement)
    logging.debug(f"Replaced {target.name} with {replacement.name}")
    release_node(target)


def check_replacement(target: Node, replacement: Node):
    if target.dtype != replacement.dtype or target.shape != replacement.shape:
        raise ShapeTypeViolation(
            f"Replacing {target.name} ({target.dtype}{list(target.shape)}) with "
            f"{replacement.name} ({replacement.dtype}{list(replacement.shape)})"
        )


# =======================
# Pattern matching
# =======================


class PatternMap(dict):
    """Placeholder -> matched node. `matched_nodes` indexes the same bindings by alias."""

    def __init__(self):
        super().__init__()
        self.matched_nodes: Dict[str, Node] = {}

    def bind(self, pattern: "Pattern", node: Node):
        self[pattern] = node
        if pattern.alias:
            self.matched_nodes[pattern.alias] = node


class Pattern:
    def __init__(self, alias=None):
        self.alias = alias

    def _match_internal(self, node: Node, pattern_map: PatternMap) -> bool:
        raise NotImplementedError()

    def get_indexed_op_type(self):
        return None


class OpPattern(Pattern):
    def __init__(self, op_type, inputs=None, alias=None):
        super().__init__(alias)
        self.op_type = op_type
        self.inputs: List[Pattern] = list(inputs or [])

    def get_indexed_op_type(self):
        return self.op_type

    def _match_internal(self, node, pattern_map):
        if node.op_type != self.op_type:
            return False
        operands = node.operands
        if len(operands) != len(self.inputs):
            return False
        for input_pattern, operand in zip(self.inputs, operands):
            if not input_pattern._match_internal(operand, pattern_map):
                return False
        if self.alias:
            pattern_map.bind(self, node)
        return True

    def __repr__(self):
        return f"Op({self.op_type}, {', '.join(repr(p) for p in self.inputs)})"


class LabelPattern(Pattern):
    """Binds one node; every further occurrence must see that same node."""

    def __init__(self, alias=None, predicate=None):
        super().__init__(alias)
        self.predicate = predicate

    def _match_internal(self, node, pattern_map):
        if self in pattern_map:
            return pattern_map[self] is node
        if self.predicate is not None and not self.predicate(node):
            return False
        pattern_map.bind(self, node)
        return True

    def __repr__(self):
        return f"Label({self.alias or ''})"


class AnyPattern(Pattern):
    """Predicate-guarded wildcard.

    When the predicate rejects a node and `transparent` allows it (True, or a
    predicate over the rejected node), the same wildcard is tried against each
    operand in order and the first success wins.
    """

    def __init__(self, predicate=None, transparent=False, alias=None):
        super().__init__(alias)
        self.predicate = predicate
        self.transparent = transparent

    def _accepts(self, node):
        return self.predicate is None or self.predicate(node)

    def _can_see_through(self, node):
        if callable(self.transparent):
            return bool(self.transparent(node))
        return bool(self.transparent)

    def _match_internal(self, node, pattern_map):
        if self._accepts(node):
            pattern_map.bind(self, node)
            return True
        if not self._can_see_through(node):
            return False
        for operand in node.operands:
            if self._match_internal(operand, pattern_map):
                return True
        return False

    def __repr__(self):
        return f"Any({self.alias or ''})"


class Matcher:
    """Matches one pattern tree against real nodes, top-down, without backtracking."""

    def __init__(self, pattern: Pattern):
        self.pattern = pattern
        self._pattern_map: Optional[PatternMap] = None

    @log_match
    def match(self, node: Node) -> bool:
        pattern_map = PatternMap()
        self._pattern_map = None
        if self.pattern._match_internal(node, pattern_map):
            self._pattern_map = pattern_map
            return True
        return False

    def get_pattern_map(self) -> PatternMap:
        if self._pattern_map is None:
            raise PatternMapUnavailable("No successful match to read bindings from")
        return self._pattern_map


# Helper functions to build patterns
def Op(op_type, *inputs, alias=None):
    return OpPattern(op_type, list(inputs), alias)


def Label(alias=None, predicate=None):
    return LabelPattern(alias, predicate)


def Any(predicate=None, transparent=False, alias=None):
    return AnyPattern(predicate, transparent, alias)


# =======================
# Rules and passes
# =======================


class RuleRegistry:
    """Explicit op_type -> rule mapping handed to a pass at construction."""

    def __init__(self, rules: Optional[Dict[str, Callable[[Node], bool]]] = None):
        self._rules: Dict[str, Callable[[Node], bool]] = dict(rules or {})

    def register(self, op_type, rule=None):
        """Registers `rule` for `op_type`; usable as a decorator when `rule` is omitted."""

        def decorator(func):
            self._rules[op_type] = func
            return func

        if rule is None:
            return decorator
        return decorator(rule)

    def unregister(self, op_type):
        self._rules.pop(op_type, None)

    def get(self, op_type):
        return self._rules.get(op_type)

    def copy(self) -> "RuleRegistry":
        return RuleRegistry(self._rules)

    def items(self):
        return self._rules.items()

    def __contains__(self, op_type):
        return op_type in self._rules

    def __iter__(self):
        return iter(self._rules)

    def __len__(self):
        return len(self._rules)


class BasePass:
    """Base class for all function passes."""

    def __init__(self, name=None):
        self.name = name or self.__class__.__name__

    def run_on_function(self, function: Function) -> bool:
        """Runs one sweep over `function`; returns whether the graph changed."""
        raise NotImplementedError()


class PassRegistry:
    """Registry for managing optimization passes."""

    _registered_passes = {}
    _pass_metadata = {}

    @classmethod
    def register(cls, name, opt_level=1, priority=100):
        """Decorator to register a pass class with an optimization level and priority."""

        def decorator(pass_cls):
            cls._registered_passes[name] = pass_cls
            cls._pass_metadata[name] = {"opt_level": opt_level, "priority": priority}
            return pass_cls

        return decorator

    @classmethod
    def get_pass(cls, name, *args, **kwargs):
        """Creates an instance of the pass by its registered name."""
        if name not in cls._registered_passes:
            raise ValueError(f"Unknown pass: {name}")
        return cls._registered_passes[name](*args, **kwargs)

    @classmethod
    def list_available_passes(cls):
        return list(cls._registered_passes.keys())

    @classmethod
    def get_pass_priority(cls, name):
        meta = cls._pass_metadata.get(name)
        if meta and "priority" in meta:
            return (meta["priority"], name)
        return (100, name)

    @classmethod
    def get_passes_by_level(cls, level):
        """Returns a list of pass names enabled at the given optimization level, sorted by priority."""
        candidates = []
        for name, meta in cls._pass_metadata.items():
            if meta["opt_level"] <= level:
                candidates.append((name, meta["priority"]))

        # Sort by priority (asc), then name (asc)
        candidates.sort(key=lambda x: (x[1], x[0]))

        return [name for name, _ in candidates]
