from .core import (
    Node,
    Input,
    Function,
    topological_sort,
    replace_node,
    release_node,
    check_replacement,
    Pattern,
    OpPattern,
    LabelPattern,
    AnyPattern,
    PatternMap,
    Matcher,
    Op,
    Label,
    Any,
    RuleRegistry,
    BasePass,
    PassRegistry,
    MalformedGraphError,
    CycleDetected,
    ShapeTypeViolation,
    PatternMapUnavailable,
)
from .runner import OptimizationPipeline, load_config
from .utils.logger import set_log_level, DEBUG, INFO, WARNING, ERROR

# Import transforms to register all passes
from . import transforms
from .transforms import AlgebraicSimplificationPass, default_rule_registry

__all__ = [
    "Node",
    "Input",
    "Function",
    "topological_sort",
    "replace_node",
    "release_node",
    "check_replacement",
    "Pattern",
    "OpPattern",
    "LabelPattern",
    "AnyPattern",
    "PatternMap",
    "Matcher",
    "Op",
    "Label",
    "Any",
    "RuleRegistry",
    "BasePass",
    "PassRegistry",
    "MalformedGraphError",
    "CycleDetected",
    "ShapeTypeViolation",
    "PatternMapUnavailable",
    "OptimizationPipeline",
    "load_config",
    "AlgebraicSimplificationPass",
    "default_rule_registry",
    "set_log_level",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
]
