import logging
import functools
import time

# Define Log Levels
DEBUG = logging.DEBUG
INFO = logging.INFO
WARNING = logging.WARNING
ERROR = logging.ERROR

LOG_FORMAT = (
    "%(asctime)s - [%(levelname)s] - %(name)s - [%(filename)s:%(lineno)d] - %(message)s"
)


# Singleton logger setup
def get_logger(name="GraphRewriter"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


logger = get_logger()


def set_log_level(level):
    logger.setLevel(level)


def add_file_handler(path, level=None):
    """Mirror the package log into a file using the standard format."""
    file_handler = logging.FileHandler(path)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    if level is not None:
        file_handler.setLevel(level)
    logger.addHandler(file_handler)
    return file_handler


def trace_transformation(func):
    """Aspect: Log when a rewrite rule fires on a node."""

    @functools.wraps(func)
    def wrapper(node, *args, **kwargs):
        start_time = time.time()
        result = func(node, *args, **kwargs)
        duration = (time.time() - start_time) * 1000

        # Only log at INFO when the rule actually rewrote something
        if result:
            logger.info(
                f"Rule {func.__name__} rewrote node {node.name} (Op: {node.op_type}) ({duration:.2f}ms)"
            )
        else:
            logger.debug(f"Rule {func.__name__} left node {node.name} unchanged")
        return result

    return wrapper


def log_optimization(func):
    """Aspect: Log a sweep of a pass over a function."""

    @functools.wraps(func)
    def wrapper(self, function, *args, **kwargs):
        prefix = f"[{self.name}] "
        logger.info(f"{prefix}Starting sweep over function '{function.name}'...")
        original_node_count = len(function.get_ordered_ops())
        start_time = time.time()

        changed = func(self, function, *args, **kwargs)

        duration = time.time() - start_time
        final_node_count = len(function.get_ordered_ops())
        logger.info(
            f"{prefix}Sweep finished in {duration:.3f}s. "
            f"Nodes: {original_node_count} -> {final_node_count} (changed: {changed})"
        )
        return changed

    return wrapper


def log_match(func):
    """Aspect: Log matching attempts (DEBUG level)."""

    @functools.wraps(func)
    def wrapper(self, node):
        res = func(self, node)
        if res:
            logger.debug(f"Matched pattern on node: {node.name} (Op: {node.op_type})")
        return res

    return wrapper
