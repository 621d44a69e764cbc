import json
import os
import time
from typing import List, Optional, Dict, Any

from .core import Function, MalformedGraphError, PassRegistry
from .utils.logger import logger as custom_logger, add_file_handler, set_log_level


def load_config(path: str) -> Dict[str, Any]:
    """Reads a JSON pipeline configuration file."""
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "r") as f:
        return json.load(f)


class OptimizationPipeline:
    """
    A facade to configure and run passes over a Function.

    Each resolved pass runs exactly one sweep. Re-running the pipeline until it
    reports no change is left to the caller.
    """

    def __init__(
        self,
        function: Function,
        level: int = 1,
        passes: Optional[List[str]] = None,
        add_passes: Optional[List[str]] = None,
        remove_passes: Optional[List[str]] = None,
        log_file: Optional[str] = None,
        log_level: Optional[int] = None,
        validate: bool = True,
        config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            function (Function): The function to optimize in place.
            level (int): Optimization level. Default 1.
            passes (list[str]): Explicit list of passes to run (overrides level).
            add_passes (list[str]): Passes to append to the level's default set.
            remove_passes (list[str]): Passes to drop from the set.
            log_file (str): Path of a file that receives a copy of the log.
            log_level (int): Level for the package logger (e.g. DEBUG).
            validate (bool): Check graph structure before and after the passes.
            config (dict): Optional overrides; keys match constructor args.
        """
        self.function = function
        self.level = level
        self.passes = passes
        self.add_passes = list(add_passes or [])
        self.remove_passes = list(remove_passes or [])
        self.log_file = log_file
        self.log_level = log_level
        self.validate = validate

        if config:
            self._apply_config(config)

        self.resolved_passes: List[str] = []
        self._file_handler = None

    def _apply_config(self, config):
        """Merges configuration dict into instance attributes."""
        if "level" in config:
            self.level = config["level"]
        if "passes" in config:
            self.passes = config["passes"]
        if "add_passes" in config:
            self.add_passes.extend(config["add_passes"])
        if "remove_passes" in config:
            self.remove_passes.extend(config["remove_passes"])
        if "log_file" in config:
            self.log_file = config["log_file"]
        if "log_level" in config:
            self.log_level = config["log_level"]
        if "validate" in config:
            self.validate = config["validate"]

    def _setup_logging(self):
        if self.log_level is not None:
            set_log_level(self.log_level)
        if self.log_file and self._file_handler is None:
            self._file_handler = add_file_handler(self.log_file)
            custom_logger.info(f"Logging to file: {self.log_file}")

    def _resolve_passes(self):
        """Determines the final list of passes to execute."""
        if self.passes:
            final_passes = list(self.passes)
            custom_logger.debug(f"Using explicit pass list: {final_passes}")
        else:
            final_passes = PassRegistry.get_passes_by_level(self.level)
            custom_logger.info(
                f"Selected passes for Level {self.level}: {final_passes}"
            )

            for p in self.add_passes:
                if p not in final_passes:
                    final_passes.append(p)
                    custom_logger.debug(f"Added pass: {p}")

            for p in self.remove_passes:
                if p in final_passes:
                    final_passes.remove(p)
                    custom_logger.debug(f"Removed pass: {p}")
                else:
                    custom_logger.warning(
                        f"Pass '{p}' in remove_passes was not in the list"
                    )

            final_passes.sort(key=PassRegistry.get_pass_priority)

        self.resolved_passes = final_passes

    def _execute_passes(self) -> Dict[str, bool]:
        results = {}
        for pass_name in self.resolved_passes:
            if pass_name not in PassRegistry._registered_passes:
                custom_logger.warning(
                    f"Pass '{pass_name}' not found in registry. Skipping."
                )
                continue

            pass_instance = PassRegistry.get_pass(pass_name)
            try:
                results[pass_name] = pass_instance.run_on_function(self.function)
            except Exception as e:
                custom_logger.error(f"Error applying pass '{pass_name}': {e}")
                raise
        return results

    def _teardown_logging(self):
        if self._file_handler is not None:
            custom_logger.removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def run(self) -> bool:
        """Runs every resolved pass once; returns whether any of them changed the graph."""
        self._setup_logging()
        try:
            return self._run()
        finally:
            self._teardown_logging()

    def _run(self) -> bool:
        self._resolve_passes()

        if self.validate:
            self.function.validate()
        signature = self.function.signature()
        initial_node_count = len(self.function.get_ordered_ops())

        custom_logger.info(
            f"Applying {len(self.resolved_passes)} passes to '{self.function.name}': {self.resolved_passes}"
        )
        start_time = time.time()
        results = self._execute_passes()
        total_time = time.time() - start_time

        if self.validate:
            self.function.validate()
        if self.function.signature() != signature:
            raise MalformedGraphError(
                f"Function '{self.function.name}' changed its signature during optimization"
            )

        final_node_count = len(self.function.get_ordered_ops())
        self._log_final_summary(results, initial_node_count, final_node_count, total_time)
        return any(results.values())

    def _log_final_summary(self, results, initial_node_count, final_node_count, total_time):
        custom_logger.info("=" * 70)
        custom_logger.info("OPTIMIZATION SUMMARY")
        custom_logger.info("=" * 70)
        for pass_name, changed in results.items():
            custom_logger.info(f"  {pass_name:<28} {'changed' if changed else 'unchanged':>10}")
        custom_logger.info(f"  Total time: {total_time:.3f}s")
        custom_logger.info(
            f"  Nodes: {initial_node_count} -> {final_node_count} "
            f"(removed: {initial_node_count - final_node_count})"
        )
        custom_logger.info("=" * 70)
