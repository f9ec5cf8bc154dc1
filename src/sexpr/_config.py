"""
Codec configuration and opt-in hot path profiling.

Profiling is switched on by setting SEXPR_PROFILE in the environment; when
it is unset ProfileContext is a no-op and costs one object per call.
"""

import os
import time
from dataclasses import dataclass
from typing import Any

DEFAULT_RECURSION_LIMIT = 128
DEFAULT_PRETTY_INDENT = "  "

PROFILE_HOT_PATHS = __debug__ and "SEXPR_PROFILE" in os.environ


@dataclass(frozen=True)
class DecodeConfig:
    """
    Configures decoding with immutable settings.

    recursion_limit bounds how many lists, alists and enum payloads may be
    open at once before the decoder gives up with RecursionLimitExceeded.
    """

    recursion_limit: int = DEFAULT_RECURSION_LIMIT

    def __post_init__(self) -> None:
        if isinstance(self.recursion_limit, bool) or not isinstance(
            self.recursion_limit, int
        ):
            raise TypeError("recursion_limit must be an integer")
        if self.recursion_limit < 1:
            raise ValueError("recursion_limit must be at least 1")


@dataclass(frozen=True)
class EncodeConfig:
    """
    Configures encoding with immutable settings.

    indent selects the layout: None for compact output, otherwise the indent
    unit for pretty output, given as a string or a number of spaces.
    """

    indent: str | int | None = None

    def __post_init__(self) -> None:
        if self.indent is None or isinstance(self.indent, str):
            return
        if isinstance(self.indent, bool) or not isinstance(self.indent, int):
            raise TypeError("indent must be a string, an integer or None")
        if self.indent < 0:
            raise ValueError("indent must be non-negative")

    @property
    def indent_unit(self) -> str | None:
        if isinstance(self.indent, int):
            return " " * self.indent
        return self.indent


@dataclass
class HotPathStats:
    """Statistics for profiling hot paths during decoding and encoding."""

    function_name: str
    call_count: int = 0
    total_time_ns: int = 0

    def record_call(self, duration_ns: int) -> None:
        self.call_count += 1
        self.total_time_ns += duration_ns


if PROFILE_HOT_PATHS:
    _hot_path_stats: dict[str, HotPathStats] = {}

    class ProfileContext:
        """Context manager for profiling hot paths."""

        def __init__(self, func_name: str) -> None:
            self.func_name = func_name
            self.start_time = 0

        def __enter__(self) -> "ProfileContext":
            self.start_time = time.perf_counter_ns()
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            duration = time.perf_counter_ns() - self.start_time
            if self.func_name not in _hot_path_stats:
                _hot_path_stats[self.func_name] = HotPathStats(self.func_name)
            _hot_path_stats[self.func_name].record_call(duration)

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        """Returns current profiling statistics."""
        return _hot_path_stats.copy()

    def clear_hot_path_stats() -> None:
        """Clears profiling statistics."""
        _hot_path_stats.clear()

else:

    class ProfileContext:  # type: ignore[no-redef]
        def __init__(self, func_name: str) -> None:
            pass

        def __enter__(self) -> "ProfileContext":
            return self

        def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
            pass

    def get_hot_path_stats() -> dict[str, HotPathStats]:
        return {}

    def clear_hot_path_stats() -> None:
        pass
