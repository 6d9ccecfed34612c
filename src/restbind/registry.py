"""Compute-once cache for analyzed interfaces and their client classes.

A guard lock hands out one lock per key, so two threads asking for the same
interface build it once while unrelated interfaces build in parallel.
"""

import logging
import threading
from typing import Any, Callable, Hashable, TypeVar

from restbind.analysis.validator import AnalysisResult, analyze_interface

logger = logging.getLogger(__name__)

V = TypeVar("V")


class ModelRegistry:
    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._values: dict[Hashable, Any] = {}

    def get_or_create(self, key: Hashable, factory: Callable[[], V]) -> V:
        try:
            return self._values[key]
        except KeyError:
            pass

        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            if key not in self._values:
                logger.debug("Building model for %r", key)
                self._values[key] = factory()
            return self._values[key]

    def get(self, key: Hashable) -> Any:
        return self._values.get(key)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def clear(self) -> None:
        with self._guard:
            self._values.clear()
            self._locks.clear()


_default: ModelRegistry | None = None
_default_lock = threading.Lock()


def default_registry() -> ModelRegistry:
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = ModelRegistry()
    return _default


def build_model(interface: type, registry: ModelRegistry | None = None) -> AnalysisResult:
    """Analyze and validate ``interface`` once per process (or per registry)."""
    if registry is None:
        registry = default_registry()
    return registry.get_or_create(interface, lambda: analyze_interface(interface))
