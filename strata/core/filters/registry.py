# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Strata Filter Registry

Maps the "runWith" discriminator of a filter declaration to the definition
class that parses it:

    runWith   definition
    -------   ----------
    python    PythonFilterDefinition
    exe       ExeFilterDefinition
    (none)    RemoteFilterDefinition

Definition classes are imported lazily so that remote filters, which parse
their nested declarations through this registry, don't create an import
cycle.
"""

import importlib
import logging
from typing import Any, Callable, Dict, List

from ..exceptions import ConfigParseError
from .base import FilterDefinition

logger = logging.getLogger("strata.registry")

RUN_WITH_KEY = "runWith"
REMOTE = "remote"

DefinitionFactory = Callable[[str, Dict[str, Any]], FilterDefinition]


class FilterRegistry:
    """Lazy-loading registry of filter definition parsers"""

    def __init__(self):
        self._factories: Dict[str, Callable[[], DefinitionFactory]] = {}
        self._loaded: Dict[str, DefinitionFactory] = {}
        self._register_builtin_filters()

    def _register_builtin_filters(self):
        self.register_lazy(
            ["python"],
            lambda: self._import_definition(
                "strata.core.filters.python", "PythonFilterDefinition"
            ),
        )
        self.register_lazy(
            ["exe"],
            lambda: self._import_definition(
                "strata.core.filters.exe", "ExeFilterDefinition"
            ),
        )
        self.register_lazy(
            [REMOTE],
            lambda: self._import_definition(
                "strata.core.filters.remote", "RemoteFilterDefinition"
            ),
        )

    def _import_definition(self, module_path: str, class_name: str) -> DefinitionFactory:
        """Dynamically import a definition class and return its parser."""
        module = importlib.import_module(module_path)
        return getattr(module, class_name).from_object

    def register(self, run_with: str, factory: DefinitionFactory):
        """Register a parser for a runWith value."""
        self._loaded[run_with] = factory

    def register_lazy(self, names: List[str], loader: Callable[[], DefinitionFactory]):
        """Register a parser that is imported on first use."""
        for name in names:
            self._factories[name] = loader

    def get_factory(self, run_with: str) -> DefinitionFactory:
        if run_with not in self._loaded:
            if run_with not in self._factories:
                raise KeyError(run_with)
            self._loaded[run_with] = self._factories[run_with]()
        return self._loaded[run_with]

    def list_filter_types(self) -> List[str]:
        return sorted(set(self._loaded) | set(self._factories))

    def definition_from_object(self, filter_id: str, obj: Any) -> FilterDefinition:
        """
        Parse a filter declaration into its concrete definition.

        Raises:
            ConfigParseError: If the declaration is malformed or its runWith
                value is unknown
        """
        if not isinstance(obj, dict):
            raise ConfigParseError(
                f"Filter {filter_id!r} must be an object", filter_id=filter_id
            )
        run_with = obj.get(RUN_WITH_KEY, REMOTE)
        if not isinstance(run_with, str):
            raise ConfigParseError(
                f"Property '{RUN_WITH_KEY}' of filter {filter_id!r} must be a string",
                field=RUN_WITH_KEY,
                filter_id=filter_id,
            )
        try:
            factory = self.get_factory(run_with)
        except KeyError:
            raise ConfigParseError(
                f"Unknown filter type {run_with!r} in filter {filter_id!r}",
                field=RUN_WITH_KEY,
                filter_id=filter_id,
                hint=f"Supported types: {', '.join(self.list_filter_types())}",
            ) from None
        return factory(filter_id, obj)


# Global registry instance
_registry = None


def get_registry() -> FilterRegistry:
    """Get global registry instance (singleton)"""
    global _registry
    if _registry is None:
        _registry = FilterRegistry()
    return _registry


def filter_installer_from_object(filter_id: str, obj: Any) -> FilterDefinition:
    """Parse a declaration through the global registry"""
    return get_registry().definition_from_object(filter_id, obj)
