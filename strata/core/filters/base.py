# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Strata Filter Base Classes

A filter exists in two forms:
- FilterDefinition (installer): static description parsed once per pipeline
  load. Knows how to install its dependencies and check its tooling.
- FilterRunner: runtime handle built per invocation from a definition and
  the caller's configuration (arguments, settings, disabled).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from ..context import RunContext
from ..exceptions import ConfigParseError

if TYPE_CHECKING:
    from .remote import RemoteFilter, RemoteFilterDefinition

logger = logging.getLogger("strata.filters")


# =============================================================================
# Field helpers
# =============================================================================


def require_string(obj: Dict[str, Any], key: str, filter_id: str) -> str:
    """Read a required string field"""
    if key not in obj:
        raise ConfigParseError(
            f"Missing required property '{key}' in filter {filter_id!r}",
            field=key,
            filter_id=filter_id,
        )
    value = obj[key]
    if not isinstance(value, str):
        raise ConfigParseError(
            f"Property '{key}' of filter {filter_id!r} must be a string",
            field=key,
            filter_id=filter_id,
        )
    return value


def optional_int(obj: Dict[str, Any], key: str, default: int = 0) -> int:
    """Read an optional integer; values of any other type fall back to default"""
    value = obj.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        if key in obj:
            logger.debug(f"Ignoring non-integer '{key}' value {value!r}, using {default}")
        return default
    return value


# =============================================================================
# Definitions
# =============================================================================


@dataclass(frozen=True)
class FilterDefinition(ABC):
    """Common identity of every filter definition"""

    id: str
    name: str = ""
    disabled: bool = False

    @abstractmethod
    def create_filter_runner(self, run_configuration: Dict[str, Any]) -> "FilterRunner":
        """Combine this definition with per-invocation configuration"""

    @abstractmethod
    def install_dependencies(
        self,
        parent: Optional["RemoteFilterDefinition"],
        dot_path: Path,
        project_root: Path,
    ) -> None:
        """
        Install whatever the filter needs before it can run.

        Local filters resolve their files against project_root, nested ones
        against the download path of parent.
        """

    @abstractmethod
    def check(self, context: RunContext) -> None:
        """Verify the tooling this filter depends on is available"""


def definition_fields(filter_id: str, obj: Dict[str, Any]) -> Dict[str, Any]:
    """Parse the fields shared by all definitions"""
    name = obj.get("name", "")
    disabled = obj.get("disabled", False)
    if not isinstance(name, str):
        raise ConfigParseError(
            f"Property 'name' of filter {filter_id!r} must be a string",
            field="name",
            filter_id=filter_id,
        )
    if not isinstance(disabled, bool):
        raise ConfigParseError(
            f"Property 'disabled' of filter {filter_id!r} must be a boolean",
            field="disabled",
            filter_id=filter_id,
        )
    return {"id": filter_id, "name": name, "disabled": disabled}


# =============================================================================
# Runtime instances
# =============================================================================


@dataclass
class Filter:
    """Per-invocation configuration of a filter"""

    id: str = ""
    name: str = ""
    disabled: bool = False
    arguments: List[str] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)


def filter_from_object(obj: Dict[str, Any]) -> Filter:
    """
    Parse the generic instance fields of a filter configuration.

    Raises:
        ConfigParseError: If a field has the wrong type
    """
    if not isinstance(obj, dict):
        raise ConfigParseError("Filter configuration must be an object")

    filter_id = obj.get("filter", "")
    if not isinstance(filter_id, str):
        raise ConfigParseError(
            "Property 'filter' must be a string", field="filter"
        )

    name = obj.get("name", obj.get("description", ""))
    if not isinstance(name, str):
        raise ConfigParseError(
            "Property 'name' must be a string", field="name", filter_id=filter_id
        )

    disabled = obj.get("disabled", False)
    if not isinstance(disabled, bool):
        raise ConfigParseError(
            "Property 'disabled' must be a boolean",
            field="disabled",
            filter_id=filter_id,
        )

    arguments = obj.get("arguments", [])
    if not isinstance(arguments, list) or not all(isinstance(a, str) for a in arguments):
        raise ConfigParseError(
            "Property 'arguments' must be a list of strings",
            field="arguments",
            filter_id=filter_id,
        )

    settings = obj.get("settings", {})
    if settings is None:
        settings = {}
    if not isinstance(settings, dict):
        raise ConfigParseError(
            "Property 'settings' must be an object",
            field="settings",
            filter_id=filter_id,
        )

    return Filter(
        id=filter_id,
        name=name,
        disabled=disabled,
        arguments=list(arguments),
        settings=dict(settings),
    )


class FilterRunner(ABC):
    """
    Runtime handle shared by all filter variants.

    Subclasses set `self.filter` and `self.definition`.
    """

    filter: Filter
    definition: FilterDefinition

    @property
    def id(self) -> str:
        return self.filter.id or self.definition.id

    @property
    def is_disabled(self) -> bool:
        return self.filter.disabled or self.definition.disabled

    @property
    def friendly_name(self) -> str:
        return self.filter.name or self.definition.name or self.id

    @abstractmethod
    def run(self, context: RunContext) -> bool:
        """
        Run the filter.

        Returns:
            True if an interruption was observed and the pipeline should not
            schedule the next filter
        """

    @abstractmethod
    def check(self, context: RunContext) -> None:
        """Verify tooling for this filter"""

    @abstractmethod
    def copy_arguments(self, parent: "RemoteFilter") -> None:
        """Take over the caller-supplied configuration of an enclosing remote filter"""

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.id!r}>"
