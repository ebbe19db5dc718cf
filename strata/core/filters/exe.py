# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Executable filters

    {"runWith": "exe", "exe": "tools/bake"}

The exe path is looked up relative to the directory the filter runs from,
then on PATH.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .. import process
from ..context import RunContext
from ..exceptions import SubprocessExecutionError, ToolNotFoundError
from .base import (
    Filter,
    FilterDefinition,
    FilterRunner,
    definition_fields,
    filter_from_object,
    require_string,
)
from .python import settings_arguments

if TYPE_CHECKING:
    from .remote import RemoteFilter, RemoteFilterDefinition

logger = logging.getLogger("strata.filters.exe")


@dataclass(frozen=True)
class ExeFilterDefinition(FilterDefinition):
    exe: str = ""

    @classmethod
    def from_object(cls, filter_id: str, obj: Dict[str, Any]) -> "ExeFilterDefinition":
        return cls(
            **definition_fields(filter_id, obj),
            exe=require_string(obj, "exe", filter_id),
        )

    def create_filter_runner(self, run_configuration: Dict[str, Any]) -> "ExeFilter":
        return ExeFilter(filter_from_object(run_configuration), self)

    def resolve_command(self, location: Path) -> Optional[str]:
        local = Path(location) / self.exe
        if local.is_file():
            return str(local.absolute())
        return shutil.which(self.exe)

    def install_dependencies(
        self,
        parent: Optional["RemoteFilterDefinition"],
        dot_path: Path,
        project_root: Path,
    ) -> None:
        logger.debug(f"Filter {self.id} has no dependencies to install.")

    def check(self, context: RunContext) -> None:
        if self.resolve_command(context.absolute_location) is None:
            raise ToolNotFoundError(
                f"Executable {self.exe!r} of filter {self.id!r} not found",
                tool=self.exe,
                hint="Check the 'exe' path of the filter definition",
            )


class ExeFilter(FilterRunner):
    def __init__(self, filter: Filter, definition: ExeFilterDefinition):
        self.filter = filter
        self.definition = definition

    def build_arguments(self) -> List[str]:
        return settings_arguments(self.filter.settings) + list(self.filter.arguments)

    def run(self, context: RunContext) -> bool:
        command = self.definition.resolve_command(context.absolute_location)
        if command is None:
            raise ToolNotFoundError(
                f"Executable {self.definition.exe!r} not found",
                tool=self.definition.exe,
            )
        try:
            process.run_subprocess(
                command,
                self.build_arguments(),
                cwd=context.absolute_location,
                root_dir=context.working_directory(),
                name=self.id,
            )
        except SubprocessExecutionError as e:
            raise SubprocessExecutionError(
                "Failed to run executable.",
                returncode=e.returncode,
                filter_id=self.id,
                cause=e,
            ) from e
        return context.is_interrupted()

    def check(self, context: RunContext) -> None:
        self.definition.check(context)

    def copy_arguments(self, parent: "RemoteFilter") -> None:
        self.filter.arguments = self.filter.arguments + parent.filter.arguments
        self.filter.settings = parent.filter.settings
