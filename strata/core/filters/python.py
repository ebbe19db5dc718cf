# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Python filters

    {"runWith": "python", "script": "filters/main.py", "venvSlot": 1}

The script path is relative to the directory the filter runs from. When the
script's directory contains requirements.txt the filter runs inside the
virtual environment of its venv slot.
"""

import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .. import process
from ..context import RunContext
from ..exceptions import SubprocessExecutionError
from . import venv
from .base import (
    Filter,
    FilterDefinition,
    FilterRunner,
    definition_fields,
    filter_from_object,
    optional_int,
    require_string,
)

if TYPE_CHECKING:
    from .remote import RemoteFilter, RemoteFilterDefinition

logger = logging.getLogger("strata.filters.python")


def settings_arguments(settings: Dict[str, Any]) -> List[str]:
    """Settings travel as a single compact JSON argument, or not at all"""
    if not settings:
        return []
    return [json.dumps(settings, separators=(",", ":"))]


@dataclass(frozen=True)
class PythonFilterDefinition(FilterDefinition):
    script: str = ""
    venv_slot: int = 0

    @classmethod
    def from_object(cls, filter_id: str, obj: Dict[str, Any]) -> "PythonFilterDefinition":
        return cls(
            **definition_fields(filter_id, obj),
            script=require_string(obj, "script", filter_id),
            venv_slot=optional_int(obj, "venvSlot"),
        )

    def create_filter_runner(self, run_configuration: Dict[str, Any]) -> "PythonFilter":
        return PythonFilter(filter_from_object(run_configuration), self)

    def resolve_venv_path(self, dot_path: Path) -> Path:
        return venv.resolve_venv_path(dot_path, self.venv_slot)

    def install_dependencies(
        self,
        parent: Optional["RemoteFilterDefinition"],
        dot_path: Path,
        project_root: Path,
    ) -> None:
        install_location = Path(project_root)
        definition = self
        if parent is not None:
            install_location = parent.get_download_path(dot_path)
            definition = replace(self, venv_slot=parent.venv_slot)

        logger.info(f"Downloading dependencies for {self.id}...")
        filter_dir = (install_location / self.script).absolute().parent
        if venv.needs_venv(filter_dir):
            venv.install_venv(filter_dir, definition.resolve_venv_path(dot_path), self.id)
        logger.info(f"Dependencies for {self.id} installed successfully.")

    def check(self, context: RunContext) -> None:
        python = process.find_python()
        version = process.probe_version(python)
        logger.debug(f"Found Python version {version.replace('Python ', '', 1)}")


class PythonFilter(FilterRunner):
    def __init__(self, filter: Filter, definition: PythonFilterDefinition):
        self.filter = filter
        self.definition = definition

    def interpreter(self, script_path: Path, dot_path: Path) -> str:
        if venv.needs_venv(script_path.parent):
            venv_path = self.definition.resolve_venv_path(dot_path)
            logger.debug(f"Running Python filter using venv: {venv_path}")
            return str(venv.venv_python(venv_path))
        return process.find_python()

    def build_arguments(self, script_path: Path) -> List[str]:
        return (
            ["-u", str(script_path)]
            + settings_arguments(self.filter.settings)
            + list(self.filter.arguments)
        )

    def run(self, context: RunContext) -> bool:
        script_path = Path(context.absolute_location) / self.definition.script
        python = self.interpreter(script_path, context.dot_path)
        try:
            process.run_subprocess(
                python,
                self.build_arguments(script_path),
                cwd=context.absolute_location,
                root_dir=context.working_directory(),
                name=self.id,
            )
        except SubprocessExecutionError as e:
            raise SubprocessExecutionError(
                "Failed to run Python script.",
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
        self.definition = replace(
            self.definition, venv_slot=parent.definition.venv_slot
        )
