# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Strata Pipeline Engine

Runs the configured filters one at a time in declared order:

    disabled?      -> skip
    remote filter  -> trust check -> cache check -> nested filters
    local filter   -> subprocess

Interruption is cooperative: the token in the RunContext is consulted after
each filter, never while a child process is running.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .context import RunContext
from .download import Getter, VersionResolver
from .exceptions import (
    ConfigParseError,
    DuplicateFilterIdError,
    FilterRunError,
    NotInstalledError,
    StrataError,
)
from .filters.base import FilterDefinition, FilterRunner
from .filters.registry import filter_installer_from_object
from .filters.remote import RemoteFilterDefinition
from .project import ProjectConfig

logger = logging.getLogger("strata.pipeline")


def parse_definitions(
    declarations: Iterable[Tuple[str, Any]]
) -> Dict[str, FilterDefinition]:
    """
    Parse (id, declaration) pairs, rejecting duplicate ids.

    Raises:
        ConfigParseError: On the first malformed declaration
        DuplicateFilterIdError: If an id appears twice
    """
    definitions: Dict[str, FilterDefinition] = {}
    for filter_id, declaration in declarations:
        if filter_id in definitions:
            raise DuplicateFilterIdError(
                f"Duplicate filter id: {filter_id}", filter_id=filter_id
            )
        definitions[filter_id] = filter_installer_from_object(filter_id, declaration)
    return definitions


def install_filters(
    definitions: Dict[str, FilterDefinition],
    dot_path: Path,
    project_root: Path,
    force: bool = False,
    data_path: Optional[Path] = None,
    getter: Optional[Getter] = None,
    resolver: Optional[VersionResolver] = None,
) -> None:
    """
    Download remote filters and install dependencies of every definition.

    Stops at the first failure; filters installed before it stay
    installed.
    """
    for definition in definitions.values():
        if isinstance(definition, RemoteFilterDefinition):
            definition.download(dot_path, force=force, getter=getter, resolver=resolver)
            definition.copy_filter_data(dot_path, data_path)
        definition.install_dependencies(None, dot_path, project_root)
    logger.info("All filters installed.")


class Pipeline:
    """Ordered filters of one project plus the definitions they use"""

    def __init__(
        self,
        definitions: Dict[str, FilterDefinition],
        runners: Optional[List[FilterRunner]] = None,
        data_path: Optional[Path] = None,
        root: Optional[Path] = None,
    ):
        self.definitions = definitions
        self.runners = runners or []
        self.data_path = data_path
        # Local filter paths are relative to it
        self.root = Path(root) if root is not None else Path.cwd()

    @classmethod
    def from_config(cls, project: ProjectConfig) -> "Pipeline":
        definitions = parse_definitions(project.filter_definitions.items())
        runners = []
        for i, run_configuration in enumerate(project.filters):
            filter_id = (
                run_configuration.get("filter")
                if isinstance(run_configuration, dict)
                else None
            )
            if not isinstance(filter_id, str) or not filter_id:
                raise ConfigParseError(
                    f"Filter {i} of the pipeline has no 'filter' id", field="filter"
                )
            if filter_id not in definitions:
                raise ConfigParseError(
                    f"Filter {filter_id!r} is not defined",
                    field="filter",
                    filter_id=filter_id,
                    hint="Add it to 'filterDefinitions'",
                )
            runners.append(definitions[filter_id].create_filter_runner(run_configuration))
        return cls(definitions, runners, data_path=project.data_path, root=project.root)

    # -------------------------------------------------------------------------
    # Install
    # -------------------------------------------------------------------------

    def install(
        self,
        dot_path: Path,
        force: bool = False,
        getter: Optional[Getter] = None,
        resolver: Optional[VersionResolver] = None,
    ) -> None:
        install_filters(
            self.definitions,
            dot_path,
            self.root,
            force=force,
            data_path=self.data_path,
            getter=getter,
            resolver=resolver,
        )

    def uninstall(self, filter_id: str, dot_path: Path) -> bool:
        definition = self.definitions.get(filter_id)
        if not isinstance(definition, RemoteFilterDefinition):
            raise NotInstalledError(
                f"{filter_id!r} is not a remote filter of this project",
                filter_id=filter_id,
            )
        return definition.uninstall(dot_path)

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def check(self, context: RunContext) -> None:
        for runner in self.runners:
            if runner.is_disabled:
                continue
            try:
                runner.check(context)
            except StrataError as e:
                raise FilterRunError(
                    f"Check of filter {runner.friendly_name!r} failed: {e.message}",
                    filter_name=runner.friendly_name,
                    filter_id=runner.id,
                    cause=e,
                    hint=e.hint,
                ) from e

    def run(self, context: RunContext) -> bool:
        """
        Run every filter in order.

        Returns:
            True if the run stopped early because of an interruption

        Raises:
            FilterRunError: Wrapping the first failure with the filter's name
        """
        start = time.time()
        for runner in self.runners:
            if runner.is_disabled:
                logger.info(f"Filter {runner.friendly_name!r} is disabled, skipping.")
                continue

            logger.info(f"Running filter {runner.friendly_name}")
            try:
                interrupted = runner.run(context)
            except StrataError as e:
                logger.debug(f"Filter {runner.id!r} failed: {e.to_dict()}")
                raise FilterRunError(
                    f"Failed to run filter {runner.friendly_name!r}: {e.message}",
                    filter_name=runner.friendly_name,
                    filter_id=runner.id,
                    cause=e,
                    hint=e.hint,
                ) from e

            if interrupted or context.is_interrupted():
                logger.warning("Interrupted, remaining filters will not run.")
                return True

        logger.info(f"Pipeline finished in {time.time() - start:.2f}s")
        return False
