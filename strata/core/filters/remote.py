# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Remote filters

    {"url": "github.com/Bedrock-OSS/regolith-filters", "version": "1.0.0"}

A remote filter is a directory of a git repository, downloaded into
<dot>/cache/filters/<id>. Its filter.json declares a nested list of local
filters that run in order from the download directory. The presence of the
download directory is the only "installed" marker; no version information is
stored, so switching versions needs a forced reinstall.

Nesting is limited to one level: the filters of a remote filter can't be
remote filters themselves. The arguments, settings and venv slot given to a
remote filter are copied into each of its nested filters.
"""

import logging
import shutil
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import STANDARD_LIBRARY_URL
from ..context import RunContext
from ..download import (
    Getter,
    VersionResolver,
    compose_locator,
    get_getter,
    get_version_resolver,
)
from ..exceptions import (
    ConfigParseError,
    DependencyInstallError,
    DownloadError,
    NotInstalledError,
    SafeModeViolation,
    StrataError,
)
from .base import (
    Filter,
    FilterDefinition,
    FilterRunner,
    definition_fields,
    filter_from_object,
    optional_int,
)
from .manifest import read_manifest

logger = logging.getLogger("strata.filters.remote")

DATA_DIR = "data"
TEST_DIR = "test"


def subfilter_id(filter_id: str, index: int) -> str:
    return f"{filter_id}:subfilter{index}"


@dataclass(frozen=True)
class RemoteFilterDefinition(FilterDefinition):
    url: str = STANDARD_LIBRARY_URL
    version: str = ""
    # Propagated to the nested python filters
    venv_slot: int = 0

    @classmethod
    def from_object(cls, filter_id: str, obj: Dict[str, Any]) -> "RemoteFilterDefinition":
        url = obj.get("url")
        if not isinstance(url, str):
            url = STANDARD_LIBRARY_URL
        version = obj.get("version")
        if not isinstance(version, str):
            raise ConfigParseError(
                f"Missing 'version' property in filter definition {filter_id!r}",
                field="version",
                filter_id=filter_id,
                hint="Set 'version' to a release number, 'latest' or 'HEAD'",
            )
        return cls(
            **definition_fields(filter_id, obj),
            url=url,
            version=version,
            venv_slot=optional_int(obj, "venvSlot"),
        )

    @classmethod
    def from_the_internet(
        cls,
        url: str,
        filter_id: str,
        version: str,
        resolver: Optional[VersionResolver] = None,
    ) -> "RemoteFilterDefinition":
        """Build a definition pinned to a concrete ref of a remote filter"""
        resolver = resolver or get_version_resolver()
        try:
            resolved = resolver.resolve(url, filter_id, version)
        except StrataError as e:
            raise DownloadError(
                f"No valid version found for filter {filter_id!r}",
                filter_id=filter_id,
                cause=e,
            ) from e
        return cls(id=filter_id, url=url, version=resolved)

    def create_filter_runner(self, run_configuration: Dict[str, Any]) -> "RemoteFilter":
        return RemoteFilter(filter_from_object(run_configuration), self)

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def get_download_path(self, dot_path: Path) -> Path:
        return Path(dot_path) / "cache" / "filters" / self.id

    def is_installed(self, dot_path: Path) -> bool:
        return self.get_download_path(dot_path).exists()

    def is_trusted(self) -> bool:
        return self.url == STANDARD_LIBRARY_URL

    def get_download_url(self, resolver: Optional[VersionResolver] = None) -> str:
        resolver = resolver or get_version_resolver()
        try:
            ref = resolver.resolve(self.url, self.id, self.version)
        except StrataError as e:
            raise DownloadError(
                f"Unable to get download URL for filter {self.id!r}",
                filter_id=self.id,
                cause=e,
            ) from e
        return compose_locator(self.url, self.id, ref)

    def download(
        self,
        dot_path: Path,
        force: bool = False,
        getter: Optional[Getter] = None,
        resolver: Optional[VersionResolver] = None,
    ) -> None:
        """
        Fetch the filter into the cache.

        Raises:
            DownloadError: If the version can't be resolved or the fetch fails
        """
        if self.is_installed(dot_path):
            if not force:
                logger.warning(
                    f"Filter {self.id!r} already installed, skipping. Run with "
                    "'--force' to force."
                )
                return
            logger.warning(
                f"Filter {self.id!r} already installed, but force mode is enabled.\n"
                "Filter will be installed, erasing prior contents."
            )
            self.uninstall(dot_path)

        logger.info(f"Downloading filter {self.id}...")
        url = self.get_download_url(resolver)
        download_path = self.get_download_path(dot_path)
        getter = getter or get_getter()
        try:
            getter.get(download_path, url)
        except (StrataError, OSError) as e:
            shutil.rmtree(download_path, ignore_errors=True)
            raise DownloadError(
                f"Could not download filter from {url}.",
                filter_id=self.id,
                cause=e,
                hint="Is git installed? Does that filter exist at that url and version?",
            ) from e

        test_folder = download_path / TEST_DIR
        if test_folder.is_dir():
            shutil.rmtree(test_folder, ignore_errors=True)

        logger.info(f"Filter {self.id} downloaded successfully.")

    def uninstall(self, dot_path: Path) -> bool:
        """Remove the downloaded filter. Returns False when that fails."""
        download_path = self.get_download_path(dot_path)
        if not download_path.exists():
            return True
        try:
            shutil.rmtree(download_path)
        except OSError as e:
            logger.error(f"Could not remove installed filter {self.id}: {e}")
            return False
        return True

    def copy_filter_data(self, dot_path: Path, data_path: Optional[Path]) -> None:
        """Seed <data_path>/<id> with the filter's own data folder, once."""
        remote_data_path = self.get_download_path(dot_path) / DATA_DIR
        if data_path is None:
            if remote_data_path.is_dir():
                logger.warning(
                    f"Filter {self.id} has installation data, but the "
                    "dataPath is not set. Skipping."
                )
            return

        local_data_path = Path(data_path) / self.id
        if local_data_path.exists():
            logger.warning(
                f"Filter {self.id} already has data in the 'data' folder.\n"
                "You may manually delete this data and reinstall if you "
                "would like these configuration files to be updated."
            )
            return
        if not remote_data_path.is_dir():
            return
        try:
            shutil.copytree(remote_data_path, local_data_path)
        except OSError as e:
            logger.error(f"Could not initialize filter data: {e}")

    # -------------------------------------------------------------------------
    # Nested filters
    # -------------------------------------------------------------------------

    def parse_subfilter(self, index: int, declaration: Any) -> FilterDefinition:
        """
        Parse one entry of the manifest.

        Raises:
            ConfigParseError: If the entry is malformed or is a remote filter
        """
        # Imported here, the registry lazily imports this module
        from .registry import filter_installer_from_object

        nested_id = subfilter_id(self.id, index)
        definition = filter_installer_from_object(nested_id, declaration)
        if isinstance(definition, RemoteFilterDefinition):
            raise ConfigParseError(
                f"Filter {self.id!r} declares a nested remote filter at "
                f"index {index}, which is not supported",
                filter_id=nested_id,
            )
        return definition

    def subfilter_definitions(self, dot_path: Path) -> List[tuple]:
        """Parse the manifest into (declaration, definition) pairs"""
        return [
            (declaration, self.parse_subfilter(i, declaration))
            for i, declaration in enumerate(read_manifest(self.get_download_path(dot_path)))
        ]

    def install_dependencies(
        self,
        parent: Optional["RemoteFilterDefinition"],
        dot_path: Path,
        project_root: Path,
    ) -> None:
        declarations = read_manifest(self.get_download_path(dot_path))
        for i, declaration in enumerate(declarations):
            try:
                nested = self.parse_subfilter(i, declaration)
            except ConfigParseError as e:
                raise DependencyInstallError(
                    f"Could not parse filter {self.id!r}, subfilter {i}",
                    filter_id=self.id,
                    cause=e,
                    details={"index": i},
                ) from e
            try:
                nested.install_dependencies(self, dot_path, project_root)
            except StrataError as e:
                raise DependencyInstallError(
                    f"Could not install dependencies for filter {self.id!r}, subfilter {i}",
                    filter_id=self.id,
                    cause=e,
                    details={"index": i},
                ) from e

    def check(self, context: RunContext) -> None:
        """Remote filters have no tooling of their own"""


class RemoteFilter(FilterRunner):
    def __init__(self, filter: Filter, definition: RemoteFilterDefinition):
        self.filter = filter
        self.definition = definition

    @property
    def friendly_name(self) -> str:
        if self.filter.name or self.definition.name:
            return self.filter.name or self.definition.name
        if self.id:
            return self.id
        return self.definition.url.rstrip("/").rsplit("/", 1)[-1]

    def subfilter_collection(self, dot_path: Path) -> List[FilterRunner]:
        """Build the nested runners, each carrying this filter's configuration"""
        runners = []
        for declaration, definition in self.definition.subfilter_definitions(dot_path):
            runner = definition.create_filter_runner(declaration)
            runner.copy_arguments(self)
            runners.append(runner)
        return runners

    def run(self, context: RunContext) -> bool:
        if self.is_disabled:
            logger.info(f"Filter {self.friendly_name!r} is disabled, skipping.")
            return False

        if not self.definition.is_trusted() and not context.unlocked:
            raise SafeModeViolation(
                "Safe mode is on, which protects you from potentially unsafe code.",
                filter_id=self.id,
                hint="You may turn it off using 'strata unlock'",
            )

        logger.info(f"Running filter {self.friendly_name}")
        start = time.time()
        logger.debug(f"RunRemoteFilter {self.definition.url!r}")

        if not self.definition.is_installed(context.dot_path):
            raise NotInstalledError(
                f"Filter {self.friendly_name!r} is not downloaded.",
                filter_id=self.id,
                hint="Please run 'strata install'",
            )

        download_path = self.definition.get_download_path(context.dot_path).absolute()
        nested_context = context.with_location(download_path)
        for runner in self.subfilter_collection(context.dot_path):
            if runner.run(nested_context):
                return True

        logger.debug(f"Executed in {time.time() - start:.2f}s")
        return context.is_interrupted()

    def check(self, context: RunContext) -> None:
        if not self.definition.is_installed(context.dot_path):
            raise NotInstalledError(
                f"Filter {self.friendly_name!r} is not downloaded.",
                filter_id=self.id,
                hint="Please run 'strata install'",
            )
        nested_context = context.with_location(
            self.definition.get_download_path(context.dot_path).absolute()
        )
        for runner in self.subfilter_collection(context.dot_path):
            runner.check(nested_context)

    def copy_arguments(self, parent: "RemoteFilter") -> None:
        # Nested remote filters are rejected when the manifest is parsed
        self.filter.arguments = list(parent.filter.arguments)
        self.filter.settings = parent.filter.settings
        self.definition = replace(
            self.definition, venv_slot=parent.definition.venv_slot
        )
