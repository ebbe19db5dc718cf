# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Git-backed retrieval of remote filters.

Remote filters are addressed with locators of the form

    <repository>//<subdirectory>?ref=<git ref>

GitVersionResolver turns a version specifier from a filter definition into a
concrete ref; GitGetter fetches the subdirectory at that ref into a local
directory.
"""

import logging
import re
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Tuple, Union

from .config import get_config
from .exceptions import DownloadError, ToolNotFoundError

logger = logging.getLogger("strata.download")

SEMVER_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")

Runner = Callable[..., subprocess.CompletedProcess]


class VersionResolver(Protocol):
    def resolve(self, url: str, filter_id: str, version: str) -> str:
        ...


class Getter(Protocol):
    def get(self, destination: Union[str, Path], locator: str) -> None:
        ...


@dataclass(frozen=True)
class Locator:
    repository: str
    subdirectory: str
    ref: str


def compose_locator(url: str, filter_id: str, ref: str) -> str:
    return f"{url}//{filter_id}?ref={ref}"


def parse_locator(locator: str) -> Locator:
    """Split `<repo>//<subdir>?ref=<ref>`; the scheme's own // is skipped."""
    address, _, ref = locator.partition("?ref=")
    scheme = ""
    if "://" in address:
        scheme, address = address.split("://", 1)
        scheme += "://"
    repository, sep, subdirectory = address.partition("//")
    if not sep or not subdirectory:
        raise DownloadError(f"Invalid filter locator {locator!r}")
    return Locator(scheme + repository, subdirectory.strip("/"), ref or "HEAD")


def repository_url(url: str) -> str:
    """Add https:// to scheme-less repository addresses"""
    if "://" in url or url.startswith("git@"):
        return url
    return f"https://{url}"


def parse_semver(text: str) -> Optional[Tuple[int, int, int]]:
    match = SEMVER_PATTERN.match(text)
    if not match:
        return None
    return tuple(int(part) for part in match.groups())  # type: ignore


class GitClient:
    """Thin wrapper over the git command line"""

    def __init__(self, git: Optional[str] = None, runner: Runner = subprocess.run):
        self.git = git or get_config().runtime.git_executable
        self.runner = runner

    def __call__(self, *args: str, cwd: Optional[Path] = None) -> str:
        if self.runner is subprocess.run and shutil.which(self.git) is None:
            raise ToolNotFoundError(
                "Git not found", tool=self.git, hint="Install git and retry"
            )
        cmd = [self.git, *args]
        logger.debug(f"Exec: {cmd}")
        try:
            result = self.runner(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise DownloadError(
                f"git {args[0]} failed: {(e.stderr or '').strip()}", cause=e
            ) from e
        except OSError as e:
            raise DownloadError(f"Could not run {self.git}", cause=e) from e
        return result.stdout


class GitVersionResolver:
    """
    Resolve version specifiers against the tags of the filter repository.

    - "HEAD" stays "HEAD"
    - "latest" becomes the highest `<id>-X.Y.Z` tag, or HEAD without tags
    - "X.Y.Z" becomes the `<id>-X.Y.Z` tag when it exists
    - anything else is used as a ref as-is
    """

    def __init__(self, git: Optional[GitClient] = None):
        self.git = git or GitClient()

    def list_tags(self, url: str) -> List[str]:
        output = self.git("ls-remote", "--tags", repository_url(url))
        tags = []
        for line in output.splitlines():
            parts = line.split("\t")
            if len(parts) != 2 or not parts[1].startswith("refs/tags/"):
                continue
            tag = parts[1][len("refs/tags/"):]
            if tag.endswith("^{}"):
                continue
            tags.append(tag)
        return tags

    def filter_versions(self, url: str, filter_id: str) -> List[Tuple[Tuple[int, int, int], str]]:
        prefix = f"{filter_id}-"
        versions = []
        for tag in self.list_tags(url):
            if not tag.startswith(prefix):
                continue
            semver = parse_semver(tag[len(prefix):])
            if semver is not None:
                versions.append((semver, tag))
        return sorted(versions)

    def resolve(self, url: str, filter_id: str, version: str) -> str:
        if version == "HEAD":
            return "HEAD"
        if version == "latest":
            versions = self.filter_versions(url, filter_id)
            if not versions:
                logger.debug(f"No release tags for {filter_id}, using HEAD")
                return "HEAD"
            return versions[-1][1]
        if parse_semver(version) is not None:
            for semver, tag in self.filter_versions(url, filter_id):
                if tag == f"{filter_id}-{version}" or tag == f"{filter_id}-v{version}":
                    return tag
        return version


class GitGetter:
    """Fetch `<repo>//<subdir>?ref=<ref>` into a local directory"""

    def __init__(self, git: Optional[GitClient] = None):
        self.git = git or GitClient()

    def clone(self, repository: str, ref: str, target: Path) -> None:
        url = repository_url(repository)
        if ref == "HEAD":
            self.git("clone", "--depth", "1", url, str(target))
            return
        try:
            self.git("clone", "--depth", "1", "--branch", ref, url, str(target))
        except DownloadError:
            # Commit hashes can't be shallow-cloned by name
            logger.debug(f"Shallow clone at {ref} failed, cloning full history")
            shutil.rmtree(target, ignore_errors=True)
            self.git("clone", url, str(target))
            self.git("checkout", ref, cwd=target)

    def get(self, destination: Union[str, Path], locator: str) -> None:
        parsed = parse_locator(locator)
        destination = Path(destination)
        with tempfile.TemporaryDirectory(prefix="strata-") as tmp:
            checkout = Path(tmp) / "repo"
            self.clone(parsed.repository, parsed.ref, checkout)
            source = checkout / parsed.subdirectory
            if not source.is_dir():
                raise DownloadError(
                    f"{parsed.subdirectory!r} not found in {parsed.repository} at {parsed.ref}"
                )
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, destination, ignore=shutil.ignore_patterns(".git"))


_resolver: Optional[VersionResolver] = None
_getter: Optional[Getter] = None


def get_version_resolver() -> VersionResolver:
    global _resolver
    if _resolver is None:
        _resolver = GitVersionResolver()
    return _resolver


def get_getter() -> Getter:
    global _getter
    if _getter is None:
        _getter = GitGetter()
    return _getter
