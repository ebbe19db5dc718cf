# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Safe mode

Remote filters from anywhere but the standard library only run in projects
the user has unlocked. Unlocked projects are remembered per absolute project
path in <state_dir>/unlocked.yaml. The result is passed to filters through
RunContext.unlocked; filters never read this store themselves.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import yaml

from .config import get_state_file

logger = logging.getLogger("strata.safe_mode")

UNLOCKED_FILE = "unlocked.yaml"


class SafeModeStore:
    """Persistent set of unlocked project paths"""

    def __init__(self, state_file: Optional[Path] = None):
        self.state_file = state_file or get_state_file(UNLOCKED_FILE)

    def _load(self) -> List[str]:
        if not self.state_file.exists():
            return []
        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read safe mode state: {e}")
            return []
        projects = data.get("projects", []) if isinstance(data, dict) else []
        return [p for p in projects if isinstance(p, str)]

    def _save(self, projects: List[str]):
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_file, "w", encoding="utf-8") as f:
            yaml.safe_dump({"projects": sorted(set(projects))}, f)

    @staticmethod
    def _key(project: Union[str, Path]) -> str:
        return str(Path(project).resolve())

    def is_unlocked(self, project: Union[str, Path]) -> bool:
        return self._key(project) in self._load()

    def unlock(self, project: Union[str, Path]):
        projects = self._load()
        key = self._key(project)
        if key not in projects:
            projects.append(key)
            self._save(projects)
        logger.info(f"Safe mode disabled for {key}")

    def lock(self, project: Union[str, Path]):
        key = self._key(project)
        projects = [p for p in self._load() if p != key]
        self._save(projects)
        logger.info(f"Safe mode enabled for {key}")
