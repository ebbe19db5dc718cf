# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Project configuration loader

A project is a directory holding config.json (or config.yaml):

    {
        "dataPath": "./data",
        "filterDefinitions": {
            "bake": {"runWith": "python", "script": "./filters/bake.py"},
            "json_cleaner": {"version": "1.1.0"}
        },
        "filters": [
            {"filter": "json_cleaner"},
            {"filter": "bake", "arguments": ["--fast"], "settings": {"x": 1}}
        ]
    }
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .exceptions import ConfigParseError

CONFIG_FILES = ("config.json", "config.yaml", "config.yml")


@dataclass
class ProjectConfig:
    root: Path
    filter_definitions: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    filters: List[Dict[str, Any]] = field(default_factory=list)
    data_path: Optional[Path] = None


def find_config_file(root: Path) -> Path:
    for name in CONFIG_FILES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    raise ConfigParseError(
        f"No project configuration found in {root}",
        hint=f"Create one of: {', '.join(CONFIG_FILES)}",
    )


def load_project(path: Union[str, Path]) -> ProjectConfig:
    """
    Load a project configuration.

    Args:
        path: Project directory or configuration file

    Raises:
        ConfigParseError: If the file is missing, unreadable or malformed
    """
    path = Path(path)
    config_file = path if path.is_file() else find_config_file(path)
    root = config_file.parent.resolve()

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            if config_file.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"Couldn't load {config_file}", cause=e) from e

    if not isinstance(data, dict):
        raise ConfigParseError(f"{config_file} must contain an object")

    definitions = data.get("filterDefinitions", {})
    if not isinstance(definitions, dict):
        raise ConfigParseError(
            "'filterDefinitions' must be an object", field="filterDefinitions"
        )

    filters = data.get("filters", [])
    if not isinstance(filters, list):
        raise ConfigParseError("'filters' must be a list", field="filters")

    data_path = data.get("dataPath")
    if data_path is not None and not isinstance(data_path, str):
        raise ConfigParseError("'dataPath' must be a string", field="dataPath")

    return ProjectConfig(
        root=root,
        filter_definitions=definitions,
        filters=filters,
        data_path=(root / data_path) if data_path else None,
    )
