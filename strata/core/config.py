# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0


"""
Strata user configuration

Settings are layered, later sources winning key by key:

    defaults < ~/.strata/config.yaml < ./.strata.yaml < --config file < STRATA_*

Values are validated with pydantic; an invalid combination is reported and
replaced by the defaults rather than aborting the command.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("strata.config")

# Filters hosted here run without unlocking safe mode
STANDARD_LIBRARY_URL = "github.com/Bedrock-OSS/regolith-filters"


# ============================================================================
# Configuration Models
# ============================================================================


class PathsConfig(BaseModel):
    """Where Strata keeps user state and logs"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    home: Path = Field(
        default_factory=lambda: Path.home() / ".strata",
        description="Strata user directory",
    )
    state_dir: Path = Field(
        default_factory=lambda: Path.home() / ".strata" / "state",
        description="Persistent user state (safe mode unlocks)",
    )
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / ".strata" / "logs",
        description="Log files directory",
    )
    dot_dir: str = Field(
        default=".strata",
        description="Name of the hidden project directory holding the cache",
    )

    @field_validator("home", "state_dir", "log_dir", mode="before")
    @classmethod
    def ensure_path(cls, v):
        """Accept ~-prefixed strings"""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class RuntimeConfig(BaseModel):
    """External tools used by filters and downloads"""

    python_candidates: List[str] = Field(
        default_factory=lambda: ["python3", "python"],
        description="Interpreter names tried in order",
    )
    git_executable: str = Field(default="git", description="Git command")


class ObservabilityConfig(BaseModel):
    """Observability configuration"""

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper


class StrataConfig(BaseModel):
    """Complete Strata configuration"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    paths: PathsConfig = Field(
        default_factory=PathsConfig, description="Path configuration"
    )
    runtime: RuntimeConfig = Field(
        default_factory=RuntimeConfig, description="Runtime configuration"
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )


# ============================================================================
# Configuration Loader
# ============================================================================

# (variable, section, key); list values are comma separated
ENV_VARIABLES: List[Tuple[str, str, str]] = [
    ("STRATA_HOME", "paths", "home"),
    ("STRATA_STATE_DIR", "paths", "state_dir"),
    ("STRATA_LOG_DIR", "paths", "log_dir"),
    ("STRATA_DOT_DIR", "paths", "dot_dir"),
    ("STRATA_GIT", "runtime", "git_executable"),
    ("STRATA_PYTHON", "runtime", "python_candidates"),
    ("STRATA_LOG_LEVEL", "observability", "log_level"),
]

LIST_KEYS = {"python_candidates"}


class ConfigLoader:
    """Read raw configuration layers as nested dictionaries"""

    @staticmethod
    def load_from_env() -> Dict[str, Any]:
        layer: Dict[str, Any] = {}
        for variable, section, key in ENV_VARIABLES:
            value = os.getenv(variable)
            if not value:
                continue
            if key in LIST_KEYS:
                value = [part.strip() for part in value.split(",") if part.strip()]
            layer.setdefault(section, {})[key] = value
        return layer

    @staticmethod
    def load_from_file(file_path: Path) -> Dict[str, Any]:
        """A missing or unreadable file is an empty layer"""
        if not file_path.exists():
            return {}
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Ignoring config file {file_path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Ignoring config file {file_path}: not a mapping")
            return {}
        return data

    @staticmethod
    def merge_configs(*layers: Dict[str, Any]) -> Dict[str, Any]:
        """Merge layers left to right; nested sections merge key by key"""
        merged: Dict[str, Any] = {}
        for layer in layers:
            for key, value in layer.items():
                current = merged.get(key)
                if isinstance(current, dict) and isinstance(value, dict):
                    merged[key] = ConfigLoader.merge_configs(current, value)
                else:
                    merged[key] = value
        return merged


# ============================================================================
# Global Configuration Instance
# ============================================================================

_config: Optional[StrataConfig] = None


def get_config() -> StrataConfig:
    """Return the process-wide configuration, loading it on first use"""
    global _config

    if _config is None:
        _config = load_config()

    return _config


def load_config(
    config_file: Optional[Path] = None, env_override: bool = True
) -> StrataConfig:
    """
    Build a configuration from every layer.

    Args:
        config_file: Extra YAML file applied after the default locations
        env_override: Apply STRATA_* variables last
    """
    files = [Path.home() / ".strata" / "config.yaml", Path.cwd() / ".strata.yaml"]
    if config_file:
        files.append(Path(config_file))

    layers = []
    for path in files:
        layer = ConfigLoader.load_from_file(path)
        if layer:
            logger.debug(f"Config layer: {path}")
            layers.append(layer)

    if env_override:
        layers.append(ConfigLoader.load_from_env())

    try:
        return StrataConfig(**ConfigLoader.merge_configs(*layers))
    except ValueError as e:
        logger.error(f"Invalid configuration, falling back to defaults: {e}")
        return StrataConfig()


# ============================================================================
# Convenience Functions
# ============================================================================


def get_state_file(filename: str) -> Path:
    """Path of a file in the persistent state directory"""
    return get_config().paths.state_dir / filename


def get_dot_path(project_root: Path) -> Path:
    """Get the hidden cache root of a project"""
    return Path(project_root) / get_config().paths.dot_dir
