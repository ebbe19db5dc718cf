# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Isolated Python environments for filters.

A filter gets a virtual environment only when its own directory holds a
requirements.txt. Environments live in numbered slots under
<dot>/cache/venvs/<slot>; filters declaring the same slot share one
environment and its packages.
"""

import logging
import sys
from pathlib import Path
from typing import Union

from .. import process
from ..exceptions import DependencyInstallError, SubprocessExecutionError

logger = logging.getLogger("strata.venv")

REQUIREMENTS_FILE = "requirements.txt"

if sys.platform == "win32":
    VENV_SCRIPTS_PATH = "Scripts"
    EXE_SUFFIX = ".exe"
else:
    VENV_SCRIPTS_PATH = "bin"
    EXE_SUFFIX = ""


def needs_venv(filter_dir: Union[str, Path]) -> bool:
    """True iff filter_dir directly contains a requirements.txt regular file"""
    return (Path(filter_dir) / REQUIREMENTS_FILE).is_file()


def resolve_venv_path(dot_path: Union[str, Path], slot: int) -> Path:
    return (Path(dot_path) / "cache" / "venvs" / str(slot)).absolute()


def venv_python(venv_path: Union[str, Path]) -> Path:
    return Path(venv_path) / VENV_SCRIPTS_PATH / f"python{EXE_SUFFIX}"


def upgrade_pip(venv_path: Path, filter_dir: Path, filter_id: str) -> bool:
    """Upgrade pip inside the environment. Returns False on failure."""
    try:
        process.run_subprocess(
            venv_python(venv_path),
            ["-m", "pip", "install", "--upgrade", "pip"],
            cwd=filter_dir,
            name=filter_id,
        )
    except SubprocessExecutionError as e:
        logger.debug(f"pip upgrade failed: {e}")
        return False
    return True


def install_venv(
    filter_dir: Union[str, Path], venv_path: Union[str, Path], filter_id: str
) -> None:
    """
    Create the environment and install the filter's requirements into it.

    Raises:
        ToolNotFoundError: If no system interpreter is available
        DependencyInstallError: If the environment cannot be created or the
            requirements cannot be installed
    """
    filter_dir = Path(filter_dir)
    venv_path = Path(venv_path)

    logger.info("Creating venv...")
    python = process.find_python()
    try:
        process.run_subprocess(
            python, ["-m", "venv", str(venv_path)], cwd=filter_dir, name=filter_id
        )
    except SubprocessExecutionError as e:
        raise DependencyInstallError(
            f"Failed to create venv for {filter_id}",
            filter_id=filter_id,
            cause=e,
            details={"venv": str(venv_path)},
        ) from e

    if not upgrade_pip(venv_path, filter_dir, filter_id):
        logger.warning("Failed to upgrade pip in venv.")

    logger.info("Installing pip dependencies...")
    try:
        process.run_subprocess(
            venv_python(venv_path),
            ["-m", "pip", "install", "-r", REQUIREMENTS_FILE],
            cwd=filter_dir,
            root_dir=filter_dir,
            name=filter_id,
        )
    except SubprocessExecutionError as e:
        raise DependencyInstallError(
            f"Couldn't run pip to install dependencies of {filter_id}",
            filter_id=filter_id,
            cause=e,
            hint=f"Check {filter_dir / REQUIREMENTS_FILE}",
        ) from e
