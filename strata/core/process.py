# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Subprocess helpers for filters.

Child output is streamed line by line through the "strata.filter" logger
while the child runs. No timeout is applied.
"""

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import get_config
from .exceptions import ExternalToolError, SubprocessExecutionError, ToolNotFoundError

logger = logging.getLogger("strata.process")
filter_logger = logging.getLogger("strata.filter")

PathLike = Union[str, Path]


def run_subprocess(
    command: PathLike,
    args: Sequence[str],
    cwd: PathLike,
    root_dir: Optional[PathLike] = None,
    name: str = "",
) -> None:
    """
    Run a command and wait for it to exit.

    Args:
        command: Executable name or path
        args: Argument vector (without the command itself)
        cwd: Working directory of the child
        root_dir: Exposed to the child as ROOT_DIR when given
        name: Prefix for forwarded output lines

    Raises:
        SubprocessExecutionError: If the child cannot start or exits non-zero
    """
    argv = [str(command)] + [str(a) for a in args]
    env = os.environ.copy()
    if root_dir:
        env["ROOT_DIR"] = str(root_dir)

    logger.debug(f"Exec: {argv} (cwd={cwd})")
    try:
        proc = subprocess.Popen(
            argv,
            cwd=str(cwd),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise SubprocessExecutionError(
            f"Failed to start {command}", cause=e, details={"cwd": str(cwd)}
        ) from e

    prefix = f"[{name}] " if name else ""
    if proc.stdout is not None:
        for line in proc.stdout:
            filter_logger.info(f"{prefix}{line.rstrip()}")
    returncode = proc.wait()

    if returncode != 0:
        raise SubprocessExecutionError(
            f"{command} exited with status {returncode}",
            returncode=returncode,
            details={"args": list(args), "cwd": str(cwd)},
        )


def find_python(candidates: Optional[List[str]] = None) -> str:
    """
    Find a system Python interpreter, trying the versioned name first.

    Raises:
        ToolNotFoundError: If none of the candidates is on PATH
    """
    if candidates is None:
        candidates = get_config().runtime.python_candidates
    for candidate in candidates:
        if shutil.which(candidate):
            return candidate
    raise ToolNotFoundError(
        "Python not found",
        tool="python",
        hint="Download and install it from https://www.python.org/downloads/",
    )


def probe_version(command: str) -> str:
    """
    Run `<command> --version` and return its trimmed output.

    Raises:
        ExternalToolError: If the probe cannot run or fails
    """
    try:
        result = subprocess.run(
            [command, "--version"], capture_output=True, text=True, check=True
        )
    except (OSError, subprocess.CalledProcessError) as e:
        raise ExternalToolError(
            f"{command} version check failed", tool=command, cause=e
        ) from e
    return (result.stdout.strip() or result.stderr.strip())
