# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Shared fixtures for Strata tests"""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from strata.core import config, process
from strata.core.config import PathsConfig, StrataConfig
from strata.core.context import RunContext
from strata.core.exceptions import SubprocessExecutionError


class FakeProcess:
    """Records run_subprocess calls instead of spawning children"""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.failures: Dict[str, int] = {}
        self.python = "python3"
        self.on_call = None

    def fail_when(self, argument: str, returncode: int = 1):
        """Fail any call that has argument as one of its argv entries"""
        self.failures[argument] = returncode

    def run_subprocess(self, command, args, cwd, root_dir=None, name=""):
        argv = [str(command)] + [str(a) for a in args]
        self.calls.append(
            {
                "command": str(command),
                "args": [str(a) for a in args],
                "cwd": str(cwd),
                "root_dir": str(root_dir) if root_dir else None,
                "name": name,
            }
        )
        if self.on_call:
            self.on_call(argv)
        for argument, returncode in self.failures.items():
            if argument in argv:
                raise SubprocessExecutionError(
                    f"{command} exited with status {returncode}", returncode=returncode
                )

    def find_python(self, candidates: Optional[List[str]] = None) -> str:
        return self.python


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's ~/.strata"""
    home = tmp_path / "home"
    monkeypatch.setenv("STRATA_NO_FILE_LOGS", "true")
    monkeypatch.setattr(
        config,
        "_config",
        StrataConfig(
            paths=PathsConfig(
                home=home, state_dir=home / "state", log_dir=home / "logs"
            )
        ),
    )
    yield


@pytest.fixture
def fake_process(monkeypatch):
    fake = FakeProcess()
    monkeypatch.setattr(process, "run_subprocess", fake.run_subprocess)
    monkeypatch.setattr(process, "find_python", fake.find_python)
    return fake


@pytest.fixture
def project(tmp_path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def dot_path(project) -> Path:
    return project / ".strata"


@pytest.fixture
def context(project, dot_path) -> RunContext:
    return RunContext(absolute_location=project, dot_path=dot_path)
