# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Tests for virtual environment slots and dependency installation"""

import pytest

from strata.core.exceptions import DependencyInstallError
from strata.core.filters import PythonFilterDefinition, RemoteFilterDefinition
from strata.core.filters.venv import (
    install_venv,
    needs_venv,
    resolve_venv_path,
    venv_python,
)


class TestSlots:
    def test_slot_path(self, dot_path):
        assert resolve_venv_path(dot_path, 0) == (dot_path / "cache" / "venvs" / "0").absolute()
        assert resolve_venv_path(dot_path, 7).name == "7"

    def test_needs_venv(self, tmp_path):
        assert not needs_venv(tmp_path)
        (tmp_path / "requirements.txt").write_text("")
        assert needs_venv(tmp_path)


class TestInstallVenv:
    def test_creates_venv_then_installs_requirements(self, fake_process, tmp_path):
        venv_path = tmp_path / "venvs" / "0"
        install_venv(tmp_path, venv_path, "bake")

        create, upgrade, install = fake_process.calls
        assert create["command"] == "python3"
        assert create["args"] == ["-m", "venv", str(venv_path)]
        assert upgrade["args"] == ["-m", "pip", "install", "--upgrade", "pip"]
        assert install["command"] == str(venv_python(venv_path))
        assert install["args"] == ["-m", "pip", "install", "-r", "requirements.txt"]
        assert install["cwd"] == str(tmp_path)
        assert install["root_dir"] == str(tmp_path)

    def test_pip_upgrade_failure_is_not_fatal(self, fake_process, tmp_path):
        fake_process.fail_when("--upgrade")
        install_venv(tmp_path, tmp_path / "venv", "bake")
        assert len(fake_process.calls) == 3

    def test_venv_creation_failure(self, fake_process, tmp_path):
        fake_process.fail_when("venv")
        with pytest.raises(DependencyInstallError, match="Failed to create venv"):
            install_venv(tmp_path, tmp_path / "env", "bake")

    def test_requirements_failure(self, fake_process, tmp_path):
        fake_process.fail_when("-r")
        with pytest.raises(DependencyInstallError) as exc:
            install_venv(tmp_path, tmp_path / "env", "bake")
        assert exc.value.filter_id == "bake"
        assert "requirements.txt" in exc.value.hint


class TestPythonInstallDependencies:
    def test_requirements_trigger_slot_zero(self, fake_process, project, dot_path):
        (project / "requirements.txt").write_text("requests\n")
        PythonFilterDefinition(id="bake", script="main.py").install_dependencies(
            None, dot_path, project
        )

        create = fake_process.calls[0]
        assert create["args"] == ["-m", "venv", str(resolve_venv_path(dot_path, 0))]
        assert create["cwd"] == str(project.absolute())

    def test_no_requirements_no_processes(self, fake_process, project, dot_path):
        PythonFilterDefinition(id="bake", script="main.py").install_dependencies(
            None, dot_path, project
        )
        assert fake_process.calls == []

    def test_parent_location_and_slot(self, fake_process, project, dot_path):
        parent = RemoteFilterDefinition(id="cleaner", version="1.0.0", venv_slot=4)
        filter_dir = parent.get_download_path(dot_path)
        filter_dir.mkdir(parents=True)
        (filter_dir / "requirements.txt").write_text("")

        nested = PythonFilterDefinition(id="cleaner:subfilter0", script="./main.py", venv_slot=1)
        nested.install_dependencies(parent, dot_path, project)

        create = fake_process.calls[0]
        assert create["args"][-1] == str(resolve_venv_path(dot_path, 4))
        assert create["cwd"] == str(filter_dir.absolute())

    def test_dot_dir_outside_the_project(self, fake_process, project, tmp_path):
        dot_path = tmp_path / "elsewhere" / ".strata"
        (project / "requirements.txt").write_text("")

        PythonFilterDefinition(id="bake", script="main.py").install_dependencies(
            None, dot_path, project
        )

        create = fake_process.calls[0]
        assert create["args"] == ["-m", "venv", str(resolve_venv_path(dot_path, 0))]
        assert create["cwd"] == str(project.absolute())
