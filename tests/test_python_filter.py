# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Tests for running Python filters"""

import pytest

from strata.core.context import InterruptToken, RunContext
from strata.core import process
from strata.core.exceptions import SubprocessExecutionError, ToolNotFoundError
from strata.core.filters import PythonFilterDefinition
from strata.core.filters.python import settings_arguments
from strata.core.filters.venv import resolve_venv_path, venv_python


def make_runner(config=None, **definition):
    definition.setdefault("id", "bake")
    definition.setdefault("script", "main.py")
    return PythonFilterDefinition(**definition).create_filter_runner(
        config or {"filter": definition["id"]}
    )


class TestArguments:
    """Argument vector passed to the interpreter"""

    def test_script_only(self, fake_process, context, project):
        make_runner().run(context)

        call = fake_process.calls[0]
        assert call["command"] == "python3"
        assert call["args"] == ["-u", str(project / "main.py")]

    def test_settings_are_compact_json(self, fake_process, context, project):
        make_runner({"filter": "bake", "settings": {"x": 1}}).run(context)

        assert fake_process.calls[0]["args"] == [
            "-u",
            str(project / "main.py"),
            '{"x":1}',
        ]

    def test_settings_then_arguments(self, fake_process, context, project):
        make_runner(
            {"filter": "bake", "settings": {"a": [1, 2]}, "arguments": ["--fast", "x"]}
        ).run(context)

        assert fake_process.calls[0]["args"] == [
            "-u",
            str(project / "main.py"),
            '{"a":[1,2]}',
            "--fast",
            "x",
        ]

    def test_empty_settings_are_omitted(self):
        assert settings_arguments({}) == []
        assert settings_arguments({"k": "v"}) == ['{"k":"v"}']


class TestEnvironment:
    def test_cwd_and_root_dir(self, fake_process, context, project, dot_path):
        make_runner().run(context)

        call = fake_process.calls[0]
        assert call["cwd"] == str(project)
        assert call["root_dir"] == str((dot_path / "tmp").resolve())
        assert call["name"] == "bake"

    def test_uses_venv_interpreter_when_requirements_exist(
        self, fake_process, context, project, dot_path
    ):
        (project / "requirements.txt").write_text("requests\n")
        make_runner(venv_slot=2).run(context)

        expected = venv_python(resolve_venv_path(dot_path, 2))
        assert fake_process.calls[0]["command"] == str(expected)

    def test_requirements_next_to_nested_script(self, fake_process, context, project, dot_path):
        (project / "filters").mkdir()
        (project / "filters" / "requirements.txt").write_text("numpy\n")
        make_runner(script="filters/bake.py").run(context)

        call = fake_process.calls[0]
        assert call["command"] == str(venv_python(resolve_venv_path(dot_path, 0)))
        assert call["args"][1] == str(project / "filters" / "bake.py")

    def test_requirements_directory_does_not_count(self, fake_process, context, project):
        (project / "requirements.txt").mkdir()
        make_runner().run(context)

        assert fake_process.calls[0]["command"] == "python3"


class TestRunOutcome:
    def test_returns_false_without_interruption(self, fake_process, context):
        assert make_runner().run(context) is False

    def test_returns_true_after_interruption(self, fake_process, project, dot_path):
        token = InterruptToken()
        context = RunContext(absolute_location=project, dot_path=dot_path, interrupt=token)
        fake_process.on_call = lambda argv: token.interrupt()

        assert make_runner().run(context) is True
        assert len(fake_process.calls) == 1

    def test_non_zero_exit(self, fake_process, context):
        fake_process.fail_when("-u", returncode=3)

        with pytest.raises(SubprocessExecutionError) as exc:
            make_runner().run(context)

        assert exc.value.message == "Failed to run Python script."
        assert exc.value.returncode == 3
        assert exc.value.filter_id == "bake"
        assert isinstance(exc.value.cause, SubprocessExecutionError)

    def test_missing_interpreter_propagates(self, monkeypatch, context):
        monkeypatch.setattr(process.shutil, "which", lambda name: None)

        with pytest.raises(ToolNotFoundError):
            make_runner().run(context)
