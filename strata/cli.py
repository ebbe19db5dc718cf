# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Strata CLI - Command Line Interface for the Strata filter pipeline"""

import signal
import sys
from pathlib import Path

import click

from strata.core.config import get_config, get_dot_path
from strata.core.context import InterruptToken, RunContext
from strata.core.exceptions import ErrorHandler, StrataError
from strata.core.logger import setup_logging
from strata.core.pipeline import Pipeline
from strata.core.project import load_project
from strata.core.safe_mode import SafeModeStore


def _load(path: str):
    project = load_project(path)
    return project, Pipeline.from_config(project)


def _fail(error: StrataError):
    ErrorHandler.report(error)
    sys.exit(1)


@click.group()
@click.version_option(version="1.0.0")
@click.option("--debug", is_flag=True, help="Verbose console output")
def cli(debug: bool):
    """Strata - run filter pipelines over a project tree.

    Core commands:
        strata install   - Download remote filters and their dependencies
        strata run       - Run the filter pipeline
        strata unlock    - Allow filters from untrusted sources
    """
    config = get_config()
    setup_logging(
        level="DEBUG" if debug else config.observability.log_level,
        log_dir=config.paths.log_dir,
    )


@cli.command()
@click.option("--path", "-p", type=click.Path(exists=True), default=".", help="Project path")
@click.option("--force", "-f", is_flag=True, help="Reinstall filters that are already installed")
def install(path: str, force: bool):
    """Download remote filters and install filter dependencies."""
    try:
        project, pipeline = _load(path)
        pipeline.install(get_dot_path(project.root), force=force)
    except StrataError as e:
        _fail(e)


@cli.command()
@click.argument("filter_id")
@click.option("--path", "-p", type=click.Path(exists=True), default=".", help="Project path")
def uninstall(filter_id: str, path: str):
    """Remove a downloaded remote filter from the cache."""
    try:
        project, pipeline = _load(path)
        if not pipeline.uninstall(filter_id, get_dot_path(project.root)):
            sys.exit(1)
    except StrataError as e:
        _fail(e)


@cli.command()
@click.option("--path", "-p", type=click.Path(exists=True), default=".", help="Project path")
def check(path: str):
    """Check that the tools every filter needs are available."""
    try:
        project, pipeline = _load(path)
        context = RunContext(
            absolute_location=project.root, dot_path=get_dot_path(project.root)
        )
        pipeline.check(context)
        click.echo("[+] All filters are ready")
    except StrataError as e:
        _fail(e)


@cli.command()
@click.option("--path", "-p", type=click.Path(exists=True), default=".", help="Project path")
def run(path: str):
    """Run the filter pipeline.

    Ctrl+C lets the running filter finish and stops before the next one.
    """
    token = InterruptToken()

    def _on_interrupt(signum, frame):
        click.echo("\nInterrupt received, stopping after the current filter...", err=True)
        token.interrupt()

    previous = signal.signal(signal.SIGINT, _on_interrupt)
    try:
        project, pipeline = _load(path)
        context = RunContext(
            absolute_location=project.root,
            dot_path=get_dot_path(project.root),
            unlocked=SafeModeStore().is_unlocked(project.root),
            interrupt=token,
        )
        if pipeline.run(context):
            sys.exit(130)
    except StrataError as e:
        _fail(e)
    finally:
        signal.signal(signal.SIGINT, previous)


@cli.command()
@click.option("--path", "-p", type=click.Path(exists=True), default=".", help="Project path")
def unlock(path: str):
    """Turn safe mode off for this project."""
    SafeModeStore().unlock(Path(path))
    click.echo("[+] Safe mode is off. Filters from any source can run in this project.")


@cli.command()
@click.option("--path", "-p", type=click.Path(exists=True), default=".", help="Project path")
def lock(path: str):
    """Turn safe mode back on for this project."""
    SafeModeStore().lock(Path(path))
    click.echo("[+] Safe mode is on.")


if __name__ == "__main__":
    cli()
