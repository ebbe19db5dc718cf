# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Strata Core - Init file

Exports the pipeline engine and the pieces callers wire into it.
"""

from .context import InterruptToken, RunContext
from .pipeline import Pipeline, install_filters, parse_definitions
from .project import ProjectConfig, load_project
from .safe_mode import SafeModeStore

__all__ = [
    "InterruptToken",
    "RunContext",
    "Pipeline",
    "parse_definitions",
    "install_filters",
    "ProjectConfig",
    "load_project",
    "SafeModeStore",
]
