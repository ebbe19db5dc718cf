# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Strata Filters Package

Definitions and runners for every filter type. Use
filter_installer_from_object() to parse a declaration of any type.
"""

from .base import Filter, FilterDefinition, FilterRunner, filter_from_object
from .exe import ExeFilter, ExeFilterDefinition
from .python import PythonFilter, PythonFilterDefinition
from .registry import FilterRegistry, filter_installer_from_object, get_registry
from .remote import RemoteFilter, RemoteFilterDefinition

__all__ = [
    "Filter",
    "FilterDefinition",
    "FilterRunner",
    "filter_from_object",
    "ExeFilter",
    "ExeFilterDefinition",
    "PythonFilter",
    "PythonFilterDefinition",
    "RemoteFilter",
    "RemoteFilterDefinition",
    "FilterRegistry",
    "filter_installer_from_object",
    "get_registry",
]
