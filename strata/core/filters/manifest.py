# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Reader for filter.json, the manifest at the root of a downloaded remote
filter:

    {
        "filters": [
            {"runWith": "python", "script": "./main.py"}
        ]
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from ..exceptions import ManifestReadError

MANIFEST_FILE = "filter.json"


def manifest_path(download_path: Union[str, Path]) -> Path:
    return Path(download_path) / MANIFEST_FILE


def read_manifest(download_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """
    Return the nested filter declarations of a downloaded remote filter.

    Raises:
        ManifestReadError: If the manifest is missing, isn't valid JSON, or
            its "filters" list is malformed
    """
    path = manifest_path(download_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ManifestReadError(
            f"Couldn't read {path}", path=str(path), cause=e
        ) from e
    except json.JSONDecodeError as e:
        raise ManifestReadError(
            f"Couldn't load {path}! Does the file contain correct json?",
            path=str(path),
            cause=e,
        ) from e

    filters = data.get("filters") if isinstance(data, dict) else None
    if not isinstance(filters, list):
        raise ManifestReadError(f"Could not parse filters of {path}", path=str(path))

    for i, declaration in enumerate(filters):
        if not isinstance(declaration, dict):
            raise ManifestReadError(
                f"Could not parse filter {i} of {path}",
                path=str(path),
                details={"index": i},
            )
    return filters
