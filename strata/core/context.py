# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Union


class InterruptToken:
    """Cooperative cancellation flag shared by one pipeline invocation"""

    def __init__(self):
        self._event = threading.Event()

    def interrupt(self):
        self._event.set()

    def is_set(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class RunContext:
    """
    Everything a filter needs from the surrounding engine.

    absolute_location is the directory the running filter lives in; nested
    filters of a remote package get a copy pointing at the download path.
    """

    absolute_location: Path
    dot_path: Path
    unlocked: bool = False
    interrupt: InterruptToken = field(default_factory=InterruptToken)

    def is_interrupted(self) -> bool:
        return self.interrupt.is_set()

    def working_directory(self) -> Path:
        """Project content root exposed to filters as ROOT_DIR"""
        return (Path(self.dot_path) / "tmp").resolve()

    def with_location(self, location: Union[str, Path]) -> "RunContext":
        return replace(self, absolute_location=Path(location))
