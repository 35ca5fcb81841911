"""
Publish cache

Remembers the last successful publish so later commands (generate, logs,
describe, call) can default to that module.
"""

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from spacetimectl.exceptions import StateError
from spacetimectl.models.results import PublishOutcome
from spacetimectl.time_convert import (
    from_microseconds_timestamp,
    microseconds_timestamp,
    to_microseconds_timestamp,
)


@dataclass(frozen=True)
class PublishedModule:
    """What was published, where, and when."""

    module_name: str
    project_path: str
    host: str = ""
    database_address: str = ""
    published_at_us: int = 0
    is_optimized: bool = False

    @property
    def published_at(self) -> datetime:
        return from_microseconds_timestamp(self.published_at_us)

    @classmethod
    def from_outcome(cls, outcome: PublishOutcome) -> "PublishedModule":
        published_at_us = (
            to_microseconds_timestamp(outcome.published_at)
            if outcome.published_at is not None
            else microseconds_timestamp()
        )
        return cls(
            module_name=outcome.request.module_name,
            project_path=outcome.request.project_path,
            host=outcome.uploaded_host,
            database_address=outcome.database_address,
            published_at_us=published_at_us,
            is_optimized=outcome.is_optimized,
        )


class PublishCache:
    """YAML file holding the last PublishedModule."""

    def __init__(self, path: Path):
        self.path = Path(path).expanduser()

    def load(self) -> Optional[PublishedModule]:
        """
        Read the cached publish.

        Returns:
            The cached module, or None if nothing was published yet

        Raises:
            StateError: If the file exists but is not a valid cache
        """
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StateError("Failed to read publish cache", context=f"Path: {self.path}, Error: {e}")

        last = data.get("last_publish") if isinstance(data, dict) else None
        if last is None:
            return None
        return self._parse(last)

    def save(self, outcome: PublishOutcome) -> PublishedModule:
        """Store a successful publish; failed publishes raise StateError."""
        if not outcome.is_success:
            raise StateError(
                "Refusing to cache a failed publish",
                context=f"Module: {outcome.request.module_name}",
            )

        module = PublishedModule.from_outcome(outcome)
        self._write({"last_publish": asdict(module)})
        return module

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()

    def _parse(self, data: Any) -> PublishedModule:
        if not isinstance(data, dict):
            raise StateError("Invalid publish cache", context=f"Path: {self.path}")

        known = {f.name for f in fields(PublishedModule)}
        values: Dict[str, Any] = {k: v for k, v in data.items() if k in known}
        try:
            module = PublishedModule(**values)
        except TypeError as e:
            raise StateError("Invalid publish cache", context=f"Path: {self.path}, Error: {e}")

        if not isinstance(module.module_name, str) or not isinstance(module.published_at_us, int):
            raise StateError("Invalid publish cache", context=f"Path: {self.path}")
        return module

    def _write(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w") as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise StateError("Failed to write publish cache", context=f"Path: {self.path}, Error: {e}")
