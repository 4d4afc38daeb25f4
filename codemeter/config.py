"""Settings for the metrics engine.

Defaults can be overridden with environment variables:
    CODEMETER_DB: Database path (default: <project>/.codemeter/index.db)
    CODEMETER_MAX_SNAPSHOT_RETRIES: Fresh snapshots tried after an inconsistent one
    CODEMETER_HOTSPOT_LIMIT: Default number of hotspots returned
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from codemeter.core.storage import get_default_db_path

DEFAULT_MAX_SNAPSHOT_RETRIES = 3
DEFAULT_HOTSPOT_LIMIT = 20


@dataclass(frozen=True)
class MetricsSettings:
    project_root: Path
    db_path: Path
    max_snapshot_retries: int = DEFAULT_MAX_SNAPSHOT_RETRIES
    hotspot_limit: int = DEFAULT_HOTSPOT_LIMIT

    def __post_init__(self) -> None:
        if self.max_snapshot_retries < 0:
            raise ValueError("max_snapshot_retries must be >= 0")
        if self.hotspot_limit < 1:
            raise ValueError("hotspot_limit must be >= 1")

    @classmethod
    def for_project(cls, project_root: Path) -> MetricsSettings:
        return cls(project_root=project_root, db_path=get_default_db_path(project_root))

    @classmethod
    def from_env(cls, project_root: Path) -> MetricsSettings:
        """Build settings for a project, applying CODEMETER_* environment overrides."""
        db = os.environ.get("CODEMETER_DB")
        retries = os.environ.get("CODEMETER_MAX_SNAPSHOT_RETRIES")
        limit = os.environ.get("CODEMETER_HOTSPOT_LIMIT")
        return cls(
            project_root=project_root,
            db_path=Path(db) if db else get_default_db_path(project_root),
            max_snapshot_retries=int(retries) if retries else DEFAULT_MAX_SNAPSHOT_RETRIES,
            hotspot_limit=int(limit) if limit else DEFAULT_HOTSPOT_LIMIT,
        )
