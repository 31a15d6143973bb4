from __future__ import annotations

import os
from dataclasses import dataclass

from ..config import PROJECT_ROOT


@dataclass(frozen=True)
class StorageConfig:
    db_path: str = os.getenv("DB_PATH", str(PROJECT_ROOT / "data" / "chowsr.db"))

    @property
    def url(self) -> str:
        if self.db_path == ":memory:":
            return "sqlite://"
        return f"sqlite:///{self.db_path}"


DEFAULT_STORAGE_CONFIG = StorageConfig()
