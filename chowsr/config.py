from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Load .env from project root
load_dotenv(PROJECT_ROOT / ".env")


def env_flag(name: str, default: bool = True) -> bool:
    """Read a boolean toggle; only the literal ``true`` (any case) enables it."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() == "true"


def env_list(name: str) -> tuple[str, ...]:
    """Read a comma-separated list, dropping blank entries."""
    return tuple(part.strip() for part in os.getenv(name, "").split(",") if part.strip())


@dataclass(frozen=True)
class AppConfig:
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8787"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    client_dist: Path = Path(os.getenv("CLIENT_DIST", str(PROJECT_ROOT / "dist")))
    restaurant_timeout: float = float(os.getenv("RESTAURANT_TIMEOUT_SECONDS", "15"))
    rate_limit_window: float = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60)))
    rate_limit_max: int = int(os.getenv("RATE_LIMIT_MAX", "30"))


DEFAULT_APP_CONFIG = AppConfig()
