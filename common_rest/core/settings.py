from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env(name: str, default: str) -> str:
    return (os.getenv(name) or default).strip()


@dataclass(frozen=True)
class Settings:
    """Process settings, read once at startup from ``COMMON_REST_*`` variables."""

    config_path: Path = PROJECT_ROOT / "config" / "resources.yaml"
    storage: str = "file"
    data_dir: Path = PROJECT_ROOT / "data"
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "common_rest"
    api_prefix: str = "/api"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    log_file: Optional[Path] = None
    host: str = "0.0.0.0"
    port: int = 8001

    @classmethod
    def from_env(cls) -> "Settings":
        origins_raw = _env("COMMON_REST_CORS_ORIGINS", "")
        origins = [o.strip() for o in origins_raw.split(",") if o.strip()] if origins_raw else ["*"]
        log_file = _env("COMMON_REST_LOG_FILE", "")
        prefix = _env("COMMON_REST_API_PREFIX", "/api").rstrip("/")
        return cls(
            config_path=Path(_env("COMMON_REST_CONFIG", str(PROJECT_ROOT / "config" / "resources.yaml"))),
            storage=_env("COMMON_REST_STORAGE", "file").lower(),
            data_dir=Path(_env("COMMON_REST_DATA_DIR", str(PROJECT_ROOT / "data"))),
            mongo_url=_env("COMMON_REST_MONGO_URL", "mongodb://localhost:27017"),
            mongo_db=_env("COMMON_REST_MONGO_DB", "common_rest"),
            api_prefix=prefix if not prefix or prefix.startswith("/") else f"/{prefix}",
            cors_origins=origins,
            log_level=_env("COMMON_REST_LOG_LEVEL", "INFO").upper(),
            log_file=Path(log_file) if log_file else None,
            host=_env("COMMON_REST_HOST", "0.0.0.0"),
            port=int(_env("COMMON_REST_PORT", "8001")),
        )
