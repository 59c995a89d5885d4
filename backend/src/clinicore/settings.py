"""Application settings resolved from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_SECRET_KEY = "dev-secret-key-change-in-production"


def _base_path() -> Path:
    """Repository root (cwd, or its parent when run from backend/)."""
    cwd = Path.cwd()
    if cwd.name == "backend":
        return cwd.parent
    return cwd


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


@dataclass
class AppSettings:
    """Runtime configuration for the API."""

    metadata_path: Path
    base_path: Path
    secret_key: str = DEFAULT_SECRET_KEY
    auth_required: bool = True
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "info"
    port: int = 8000
    database_url: str | None = None

    @classmethod
    def from_env(cls) -> AppSettings:
        """Create settings from CLINICORE_* environment variables.

        The database URL is left to DatabaseConfig.from_env unless set
        explicitly on the instance.
        """
        base_path = _base_path()
        metadata_path = os.environ.get("CLINICORE_METADATA_PATH")
        origins = os.environ.get("CLINICORE_CORS_ORIGINS")

        return cls(
            metadata_path=Path(metadata_path) if metadata_path else base_path / "metadata",
            base_path=base_path,
            secret_key=os.environ.get("CLINICORE_SECRET_KEY", DEFAULT_SECRET_KEY),
            auth_required=not _truthy(os.environ.get("CLINICORE_DISABLE_AUTH")),
            cors_origins=(
                [o.strip() for o in origins.split(",") if o.strip()]
                if origins
                else ["http://localhost:5173"]
            ),
            log_level=os.environ.get("CLINICORE_LOG_LEVEL", "info"),
            port=int(os.environ.get("CLINICORE_PORT", "8000")),
        )
