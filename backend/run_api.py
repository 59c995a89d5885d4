"""Local dev entrypoint for the clinicore API."""

from __future__ import annotations

import sys
from pathlib import Path


def _ensure_src_on_path() -> None:
    backend_dir = Path(__file__).resolve().parent
    src_dir = backend_dir / "src"
    if str(src_dir) not in sys.path:
        sys.path.insert(0, str(src_dir))


if __name__ == "__main__":
    _ensure_src_on_path()

    import uvicorn

    from clinicore.settings import AppSettings

    settings = AppSettings.from_env()
    uvicorn.run(
        "clinicore.api:app",
        host="127.0.0.1",
        port=settings.port,
        reload=True,
        log_level=settings.log_level,
    )
