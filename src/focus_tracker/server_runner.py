"""Helpers to launch the local API server."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import uvicorn

from .config import CollectorSettings
from .notifications import NotificationSink
from .paths import get_db_path
from .webapp import create_app


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    settings: Optional[CollectorSettings] = None,
    sink: Optional[NotificationSink] = None,
    log_level: str = "info",
) -> None:
    """Start the FastAPI server with the background collector."""
    app = create_app(
        db_path=db_path or get_db_path(),
        settings=settings or CollectorSettings(),
        sink=sink,
    )

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)
