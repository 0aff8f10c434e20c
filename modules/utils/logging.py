"""Logging helpers."""

from __future__ import annotations

import logging
from pathlib import Path

from config.settings import AppConfig


def setup_logging(config: AppConfig) -> logging.Logger:
    """Log INFO to a file under ``config.log_dir`` and warnings to stderr."""
    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.WARNING)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(log_dir / "gurl.log", encoding="utf-8", delay=True),
            stream_handler,
        ],
    )
    # urllib3 connection chatter stays out of the application log.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger("gurl")
