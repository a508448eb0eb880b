from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path


def _resolve_log_dir(settings: object) -> Path | None:
    """Resolve the log directory.

    - Unset means no file logging.
    - Relative paths are taken from the current working directory.
    """

    raw = getattr(settings, "SCREENGRAPH_LOG_DIR", None)
    if raw is None or str(raw).strip() == "":
        return None
    p = raw if isinstance(raw, Path) else Path(str(raw))
    return p if p.is_absolute() else Path.cwd() / p


def setup_logging(settings: object) -> Path | None:
    """Configure Python logging for a navigation session.

    Returns the resolved log file path, or None when logging to console only.

    Rotation:
      - Daily rotation at midnight.
      - Keep the last `SCREENGRAPH_LOG_BACKUP_COUNT` rotated files.

    Notes:
      - Route replay logs each hop at DEBUG; set the level accordingly when
        diagnosing a flaky navigation.
      - This function is safe to call multiple times (it resets handlers).
    """

    level_name = str(getattr(settings, "SCREENGRAPH_LOG_LEVEL", "INFO") or "INFO").upper().strip()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(fmt))

    # Reset root handlers so we don't duplicate logs on repeated calls.
    root = logging.getLogger()
    root.handlers = []
    root.setLevel(level)
    root.addHandler(console_handler)

    log_file: Path | None = None
    log_dir = _resolve_log_dir(settings)
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / "screengraph.log"
        file_handler = TimedRotatingFileHandler(
            filename=str(log_file),
            when="midnight",
            interval=1,
            backupCount=max(0, int(getattr(settings, "SCREENGRAPH_LOG_BACKUP_COUNT", 7) or 0)),
            encoding="utf-8",
            utc=False,
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(file_handler)

    logging.getLogger("screengraph").info(
        "screengraph logging enabled (file=%s, level=%s)",
        os.fspath(log_file) if log_file else "-",
        level_name,
    )

    return log_file
