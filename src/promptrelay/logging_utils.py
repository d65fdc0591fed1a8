from __future__ import annotations

import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

from .config import ProxyConfig

ERROR_LOG_NAME = "prompt_relay.errors.log"


class JsonlLogger:
    """Append-only JSONL request log with size-based rotation."""

    def __init__(self, path: str, max_bytes: int = 25_000_000):
        self.path = path
        self.max_bytes = max_bytes
        # Avoid mkdir("") when only a filename is provided.
        log_dir = os.path.dirname(path)
        if log_dir:
            try:
                os.makedirs(log_dir, exist_ok=True)
            except OSError:
                logging.getLogger(__name__).warning(
                    "[logging] Cannot create request log directory %s", log_dir
                )

    def _rotate_if_needed(self):
        try:
            if (
                os.path.exists(self.path)
                and os.path.getsize(self.path) > self.max_bytes
            ):
                ts = time.strftime("%Y%m%d-%H%M%S")
                os.rename(self.path, f"{self.path}.{ts}")
        except OSError:
            logging.getLogger(__name__).warning(
                "[logging] Request log rotation failed for %s", self.path
            )

    def log(self, record: Dict[str, Any]):
        self._rotate_if_needed()
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
        except OSError:
            logging.getLogger(__name__).warning(
                "[logging] Could not write request log record to %s", self.path
            )


def configure_logging(cfg: ProxyConfig) -> None:
    """Set the root level and attach a rotating warning/error file handler."""
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    package_logger = logging.getLogger("promptrelay")
    try:
        log_dir = Path(cfg.log_path).expanduser().parent
        log_dir.mkdir(parents=True, exist_ok=True)
        error_log = os.path.abspath(log_dir / ERROR_LOG_NAME)
        for existing in package_logger.handlers:
            if getattr(existing, "baseFilename", None) == error_log:
                return
        handler = RotatingFileHandler(
            error_log,
            maxBytes=cfg.max_log_bytes,
            backupCount=3,
        )
        handler.setLevel(logging.WARNING)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")
        )
        package_logger.addHandler(handler)
    except OSError:
        logging.exception("[logging] Failed to configure error file logging.")
