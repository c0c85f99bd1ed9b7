import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from .config import Config


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """
    Console + rotating file logging for the API process and its
    background enrichment threads.
    """
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    log_dir = Path(Config.logging.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    # ---- Console ----
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    # ---- File (rotating) ----
    file_handler = RotatingFileHandler(
        log_dir / (log_file or Config.logging.log_file),
        maxBytes=20 * 1024 * 1024,  # 20MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)

    logging.basicConfig(
        level=(level or Config.logging.level).upper(),
        handlers=[console_handler, file_handler],
    )
