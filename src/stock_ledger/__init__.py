"""Stock ledger package.

Importing the package configures ``log``, the logger shared by every layer.
Records go to ``.logs/stock_ledger.log`` at the project root and to stderr;
stdout stays reserved for the text reports printed by the CLI.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union


PROJECT_ROOT = Path(__file__).resolve().parents[2]
LOG_DIR = PROJECT_ROOT / ".logs"
LOG_FILE = LOG_DIR / "stock_ledger.log"
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _build_file_handler(formatter: logging.Formatter) -> Optional[logging.Handler]:
    """Return a rotating handler for ``LOG_FILE``, or ``None`` if it cannot be opened."""

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(LOG_FILE, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    except OSError as exc:
        print(f"Warning: ledger log file disabled ({LOG_FILE}): {exc}", file=sys.stderr)
        return None
    handler.setFormatter(formatter)
    return handler


def _configure_logging() -> logging.Logger:
    logger = logging.getLogger(__name__)
    if logger.handlers:
        return logger

    logger.setLevel(logging.INFO)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    file_handler = _build_file_handler(formatter)
    if file_handler is not None:
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    return logger


def set_log_level(level: Union[int, str]) -> None:
    """Apply a level name (``"DEBUG"``) or number to the ledger logger."""

    log.setLevel(level.upper() if isinstance(level, str) else level)


log = _configure_logging()
