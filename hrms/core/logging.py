import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from hrms.core.config import settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Client libraries used by the store backends log every round-trip at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")


def _portal_handler(root_logger: logging.Logger, log_path: Path) -> Optional[RotatingFileHandler]:
    for handler in root_logger.handlers:
        if isinstance(handler, RotatingFileHandler) and Path(handler.baseFilename) == log_path:
            return handler
    return None


def configure_logging(level: Optional[str] = None) -> Path:
    """Attach console and rotating file output for the portal.

    Safe to call more than once: handlers are only added when the portal's own
    log file is not already attached, so handlers installed by a host (uvicorn,
    pytest) are left in place. Returns the log file path.
    """
    log_path = (Path(settings.data_dir) / settings.log_file).resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(level or settings.log_level)
    if _portal_handler(root_logger, log_path) is not None:
        return log_path

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    file_handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3)
    file_handler.setFormatter(formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return log_path
