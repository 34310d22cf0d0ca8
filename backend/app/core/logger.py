import logging
from pathlib import Path

from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
AUDIT_LOGGER = "giftcircle.audit"


def _attach_file_handler(target: logging.Logger, path: str, formatter: logging.Formatter) -> None:
    log_path = Path(path).resolve()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    for handler in target.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path):
            return
    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setFormatter(formatter)
    target.addHandler(handler)


def configure_logging() -> logging.Logger:
    """Configure root handlers once and return the application logger.

    Safe to call repeatedly: existing stream and file handlers are reused.
    """
    level = getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    root = logging.getLogger()
    if not root.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        root.addHandler(stream)
    if settings.log_file:
        _attach_file_handler(root, settings.log_file, formatter)
    root.setLevel(level)

    # Audit records are always kept at INFO, whatever the app level is.
    audit = logging.getLogger(AUDIT_LOGGER)
    audit.setLevel(logging.INFO)
    if settings.audit_log_file:
        _attach_file_handler(audit, settings.audit_log_file, formatter)

    if not settings.db_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger("giftcircle")
    logger.setLevel(level)
    return logger
