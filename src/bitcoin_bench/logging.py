import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import LOG_PATH, MAX_LOG_SIZE_BYTES, MAX_ROTATED_LOGS

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"

logger = logging.getLogger(__name__)


def resolve_log_file(raw: str | None = None) -> Path | None:
    """Map BENCH_LOG_FILE to a log path.

    "1"/"true"/"yes"/"on" selects the platform state directory, "0"/"false"/
    "off" or unset disables file logging, anything else is taken as a path.
    """
    if raw is None:
        raw = os.getenv("BENCH_LOG_FILE", "")
    value = raw.strip()
    if not value or value.lower() in ("0", "false", "no", "off"):
        return None
    if value.lower() in ("1", "true", "yes", "on"):
        return LOG_PATH
    return Path(value).expanduser()


def configure_logging(level: str = "INFO", log_file: Path | None = None) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        if log_file.is_dir():
            logger.warning("Log path is a directory, skipping file logging: %s", log_file)
        else:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    log_file,
                    maxBytes=MAX_LOG_SIZE_BYTES,
                    backupCount=MAX_ROTATED_LOGS,
                    encoding="utf-8",
                )
            )

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers, force=True)
    if log_file is not None:
        logger.debug("Writing logs to %s", log_file)
