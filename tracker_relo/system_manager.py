"""System level helpers: application directories and logging setup."""
import logging
import logging.handlers
import os
from pathlib import Path

APP_DIR_NAME = 'tracker-relo'
LOG_MAX_BYTES = 5_000_000
LOG_BACKUP_COUNT = 3


def get_app_dir() -> Path:
    """Returns the per-user directory holding config.ini, rules and logs.

    Honours `XDG_CONFIG_HOME` and falls back to `~/.config/tracker-relo`.
    """
    base = os.getenv('XDG_CONFIG_HOME') or str(Path.home() / '.config')
    return Path(base) / APP_DIR_NAME


def setup_logging(log_dir: Path, debug: bool = False) -> Path:
    """Configures the root logger for file-based logging.

    This function sets up a size-rotated log file in `log_dir`. Console
    handlers (like RichHandler) are configured separately by the entry point.

    Args:
        log_dir: Directory for the log files. Created if missing.
        debug: If `True`, sets the logging level to `DEBUG`, otherwise `INFO`.

    Returns:
        The path of the active log file.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = log_dir / 'tracker_relo.log'

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if logger.hasHandlers():
        logger.handlers.clear()

    file_handler = logging.handlers.RotatingFileHandler(
        log_file_path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT, encoding='utf-8'
    )
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    logger.addHandler(file_handler)

    # The HTTP stack is chatty at DEBUG level.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.info("--- Tracker Relo file logging started ---")
    return log_file_path
