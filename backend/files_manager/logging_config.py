"""Process-wide logging setup."""
import logging
import sys

from files_manager.config import settings


def setup_logging(level: str | None = None) -> None:
    """Install a single stdout handler on the root logger."""
    root_logger = logging.getLogger()
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    root_logger.setLevel(log_level)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Re-running setup (reload, tests) must not stack handlers
    for handler in list(root_logger.handlers):
        if getattr(handler, "_files_manager", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    console_handler._files_manager = True
    root_logger.addHandler(console_handler)

    root_logger.info("Logging initialised at level %s", logging.getLevelName(log_level))
