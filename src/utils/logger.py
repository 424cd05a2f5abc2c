import logging
import os

from rich.logging import RichHandler

LOG_FILE = os.getenv("CLICKSHOP_LOG_FILE")


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the widest name seen so far, centered."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = initial_width

    def format(self, record):
        width = max(CenteredFormatter.longest_name_length, len(record.name))
        CenteredFormatter.longest_name_length = width
        record.name = record.name.center(width)
        return super().format(record)


def _log_level() -> int:
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Creates and returns a logger printing through RichHandler.
    When CLICKSHOP_LOG_FILE is set, records are also appended to that file,
    since the TUI owns the terminal while it runs.
    """
    name = name or "clickshop"
    logger = logging.getLogger(name)
    level = _log_level()
    logger.setLevel(level)

    if logger.handlers:
        return logger

    console_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    console_handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    if LOG_FILE:
        file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s")
        )
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug(f"Logger for '{name}' initialized.")
    return logger
