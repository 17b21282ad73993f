import logging
import os

from rich.logging import RichHandler

_LOG_FILE_ENV = "RENTEASY_LOG_FILE"


class CenteredFormatter(logging.Formatter):
    """Pads logger names to the longest one seen so far so messages line up."""

    longest_name_length = 14

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, initial_width
        )

    def format(self, record):
        CenteredFormatter.longest_name_length = max(
            CenteredFormatter.longest_name_length, len(record.name)
        )
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.center(CenteredFormatter.longest_name_length)
        return super().format(record)


def _log_level() -> int:
    return logging.DEBUG if os.getenv("DEBUG") else logging.INFO


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger that prints through rich.

    While the TUI owns the terminal, set RENTEASY_LOG_FILE to send the same
    records to a file as well.
    """
    name = name or "renteasy"
    logger = logging.getLogger(name)
    level = _log_level()
    logger.setLevel(level)

    if not logger.handlers:
        formatter = CenteredFormatter("[%(name)s]  %(message)s")

        console_handler = RichHandler(
            show_time=True,
            show_level=True,
            show_path=False,
            rich_tracebacks=True,
            log_time_format="[%X]",
        )
        console_handler.setFormatter(formatter)
        console_handler.setLevel(level)
        logger.addHandler(console_handler)

        log_file = os.getenv(_LOG_FILE_ENV)
        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setFormatter(
                logging.Formatter("%(asctime)s %(levelname)-7s [%(name)s] %(message)s")
            )
            file_handler.setLevel(level)
            logger.addHandler(file_handler)

        logger.propagate = False
        logger.debug(f"Logger for '{name}' initialized.")

    return logger
