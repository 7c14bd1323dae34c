import logging
import re

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from kitconsole.utils.request_id import get_request_id

ROOT_LOGGER = "kitconsole"

console = Console(
    theme=Theme(
        {
            "info": "dim cyan",
            "warning": "magenta",
            "error": "bold red",
            "npm": "bold yellow",
            "plugin": "bold blue",
            "kit": "bold green",
        }
    )
)

# Highlighted in log lines
LOG_KEYWORDS = ["npm", "plugin", "kit", "processing", "completed", "error"]


class CompactFilter(logging.Filter):
    """Drops per-poll noise. Records pass through unchanged."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not isinstance(record.msg, str):
            return True

        # The browser polls roughly once a second while npm runs
        if record.levelno <= logging.DEBUG and record.msg.startswith("status poll"):
            return not record.msg.endswith("processing")
        return True


class CompactFormatter(logging.Formatter):
    """Tags the request ID, shortens home directories and logger names."""

    HOME_PATTERN = re.compile(r"/(?:home|Users)/[^/\s]+/")

    # RichHandler calls formatMessage directly when rendering tracebacks
    def formatMessage(self, record: logging.LogRecord) -> str:
        # Work on a copy, other handlers see the original record
        record = logging.makeLogRecord(record.__dict__)
        record.name = record.name.replace(f"{ROOT_LOGGER}.", "", 1)
        msg = self.HOME_PATTERN.sub("~/", super().formatMessage(record))
        request_id = get_request_id()
        if request_id:
            msg = f"[{request_id[:8]}] {msg}"
        return msg


def setup_global_logger(log_level: str = "INFO") -> logging.Logger:
    """Attach a Rich handler to the ``kitconsole`` logger tree."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # uvicorn --reload imports the app module again
    if root.handlers:
        return root

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_path=False,
        omit_repeated_times=True,
        keywords=LOG_KEYWORDS,
    )
    handler.setFormatter(CompactFormatter("%(message)s", datefmt="[%X]"))
    handler.addFilter(CompactFilter())
    root.addHandler(handler)
    return root
