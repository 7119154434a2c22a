import logging
import sys

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Send application logs to stderr with timestamps.

    Safe to call more than once; the handler is only installed once.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(h, "_todolist_handler", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    handler._todolist_handler = True
    root.addHandler(handler)
