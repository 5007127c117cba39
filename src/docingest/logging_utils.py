"""Logging configuration for the CLI and the HTTP service.

Modules log through ``logging.getLogger(__name__)``; this module only
decides where records go. On a terminal they are rendered by rich,
otherwise as plain timestamped lines suitable for log collectors.
"""

from __future__ import annotations

import logging
import sys

from rich.console import Console
from rich.logging import RichHandler

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("urllib3", "httpx", "httpcore", "LiteLLM", "litellm", "openai")


def configure_logging(level: str | int = "INFO", *, console: Console | None = None) -> None:
    """Configure the root logger once, replacing any existing handlers.

    Args:
        level:   Root log level name or number.
        console: Rich console to log to. When omitted, rich is used only if
                 stderr is a terminal.
    """
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if console is not None or sys.stderr.isatty():
        handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt=_DATE_FORMAT))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))

    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
