"""
Logging setup for the worker, CLI and admin API processes.

Everything logs through module loggers (``logging.getLogger(__name__)``);
this module only decides where those records end up.
"""
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler


console = Console(stderr=True)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"

LOG_DIR = Path(__file__).parent.parent / "logs"

# HTTP clients and the ORM log every request/statement at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access", "sqlalchemy.engine", "feedparser")

_HANDLER_MARK = "_feed_pipeline_handler"


def _mark(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_MARK, True)
    return handler


def build_handlers(
    level: int = logging.INFO,
    *,
    use_rich: bool = True,
    log_file: Optional[str] = None,
) -> List[logging.Handler]:
    """Console handler (rich or plain stdout) plus an optional file under ``logs/``."""
    if use_rich:
        console_handler: logging.Handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT_SIMPLE))
    else:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler.setLevel(level)
    handlers = [_mark(console_handler)]

    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(LOG_DIR / log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        handlers.append(_mark(file_handler))
    return handlers


def setup_logger(
    name: str,
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Give one named logger its own handlers (used for standalone tools).

    Calling it again for the same name only updates the level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if any(getattr(handler, _HANDLER_MARK, False) for handler in logger.handlers):
        return logger
    for handler in build_handlers(level, use_rich=use_rich, log_file=log_file):
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def configure_root_logging(level: int = logging.INFO, *, use_rich: bool = True, log_file: Optional[str] = None) -> None:
    """Route every package logger (``orchestrator``, ``pipeline`` ...) through one handler set."""
    root = logging.getLogger()
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    if any(getattr(handler, _HANDLER_MARK, False) for handler in root.handlers):
        return
    for handler in build_handlers(level, use_rich=use_rich, log_file=log_file):
        root.addHandler(handler)
