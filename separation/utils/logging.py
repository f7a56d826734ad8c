"""
Logging configuration for the separation metrics pipeline.

Records emitted while an image is being processed are tagged with the image
name and the current pipeline stage, so interleaved output from parallel
workers stays attributable::

    2024-05-01 10:00:00 | DEBUG    | separation.detection.contours | [slide_01.png:extract] 12 contours ...

Usage:
    from separation.utils.logging import get_logger, log_context, setup_logging

    logger = get_logger(__name__)
    setup_logging(level="INFO", log_file="/path/to/data/result/run.log")

    with log_context(image="slide_01.png"):
        with log_context(stage="extract"):
            logger.debug("green: %d contours", len(contours))
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional, Tuple, Union


LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(image_context)s%(message)s"

# (image name, stage) of the work running in the current thread
_context: ContextVar[Tuple[Optional[str], Optional[str]]] = ContextVar(
    "separation_log_context", default=(None, None)
)


@contextmanager
def log_context(image: Optional[str] = None, stage: Optional[str] = None) -> Iterator[None]:
    """
    Tag log records inside the block with an image name and/or stage.

    Unset arguments inherit the enclosing context, so a stage block nested in
    an image block reports both.
    """
    current_image, current_stage = _context.get()
    token = _context.set((
        current_image if image is None else image,
        current_stage if stage is None else stage,
    ))
    try:
        yield
    finally:
        _context.reset(token)


def current_context() -> Tuple[Optional[str], Optional[str]]:
    """(image name, stage) active in this thread, None where unset."""
    return _context.get()


class ImageContextFilter(logging.Filter):
    """Adds ``image_context`` ('[image:stage] ', '[image] ' or '') to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        image, stage = current_context()
        if image and stage:
            record.image_context = f"[{image}:{stage}] "
        elif image or stage:
            record.image_context = f"[{image or stage}] "
        else:
            record.image_context = ""
        return True


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to log levels for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        # Color a copy so the file handler sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname)
        if color:
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module (typically ``get_logger(__name__)``)."""
    return logging.getLogger(name)


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    colored: bool = True,
) -> logging.Logger:
    """
    Configure the root logger for a CLI or batch run.

    Handlers installed by an earlier call are replaced, so calling this twice
    does not duplicate output.

    Args:
        level: Logging level name or number
        log_file: Also append records to this file (parent created if missing)
        console: Log to stdout
        colored: Color level names when stdout is a terminal

    Returns:
        Root logger instance
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in [h for h in root_logger.handlers if getattr(h, "_separation", False)]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers = []
    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        if colored and sys.stdout.isatty():
            console_handler.setFormatter(ColoredFormatter(LOG_FORMAT))
        else:
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='a')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
        handler.addFilter(ImageContextFilter())
        handler._separation = True
        root_logger.addHandler(handler)

    if log_file:
        root_logger.info(f"Logging to file: {log_file}")
    return root_logger


def log_parameters(logger: logging.Logger, params: Mapping[str, Any], title: str = "Parameters") -> None:
    """
    Log run parameters as an aligned block.

    Nested mappings such as the per-channel ``enhance_thresholds`` are
    flattened to ``enhance_thresholds.green: 15``.
    """
    flat = dict(_flatten(params))
    width = max((len(key) for key in flat), default=0)

    logger.info("=" * 50)
    logger.info(title)
    logger.info("=" * 50)
    for key, value in flat.items():
        logger.info(f"  {key:<{width}} : {value}")
    logger.info("=" * 50)


def _flatten(params: Mapping[str, Any], prefix: str = "") -> Iterator[Tuple[str, Any]]:
    for key, value in params.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            yield from _flatten(value, prefix=f"{name}.")
        else:
            yield name, value


def format_duration(duration_seconds: float) -> str:
    """Human readable duration (seconds, minutes or hours)."""
    if duration_seconds >= 3600:
        return f"{duration_seconds/3600:.1f} hours"
    if duration_seconds >= 60:
        return f"{duration_seconds/60:.1f} minutes"
    return f"{duration_seconds:.1f} seconds"


class ProcessingTimer:
    """
    Context manager that logs the start, duration and outcome of a run.

    A failure that carries ``image_name``/``stage`` attributes (as
    ImageProcessingError does) is reported with them.
    """

    def __init__(self, logger: logging.Logger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.start_time = time.time()
        self.logger.info(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.time() - self.start_time
        elapsed = format_duration(self.duration)
        if exc_type is None:
            self.logger.info(f"Completed: {self.operation} in {elapsed}")
            return False

        where = self._failure_location(exc_val)
        self.logger.error(f"Failed: {self.operation} after {elapsed}{where} - {exc_val}")
        return False

    @staticmethod
    def _failure_location(exc: BaseException) -> str:
        image = getattr(exc, "image_name", None)
        stage = getattr(exc, "stage", None)
        if image and stage:
            return f" ({image}, stage '{stage}')"
        return ""
