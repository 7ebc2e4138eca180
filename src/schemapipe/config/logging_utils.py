import logging
import sys
from typing import Optional


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self._max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self._max_level


def parse_level(level: "int | str") -> int:
    """Turn 'debug', 'INFO' or a numeric level into a logging level"""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def configure_split_stream_logging(
    *,
    level: "int | str" = logging.INFO,
    stderr_level: "int | str" = logging.WARNING,
    formatter: Optional[logging.Formatter] = None,
) -> None:
    """Configure root logging:

    - records below stderr_level go to stdout
    - records at stderr_level and above go to stderr

    The CLI passes ``stderr_level=logging.DEBUG`` so stdout stays free for JSON output.
    """
    level = parse_level(level)
    stderr_level = parse_level(stderr_level)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    if formatter is None:
        formatter = logging.Formatter("%(name)s - %(levelname)s - %(message)s")

    if stderr_level < logging.DEBUG:
        stderr_level = logging.DEBUG

    stderr_handler = logging.StreamHandler(stream=sys.stderr)
    stderr_handler.setLevel(stderr_level)
    stderr_handler.setFormatter(formatter)
    root.addHandler(stderr_handler)

    if stderr_level > logging.DEBUG:
        stdout_handler = logging.StreamHandler(stream=sys.stdout)
        stdout_handler.setLevel(logging.DEBUG)
        stdout_handler.addFilter(_MaxLevelFilter(stderr_level - 1))
        stdout_handler.setFormatter(formatter)
        root.addHandler(stdout_handler)
