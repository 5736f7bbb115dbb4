"""Miscellaneous helpers for logging and naming."""

import logging
import re

LOGGER_NAME = "skatebot"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(header: str = "") -> logging.Logger:
    """Returns the package logger, or a child logger named after `header`."""
    if len(header) == 0:
        return logging.getLogger(LOGGER_NAME)

    return logging.getLogger(f"{LOGGER_NAME}.{header}")


def log(message: str, header: str = "", level: str = "info"):
    """Logs a message under an optional header.

    Args:
        message (str): The message to log.
        header (str, optional): Component name prepended to the message and used as
            the child logger name. Defaults to "".
        level (str, optional): One of "debug", "info", "warning" or "error".
            Defaults to "info".

    Raises:
        ValueError: If `level` is not a known logging level.
    """
    if level not in _LEVELS:
        raise ValueError(f"Unknown log level: {level}")

    prefix = f"[{header}] " if len(header) > 0 else ""
    get_logger(header).log(_LEVELS[level], prefix + message)


def snake2camel(snake_str: str) -> str:
    """Converts a snake_case string to CamelCase."""
    return "".join(word.capitalize() for word in re.split(r"[_\s]+", snake_str) if word)
