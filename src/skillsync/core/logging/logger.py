"""Structured logger used across skillsync.

Call sites log a short message plus an optional ``data`` mapping::

    logger.info("Cloned repository", data={"url": url, "depth": 1})

The data is rendered as ``key=value`` pairs after the message so the output
stays greppable whether it ends up in a terminal or a file.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Mapping

ROOT_LOGGER_NAME = "skillsync"


def _format_data(data: Mapping[str, Any] | None) -> str:
    if not data:
        return ""
    return " ".join(f"{key}={value!r}" for key, value in data.items())


class Logger:
    """Thin wrapper over :class:`logging.Logger` that accepts ``data=``."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._logger = logging.getLogger(name)

    def _log(
        self,
        level: int,
        message: str,
        data: Mapping[str, Any] | None,
        **kwargs: Any,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        rendered = _format_data(data)
        if rendered:
            message = f"{message} {rendered}"
        self._logger.log(level, message, extra={"data": dict(data or {})}, **kwargs)

    def debug(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, data, **kwargs)

    def info(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._log(logging.INFO, message, data, **kwargs)

    def warning(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, data, **kwargs)

    def error(self, message: str, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, data, **kwargs)


def get_logger(name: str) -> Logger:
    return Logger(name)


def configure_logging(*, verbose: bool = False, quiet: bool = False) -> None:
    """Route skillsync log records to stderr through Rich."""
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if isinstance(handler, RichHandler):
            root.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=verbose,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
