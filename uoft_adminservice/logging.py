"""
Our own logging wrapper module.
Behaves exactly like the standard library logging module,
but with support for log contexts and custom log levels TRACE and SUCCESS."""

from typing import TYPE_CHECKING, Literal, Iterable, IO
import logging
from contextvars import ContextVar

from .console import console

# exports
from logging import *  # noqa F401 # type: ignore

TRACE = 5
SUCCESS = 25
logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(SUCCESS, "SUCCESS")

# set a new default logger class, which inherits from
# any default logger class which may have already been set
# by some other 3rd-party library
BaseLogger = logging.getLoggerClass()


class AdminServiceLogger(BaseLogger):
    def trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)

    def success(self, msg, *args, **kwargs):
        if self.isEnabledFor(SUCCESS):
            self._log(SUCCESS, msg, args, **kwargs)


logging.setLoggerClass(AdminServiceLogger)

_logging_contexts: ContextVar[tuple[str, ...]] = ContextVar("logging_contexts", default=())


class _ContextFilter(logging.Filter):
    def filter(self, record):
        contexts = _logging_contexts.get()
        # a record passing through several filtered handlers is only prefixed once
        if contexts and not hasattr(record, "contexts"):
            record.contexts = contexts
            msg = record.msg
            for context in reversed(contexts):
                msg = f"{context}: {msg}"
            record.msg = msg
        return True


def basicConfig(**kwargs):  # type: ignore
    """
    Do basic configuration for the logging system.

    Works like `logging.basicConfig`, except that unless `handlers` is given,
    a single `rich.logging.RichHandler` writing to the shared stderr console is installed.
    Source file paths are shown when the level is DEBUG or lower.

    Every handler installed here gets the log context filter, so messages emitted inside
    a `Context` block carry its prefix, whichever logger they were emitted through.
    """
    from rich.logging import RichHandler

    if "format" not in kwargs:
        # let the RichHandler manage time, level, and source.
        # no need to bake them into the message string
        kwargs["format"] = "%(message)s"

    if "handlers" not in kwargs:
        show_path = False
        level = kwargs.get("level", logging.INFO)
        if isinstance(level, str):
            level = logging.getLevelName(level)
        if isinstance(level, int) and level <= logging.DEBUG:
            show_path = True

        kwargs["handlers"] = [RichHandler(console=console(), show_time=False, show_path=show_path)]

    # Logger filters only see records logged directly through that logger, not propagated ones.
    # Handler filters see every record the handler emits, including those from loggers created later.
    _filter = _ContextFilter("ContextFilter")
    for handler in kwargs["handlers"]:
        handler.addFilter(_filter)

    return logging.basicConfig(**kwargs)


class Context:
    "Prefix every log message emitted inside this block with `context_msg`"

    def __init__(self, context_msg: str):
        self.context_msg = context_msg
        self._token = None

    def __enter__(self):
        self._token = _logging_contexts.set(_logging_contexts.get() + (self.context_msg,))
        return self

    def __exit__(self, *args):
        if self._token is not None:
            _logging_contexts.reset(self._token)
            self._token = None


if TYPE_CHECKING:
    from os import PathLike

    def getLogger(name: str) -> "AdminServiceLogger": ...

    def basicConfig(
        *,
        filename: str | PathLike[str] | None = ...,
        filemode: str = ...,
        format: str = ...,
        datefmt: str | None = ...,
        style: Literal["%", "{", "$"] = ...,
        level: int | str | None = ...,
        stream: IO[str] | None = ...,
        handlers: Iterable[logging.Handler] | None = ...,
        force: bool | None = ...,
        encoding: str | None = ...,
        errors: str | None = ...,
    ) -> None: ...
