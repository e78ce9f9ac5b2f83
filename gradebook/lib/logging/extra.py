import importlib
import inspect
import json
import logging
import string
import textwrap
import typing as t

import colorlog
import pygments
from pygments.formatters import Terminal256Formatter
from pygments.lexers.data import JsonLexer  # pyright: ignore [reportMissingTypeStubs]
from pygments.style import Style

from gradebook.lib.json import JSONEncoder, JSONValue

from .style import LogStyle

ReservedKeys = {
    "exception",
    "args",
    "asctime",
    "created",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "id",
    "levelname",
    "levelno",
    "lineno",
    "log_color",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}


def resolve_formatter(base: str | type[logging.Formatter]) -> type[logging.Formatter]:
    if isinstance(base, type):
        return base
    module_name, _, attr = base.rpartition(".")
    cls = getattr(importlib.import_module(module_name), attr)
    if not (isinstance(cls, type) and issubclass(cls, logging.Formatter)):
        raise TypeError(f"{base} is not a logging.Formatter")
    return cls


class ExtraFormatter(logging.Formatter):
    """Wrap another formatter and append the record's ``extra`` fields as JSON."""

    def __init__(
        self,
        base: str | type[logging.Formatter],
        format: str | None,
        datefmt: str | None = None,
        indent: bool = True,
        pyg_style: t.Type[Style] = LogStyle,
        style: t.Literal["%", "{", "$"] = "%",
        validate: bool = True,
        log_colors: dict[str, str] | None = None,
        no_color: bool = False,
        *,
        defaults: t.Any = None,
    ):
        base_cls = resolve_formatter(base)
        kwargs: dict[str, t.Any] = {}
        if issubclass(base_cls, colorlog.ColoredFormatter):
            kwargs["no_color"] = no_color
            if log_colors is not None:
                kwargs["log_colors"] = log_colors
        self.base = base_cls(format, datefmt=datefmt, style=style, validate=validate, defaults=defaults, **kwargs)
        self.no_color = no_color
        self.pyg_style = pyg_style
        self.handler: logging.Handler | None = None
        self.indent = indent

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if "\n" in msg:
            formatted = self.base.format(record)
            idx = formatted.find(msg)
            indent = " " * len([c for c in formatted[:idx] if c in string.printable])
            line, *lines = msg.splitlines()
            body = textwrap.indent("\n".join(lines), prefix=indent)
            record.msg = record.message = f"{line}\n{body}"
            record.args = None
        message = self.base.format(record)

        d = record.__dict__
        extra = {k: d[k] for k in set(d.keys()) - ReservedKeys}

        if not extra:
            return message

        encoder = JSONEncoder()

        def encode(obj: t.Any) -> JSONValue:
            try:
                return encoder.default(obj)
            except TypeError:
                # never fail a log call over an unencodable value
                return repr(obj)

        if self.handler is None:
            # we fix up our handler because we won't have access to it during construction
            frame = inspect.currentframe()
            caller = frame.f_back.f_locals.get("self") if frame is not None and frame.f_back is not None else None
            if isinstance(caller, logging.Handler):
                self.handler = caller

        js = json.dumps(extra, sort_keys=True, indent=(4 if self.indent else None), default=encode)
        stream = getattr(self.handler, "stream", None)
        if not self.no_color and stream is not None and stream.isatty():
            hl = pygments.highlight  # pyright: ignore [reportUnknownMemberType, reportUnknownVariableType]
            ps = hl(js, JsonLexer(), Terminal256Formatter(style=self.pyg_style), None)
        else:
            ps = js
        return message + " " + ps.strip()

    def __getattr__(self, name: str) -> t.Any:
        return getattr(self.base, name)
