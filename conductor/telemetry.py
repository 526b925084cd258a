"""Logging set-up: human-readable on a terminal, JSON lines otherwise."""

from __future__ import annotations

import datetime as _dt
import json
import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import IO

LOG_FILTER_ENV = "CONDUCTOR_LOG"
_DEFAULT_LEVEL = logging.INFO
_MARKER = "_conductor_telemetry"

_LEVELS = {
    "trace": 5,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}

_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Formats each record as one JSON object with extra fields flattened in."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc).isoformat(),
            "level": record.levelname,
            "target": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


@dataclass(frozen=True)
class _Directive:
    target: str | None
    level: int


def _parse_directive(text: str) -> _Directive:
    target, sep, level_name = text.rpartition("=")
    if sep and not target:
        raise ValueError(f"invalid filter directive: {text!r}")
    level = _LEVELS.get(level_name.strip().lower())
    if level is None:
        raise ValueError(f"invalid level in filter directive: {text!r}")
    return _Directive(target.strip() or None, level)


def _directives_from_env(environ: Mapping[str, str]) -> list[_Directive]:
    spec = environ.get(LOG_FILTER_ENV, "")
    directives = []
    for part in (p.strip() for p in spec.split(",")):
        if not part:
            continue
        try:
            directives.append(_parse_directive(part))
        except ValueError as exc:
            print(
                "encountered invalid filter directives when setting up env filter for "
                f"telemetry; continuing with default directive. Error while parsing: {exc}",
                file=sys.stderr,
            )
    return directives


def init(stream: IO[str] | None = None, environ: Mapping[str, str] | None = None) -> logging.Handler:
    """Install the conductor's log handler on the root logger and return it.

    Raises RuntimeError if telemetry has already been initialised.
    """
    stream = sys.stdout if stream is None else stream
    environ = os.environ if environ is None else environ
    root = logging.getLogger()
    if any(getattr(h, _MARKER, False) for h in root.handlers):
        raise RuntimeError("telemetry has already been initialised")

    directives = _directives_from_env(environ)
    handler = logging.StreamHandler(stream)
    isatty = getattr(stream, "isatty", None)
    if callable(isatty) and isatty():
        print("service is attached to tty; using human readable formatting", file=sys.stderr)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        print("service is not attached to tty; using json formatting", file=sys.stderr)
        handler.setFormatter(JsonFormatter())
    setattr(handler, _MARKER, True)

    root.setLevel(_DEFAULT_LEVEL)
    for directive in directives:
        if directive.target is None:
            root.setLevel(directive.level)
        else:
            logging.getLogger(directive.target).setLevel(directive.level)
    root.addHandler(handler)
    return handler