# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""Process entry point for the ``evno`` command.

Configures logging from :mod:`evno.config` and hands control to the
typer application in :mod:`evno.cli.main`.

**Logging**

``EVNO_LOG_FORMAT=json`` (the default) emits one JSON object per line on
stderr; ``text`` uses a plain single-line format for interactive use.
stdout is reserved for command output so that ``evno watch`` can be
piped into ``jq``.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any, Dict, Optional

from evno.config import LOG_FORMAT, LOG_LEVEL


class _JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Fields: ``timestamp``, ``level``, ``logger``, ``message``, ``module``,
    ``funcName`` and, when the record carries one, ``exception``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Install a single stderr handler on the root logger.

    *level* and *fmt* default to ``EVNO_LOG_LEVEL`` and ``EVNO_LOG_FORMAT``.
    """
    level = level or LOG_LEVEL
    fmt = (fmt or LOG_FORMAT).lower()

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    if fmt == "text":
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    else:
        handler.setFormatter(_JSONFormatter())

    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Suppress noisy third-party loggers.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("rdflib").setLevel(logging.WARNING)


def main() -> None:
    from evno.cli.main import app

    configure_logging()
    app()


if __name__ == "__main__":
    main()
