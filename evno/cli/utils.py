# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared helpers for evno CLI commands."""

import asyncio
import sys
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import typer

from evno.config import AUTH_TOKEN, HTTP_TIMEOUT_SECONDS, WEBID
from evno.ldn.transport import SolidTransport

# Exit codes
EXIT_SUCCESS = 0
EXIT_DELIVERY_FAILURE = 1
EXIT_PARSE_ERROR = 2
EXIT_IO_ERROR = 3
EXIT_TRANSPORT_ERROR = 4

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    return asyncio.run(coro)


def read_input(source: str) -> bytes:
    """Read raw bytes from a file path, or from stdin when *source* is ``-``."""
    try:
        if source == "-":
            return sys.stdin.buffer.read()
        return Path(source).read_bytes()
    except OSError as e:
        typer.echo(f"Error reading input: {e}", err=True)
        raise typer.Exit(EXIT_IO_ERROR) from e


def guess_content_type(source: str) -> Optional[str]:
    """Media type implied by a file extension; ``None`` means JSON-LD."""
    suffix = Path(source).suffix.lower()
    return {
        ".ttl": "text/turtle",
        ".nt": "application/n-triples",
        ".jsonld": "application/ld+json",
        ".json": "application/ld+json",
    }.get(suffix)


def make_transport(
    token: Optional[str] = None,
    webid: Optional[str] = None,
    timeout: Optional[float] = None,
) -> SolidTransport:
    """Build a transport from CLI options, falling back to configuration."""
    return SolidTransport(
        auth_token=token if token is not None else AUTH_TOKEN,
        webid=webid if webid is not None else (WEBID or None),
        timeout=timeout if timeout is not None else HTTP_TIMEOUT_SECONDS,
    )
