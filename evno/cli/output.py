# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Terminal rendering for evno commands.

Watcher events and delivery results can be printed as:

- json: one compact JSON document per line (default, for piping)
- pretty: indented JSON
- table: a rich table, with event kinds coloured by outcome
"""

import json
import sys
from enum import Enum
from typing import Any, Optional, Sequence

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table

from evno.ldn.models import EventKind, EventRecord, SendResult
from evno.ldn.watcher import WatcherEvent

EVENT_COLUMNS = ("kind", "resource", "activity_id", "types", "error")

_KIND_STYLES = {
    EventKind.NOTIFICATION.value: "green",
    EventKind.FETCH_ERROR.value: "red",
    EventKind.PARSE_ERROR.value: "yellow",
    EventKind.LIST_ERROR.value: "bold red",
}


class OutputFormat(str, Enum):
    json = "json"
    pretty = "pretty"
    table = "table"


def _plain(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, (list, tuple)):
        return [_plain(item) for item in data]
    return data


def output_json(data: Any, pretty: bool = False) -> None:
    """Print *data* (models included) as a single JSON document."""
    typer.echo(json.dumps(_plain(data), indent=2 if pretty else None, default=str))


def event_rows(records: Sequence[EventRecord]) -> list[dict[str, str]]:
    """Flatten event records into table cells."""
    rows = []
    for record in records:
        row = record.model_dump(mode="json", include=set(EVENT_COLUMNS))
        row["types"] = ", ".join(record.types)
        rows.append({col: "" if row.get(col) is None else str(row[col]) for col in EVENT_COLUMNS})
    return rows


def _print_table(rows: Sequence[dict[str, str]], columns: Sequence[str], title: Optional[str]) -> None:
    table = Table(title=title, show_header=True, header_style="bold")
    for col in columns:
        table.add_column(col, overflow="fold")
    for row in rows:
        style = _KIND_STYLES.get(row.get("kind", ""))
        table.add_row(*[row.get(col, "") for col in columns], style=style)
    Console().print(table)


def output_event(event: WatcherEvent, include_body: bool = False) -> None:
    """Print one watcher event as a JSON line."""
    output_json(event.to_record(include_body=include_body))


def output_events(
    events: Sequence[WatcherEvent],
    format: OutputFormat = OutputFormat.json,
    title: Optional[str] = None,
) -> None:
    """Print the events of one polling tick."""
    records = [e.to_record() for e in events]
    if format != OutputFormat.table:
        output_json(records, pretty=format == OutputFormat.pretty)
    elif not records:
        typer.echo("No new events.", err=True)
    else:
        _print_table(event_rows(records), EVENT_COLUMNS, title)


def output_result(result: SendResult, format: OutputFormat = OutputFormat.json) -> None:
    """Print a delivery result; the table form is a key/value listing."""
    if format != OutputFormat.table:
        output_json(result, pretty=format == OutputFormat.pretty)
        return
    rows = [
        {"key": k, "value": "" if v is None else str(v)}
        for k, v in result.model_dump(mode="json").items()
    ]
    _print_table(rows, ("key", "value"), "delivery")


def output_error(
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
    exit_code: int = 1,
) -> None:
    """Write a JSON error document to stderr and exit with *exit_code*."""
    error_data: dict[str, Any] = {"error": True, "code": code, "message": message}
    if details:
        error_data["details"] = details

    print(json.dumps(error_data), file=sys.stderr)
    raise typer.Exit(exit_code)
