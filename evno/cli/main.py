# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""evno CLI: watch inboxes and deliver notifications.

Commands:
    evno watch <inbox>              Stream new notifications as JSON lines
    evno poll <inbox>               Run a single tick and print its events
    evno init <base> [path]         Create the inbox container
    evno grant <inbox> <agent>      Allow an agent to post to an inbox
    evno send <inbox> <file>        Deliver a notification file
    evno offer <object> <inbox>     Build and deliver an Offer
    evno announce <object> <inbox>  Build and deliver an Announce
"""

from typing import Optional

import typer

from evno import __version__
from evno.cli.output import (
    OutputFormat,
    output_error,
    output_event,
    output_events,
    output_json,
    output_result,
)
from evno.cli.utils import (
    EXIT_DELIVERY_FAILURE,
    EXIT_PARSE_ERROR,
    EXIT_TRANSPORT_ERROR,
    guess_content_type,
    make_transport,
    read_input,
    run_async,
)
from evno.config import CACHE_PATH, DEDUP_STRATEGY, INBOX_PATH, POLL_INTERVAL_SECONDS, WEBID
from evno.ldn.cache import make_dedup_cache
from evno.ldn.exceptions import (
    AgentResolutionError,
    DecodeFailure,
    EvnoError,
    MalformedNotification,
    TransportFailure,
    TransportStartupError,
)
from evno.ldn.models import SendResult
from evno.ldn.notification import Notification
from evno.ldn.sender import Sender
from evno.ldn.watcher import DedupStrategy, InboxWatcher

app = typer.Typer(
    name="evno",
    help="Linked Data Notification inbox tools.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"evno version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Linked Data Notification inbox tools.

    Credentials come from EVNO_AUTH_TOKEN and EVNO_WEBID unless given
    on the command line.  Output is JSON by default.

    Examples:
        evno watch https://pod.example/alice/inbox/
        evno offer https://pod.example/alice/paper https://pod.example/bob/inbox/
    """
    pass


def _strategy(value: str) -> DedupStrategy:
    try:
        return DedupStrategy.parse(value)
    except ValueError:
        raise typer.BadParameter(
            f"unknown strategy {value!r}; expected one of: "
            + ", ".join(s.value for s in DedupStrategy)
        )


def _report(result: SendResult, format: OutputFormat) -> None:
    output_result(result, format)
    if not result.success:
        raise typer.Exit(EXIT_DELIVERY_FAILURE)


# =============================================================================
# Watching
# =============================================================================


@app.command("watch")
def watch_cmd(
    inbox_url: str = typer.Argument(..., help="URL of the inbox container"),
    strategy: str = typer.Option(DEDUP_STRATEGY, "--strategy", "-s", help="Dedup strategy: activity_id or resource_url"),
    cache: str = typer.Option(CACHE_PATH, "--cache", "-c", help="Dedup cache file (empty for in-memory)"),
    interval: float = typer.Option(POLL_INTERVAL_SECONDS, "--interval", "-i", help="Seconds between ticks"),
    max_events: int = typer.Option(0, "--max-events", "-n", help="Stop after this many events (0 = run until interrupted)"),
    include_body: bool = typer.Option(False, "--body", help="Include the JSON-LD body of each notification"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: EVNO_AUTH_TOKEN)"),
    webid: Optional[str] = typer.Option(None, "--webid", help="Session owner WebID (default: EVNO_WEBID)"),
) -> None:
    """Poll an inbox and print each new notification as a JSON line.

    Fetch and parse failures are printed as events of kind
    'fetch-error' and 'parse-error'; polling continues.
    """
    dedup = _strategy(strategy)

    async def _watch() -> None:
        transport = make_transport(token=token, webid=webid)
        watcher = InboxWatcher(transport, cache=make_dedup_cache(cache or None), interval=interval)
        seen = 0
        try:
            await watcher.start(inbox_url, dedup)
            async for event in watcher.events():
                output_event(event, include_body=include_body)
                seen += 1
                if max_events and seen >= max_events:
                    break
        finally:
            await watcher.stop()
            await transport.close()

    try:
        run_async(_watch())
    except TransportStartupError as e:
        output_error("STARTUP_FAILED", str(e), exit_code=EXIT_TRANSPORT_ERROR)
    except KeyboardInterrupt:
        pass


@app.command("poll")
def poll_cmd(
    inbox_url: str = typer.Argument(..., help="URL of the inbox container"),
    strategy: str = typer.Option(DEDUP_STRATEGY, "--strategy", "-s", help="Dedup strategy: activity_id or resource_url"),
    cache: str = typer.Option(CACHE_PATH, "--cache", "-c", help="Dedup cache file (empty for in-memory)"),
    format: OutputFormat = typer.Option(OutputFormat.json, "--format", "-f", help="Output format"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: EVNO_AUTH_TOKEN)"),
    webid: Optional[str] = typer.Option(None, "--webid", help="Session owner WebID (default: EVNO_WEBID)"),
) -> None:
    """Run one polling tick and print the events it produced.

    With a persistent --cache, repeated runs only report notifications
    that are new or changed since the previous run.
    """
    dedup = _strategy(strategy)

    async def _poll() -> list:
        transport = make_transport(token=token, webid=webid)
        watcher = InboxWatcher(transport, cache=make_dedup_cache(cache or None))
        try:
            await transport.connect()
            events = await watcher.poll_once(inbox_url, dedup)
        finally:
            await transport.close()
        return events

    try:
        events = run_async(_poll())
    except TransportFailure as e:
        output_error("TRANSPORT_FAILED", str(e), exit_code=EXIT_TRANSPORT_ERROR)
        return

    output_events(events, format, title=inbox_url)


# =============================================================================
# Inbox setup
# =============================================================================


@app.command("init")
def init_cmd(
    base_url: str = typer.Argument(..., help="Pod container under which the inbox lives"),
    inbox_path: str = typer.Argument(INBOX_PATH, help="Inbox path relative to BASE_URL"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: EVNO_AUTH_TOKEN)"),
    webid: Optional[str] = typer.Option(None, "--webid", help="Session owner WebID (default: EVNO_WEBID)"),
) -> None:
    """Create the inbox container if missing and grant the owner access."""

    async def _init() -> str:
        transport = make_transport(token=token, webid=webid)
        try:
            return await InboxWatcher(transport).init_inbox(base_url, inbox_path)
        finally:
            await transport.close()

    try:
        inbox_url = run_async(_init())
    except EvnoError as e:
        output_error("INIT_FAILED", str(e), exit_code=EXIT_TRANSPORT_ERROR)
        return
    output_json({"inbox": inbox_url})


@app.command("grant")
def grant_cmd(
    inbox_url: str = typer.Argument(..., help="URL of the inbox container"),
    agent: str = typer.Argument(..., help="WebID allowed to append notifications"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: EVNO_AUTH_TOKEN)"),
    webid: Optional[str] = typer.Option(None, "--webid", help="Session owner WebID (default: EVNO_WEBID)"),
) -> None:
    """Allow AGENT to post notifications to INBOX_URL."""

    async def _grant() -> None:
        transport = make_transport(token=token, webid=webid)
        try:
            await transport.connect()
            await InboxWatcher(transport).grant_access(inbox_url, agent)
        finally:
            await transport.close()

    try:
        run_async(_grant())
    except EvnoError as e:
        output_error("GRANT_FAILED", str(e), exit_code=EXIT_TRANSPORT_ERROR)
        return
    output_json({"inbox": inbox_url, "agent": agent, "modes": ["Append"]})


# =============================================================================
# Delivery
# =============================================================================


def _deliver(sender_actor: str, token: Optional[str], webid: Optional[str], action) -> SendResult:
    async def _run() -> SendResult:
        transport = make_transport(token=token, webid=webid)
        try:
            return await action(Sender(transport, sender_actor))
        finally:
            await transport.close()

    try:
        return run_async(_run())
    except (TransportFailure, AgentResolutionError) as e:
        output_error("DELIVERY_FAILED", str(e), exit_code=EXIT_TRANSPORT_ERROR)


def _actor(actor: Optional[str], webid: Optional[str]) -> str:
    resolved = actor or webid or WEBID
    if not resolved:
        raise typer.BadParameter("no actor given; pass --actor or set EVNO_WEBID", param_hint="--actor")
    return resolved


@app.command("send")
def send_cmd(
    inbox_url: str = typer.Argument(..., help="URL of the receiving inbox"),
    source: str = typer.Argument(..., help="Notification file, or '-' for stdin"),
    content_type: Optional[str] = typer.Option(None, "--content-type", "-t", help="Media type of SOURCE (default: by extension, else JSON-LD)"),
    format: OutputFormat = typer.Option(OutputFormat.json, "--format", "-f", help="Output format"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: EVNO_AUTH_TOKEN)"),
    webid: Optional[str] = typer.Option(None, "--webid", help="Session owner WebID (default: EVNO_WEBID)"),
) -> None:
    """Decode a local notification and deliver it as JSON-LD."""
    data = read_input(source)
    try:
        notification = Notification.decode(data, content_type or guess_content_type(source))
    except (DecodeFailure, MalformedNotification) as e:
        output_error("PARSE_FAILED", str(e), exit_code=EXIT_PARSE_ERROR)
        return

    actor = notification.actor
    sender_actor = str(actor.id) if actor is not None else (webid or WEBID or str(notification.id))

    result = _deliver(sender_actor, token, webid, lambda s: s.send(notification, inbox_url))
    _report(result, format)


@app.command("offer")
def offer_cmd(
    object: str = typer.Argument(..., help="IRI of the offered object"),
    inbox_url: str = typer.Argument(..., help="URL of the receiving inbox"),
    target: Optional[str] = typer.Option(None, "--target", help="Agent the offer is addressed to"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Sending agent (default: the session WebID)"),
    format: OutputFormat = typer.Option(OutputFormat.json, "--format", "-f", help="Output format"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: EVNO_AUTH_TOKEN)"),
    webid: Optional[str] = typer.Option(None, "--webid", help="Session owner WebID (default: EVNO_WEBID)"),
) -> None:
    """Build an Offer of OBJECT and deliver it."""
    sender_actor = _actor(actor, webid)
    result = _deliver(sender_actor, token, webid, lambda s: s.offer(object, inbox_url, target=target))
    _report(result, format)


@app.command("announce")
def announce_cmd(
    object: str = typer.Argument(..., help="IRI of the announced object"),
    inbox_url: str = typer.Argument(..., help="URL of the receiving inbox"),
    context: Optional[str] = typer.Option(None, "--context", help="IRI the announcement relates to"),
    actor: Optional[str] = typer.Option(None, "--actor", help="Sending agent (default: the session WebID)"),
    format: OutputFormat = typer.Option(OutputFormat.json, "--format", "-f", help="Output format"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token (default: EVNO_AUTH_TOKEN)"),
    webid: Optional[str] = typer.Option(None, "--webid", help="Session owner WebID (default: EVNO_WEBID)"),
) -> None:
    """Build an Announce of OBJECT and deliver it."""
    sender_actor = _actor(actor, webid)
    result = _deliver(sender_actor, token, webid, lambda s: s.announce(object, inbox_url, context=context))
    _report(result, format)


if __name__ == "__main__":
    app()
