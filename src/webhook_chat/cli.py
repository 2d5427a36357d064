"""CLI entry point for webhook-chat."""

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import click
import uvicorn

from .backends import open_store
from .config import get_log_level, get_server_address
from .core import RawFile
from .errors import WebhookChatError
from .session import ConversationSession
from .store import TranscriptStore
from .transport import WebhookTransport


def format_age(created: datetime | None, now: datetime | None = None) -> str:
    """Render how long ago something happened, as "<n> m" or "<n> h"."""
    if created is None:
        return ""
    now = now or datetime.now(timezone.utc)
    minutes = int((now - created).total_seconds() // 60)
    if minutes < 60:
        return f"{minutes} m"
    return f"{minutes // 60} h"


def format_time(ts: datetime) -> str:
    return ts.astimezone().strftime("%H:%M")


def _store(ctx: click.Context) -> TranscriptStore:
    return ctx.obj["store"]


def _resolve_endpoint_id(store: TranscriptStore, ref: str) -> int:
    """Accept an endpoint id or name."""
    for endpoint in store.list_endpoints():
        if endpoint.name == ref or str(endpoint.id) == ref:
            return endpoint.id
    raise click.ClickException(f"No endpoint named or numbered {ref!r}")


@click.group()
@click.option("--db", "location", default=None, envvar="WEBHOOK_CHAT_DB",
              help="SQLite database path, or the URL of a running webhook-chat server.")
@click.option("--log-level", default=get_log_level, show_default="WARNING",
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.pass_context
def main(ctx: click.Context, location: str | None, log_level: str):
    """Chat with HTTP webhook endpoints and keep the transcripts."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["location"] = location
    if ctx.invoked_subcommand != "serve":
        store = open_store(location)
        ctx.obj["store"] = store
        ctx.call_on_close(store.close)


@main.command()
@click.option("--port", default=None, type=int, help="Port to serve on.")
@click.option("--host", default=None, help="Host to bind to.")
@click.pass_context
def serve(ctx: click.Context, port: int | None, host: str | None):
    """Start the REST API."""
    default_host, default_port = get_server_address()
    host = host or default_host
    port = port or default_port
    if ctx.obj["location"]:
        os.environ["WEBHOOK_CHAT_DB"] = ctx.obj["location"]
    click.echo(f"Starting webhook-chat on http://{host}:{port}")
    uvicorn.run("webhook_chat.server:app", host=host, port=port, reload=False)


# ── Endpoints ────────────────────────────────────────────────────


@main.group()
def endpoint():
    """Manage webhook endpoints."""
    pass


@endpoint.command("add")
@click.argument("name")
@click.argument("url")
@click.option("--credential", prompt=True, hide_input=True, help="Bearer token sent with every request.")
@click.pass_context
def endpoint_add(ctx: click.Context, name: str, url: str, credential: str):
    """Register an endpoint."""
    try:
        endpoint_id = _store(ctx).create_endpoint(name, url, credential)
    except WebhookChatError as e:
        raise click.ClickException(str(e))
    click.echo(f"Added endpoint {name} ({endpoint_id})")


@endpoint.command("list")
@click.pass_context
def endpoint_list(ctx: click.Context):
    """List registered endpoints."""
    for e in _store(ctx).list_endpoints():
        click.echo(f"{e.id:>4}  {e.name}  {e.url}")


@endpoint.command("remove")
@click.argument("endpoint_id", type=int)
@click.confirmation_option(prompt="This also deletes every conversation with the endpoint. Continue?")
@click.pass_context
def endpoint_remove(ctx: click.Context, endpoint_id: int):
    """Delete an endpoint and its conversations."""
    try:
        _store(ctx).delete_endpoint(endpoint_id)
    except WebhookChatError as e:
        raise click.ClickException(str(e))
    click.echo(f"Removed endpoint {endpoint_id}")


# ── Conversations ────────────────────────────────────────────────


@main.command()
@click.pass_context
def history(ctx: click.Context):
    """List conversations, newest first."""
    for c in _store(ctx).list_conversations():
        click.echo(f"{c.id:>4}  {format_age(c.created):>6}  {c.name}  [{c.endpoint_name}]")


@main.command()
@click.argument("conversation_id", type=int)
@click.pass_context
def show(ctx: click.Context, conversation_id: int):
    """Print a stored conversation."""
    store = _store(ctx)
    if store.get_conversation(conversation_id) is None:
        raise click.ClickException(f"Conversation {conversation_id} not found")
    for msg in store.list_messages(conversation_id):
        who = "you" if msg.is_user else "bot"
        click.echo(f"[{format_time(msg.timestamp)}] {who}: {msg.content}")
        for key, att in (msg.attachments or {}).items():
            click.echo(f"    {key}: {att.file_name or '(unnamed)'} {att.mime_type} {att.file_size}".rstrip())


@main.command()
@click.argument("endpoint_ref")
@click.argument("text")
@click.option("--file", "files", multiple=True, type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="Attach a file (images only are sent).")
@click.option("--conversation", "conversation_id", type=int, default=None,
              help="Continue an existing conversation instead of starting one.")
@click.pass_context
def send(ctx: click.Context, endpoint_ref: str, text: str, files: tuple[Path, ...], conversation_id: int | None):
    """Send TEXT to an endpoint and print the reply.

    ENDPOINT_REF is a name or id. With --conversation the conversation's own
    endpoint is used instead.
    """
    store = _store(ctx)
    raw_files = [RawFile.from_path(p) for p in files]

    async def _run():
        async with WebhookTransport() as transport:
            session = ConversationSession(store, transport)
            if conversation_id is not None:
                session.open(conversation_id)
            else:
                session.select(_resolve_endpoint_id(store, endpoint_ref))
            reply = await session.send(text, raw_files or None)
            return session, reply

    try:
        session, reply = asyncio.run(_run())
    except WebhookChatError as e:
        raise click.ClickException(str(e))

    click.echo(reply.content)
    for key, att in (reply.attachments or {}).items():
        click.echo(f"  {key}: {att.file_name or '(unnamed)'} {att.mime_type}".rstrip())
    if session.error:
        ctx.exit(1)
