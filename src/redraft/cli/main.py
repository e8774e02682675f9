#!/usr/bin/env python3
"""Redraft CLI - rewrite markdown documents with streamed AI edits.

This is the main entry point for the redraft command-line tool.
"""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from redraft.cli import progress
from redraft.client.session import EditSession
from redraft.client.transport import HttpEditTransport, LocalEditTransport, StreamOutcome
from redraft.client.versions import LocalVersions, VersionsClient
from redraft.config.loader import load_config
from redraft.document.sections import parse_sections, resolve_section
from redraft.models.config import Configuration
from redraft.services.edit_stream import EditResponder
from redraft.services.exceptions import EditRequestError, VersionCorruptedError, VersionNotFoundError
from redraft.services.file_operations import atomic_write
from redraft.services.llm_client import LLMClient
from redraft.services.version_store import VersionStore
from redraft.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)
console = Console()

MODEL_CHOICES = click.Choice(["sonnet", "opus", "haiku"])


@click.group()
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (default: ~/.config/redraft/config.yaml)",
)
@click.option("--server", "server_url", help="Use a running Redraft server instead of in-process calls")
@click.version_option("0.1.0", prog_name="redraft")
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], server_url: Optional[str]):
    """Redraft - iteratively rewrite markdown documents with AI assistance."""
    configure_logging()

    try:
        configuration = load_config(config)
    except (ValueError, FileNotFoundError) as e:
        progress.show_error(str(e))
        ctx.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = configuration
    ctx.obj["server_url"] = server_url


def _read_document(path: Path) -> str:
    """Read a document without translating its line endings."""
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def _build_session(ctx: click.Context, content: str, model: Optional[str]) -> EditSession:
    """Create an EditSession talking to a server or running in-process."""
    config: Configuration = ctx.obj["config"]
    server_url = ctx.obj.get("server_url")

    if server_url:
        transport = HttpEditTransport(server_url)
        versions = VersionsClient(server_url)
    else:
        transport = LocalEditTransport(EditResponder(LLMClient(config.llm)))
        versions = LocalVersions(VersionStore(Path(config.storage.versions_dir)))

    return EditSession(
        content,
        transport,
        versions,
        model=model or config.llm.default_model,
    )


def _stream_printer(session: EditSession):
    """on_change hook that echoes only the newly streamed text."""
    printed = {"id": None, "length": 0}

    def on_change() -> None:
        if not session.messages:
            return
        last = session.messages[-1]
        if last.role != "assistant" or last.content.startswith("Error: "):
            return
        if last.id != printed["id"]:
            printed["id"], printed["length"] = last.id, 0
        progress.show_fragment(last.content[printed["length"]:])
        printed["length"] = len(last.content)

    return on_change


@cli.command()
@click.option("--host", help="Bind address (default from config)")
@click.option("--port", type=int, help="Bind port (default from config)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Run the HTTP server (edit streaming and version store)."""
    import uvicorn

    from redraft.server.app import create_app

    config: Configuration = ctx.obj["config"]
    host = host or config.server.host
    port = port or config.server.port

    logger.info("server_starting", host=host, port=port)
    click.echo(f"Serving on http://{host}:{port}")
    uvicorn.run(create_app(config), host=host, port=port)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def sections(file: Path):
    """List the heading sections of FILE."""
    found = parse_sections(_read_document(file))
    if not found:
        click.echo("No sections (document has no headings)")
        return

    table = Table("ID", "Level", "Title", "Lines")
    for section in found:
        table.add_row(
            section.id,
            str(section.level),
            section.title,
            f"{section.start_line + 1}-{section.end_line + 1}",
        )
    console.print(table)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-i", "--instruction", required=True, help="Editing instruction")
@click.option("-s", "--section", "section_titles", multiple=True, help="Limit the edit to a section (repeatable)")
@click.option("-m", "--model", type=MODEL_CHOICES, help="Model selector")
@click.option("--yes", is_flag=True, help="Apply the edit without asking")
@click.option("--save-version", is_flag=True, help="Snapshot the document before applying the edit")
@click.pass_context
def edit(
    ctx: click.Context,
    file: Path,
    instruction: str,
    section_titles: Tuple[str, ...],
    model: Optional[str],
    yes: bool,
    save_version: bool,
):
    """Rewrite FILE (or some of its sections) following INSTRUCTION."""
    session = _build_session(ctx, _read_document(file), model)
    session.orchestrator.on_change = _stream_printer(session)

    if section_titles:
        session.edit_level = "section"
        for title in section_titles:
            section = resolve_section(session.content, title)
            if section is None:
                progress.show_error(f"No section titled {title!r} in {file}")
                ctx.exit(1)
            if any(t.section_id == section.id for t in session.targets):
                continue  # repeated --section
            session.toggle_section_target(section.id)

    progress.show_streaming(session.model, session.edit_level)

    try:
        if section_titles:
            result = asyncio.run(session.send_targets(instruction))
        else:
            result = asyncio.run(session.send_instruction(instruction))
    except EditRequestError as e:
        progress.show_error(str(e))
        ctx.exit(2)

    click.echo("")
    if result.outcome is not StreamOutcome.COMPLETED:
        progress.show_error(result.error or "Edit did not complete")
        ctx.exit(1)

    diff = session.pending_diff()
    if not diff:
        click.echo("No changes proposed.")
        return

    console.print(Syntax(diff, "diff", theme="ansi_dark"))

    if not yes and not click.confirm("Apply this edit?", default=False):
        session.reject_edit()
        click.echo("Edit rejected.")
        return

    if save_version:
        meta = asyncio.run(session.save_version())
        click.echo(f"Saved {meta.label}" if meta else "Unchanged since latest version; not saved")

    session.accept_edit()
    atomic_write(file, session.content)
    click.echo(f"Wrote {file} ({session.content_hash})")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("message")
@click.option("-m", "--model", type=MODEL_CHOICES, help="Model selector")
@click.pass_context
def chat(ctx: click.Context, file: Path, message: str, model: Optional[str]):
    """Ask a question about FILE without changing it."""
    session = _build_session(ctx, _read_document(file), model)
    session.edit_level = "chat"
    session.orchestrator.on_change = _stream_printer(session)

    try:
        result = asyncio.run(session.send_instruction(message))
    except EditRequestError as e:
        progress.show_error(str(e))
        ctx.exit(2)

    click.echo("")
    if result.outcome is StreamOutcome.ERROR:
        progress.show_error(result.error or "Chat failed")
        ctx.exit(1)


@cli.group()
def versions():
    """Browse and manage saved versions."""


def _version_session(ctx: click.Context, content: str = "") -> EditSession:
    return _build_session(ctx, content, None)


@versions.command("list")
@click.pass_context
def versions_list(ctx: click.Context):
    """List saved versions, oldest first."""
    entries = asyncio.run(_version_session(ctx).list_versions())
    if not entries:
        click.echo("No saved versions")
        return

    table = Table("ID", "Label", "Saved", "Hash")
    for meta in entries:
        table.add_row(meta.id, meta.label, _format_timestamp(meta.timestamp), meta.hash)
    console.print(table)


@versions.command("save")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def versions_save(ctx: click.Context, file: Path):
    """Snapshot FILE as a new version."""
    content = _read_document(file)
    if not content:
        progress.show_error("Refusing to snapshot an empty document")
        ctx.exit(2)

    meta = asyncio.run(_version_session(ctx, content).save_version())
    if meta is None:
        click.echo("Unchanged since latest version; not saved")
    else:
        click.echo(f"Saved {meta.label} ({meta.hash})")


@versions.command("show")
@click.argument("version_id")
@click.pass_context
def versions_show(ctx: click.Context, version_id: str):
    """Print the content of a version."""
    session = _version_session(ctx)
    try:
        content = asyncio.run(session.versions.get_content(version_id))
    except VersionNotFoundError as e:
        progress.show_error(str(e))
        ctx.exit(1)
    except VersionCorruptedError as e:
        progress.show_error(str(e))
        ctx.exit(3)
    click.echo(content, nl=False)


@versions.command("restore")
@click.argument("version_id")
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def versions_restore(ctx: click.Context, version_id: str, file: Path):
    """Overwrite FILE with a saved version."""
    session = _version_session(ctx)
    try:
        asyncio.run(session.restore_version(version_id))
    except VersionNotFoundError as e:
        progress.show_error(str(e))
        ctx.exit(1)
    except VersionCorruptedError as e:
        progress.show_error(str(e))
        ctx.exit(3)
    atomic_write(file, session.content)
    click.echo(f"Restored {version_id} to {file}")


@versions.command("clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def versions_clear(ctx: click.Context, yes: bool):
    """Delete every saved version."""
    if not yes and not click.confirm("Delete all saved versions?", default=False):
        return
    asyncio.run(_version_session(ctx).clear_versions())
    click.echo("All versions deleted")


def _format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
