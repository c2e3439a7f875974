"""CLI interface for anansi."""

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from anansi.config import AnansiConfig, load_config, merge_cli_overrides
from anansi.content.models import Item
from anansi.content.services import (
    create_item,
    import_markdown,
    modify_item,
    render_item,
    tag_content,
)
from anansi.content.store import ContentStore, ObjectStore, TagStore
from anansi.engine import Engine
from anansi.errors import AnansiError, LayoutInitFailed, NotFound, StoreUnavailable
from anansi.layout import ensure_layout

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="anansi",
    help="A content tagging service for discovery and organization.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)

EXIT_NOT_FOUND = 1
EXIT_STORE_ERROR = 2
EXIT_STARTUP = 3


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from anansi import __version__

        console.print(f"anansi {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a TOML config file."),
    ] = None,
    db_path: Annotated[
        Optional[Path],
        typer.Option("--db", help="Path to the store file (overrides config)."),
    ] = None,
    db_timeout: Annotated[
        Optional[float],
        typer.Option("--timeout", help="Seconds to wait for a locked store (overrides config)."),
    ] = None,
    site_title: Annotated[
        Optional[str],
        typer.Option("--site-title", help="Site title shown by 'info' (overrides config)."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Anansi - publish and tag content backed by an embedded store."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = merge_cli_overrides(
        load_config(config_path),
        db_path=db_path,
        db_timeout=db_timeout,
        site_title=site_title,
    )


@contextmanager
def open_session(ctx: typer.Context) -> Iterator[Engine]:
    """Open the store for one command and map core errors to exit codes."""
    cfg: AnansiConfig = ctx.obj
    try:
        engine = ensure_layout(cfg.db_path, timeout=cfg.store.timeout)
    except (StoreUnavailable, LayoutInitFailed) as exc:
        err_console.print(f"[red]Startup failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_STARTUP) from exc
    try:
        yield engine
    except NotFound as exc:
        err_console.print(f"[yellow]{escape(str(exc))}[/yellow]")
        raise typer.Exit(code=EXIT_NOT_FOUND) from exc
    except AnansiError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_STORE_ERROR) from exc
    finally:
        engine.close()


def _dump(item: Item) -> dict[str, object]:
    return item.model_dump(mode="json", by_alias=True)


def _print_item(item: Item) -> None:
    console.print(f"[bold]{escape(item.title) or '(untitled)'}[/bold]")
    console.print(f"slug:    {escape(item.slug)}")
    if item.author:
        console.print(f"author:  {escape(item.author)}")
    if item.created_at is not None:
        console.print(f"created: {item.created_at.isoformat()}")
    tags = getattr(item, "tags", None)
    if tags:
        console.print(f"tags:    {escape(', '.join(tags))}")


def _read_body(body: str | None, body_file: Path | None) -> str:
    if body_file is not None:
        return body_file.read_text(encoding="utf-8")
    return body or ""


def collection_app(name: str, store_cls: type[ObjectStore], help_text: str) -> typer.Typer:
    """Build the list/show/create/edit/delete/import commands for one collection."""
    sub = typer.Typer(name=name, help=help_text, no_args_is_help=True)
    noun = store_cls.collection

    @sub.command("list")
    def list_cmd(
        ctx: typer.Context,
        as_json: Annotated[
            bool, typer.Option("--json", help="Print JSON instead of a table.")
        ] = False,
    ) -> None:
        """List every item in slug order."""
        with open_session(ctx) as engine:
            items = store_cls(engine).list()
        if as_json:
            console.print_json(json.dumps([_dump(item) for _, item in items]))
            return
        if not items:
            console.print(f"No {noun} items.")
            return
        table = Table(title=f"{noun} ({len(items)})")
        table.add_column("Slug")
        table.add_column("Title")
        table.add_column("Author")
        for slug, item in items:
            table.add_row(escape(slug), escape(item.title), escape(item.author))
        console.print(table)

    @sub.command("show")
    def show_cmd(
        ctx: typer.Context,
        slug: Annotated[str, typer.Argument(help="Item slug.")],
        html: Annotated[
            bool, typer.Option("--html", help="Print the rendered, sanitized body.")
        ] = False,
    ) -> None:
        """Show one item."""
        with open_session(ctx) as engine:
            rendered = render_item(store_cls(engine), slug)
        _print_item(rendered.item)
        console.print()
        text = rendered.html if html else rendered.item.body
        console.print(text, markup=False, highlight=False, soft_wrap=True)

    @sub.command("create")
    def create_cmd(
        ctx: typer.Context,
        title: Annotated[str, typer.Option("--title", "-t", help="Item title.")],
        body: Annotated[Optional[str], typer.Option("--body", "-b", help="Markdown body.")] = None,
        body_file: Annotated[
            Optional[Path],
            typer.Option(
                "--body-file",
                help="Read the markdown body from a file.",
                exists=True,
                dir_okay=False,
            ),
        ] = None,
        author: Annotated[str, typer.Option("--author", "-a", help="Author name.")] = "",
    ) -> None:
        """Create an item; its slug is derived from the time and title."""
        draft = store_cls.item_type(title=title, author=author, body=_read_body(body, body_file))
        with open_session(ctx) as engine:
            item = create_item(store_cls(engine), draft)
        console.print(f"Created {noun} [bold]{escape(item.slug)}[/bold]")

    @sub.command("edit")
    def edit_cmd(
        ctx: typer.Context,
        slug: Annotated[str, typer.Argument(help="Item slug.")],
        title: Annotated[Optional[str], typer.Option("--title", "-t", help="New title.")] = None,
        body: Annotated[
            Optional[str], typer.Option("--body", "-b", help="New markdown body.")
        ] = None,
        body_file: Annotated[
            Optional[Path],
            typer.Option(
                "--body-file", help="Read the new body from a file.", exists=True, dir_okay=False
            ),
        ] = None,
        author: Annotated[Optional[str], typer.Option("--author", "-a", help="New author.")] = None,
    ) -> None:
        """Replace fields of an existing item.  The slug never changes."""
        with open_session(ctx) as engine:
            store = store_cls(engine)
            current = store.get(slug)
            updates: dict[str, object] = {}
            if title is not None:
                updates["title"] = title
            if author is not None:
                updates["author"] = author
            if body is not None or body_file is not None:
                updates["body"] = _read_body(body, body_file)
            item = modify_item(store, slug, current.model_copy(update=updates))
        console.print(f"Updated {noun} [bold]{escape(item.slug)}[/bold]")

    @sub.command("delete")
    def delete_cmd(
        ctx: typer.Context,
        slug: Annotated[str, typer.Argument(help="Item slug.")],
    ) -> None:
        """Delete an item.  Deleting a missing slug is not an error."""
        with open_session(ctx) as engine:
            store_cls(engine).delete(slug)
        console.print(f"Deleted {noun} [bold]{escape(slug)}[/bold]")

    @sub.command("import")
    def import_cmd(
        ctx: typer.Context,
        files: Annotated[
            list[Path],
            typer.Argument(
                help="Markdown files with optional YAML front matter.",
                exists=True,
                dir_okay=False,
            ),
        ],
    ) -> None:
        """Create one item per markdown file."""
        with open_session(ctx) as engine:
            store = store_cls(engine)
            for path in files:
                item = import_markdown(store, path)
                console.print(f"Imported {escape(path.name)} as [bold]{escape(item.slug)}[/bold]")

    return sub


content_app = collection_app("content", ContentStore, "Manage content items.")
tags_app = collection_app("tags", TagStore, "Manage tags.")


@content_app.command("tag")
def tag_cmd(
    ctx: typer.Context,
    slug: Annotated[str, typer.Argument(help="Content slug.")],
    tags: Annotated[list[str], typer.Argument(help="Tag slugs to attach.")],
) -> None:
    """Attach existing tags to a content item."""
    with open_session(ctx) as engine:
        item = tag_content(ContentStore(engine), TagStore(engine), slug, tags)
    console.print(f"Tagged [bold]{escape(item.slug)}[/bold]: {escape(', '.join(item.tags))}")


app.add_typer(content_app, name="content")
app.add_typer(tags_app, name="tags")


@app.command()
def init(ctx: typer.Context) -> None:
    """Create the store file and its buckets if they do not exist."""
    with open_session(ctx) as engine:
        console.print(f"Store ready at [bold]{escape(str(engine.path))}[/bold]")


@app.command()
def info(ctx: typer.Context) -> None:
    """Show site metadata and collection sizes."""
    cfg: AnansiConfig = ctx.obj
    with open_session(ctx) as engine:
        counts = {
            "content": ContentStore(engine).count(),
            "tags": TagStore(engine).count(),
        }
    console.print(f"[bold]{escape(cfg.site.title)}[/bold]")
    console.print(escape(cfg.site.description))
    console.print(f"store:   {escape(str(cfg.db_path))}")
    for label, count in counts.items():
        console.print(f"{label + ':':<8} {count}")


if __name__ == "__main__":
    app()
