from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich import print
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__, commands
from .config import load_config
from .errors import InvalidRecordEncoding, ReaderError
from .models import AnnotationType, CreateAnnotationInput, PositionData, UpdateAnnotationInput
from .session import SessionManager

app = typer.Typer(help="research-reader: PDF containers with annotations")
annotations_app = typer.Typer(help="Manage annotations inside a container")
meta_app = typer.Typer(help="Read and write document metadata")
app.add_typer(annotations_app, name="annotations")
app.add_typer(meta_app, name="meta")


def _fail(exc: ReaderError) -> typer.Exit:
    print(f"[red]{escape(str(exc))}[/red]")
    return typer.Exit(code=1)


@contextmanager
def _opened(path: str) -> Iterator[SessionManager]:
    manager = SessionManager(load_config())
    try:
        commands.open_file(manager, path)
        try:
            yield manager
        finally:
            commands.close_file(manager)
    except ReaderError as exc:
        raise _fail(exc) from None


def _parse_position(raw: str | None) -> PositionData | None:
    if raw is None:
        return None
    try:
        return PositionData.from_json(raw)
    except InvalidRecordEncoding as exc:
        raise _fail(exc) from None


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
) -> None:
    cfg = load_config()
    level = "INFO" if verbose else cfg.log_level
    logging.basicConfig(
        level=level, format="%(message)s", handlers=[RichHandler(show_path=False)], force=True
    )


@app.command()
def version() -> None:
    """Print the installed version."""

    print(__version__)


@app.command("import")
def import_cmd(
    pdf: str = typer.Argument(..., help="PDF file to import"),
    output: str = typer.Option(None, help="Destination .rr path"),
) -> None:
    """Create a .rr container from a PDF."""

    manager = SessionManager(load_config())
    try:
        info = commands.import_pdf(manager, pdf, output)
        commands.close_file(manager)
    except ReaderError as exc:
        raise _fail(exc) from None
    print(f"[green]✓ Created {info.rr_path}[/green]")
    if info.title:
        print(f"  Title: {info.title}")


@app.command()
def info(path: str = typer.Argument(..., help=".rr or .pdf file")) -> None:
    """Show the document summary and metadata."""

    with _opened(path) as manager:
        with manager.active() as session:
            manifest = session.manifest
            metadata = session.store.all_metadata()
            annotation_count = len(session.store.list_annotations())
            rr_path = session.rr_path

    print("[bold]Container[/bold]")
    print(f"- Path: {rr_path}")
    if manifest is None:
        print("- Manifest: [yellow]missing[/yellow]")
    else:
        print(f"- Format: {manifest.format} {manifest.version}")
        print(f"- Created: {manifest.created_at}")
    print(f"- Annotations: {annotation_count}")
    print("\n[bold]Metadata[/bold]")
    if not metadata:
        print("- (none)")
    for key, value in metadata.items():
        print(f"- {key}: {value}")


@app.command("extract-pdf")
def extract_pdf(
    path: str = typer.Argument(..., help=".rr file"),
    output: str = typer.Argument(..., help="Where to write the PDF"),
) -> None:
    """Write the embedded PDF out as a standalone file."""

    with _opened(path) as manager:
        data = commands.read_pdf_bytes(manager)
    output_path = Path(output).expanduser()
    output_path.write_bytes(data)
    print(f"[green]✓ Wrote {len(data)} bytes to {output_path}[/green]")


@annotations_app.command("list")
def annotations_list(
    path: str = typer.Argument(..., help=".rr file"),
    page: int = typer.Option(None, help="Only this page"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List annotations ordered by page."""

    with _opened(path) as manager:
        items = commands.get_annotations(manager, page)

    if as_json:
        typer.echo(json.dumps([item.to_dict() for item in items], ensure_ascii=False, indent=2))
        return
    if not items:
        print("[yellow]No annotations[/yellow]")
        return
    table = Table("id", "type", "page", "color", "content")
    for item in items:
        table.add_row(
            item.id, item.type.value, str(item.page_number), item.color or "", item.content or ""
        )
    print(table)


@annotations_app.command("add")
def annotations_add(
    path: str = typer.Argument(..., help=".rr file"),
    annotation_type: str = typer.Option(..., "--type", help="highlight, note or bookmark"),
    page: int = typer.Option(..., help="Page number"),
    color: str = typer.Option(None, help="Display color"),
    content: str = typer.Option(None, help="Annotation text"),
    position: str = typer.Option(None, help="Position data as JSON"),
) -> None:
    """Add an annotation."""

    try:
        parsed_type = AnnotationType.parse(annotation_type.strip().lower())
    except InvalidRecordEncoding as exc:
        raise _fail(exc) from None
    data = CreateAnnotationInput(
        type=parsed_type,
        page_number=page,
        color=color,
        content=content,
        position_data=_parse_position(position),
    )
    with _opened(path) as manager:
        created = commands.create_annotation(manager, data)
    print(
        f"[green]✓ Created {created.type.value} {created.id} "
        f"on page {created.page_number}[/green]"
    )


@annotations_app.command("update")
def annotations_update(
    path: str = typer.Argument(..., help=".rr file"),
    annotation_id: str = typer.Argument(..., help="Annotation id"),
    color: str = typer.Option(None, help="New color"),
    content: str = typer.Option(None, help="New text"),
    position: str = typer.Option(None, help="New position data as JSON"),
) -> None:
    """Update fields of an annotation; omitted fields are kept."""

    data = UpdateAnnotationInput(
        id=annotation_id, color=color, content=content, position_data=_parse_position(position)
    )
    with _opened(path) as manager:
        updated = commands.update_annotation(manager, data)
    if not updated:
        print(f"[yellow]No annotation {annotation_id}[/yellow]")
        raise typer.Exit(code=1)
    print(f"[green]✓ Updated {annotation_id}[/green]")


@annotations_app.command("delete")
def annotations_delete(
    path: str = typer.Argument(..., help=".rr file"),
    annotation_id: str = typer.Argument(..., help="Annotation id"),
) -> None:
    """Delete an annotation."""

    with _opened(path) as manager:
        deleted = commands.delete_annotation(manager, annotation_id)
    if not deleted:
        print(f"[yellow]No annotation {annotation_id}[/yellow]")
        raise typer.Exit(code=1)
    print(f"[green]✓ Deleted {annotation_id}[/green]")


@meta_app.command("get")
def meta_get(
    path: str = typer.Argument(..., help=".rr file"),
    key: str = typer.Argument(..., help="Metadata key"),
) -> None:
    """Print a metadata value."""

    with _opened(path) as manager:
        value = commands.get_document_metadata(manager, key)
    if value is None:
        print(f"[yellow]{key} is not set[/yellow]")
        raise typer.Exit(code=1)
    typer.echo(value)


@meta_app.command("set")
def meta_set(
    path: str = typer.Argument(..., help=".rr file"),
    key: str = typer.Argument(..., help="Metadata key"),
    value: str = typer.Argument(..., help="Metadata value"),
) -> None:
    """Set a metadata value."""

    with _opened(path) as manager:
        commands.set_document_metadata(manager, key, value)
    print(f"[green]✓ {key} = {value}[/green]")


if __name__ == "__main__":
    app()
