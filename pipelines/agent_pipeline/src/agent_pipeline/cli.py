"""
Command-line interface for folio.

Usage:
    folio show <file.md>                      # Item table with pointers
    folio scan <file.md> --keyword tax        # Drain a cursor portion by portion
    folio edit <file.md> <ops.json>           # Apply an edit batch, print the result
    folio ask <file.md> "<task>"              # Run the cursor agent against an LLM
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from agent_pipeline.llm.openai_compat import LLMTransportError, OpenAICompatClient
from agent_pipeline.settings import get_settings
from agent_pipeline.stages.orchestrator import AgentRequest, CursorAgentOrchestrator
from folio_core.document.models import EditOperation, LinearItem
from folio_core.document.session import DocumentSession
from folio_core.errors import FolioError, InvalidPointerError
from folio_navigation.cursor.parameters import CursorDirection, CursorKind, CursorParameters
from folio_navigation.cursor.registry import CursorRegistry

app = typer.Typer(
    name="folio",
    help="Pointer-addressed Markdown documents, bounded cursors and a cursor agent.",
)
console = Console()

_operations_adapter = TypeAdapter(List[EditOperation])


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Root logger level (DEBUG, INFO, ...)."),
):
    logging.basicConfig(
        level=log_level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load(path: Path) -> DocumentSession:
    session = DocumentSession()
    session.load_file(path, make_default=True)
    return session


def _preview(text: str, width: int = 70) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= width else flat[: width - 1] + "…"


def _items_table(items: List[LinearItem], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Pointer")
    table.add_column("Type")
    table.add_column("Text")
    for item in items:
        table.add_row(str(item.index), item.pointer.compact, item.type.value, _preview(item.text or item.markdown))
    return table


@app.command()
def show(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file"),
    limit: int = typer.Option(0, "--limit", "-n", help="Show only the first N items (0 = all)"),
):
    """Print the linear item sequence with pointers."""
    document = _load(path).get_document()
    items = list(document.items[:limit] if limit > 0 else document.items)
    console.print(_items_table(items, f"{document.id} ({len(document.items)} items)"))


@app.command()
def scan(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file"),
    keyword: Optional[List[str]] = typer.Option(None, "--keyword", "-k", help="Keyword filter (repeatable)"),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Free-text filter"),
    max_elements: int = typer.Option(10, "--max-elements", help="Items per portion"),
    max_bytes: int = typer.Option(4096, "--max-bytes", help="Bytes per portion"),
    backward: bool = typer.Option(False, "--backward", help="Read from the end"),
    start_after: Optional[str] = typer.Option(None, "--start-after", help="Start after this pointer"),
    no_headings: bool = typer.Option(False, "--no-headings", help="Skip headings"),
    no_content: bool = typer.Option(False, "--no-content", help="Pointers only"),
):
    """Drain a cursor and print every portion."""
    if keyword and query:
        console.print("[red]Use either --keyword or --query, not both.[/red]")
        raise typer.Exit(1)
    kind = CursorKind.keyword if keyword else CursorKind.query if query else CursorKind.full_scan

    session = _load(path)
    if start_after:
        try:
            anchor = session.resolve_pointer(None, start_after)
        except InvalidPointerError as exc:
            console.print(f"[red]{exc.message}[/red]")
            raise typer.Exit(1)
        if anchor is None:
            console.print(f"[yellow]{start_after} not found, reading from the start[/yellow]")
    registry = CursorRegistry(session)
    try:
        parameters = CursorParameters(max_elements=max_elements, max_bytes=max_bytes, include_content=not no_content)
        name = registry.create_cursor(
            "cli",
            kind,
            parameters,
            keywords=keyword or [],
            query=query,
            include_headings=not no_headings,
            direction=CursorDirection.backward if backward else CursorDirection.forward,
            start_after=start_after,
        )
    except (ValidationError, ValueError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    description = registry.get_stream(name).filter_description
    if description:
        console.print(f"[dim]{description}[/dim]")

    portion_no = 0
    total = 0
    while True:
        portion = registry.next_portion(name)
        if portion is None:
            break
        portion_no += 1
        total += len(portion)
        console.print(_items_table(list(portion.items), f"Portion {portion_no} (has_more={portion.has_more})"))
    console.print(f"[green]✓ {total} item(s) in {portion_no} portion(s)[/green]")


@app.command()
def edit(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file"),
    operations: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON list of edit operations"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result here instead of stdout"),
    strict: bool = typer.Option(False, "--strict", help="Fail the whole batch on any unresolvable operation"),
):
    """Apply a batch of edit operations."""
    try:
        ops = _operations_adapter.validate_python(json.loads(operations.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValidationError) as exc:
        console.print(f"[red]Invalid operations file: {exc}[/red]")
        raise typer.Exit(1)

    session = _load(path)
    try:
        outcome = session.apply_operations(None, ops, strict=strict)
    except FolioError as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(1)

    for skipped in outcome.skipped:
        console.print(
            f"[yellow]skipped #{skipped.operation_index} {skipped.operation.action.value}: {skipped.reason}[/yellow]"
        )
    if output is not None:
        session.write_markdown(path=output)
        console.print(f"[green]✓ {outcome.applied} operation(s) applied, written to {output}[/green]")
    else:
        typer.echo(session.write_markdown())


@app.command()
def ask(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown file"),
    task: str = typer.Argument(..., help="What to find"),
    context: Optional[str] = typer.Option(None, "--context", help="Extra context for the agent"),
    keyword: Optional[List[str]] = typer.Option(None, "--keyword", "-k", help="Only show the agent matching items"),
    query: Optional[str] = typer.Option(None, "--query", "-q", help="Only show the agent items containing this text"),
    max_steps: Optional[int] = typer.Option(None, "--max-steps", help="Step ceiling for this run"),
    backward: bool = typer.Option(False, "--backward", help="Read from the end"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),
):
    """Ask the cursor agent a question about the document."""
    settings = get_settings()
    kind = CursorKind.keyword if keyword else CursorKind.query if query else CursorKind.full_scan
    session = _load(path)
    request = AgentRequest(
        task=task,
        context=context,
        cursor_kind=kind,
        keywords=keyword or [],
        query=query,
        direction=CursorDirection.backward if backward else CursorDirection.forward,
        max_steps=max_steps,
    )

    try:
        with OpenAICompatClient(
            api_key=settings.llm_api_key,
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            timeout_s=settings.llm_timeout_s,
        ) as llm:
            result = CursorAgentOrchestrator(session, llm).run(request)
    except LLMTransportError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(2)

    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    status = "[green]✓ found[/green]" if result.success else f"[yellow]not found ({result.reason})[/yellow]"
    console.print(status)
    if result.semantic_pointer_from:
        console.print(f"  Pointer: {result.semantic_pointer_from}")
    if result.excerpt:
        console.print(f"  Excerpt: {_preview(result.excerpt, 200)}")
    if result.summary:
        console.print(f"  Summary: {result.summary}")
    console.print(
        f"[dim]steps={result.steps_used} stop={result.stop_reason.value} "
        f"evidence={len(result.evidence)} malformed={result.malformed_steps}[/dim]"
    )


if __name__ == "__main__":
    app()
