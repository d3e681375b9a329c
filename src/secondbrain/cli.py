"""Command line interface for SecondBrain."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn, Optional

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.tree import Tree

from secondbrain import __version__
from secondbrain.config import AppConfig, load_config
from secondbrain.errors import ConfigurationError, NotFoundError, SecondBrainError
from secondbrain.kb.encoder import EmbeddingConfig, EmbeddingModel
from secondbrain.kb.local import LocalKnowledgeBase
from secondbrain.kb.storage import SQLiteVectorStore
from secondbrain.models import BatchSummary, GenerationResponse, RetrievalResult
from secondbrain.rag.chat import ReadInput, run_llm_chat, run_rag_chat
from secondbrain.rag.generation import build_router
from secondbrain.rag.pipeline import PipelineAnswer, QueryPipeline
from secondbrain.rag.results import RetrievalResultStore
from secondbrain.rag.retrieval import PARTITIONS_PER_DOCUMENT, RetrievalClient
from secondbrain.state import FileStateStore
from secondbrain.sync.cursor import SyncCursor, format_timestamp, to_utc
from secondbrain.sync.importer import DocumentImporter
from secondbrain.sync.orchestrator import SyncOrchestrator
from secondbrain.sync.planner import SyncPlan, plan_sync
from secondbrain.sync.scanner import scan_folder
from secondbrain.utils.files import format_size
from secondbrain.utils.text import preview

console = Console()
app = typer.Typer(help="SecondBrain - sync a document folder and ask it questions")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _exit_with_error(exc: SecondBrainError) -> NoReturn:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(code=1) from exc


def _resolve_folder(config: AppConfig, folder: Optional[Path], base_dir: Path) -> Path:
    source = folder if folder is not None else config.document_folder
    if source is None:
        raise ConfigurationError(
            "No document folder configured; pass --folder or set document_folder"
        )
    resolved = config.resolve_path(source, base_dir)
    if not resolved.is_dir():
        raise NotFoundError(f"Folder not found: {resolved}")
    return resolved


def _cursor(config: AppConfig, base_dir: Path) -> SyncCursor:
    path = config.resolve_path(config.stored_last_run, base_dir)
    return SyncCursor(FileStateStore(path), config.default_last_run)


def _result_store(config: AppConfig, base_dir: Path) -> RetrievalResultStore:
    return RetrievalResultStore(FileStateStore(config.resolve_path(config.results_path, base_dir)))


def _open_knowledge_base(config: AppConfig, base_dir: Path) -> LocalKnowledgeBase:
    db_path = config.resolve_path(config.db_path, base_dir)
    _ensure_parent(db_path)
    embedder = EmbeddingModel(EmbeddingConfig(model_name=config.embedding_model))
    store = SQLiteVectorStore(db_path, dimension=embedder.dimension)
    return LocalKnowledgeBase(
        embedder, store, chunk_chars=config.chunk_chars, overlap=config.overlap
    )


def _build_pipeline(
    config: AppConfig, knowledge_base: LocalKnowledgeBase, client: httpx.Client, base_dir: Path
) -> QueryPipeline:
    retrieval = RetrievalClient(
        knowledge_base,
        index=config.index_name,
        limit=config.search_limit,
        min_relevance=config.min_relevance,
    )
    return QueryPipeline(
        retrieval, build_router(config, client), result_store=_result_store(config, base_dir)
    )


def _prompt_reader(label: str) -> ReadInput:
    def read() -> Optional[str]:
        try:
            return console.input(f"[bold cyan]{label}>[/bold cyan] ")
        except (EOFError, KeyboardInterrupt):
            return None

    return read


class _ProgressReporter:
    """Progress bar started on the first callback, so empty batches draw nothing."""

    def __init__(self) -> None:
        self._progress: Progress | None = None
        self._task = None

    def __call__(self, done: int, total: int, name: str) -> None:
        if self._progress is None:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                console=console,
                transient=True,
            )
            self._progress.start()
            self._task = self._progress.add_task("Importing", total=total)
        self._progress.update(self._task, completed=done, description=f"Importing {escape(name)}")

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()


def _print_plan(plan: SyncPlan) -> None:
    if not plan.items:
        console.print("[green]Nothing to import.[/green]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Document")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Modified (UTC)")
    for item in plan.items:
        table.add_row(
            escape(item.name),
            item.extension.lstrip(".").upper(),
            format_size(item.size_bytes),
            format_timestamp(item.effective_modified_at),
        )
    console.print(table)
    verb = "Would import" if plan.dry_run else "Importing"
    console.print(
        f"{verb} {len(plan)} of {plan.scanned} document(s) "
        f"({format_size(plan.total_bytes)})."
    )


def _print_summary(summary: BatchSummary, *, force: bool) -> None:
    if not summary.planned:
        console.print("[green]No new or modified documents to import.[/green]")
        return

    console.print(
        f"Imported: {summary.succeeded_count}, failed: {summary.failed_count}, "
        f"total time: {summary.total_duration_ms / 1000:.1f}s"
    )
    failures = [outcome for outcome in summary.outcomes if not outcome.succeeded]
    if failures:
        table = Table(show_header=True, header_style="bold red", title="Failed imports")
        table.add_column("Document")
        table.add_column("Error")
        for outcome in failures:
            table.add_row(escape(outcome.candidate.name), escape(outcome.error or "unknown error"))
        console.print(table)
    if not force and summary.succeeded_count > 0 and not summary.cursor_advanced:
        console.print("[yellow]Sync time was not saved; the next run will retry.[/yellow]")


def _results_table(result: RetrievalResult) -> Table:
    table = Table(show_header=True, header_style="bold magenta", title="Search results")
    table.add_column("Document")
    table.add_column("Relevance", justify="right")
    table.add_column("Preview")
    for citation in result.citations:
        for partition in citation.partitions[:PARTITIONS_PER_DOCUMENT]:
            table.add_row(
                escape(citation.document_id),
                f"{partition.relevance:.3f}",
                escape(preview(partition.text, 100)),
            )
    return table


def _sources_panel(result: RetrievalResult) -> Panel:
    lines = "\n".join(f"- {escape(document_id)}" for document_id in result.document_ids())
    return Panel(lines, title="Sources", border_style="blue")


def _show_rag_answer(answer: PipelineAnswer) -> None:
    console.print(Panel(escape(answer.answer), title="Answer", border_style="green"))
    if not answer.retrieval.is_empty:
        console.print(f"[dim]Sources: {escape(', '.join(answer.retrieval.document_ids()))}[/dim]")


def _show_llm_answer(response: GenerationResponse) -> None:
    console.print(Panel(escape(response.text), title=escape(response.model), border_style="green"))


def _relevance_colour(relevance: float) -> str:
    if relevance >= 0.7:
        return "green"
    if relevance >= 0.5:
        return "yellow"
    return "red"


@app.command()
def sync(
    folder: Optional[Path] = typer.Option(None, "--folder", "-f", help="Document folder to sync"),
    force: bool = typer.Option(False, "--force", help="Import every document, ignoring the last sync time"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show what would be imported"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Import new and modified documents into the knowledge base."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
        base_dir = Path.cwd()
        source = _resolve_folder(config, folder, base_dir)
        cursor = _cursor(config, base_dir)
        since = cursor.get()

        if dry_run:
            plan = plan_sync(scan_folder(source), since, force=force, dry_run=True)
            _print_plan(plan)
            return

        if force:
            console.print("Force mode: importing every document.")
        else:
            console.print(f"Last sync: [bold]{format_timestamp(since)}[/bold] (UTC)")

        knowledge_base = _open_knowledge_base(config, base_dir)
        reporter = _ProgressReporter()
        try:
            orchestrator = SyncOrchestrator(
                DocumentImporter(knowledge_base, index=config.index_name),
                cursor,
                import_workers=config.import_workers,
            )
            summary = orchestrator.run(source, force=force, since=since, on_progress=reporter)
        finally:
            reporter.close()
            knowledge_base.close()
        _print_summary(summary, force=force)
    except SecondBrainError as exc:
        _exit_with_error(exc)


@app.command()
def query(
    question: str = typer.Argument(..., help="Question to ask the knowledge base"),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help="Maximum number of documents"),
    sources: bool = typer.Option(False, "--sources", help="Show the retrieved sources"),
    no_llm: bool = typer.Option(False, "--no-llm", help="Only search, do not generate an answer"),
    model: Optional[str] = typer.Option(None, "--model", help="Model override (local mode)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Answer a single question from the knowledge base."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
        base_dir = Path.cwd()
        knowledge_base = _open_knowledge_base(config, base_dir)
        try:
            with httpx.Client() as client:
                pipeline = _build_pipeline(config, knowledge_base, client, base_dir)
                result = pipeline.retrieve(question, limit=limit)
                if result.is_empty:
                    console.print(
                        Panel(
                            "No relevant sources found in the knowledge base.",
                            title="Search results",
                            border_style="yellow",
                        )
                    )
                    return

                if no_llm or sources:
                    console.print(_results_table(result))
                if no_llm:
                    return

                answer = pipeline.answer(question, model=model, retrieval=result)
        finally:
            knowledge_base.close()

        console.print(Panel(escape(answer.answer), title="Answer", border_style="green"))
        if sources:
            console.print(_sources_panel(result))
    except SecondBrainError as exc:
        _exit_with_error(exc)


@app.command()
def rag(
    history: bool = typer.Option(False, "--history", help="Keep conversation history"),
    context: Optional[int] = typer.Option(None, "--context", min=0, help="Turns of history to send"),
    model: Optional[str] = typer.Option(None, "--model", help="Model override (local mode)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Chat with the knowledge base."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
        base_dir = Path.cwd()
        window = config.chat.history_window if context is None else context
        knowledge_base = _open_knowledge_base(config, base_dir)
        try:
            with httpx.Client() as client:
                pipeline = _build_pipeline(config, knowledge_base, client, base_dir)
                console.print(
                    f"Knowledge base chat ({pipeline.router.mode} mode). "
                    "Type 'exit' or an empty line to quit."
                )
                run_rag_chat(
                    pipeline,
                    _prompt_reader("Question"),
                    _show_rag_answer,
                    history_enabled=history,
                    window_size=window,
                    model=model,
                )
        finally:
            knowledge_base.close()
    except SecondBrainError as exc:
        _exit_with_error(exc)


@app.command()
def llm(
    history: bool = typer.Option(False, "--history", help="Keep conversation history"),
    context: Optional[int] = typer.Option(None, "--context", min=0, help="Turns of history to send"),
    model: Optional[str] = typer.Option(None, "--model", help="Model override (local mode)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Chat with the generation model directly, without the knowledge base."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
        window = config.chat.history_window if context is None else context
        with httpx.Client() as client:
            router = build_router(config, client)
            console.print(
                f"Model chat ({router.mode} mode). Type 'exit' or an empty line to quit."
            )
            run_llm_chat(
                router,
                _prompt_reader("You"),
                _show_llm_answer,
                history_enabled=history,
                window_size=window,
                model=model or config.chat.llm_model,
            )
    except SecondBrainError as exc:
        _exit_with_error(exc)


@app.command("list")
def list_documents(
    folder: Optional[Path] = typer.Option(None, "--folder", "-f", help="Document folder"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List documents in the folder with their sync status."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
        base_dir = Path.cwd()
        source = _resolve_folder(config, folder, base_dir)
        candidates = scan_folder(source)
        if not candidates:
            console.print("[yellow]No supported documents found.[/yellow]")
            return
        cursor = to_utc(_cursor(config, base_dir).get())
    except SecondBrainError as exc:
        _exit_with_error(exc)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Document")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Modified (UTC)")
    table.add_column("Status")

    synced = 0
    for candidate in candidates:
        is_synced = to_utc(candidate.effective_modified_at) < cursor
        synced += is_synced
        table.add_row(
            escape(candidate.name),
            candidate.extension.lstrip(".").upper(),
            format_size(candidate.size_bytes),
            format_timestamp(candidate.effective_modified_at),
            "[green]Synced[/green]" if is_synced else "[yellow]Not synced[/yellow]",
        )
    console.print(table)
    total_bytes = sum(candidate.size_bytes for candidate in candidates)
    console.print(
        f"{len(candidates)} document(s), {synced} synced, {len(candidates) - synced} not synced, "
        f"{format_size(total_bytes)} total"
    )


@app.command()
def tree(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show the sources of the last query as a tree."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
    except SecondBrainError as exc:
        _exit_with_error(exc)

    result = _result_store(config, Path.cwd()).load()
    if result is None or result.is_empty:
        console.print("[yellow]No stored search results. Run a query first.[/yellow]")
        return

    root = Tree("[bold]Last search results[/bold]")
    for citation in result.citations:
        branch = root.add(
            f"[bold]{escape(citation.document_id)}[/bold] ({len(citation.partitions)} chunk(s))"
        )
        for partition in citation.partitions:
            colour = _relevance_colour(partition.relevance)
            branch.add(
                f"[{colour}]{partition.relevance:.3f}[/{colour}] "
                f"{escape(preview(partition.text, 80))}"
            )
    console.print(root)


def _mask(secret: str) -> str:
    if not secret:
        return "[red]not set[/red]"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}****"


@app.command()
def status(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Settings file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show the active configuration and the last sync time."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
        base_dir = Path.cwd()
        cursor = _cursor(config, base_dir)
        last_sync = format_timestamp(cursor.get())
    except SecondBrainError as exc:
        _exit_with_error(exc)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Mode", config.mode)
    table.add_row("Index", escape(config.index_name))
    table.add_row(
        "Document folder",
        escape(str(config.document_folder)) if config.document_folder else "[red]not set[/red]",
    )
    table.add_row("Database", escape(str(config.resolve_path(config.db_path, base_dir))))
    table.add_row("Embedding model", escape(config.embedding_model))
    if config.mode == "local":
        table.add_row("Endpoint", escape(config.local.endpoint))
        table.add_row("Model", escape(config.local.model))
        table.add_row("Chat model", escape(config.chat.llm_model))
        table.add_row("Timeout", f"{config.local.timeout_seconds:.0f}s")
    else:
        table.add_row("Endpoint", escape(config.hosted.endpoint))
        table.add_row("Account ID", _mask(config.hosted.account_id))
        table.add_row("API token", _mask(config.hosted.api_token))
        table.add_row("Model", escape(config.hosted.generation_model))
        table.add_row("Timeout", f"{config.hosted.timeout_seconds:.0f}s")
    table.add_row("Last sync (UTC)", last_sync)
    table.add_row(
        "Sync cursor file",
        "present" if cursor.store.exists() else "missing (using default)",
    )
    console.print(table)


@app.command()
def version() -> None:
    """Print the installed version."""
    console.print(f"secondbrain {__version__}")


if __name__ == "__main__":
    app()
