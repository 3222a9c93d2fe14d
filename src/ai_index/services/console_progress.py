"""
Console Progress Display for indexing runs

``IndexProgress`` defines the callbacks the indexing pipeline reports to;
its methods do nothing. ``ConsoleProgress`` renders them with rich progress
bars and prints a summary panel when the run ends.
"""

import time
from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.text import Text

from ..logging_config import restore_stderr_logging, suppress_stderr_logging
from .rag_types import IndexRunResult


class IndexProgress:
    """Progress callbacks used by the indexing pipeline (no-op)."""

    def start(self) -> None:
        pass

    def stop(self, success: bool = True, result: Optional[IndexRunResult] = None) -> None:
        pass

    def start_scan(self, root: str) -> None:
        pass

    def end_scan(self, file_count: int) -> None:
        pass

    def start_embedding_loading(self, model_name: str) -> None:
        pass

    def end_embedding_loading(self) -> None:
        pass

    def start_file_processing(self, total: int) -> None:
        pass

    def update_file_progress(self, current: int, total: int, filename: str) -> None:
        pass

    def end_file_processing(self) -> None:
        pass


class ConsoleProgress(IndexProgress):
    """Rich-based console progress display for indexing runs."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)
        self._live: Optional[Live] = None
        self._start_time = time.time()

        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            expand=False,
        )

        self._scan_task = None
        self._embedding_task = None
        self._file_task = None

        self._phase = "Starting..."
        self._current_file = ""
        self._files_total = 0
        self._files_done = 0

    def start(self) -> None:
        """Start the live display and mute stderr logging."""
        self._start_time = time.time()
        suppress_stderr_logging()
        self._live = Live(
            self._build_display(),
            console=self.console,
            refresh_per_second=10,
            transient=False,
        )
        self._live.start()

    def stop(self, success: bool = True, result: Optional[IndexRunResult] = None) -> None:
        """Stop the live display, restore logging and print a summary."""
        if self._live:
            self._live.stop()
            self._live = None
        restore_stderr_logging()

        elapsed = time.time() - self._start_time
        self.console.print()
        if success and result is not None:
            self.console.print(
                Panel(
                    f"[bold green]Index up to date[/bold green]\n\n"
                    f"  Files: {result.total_files} "
                    f"(processed {result.processed_files}, unchanged {result.unchanged_files}, "
                    f"deleted {len(result.deleted)}, failed {result.failed_files})\n"
                    f"  Chunks indexed: {result.chunks_indexed:,}\n"
                    f"  Total chunks: {result.total_chunks:,}\n"
                    f"  Time: {elapsed:.1f}s",
                    title=f"[bold]{result.index_key}[/bold]",
                    border_style="green",
                )
            )
        else:
            self.console.print(
                Panel(
                    f"[bold red]Indexing failed[/bold red]\n\n"
                    f"  Time: {elapsed:.1f}s",
                    title="[bold]Error[/bold]",
                    border_style="red",
                )
            )

    def start_scan(self, root: str) -> None:
        self._phase = f"Scanning {root}"
        self._scan_task = self._progress.add_task("[cyan]Scanning", total=None)
        self._refresh()

    def end_scan(self, file_count: int) -> None:
        if self._scan_task is not None:
            self._progress.update(
                self._scan_task,
                completed=file_count,
                total=file_count,
                description="[green]Files scanned"
            )
        self._files_total = file_count
        self._refresh()

    def start_embedding_loading(self, model_name: str) -> None:
        self._phase = f"Loading embedding model ({model_name})"
        self._embedding_task = self._progress.add_task(f"[cyan]Loading {model_name}", total=None)
        self._refresh()

    def end_embedding_loading(self) -> None:
        if self._embedding_task is not None:
            self._progress.update(
                self._embedding_task,
                completed=1,
                total=1,
                description="[green]Model loaded"
            )
        self._refresh()

    def start_file_processing(self, total: int) -> None:
        self._phase = "Chunking and embedding changed files"
        self._files_total = total
        self._files_done = 0
        self._file_task = self._progress.add_task("[cyan]Indexing files", total=total)
        self._refresh()

    def update_file_progress(self, current: int, total: int, filename: str) -> None:
        self._files_done = current
        self._current_file = filename
        if self._file_task is None:
            self._file_task = self._progress.add_task("[cyan]Indexing files", total=total)
        self._progress.update(self._file_task, completed=current, total=total)
        self._refresh()

    def end_file_processing(self) -> None:
        if self._file_task is not None:
            self._progress.update(
                self._file_task,
                completed=self._files_total,
                description="[green]Files indexed"
            )
        self._current_file = ""
        self._refresh()

    def _build_display(self) -> Group:
        elements = [Text(f"  {self._phase}", style="bold"), "", self._progress]

        if self._current_file:
            truncated = self._current_file
            if len(truncated) > 60:
                truncated = "..." + truncated[-57:]
            elements.append("")
            elements.append(Text(f"  → {truncated}", style="dim"))

        return Group(*elements)

    def _refresh(self) -> None:
        if self._live:
            self._live.update(self._build_display())
