"""Rich-based sync progress display."""

from __future__ import annotations

from types import TracebackType
from typing import ClassVar

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, Task, TextColumn, TimeElapsedColumn
from rich.progress import TaskID as RichTaskID

from tilesync.contracts.sync import ExportResult, TileSyncResult
from tilesync.contracts.tiles import SyncOutcome
from tilesync.engine.progress import SyncProgress


class RichSyncProgress(SyncProgress):
    """Live terminal progress bar powered by Rich.

    Use as a context manager so the live display is properly started/stopped::

        with RichSyncProgress() as progress:
            result = await orchestrator.run_cycle()
    """

    _PHASE_LABELS: ClassVar[dict[str, str]] = {
        "Negotiate": "[cyan]Negotiate[/]",
        "Sync": "[green]Sync[/]",
        "Export": "[magenta]Export[/]",
    }

    def __init__(self) -> None:
        self._console = Console(stderr=True)
        self._progress = Progress(
            SpinnerColumn(finished_text="[green]✓[/green]"),
            TextColumn("{task.description:>14}"),
            BarColumn(bar_width=30),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self._console,
            transient=False,
        )
        self._task_ids: dict[str, RichTaskID] = {}

    # -- context manager --------------------------------------------------

    def __enter__(self) -> RichSyncProgress:
        self._progress.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self._progress.stop()

    # -- SyncProgress implementation --------------------------------------

    def phase_start(self, phase: str, total: int | None = None) -> None:
        label = self._PHASE_LABELS.get(phase, phase)
        previous = self._task_ids.pop(phase, None)
        if previous is not None:
            # Scheduled cycles reuse phase names; keep only the latest bar.
            self._progress.remove_task(previous)
        self._task_ids[phase] = self._progress.add_task(label, total=total)

    def item_done(self, phase: str) -> None:
        task_id = self._task_ids.get(phase)
        if task_id is not None:
            self._progress.advance(task_id)

    def phase_done(self, phase: str) -> None:
        task_id = self._task_ids.get(phase)
        if task_id is None:
            return
        task = self._task(task_id)
        if task.total is not None:
            self._progress.update(task_id, completed=task.total)
        else:
            # Indeterminate phase - mark finished by setting total = completed.
            self._progress.update(task_id, total=1, completed=1)

    def phase_error(self, phase: str, error: BaseException) -> None:
        task_id = self._task_ids.get(phase)
        if task_id is None:
            return
        label = self._PHASE_LABELS.get(phase, phase)
        self._progress.update(task_id, description=f"{label} [red]✗[/red]")
        self._progress.stop_task(task_id)

    def _task(self, task_id: RichTaskID) -> Task:
        return next(task for task in self._progress.tasks if task.id == task_id)

    def tile_synced(self, result: TileSyncResult) -> None:
        if result.outcome is SyncOutcome.FAIL:
            self._console.print(f"[yellow]sync {result.data_class} {result.tile} failed:[/] {result.error}")

    def tile_exported(self, result: ExportResult) -> None:
        if not result.installed:
            self._console.print(f"[yellow]export {result.tile} failed:[/] {result.error}")
