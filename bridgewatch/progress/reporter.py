"""
Progress reporting using Rich library.

Renders stage traffic lights and step status lines in the terminal.
"""
from typing import Optional

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.table import Table

from ..core.types import Progress, StepStatus, TrafficLight
from .stages import traffic_light
from .tracker import progress_stats

LIGHT_STYLES = {
    TrafficLight.RED: "bold red",
    TrafficLight.YELLOW: "bold yellow",
    TrafficLight.GREEN: "bold green",
    TrafficLight.GRAY: "dim",
}

STEP_MARKS = {
    StepStatus.PENDING: "[dim]-[/dim]",
    StepStatus.LOADING: "[yellow]…[/yellow]",
    StepStatus.COMPLETED: "[green]✓[/green]",
    StepStatus.FAILED: "[red]✗[/red]",
    StepStatus.SKIPPED: "[dim]»[/dim]",
}


class ProgressReporter:
    """
    Reports progress to the console using Rich.

    Pass ``reporter.update`` as the ``on_update`` callback of a
    ProgressTracker or CastMonitor.
    """

    def __init__(self, progress: Progress, console: Optional[Console] = None):
        """
        Initialize progress reporter.

        Args:
            progress: Initial progress to display
            console: Console to render on (defaults to the logging console)
        """
        if console is None:
            from ..logging.setup import console as shared_console
            console = shared_console
        self.console = console
        self.progress = progress
        self.live: Optional[Live] = None

    def __enter__(self) -> "ProgressReporter":
        self.live = Live(self.render(), console=self.console, refresh_per_second=4, transient=False)
        self.live.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.live:
            self.live.update(self.render())
            self.live.stop()
            self.live = None

    def update(self, progress: Progress):
        """Handle progress updates from a tracker."""
        self.progress = progress
        if self.live:
            self.live.update(self.render())

    def render(self) -> Table:
        """Build the stage/step table for the current progress."""
        progress = self.progress
        stats = progress_stats(progress)
        table = Table(
            title=f"{progress.direction.value}  {stats.progress_percentage:.0f}%",
            show_header=True,
            expand=False,
        )
        table.add_column("Stage")
        table.add_column("Step")
        table.add_column("Status")

        for stage in progress.stages:
            light = traffic_light(stage)
            stage_label = f"[{LIGHT_STYLES[light]}]●[/] {stage.title}"
            for i, step_id in enumerate(stage.step_ids):
                step = progress.step(step_id)
                if step is None:
                    continue
                status_text = escape(step.message or step.status.value)
                table.add_row(
                    stage_label if i == 0 else "",
                    f"{STEP_MARKS[step.status]} {escape(step.title)}",
                    status_text,
                )
            if not stage.step_ids:
                table.add_row(stage_label, "", "")

        return table

    def print_summary(self):
        """Print final summary."""
        progress = self.progress
        failed = next((s for s in progress.steps if s.status == StepStatus.FAILED), None)

        if progress.is_complete:
            elapsed = progress.total_duration or 0.0
            minutes = int(elapsed // 60)
            seconds = int(elapsed % 60)
            self.console.print(f"[green]Completed in {minutes}m {seconds}s[/green]")
        elif failed is not None:
            self.console.print(f"[red]Failed at {escape(failed.title)}: {escape(failed.error or '')}[/red]")
        else:
            stats = progress_stats(progress)
            self.console.print(
                f"[yellow]{stats.completed_steps + stats.skipped_steps}/{progress.total_steps} steps done[/yellow]"
            )

        for step in progress.steps:
            if step.tx_hash:
                self.console.print(f"  {step.title}: {step.tx_hash}")
