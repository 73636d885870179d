"""Tests for the rich progress reporter."""
from rich.console import Console

from bridgewatch.progress.reporter import ProgressReporter
from bridgewatch.progress.tracker import complete_step, fail_step


def _reporter(progress):
    return ProgressReporter(progress, console=Console(record=True, width=120))


def test_render_lists_stages_and_steps(cast_progress):
    progress = complete_step(cast_progress, "verify-connection", now=1001.0)
    progress = fail_step(progress, "execute-cast", "Error: InsufficientCycles: [10, 20]", now=1002.0)
    reporter = _reporter(progress)

    reporter.console.print(reporter.render())
    text = reporter.console.export_text()

    assert "Setup & Connection" in text
    assert "Verify Connection" in text
    assert "InsufficientCycles: [10, 20]" in text


def test_summary_reports_first_failure(cast_progress):
    progress = fail_step(cast_progress, "prepare-cast", "RPC unavailable", now=1001.0)
    reporter = _reporter(cast_progress)
    reporter.update(progress)

    reporter.print_summary()

    assert "Failed at Prepare Cast Request: RPC unavailable" in reporter.console.export_text()


def test_summary_reports_completion_and_hashes(cast_progress):
    progress = cast_progress
    for step in cast_progress.steps:
        progress = complete_step(progress, step.id, tx_hash="0xAA" if step.id == "monitor-status" else None,
                                 now=1065.0)
    reporter = _reporter(progress)

    reporter.print_summary()
    text = reporter.console.export_text()

    assert "Completed in 1m 5s" in text
    assert "Monitor Cast Status: 0xAA" in text
