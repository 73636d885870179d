"""
Command-line interface for bridgewatch.

Provides commands for inspecting step templates and replaying recorded
cast scenarios through the monitor.
"""
import asyncio
import sys
from pathlib import Path

import click

from . import __version__
from .core.config import get_config
from .core.exceptions import BridgeWatchError
from .core.types import Direction
from .logging import setup_logging, get_logger, AttemptLogger


def _fail(logger, error: BridgeWatchError):
    """Report an error with its suggestions and exit."""
    logger.error(str(error))
    if error.suggestions:
        click.echo("\nSuggestions:")
        for i, tip in enumerate(error.suggestions, 1):
            click.echo(f"  {i}. {tip}")
    sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--log-file", is_flag=True, help="Also write logs under the logs directory")
@click.pass_context
def cli(ctx, debug, log_file):
    """bridgewatch - cross-chain bridge progress tracker"""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["log_file"] = log_file

    level = "DEBUG" if debug else get_config().log.level
    setup_logging(level=level, enable_file_logging=log_file)


@cli.command()
@click.argument("direction", type=click.Choice([d.value for d in Direction]))
def steps(direction):
    """List the template steps of a bridging direction."""
    from .progress.templates import STAGE_TEMPLATES, STEP_TEMPLATES

    direction = Direction(direction)
    templates = STEP_TEMPLATES[direction]

    for stage in STAGE_TEMPLATES[direction]:
        click.echo(f"\n{stage.title} ({stage.id})")
        click.echo("-" * 60)
        for step in templates:
            if step.stage != stage.id:
                continue
            retry = "" if step.retryable else "  [no retry]"
            click.echo(f"  {step.id:<28} {step.title}{retry}")


@cli.command()
@click.argument("scenario", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--interval", "-i", type=float, default=None,
              help="Seconds between status checks (default from config)")
@click.option("--max-attempts", "-n", type=int, default=None,
              help="Status checks before soft timeout (default from config)")
@click.option("--no-dedupe", is_flag=True, help="Record every poll in the observed history")
@click.pass_context
def replay(ctx, scenario, interval, max_attempts, no_dedupe):
    """Replay a recorded cast scenario through the monitor."""
    from .casts import CastMonitor, load_scenario
    from .progress.reporter import ProgressReporter
    from .progress.templates import return_cast_steps
    from .progress.tracker import ProgressTracker, create_progress

    logger = get_logger("cli")
    config = get_config()

    try:
        backend = load_scenario(scenario)
    except BridgeWatchError as e:
        _fail(logger, e)

    progress = create_progress(
        Direction.IC_TO_EVM,
        steps=return_cast_steps(),
        metadata={"scenario": scenario.name, "chain": backend.chain.value},
    )
    log_dir = config.logs_dir / "attempts" if ctx.obj.get("log_file") else None

    with AttemptLogger(progress.id, progress.direction.value, log_dir=log_dir) as attempt_log:
        reporter = ProgressReporter(progress)
        with reporter:
            tracker = ProgressTracker(progress, on_update=reporter.update, on_transition=attempt_log)
            tracker.complete_step("verify-connection", message="Replay backend ready")
            tracker.complete_step("prepare-cast", message=f"{len(backend.casts)} cast request(s) prepared")

            monitor = CastMonitor(
                backend,
                poll_interval=interval,
                max_attempts=max_attempts,
                dedupe_history=False if no_dedupe else None,
                on_update=reporter.update,
                on_transition=attempt_log,
            )
            try:
                outcome = asyncio.run(
                    monitor.run(tracker.progress, backend.requests(), "execute-cast", "monitor-status")
                )
            except KeyboardInterrupt:
                logger.info("Interrupted by user")
                sys.exit(130)
            except BridgeWatchError as e:
                _fail(logger, e)

        reporter.print_summary()

    click.echo(f"\nOutcome: {outcome.status.value} "
               f"({outcome.completed_count}/{len(outcome.cast_ids)} casts, {outcome.attempts} checks)")
    if outcome.primary_hash:
        click.echo(f"Primary hash: {outcome.primary_hash}")
    if outcome.error:
        label = "Note" if outcome.success else "Error"
        click.echo(f"{label}: {outcome.error.message}")

    if not outcome.success:
        sys.exit(1)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
