"""Progress tracking system."""
from .tracker import ProgressTracker, create_progress, start_step, complete_step, fail_step, skip_step
from .stages import derive_stages, traffic_light
from .retry import retry_step, retryable_steps
from .reporter import ProgressReporter

__all__ = [
    "ProgressTracker", "create_progress", "start_step", "complete_step", "fail_step", "skip_step",
    "derive_stages", "traffic_light", "retry_step", "retryable_steps", "ProgressReporter",
]
