"""
Retry coordination for failed steps.
"""
import time
from dataclasses import replace
from typing import List, Optional

from ..core.exceptions import NotRetryableError
from ..core.types import Progress, Step, StepStatus
from .tracker import _find_step, _rebuild


def retry_step(progress: Progress, step_id: str, now: Optional[float] = None) -> Progress:
    """
    Reset a failed, retryable step to pending.

    Clears the error, timestamps, hash and status line and points
    ``current_step`` at the step. Remote cast histories are not touched.

    Raises:
        StepNotFoundError: unknown step id
        NotRetryableError: step is not failed or not retryable
    """
    now = time.time() if now is None else now
    index, step = _find_step(progress, step_id)

    if step.status != StepStatus.FAILED:
        raise NotRetryableError(step_id, f"status is {step.status.value}")
    if not step.retryable:
        raise NotRetryableError(step_id, "step is marked non-retryable")

    reset = replace(
        step,
        status=StepStatus.PENDING,
        error=None,
        tx_hash=None,
        message=None,
        start_time=None,
        end_time=None,
    )
    return _rebuild(progress, index, reset, index, now)


def retryable_steps(progress: Progress) -> List[Step]:
    """Failed steps that may be retried."""
    return [s for s in progress.steps if s.status == StepStatus.FAILED and s.retryable]
