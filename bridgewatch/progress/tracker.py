"""
Progress tracking for bridging attempts.

Module-level functions are pure transitions: each takes a Progress and a
step event and returns a new Progress, recomputing every stage from the
updated step list. ``ProgressTracker`` wraps them for one attempt and
routes each transition to update/transition callbacks.
"""
import random
import string
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..core.exceptions import InvalidTransitionError, StepNotFoundError
from ..core.types import (
    Direction,
    Progress,
    StageTemplate,
    Step,
    StepStatus,
    TransitionEvent,
)
from .stages import derive_stages
from .templates import STAGE_TEMPLATES, STEP_TEMPLATES


def _new_progress_id(now: float) -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"bridge-{int(now * 1000)}-{suffix}"


def _find_step(progress: Progress, step_id: str) -> Tuple[int, Step]:
    index = progress.index_of(step_id)
    if index == -1:
        raise StepNotFoundError(step_id)
    return index, progress.steps[index]


def _rebuild(
    progress: Progress,
    index: int,
    step: Step,
    current_step: int,
    now: float,
) -> Progress:
    """Swap one step in and recompute every derived field."""
    steps = progress.steps[:index] + (step,) + progress.steps[index + 1:]
    is_complete = all(s.status.is_done for s in steps)

    end_time = progress.end_time
    total_duration = progress.total_duration
    if is_complete and end_time is None:
        end_time = now
        total_duration = now - progress.start_time
    elif not is_complete:
        # a step failed after the run had finished
        end_time = None
        total_duration = None

    return replace(
        progress,
        steps=steps,
        stages=derive_stages(steps, progress.stage_templates),
        current_step=current_step,
        is_complete=is_complete,
        end_time=end_time,
        total_duration=total_duration,
    )


def _merged(step: Step, metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not metadata:
        return step.metadata
    return {**step.metadata, **metadata}


def create_progress(
    direction: Direction,
    steps: Optional[Iterable[Step]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    stage_templates: Optional[Iterable[StageTemplate]] = None,
    now: Optional[float] = None,
) -> Progress:
    """
    Create a new progress for one bridging attempt.

    Args:
        direction: Bridging direction; selects default step and stage templates
        steps: Custom steps (defaults to the direction's templates)
        metadata: Free-form attempt metadata
        stage_templates: Custom stage ordering and titles
        now: Creation timestamp (epoch seconds)

    Returns:
        Progress with every step pending
    """
    now = time.time() if now is None else now
    direction = Direction(direction)
    templates = STEP_TEMPLATES[direction] if steps is None else tuple(steps)
    if not templates:
        raise ValueError("Progress must have at least one step")

    seen = set()
    for step in templates:
        if step.id in seen:
            raise ValueError(f"Duplicate step id: {step.id}")
        seen.add(step.id)

    pending = tuple(
        replace(s, status=StepStatus.PENDING, error=None, tx_hash=None, message=None,
                start_time=None, end_time=None, metadata=dict(s.metadata))
        for s in templates
    )
    stage_list = tuple(stage_templates) if stage_templates is not None else STAGE_TEMPLATES[direction]

    return Progress(
        id=_new_progress_id(now),
        direction=direction,
        steps=pending,
        stages=derive_stages(pending, stage_list),
        stage_templates=stage_list,
        start_time=now,
        metadata=dict(metadata or {}),
    )


def start_step(
    progress: Progress,
    step_id: str,
    message: Optional[str] = None,
    now: Optional[float] = None,
) -> Progress:
    """
    Move a pending step to loading.

    Starting a step that is already loading is a no-op apart from an
    optional message update; its start time is never re-stamped.
    """
    now = time.time() if now is None else now
    index, step = _find_step(progress, step_id)

    if step.status == StepStatus.LOADING:
        if message is None or message == step.message:
            return progress
        return _rebuild(progress, index, replace(step, message=message), index, now)

    if step.status != StepStatus.PENDING:
        raise InvalidTransitionError(step_id, step.status.value, "start")

    started = replace(
        step,
        status=StepStatus.LOADING,
        start_time=step.start_time if step.start_time is not None else now,
        message=message,
    )
    return _rebuild(progress, index, started, index, now)


def complete_step(
    progress: Progress,
    step_id: str,
    tx_hash: Optional[str] = None,
    message: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[float] = None,
) -> Progress:
    """Mark a step completed and advance to the next step."""
    now = time.time() if now is None else now
    index, step = _find_step(progress, step_id)

    completed = replace(
        step,
        status=StepStatus.COMPLETED,
        end_time=step.end_time if step.end_time is not None else now,
        tx_hash=tx_hash if tx_hash is not None else step.tx_hash,
        message=message if message is not None else step.message,
        metadata=_merged(step, metadata),
    )
    next_step = min(index + 1, progress.total_steps - 1)
    return _rebuild(progress, index, completed, next_step, now)


def fail_step(
    progress: Progress,
    step_id: str,
    error: str,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[float] = None,
) -> Progress:
    """Mark a step failed. The current step does not move."""
    now = time.time() if now is None else now
    index, step = _find_step(progress, step_id)

    failed = replace(
        step,
        status=StepStatus.FAILED,
        end_time=step.end_time if step.end_time is not None else now,
        error=error,
        message=error,
        metadata=_merged(step, metadata),
    )
    return _rebuild(progress, index, failed, progress.current_step, now)


def skip_step(
    progress: Progress,
    step_id: str,
    reason: Optional[str] = None,
    now: Optional[float] = None,
) -> Progress:
    """Mark a step skipped; counts as done for completion."""
    now = time.time() if now is None else now
    index, step = _find_step(progress, step_id)

    skipped = replace(
        step,
        status=StepStatus.SKIPPED,
        message=reason,
        metadata=_merged(step, {"skip_reason": reason}),
    )
    next_step = min(index + 1, progress.total_steps - 1)
    return _rebuild(progress, index, skipped, next_step, now)


def update_message(
    progress: Progress,
    step_id: str,
    message: str,
    metadata: Optional[Dict[str, Any]] = None,
    now: Optional[float] = None,
) -> Progress:
    """Replace a step's status line without changing its status."""
    now = time.time() if now is None else now
    index, step = _find_step(progress, step_id)
    updated = replace(step, message=message, metadata=_merged(step, metadata))
    return _rebuild(progress, index, updated, progress.current_step, now)


@dataclass(frozen=True)
class ProgressStats:
    """Summary numbers for a progress."""
    completed_steps: int
    failed_steps: int
    skipped_steps: int
    loading_steps: int
    progress_percentage: float
    estimated_total_duration: float
    actual_duration: Optional[float]
    is_stuck: bool
    current_step_title: Optional[str]
    current_step_description: Optional[str]


def progress_stats(progress: Progress, now: Optional[float] = None) -> ProgressStats:
    """Compute summary statistics for a progress."""
    counts = {status: 0 for status in StepStatus}
    for step in progress.steps:
        counts[step.status] += 1

    done = counts[StepStatus.COMPLETED] + counts[StepStatus.SKIPPED]
    percentage = (done / progress.total_steps) * 100 if progress.total_steps else 0.0

    actual = progress.total_duration
    if actual is None and not progress.is_complete:
        actual = (time.time() if now is None else now) - progress.start_time

    current = progress.active_step
    return ProgressStats(
        completed_steps=counts[StepStatus.COMPLETED],
        failed_steps=counts[StepStatus.FAILED],
        skipped_steps=counts[StepStatus.SKIPPED],
        loading_steps=counts[StepStatus.LOADING],
        progress_percentage=percentage,
        estimated_total_duration=sum(s.estimated_duration or 0 for s in progress.steps),
        actual_duration=actual,
        is_stuck=(
            counts[StepStatus.LOADING] == 0
            and counts[StepStatus.FAILED] > 0
            and not progress.is_complete
        ),
        current_step_title=current.title if current else None,
        current_step_description=current.description if current else None,
    )


def validate_progress(progress: Progress) -> List[str]:
    """Return a list of integrity problems (empty when well-formed)."""
    errors = []

    if not progress.id:
        errors.append("Progress must have an id")

    if progress.direction not in tuple(Direction):
        errors.append('Direction must be either "evm-to-ic" or "ic-to-evm"')

    if not progress.steps:
        errors.append("Progress must have at least one step")

    if progress.current_step < 0 or progress.current_step >= len(progress.steps):
        errors.append("Current step index is out of bounds")

    step_ids = [s.id for s in progress.steps]
    if len(step_ids) != len(set(step_ids)):
        errors.append("Duplicate step IDs found")

    if progress.is_complete != all(s.status.is_done for s in progress.steps):
        errors.append("Completion flag does not match step statuses")

    return errors


class ProgressTracker:
    """
    Holds the current Progress of one attempt.

    Every transition replaces ``progress`` with the new value and notifies
    ``on_update`` (with the new Progress) and ``on_transition`` (with a
    TransitionEvent). Route ``on_transition`` to an AttemptLogger to get
    structured logs.
    """

    def __init__(
        self,
        progress: Progress,
        on_update: Optional[Callable[[Progress], None]] = None,
        on_transition: Optional[Callable[[TransitionEvent], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize progress tracker.

        Args:
            progress: Initial progress value
            on_update: Callback invoked with each new Progress
            on_transition: Callback invoked with each TransitionEvent
            clock: Time source (epoch seconds)
        """
        self.progress = progress
        self.on_update = on_update
        self.on_transition = on_transition
        self.clock = clock

    def start_step(self, step_id: str, message: Optional[str] = None) -> Progress:
        now = self.clock()
        return self._apply("start", step_id, start_step(self.progress, step_id, message, now=now), now)

    def complete_step(
        self,
        step_id: str,
        tx_hash: Optional[str] = None,
        message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Progress:
        now = self.clock()
        updated = complete_step(self.progress, step_id, tx_hash, message, metadata, now=now)
        return self._apply("complete", step_id, updated, now)

    def fail_step(self, step_id: str, error: str, metadata: Optional[Dict[str, Any]] = None) -> Progress:
        now = self.clock()
        return self._apply("fail", step_id, fail_step(self.progress, step_id, error, metadata, now=now), now)

    def skip_step(self, step_id: str, reason: Optional[str] = None) -> Progress:
        now = self.clock()
        return self._apply("skip", step_id, skip_step(self.progress, step_id, reason, now=now), now)

    def update_message(self, step_id: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> Progress:
        now = self.clock()
        updated = update_message(self.progress, step_id, message, metadata, now=now)
        return self._apply("message", step_id, updated, now)

    def retry_step(self, step_id: str) -> Progress:
        from .retry import retry_step

        now = self.clock()
        return self._apply("retry", step_id, retry_step(self.progress, step_id, now=now), now)

    async def track(self, step_id: str, operation: Awaitable[Any]) -> Any:
        """
        Run an external operation as a step.

        The step is started, the awaitable is awaited, and the step is
        completed (a string result is recorded as the transaction hash) or
        failed with the exception message, which is then re-raised.
        """
        self.start_step(step_id)
        try:
            result = await operation
        except Exception as e:
            self.fail_step(step_id, str(e) or type(e).__name__)
            raise

        self.complete_step(step_id, tx_hash=result if isinstance(result, str) else None)
        return result

    def _apply(self, kind: str, step_id: str, updated: Progress, now: float) -> Progress:
        if updated is self.progress:
            return updated

        self.progress = updated
        step = updated.step(step_id)
        if self.on_transition and step is not None:
            self.on_transition(TransitionEvent(
                kind=kind,
                progress_id=updated.id,
                step_id=step_id,
                status=step.status,
                timestamp=now,
                message=step.message,
                tx_hash=step.tx_hash,
                error=step.error,
            ))
        if self.on_update:
            self.on_update(updated)
        return updated
