"""
Cast monitor.

Polls a backend for a batch of in-flight casts and folds the results into
one watch step of a Progress:

- all casts completed: the step completes with the primary transfer hash
- any cast reports Error/Failed: polling stops at once, the step fails
- poll budget exhausted: soft success, the step completes with a caveat
- failed status queries: logged, the next interval polls again
  (a BridgeWatchError other than TransientQueryError fails the step)
"""
import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from ..core.config import get_config
from ..core.exceptions import (
    BackendContractError,
    BridgeWatchError,
    CastNotFoundError,
    PollTimeout,
    RemoteCastError,
    TransientQueryError,
)
from ..core.types import Progress, TransitionEvent
from ..logging import get_logger
from ..progress.tracker import ProgressTracker
from .backends import CastBackend
from .models import (
    Chain,
    CastRecord,
    CastRequest,
    CastStatus,
    CastStatusKind,
    HistoryEntry,
    SubmitResult,
    extract_transfer_hash,
)

logger = get_logger("casts.monitor")

# Failures of a single poll that are absorbed by the loop
TRANSIENT_ERRORS = (TransientQueryError, ConnectionError, TimeoutError, OSError)

COMPLETION_KINDS: Dict[Chain, FrozenSet[CastStatusKind]] = {
    Chain.EVM: frozenset({CastStatusKind.COMPLETED}),
    Chain.IC: frozenset({CastStatusKind.COMPLETED}),
    Chain.SOLANA: frozenset({CastStatusKind.COMPLETED, CastStatusKind.REMOTE_FINALIZED}),
}

SOFT_TIMEOUT_MESSAGE = "{casts} submitted successfully. Final confirmation may take additional time."


class OutcomeStatus(str, Enum):
    """How a monitoring run ended."""
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"   # soft success
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class MonitorOutcome:
    """Result of a monitoring run."""
    status: OutcomeStatus
    progress: Progress
    cast_ids: Tuple[int, ...] = ()
    records: Dict[int, CastRecord] = field(default_factory=dict)
    observed: Dict[int, Tuple[HistoryEntry, ...]] = field(default_factory=dict)
    tx_hashes: Tuple[str, ...] = ()
    primary_hash: Optional[str] = None
    completed_count: int = 0
    attempts: int = 0
    error: Optional[BridgeWatchError] = None  # PollTimeout on soft timeout

    @property
    def success(self) -> bool:
        """True for full success and for soft timeout."""
        return self.status in (OutcomeStatus.SUCCEEDED, OutcomeStatus.TIMED_OUT)

    def record(self, cast_id: int) -> CastRecord:
        """Last remote record seen for a cast."""
        if cast_id not in self.records:
            raise CastNotFoundError(cast_id)
        return self.records[cast_id]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


class CastMonitor:
    """
    Polling state machine for one batch of casts.

    One monitor watches one batch; create a new monitor per attempt.
    ``cancel()`` stops further polls: the run returns a CANCELLED outcome
    and produces no Progress value after the cancellation.
    """

    def __init__(
        self,
        backend: CastBackend,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        dedupe_history: Optional[bool] = None,
        completion_kinds: Optional[FrozenSet[CastStatusKind]] = None,
        on_update: Optional[Callable[[Progress], None]] = None,
        on_transition: Optional[Callable[[TransitionEvent], None]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize cast monitor.

        Args:
            backend: Remote submit/status collaborator
            poll_interval: Seconds between polls (config default: 10)
            max_attempts: Poll budget before soft timeout (config default: 30)
            dedupe_history: Skip repeated statuses in the observed history
            completion_kinds: Statuses that count as completed (per chain by default)
            on_update: Callback invoked with each new Progress
            on_transition: Callback invoked with each TransitionEvent
            clock: Time source (epoch seconds)
        """
        poll = get_config().poll
        self.backend = backend
        self.poll_interval = poll.interval_seconds if poll_interval is None else poll_interval
        self.max_attempts = poll.max_attempts if max_attempts is None else max_attempts
        self.dedupe_history = poll.dedupe_history if dedupe_history is None else dedupe_history
        self.completion_kinds = completion_kinds or COMPLETION_KINDS[Chain(backend.chain)]
        self.on_update = on_update
        self.on_transition = on_transition
        self.clock = clock

        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._cancel_requested = False
        self._wake = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        """Stop polling. Safe to call from any coroutine on the same loop."""
        if not self._cancel_requested:
            logger.info("Cast monitoring cancelled")
        self._cancel_requested = True
        self._wake.set()

    async def submit(self, requests: Sequence[CastRequest]) -> List[SubmitResult]:
        """Submit a batch of cast requests; one result per request."""
        results = list(await self.backend.submit(requests))
        if len(results) != len(requests):
            raise BackendContractError(
                f"Backend returned {len(results)} submit results for {len(requests)} requests"
            )
        return results

    async def run(
        self,
        progress: Progress,
        requests: Sequence[CastRequest],
        submit_step_id: str,
        watch_step_id: str,
    ) -> MonitorOutcome:
        """
        Submit a batch and watch it through to a terminal outcome.

        The submit step completes once every request has a cast id. A
        per-item submission error fails the submit step and nothing is
        polled. Any other exception from the backend fails the submit step
        and is re-raised.
        """
        tracker = self._tracker(progress)
        tracker.start_step(submit_step_id, message=f"Submitting {_plural(len(requests), 'cast request')}...")

        try:
            results = await self.submit(requests)
        except Exception as e:
            tracker.fail_step(submit_step_id, f"Cast submission failed: {e}")
            raise

        if self.cancelled:
            # accepted casts stay watchable through watch()
            accepted = [r.cast_id for r in results if r.ok]
            return self._outcome(OutcomeStatus.CANCELLED, tracker, cast_ids=accepted)

        for index, result in enumerate(results):
            if result.ok:
                continue
            detail = result.error.describe() if result.error else "no cast id returned"
            error = RemoteCastError(None, f"request {index + 1}: {detail}")
            logger.error(f"Cast request {index + 1} rejected: {detail}")
            tracker.fail_step(submit_step_id, error.message)
            return self._outcome(OutcomeStatus.FAILED, tracker, error=error)

        cast_ids = [r.cast_id for r in results]
        for cast_id in cast_ids:
            logger.info(f"Cast submitted with ID: {cast_id}", extra={"cast_id": cast_id})

        tracker.complete_step(
            submit_step_id,
            message=f"Cast request{'s' if len(cast_ids) != 1 else ''} submitted successfully "
                    f"({_plural(len(cast_ids), 'operation')})",
            metadata={"cast_ids": list(cast_ids)},
        )
        return await self._watch(tracker, watch_step_id, cast_ids)

    async def watch(self, progress: Progress, step_id: str, cast_ids: Sequence[int]) -> MonitorOutcome:
        """Watch already-submitted casts, updating ``step_id`` of ``progress``."""
        return await self._watch(self._tracker(progress), step_id, list(cast_ids))

    async def _watch(self, tracker: ProgressTracker, step_id: str, cast_ids: List[int]) -> MonitorOutcome:
        if not cast_ids:
            raise ValueError("No cast ids to monitor")
        if self.cancelled:
            return self._outcome(OutcomeStatus.CANCELLED, tracker, cast_ids=cast_ids)

        total = len(cast_ids)
        noun = _plural(total, "cast operation")
        tracker.start_step(step_id, message=f"Monitoring {noun}...")

        records: Dict[int, CastRecord] = {}
        observed: Dict[int, List[HistoryEntry]] = {cast_id: [] for cast_id in cast_ids}
        completed: Dict[int, CastRecord] = {}
        attempts = 0

        def outcome(status: OutcomeStatus, error: Optional[BridgeWatchError] = None,
                    hashes: Tuple[str, ...] = (), primary: Optional[str] = None) -> MonitorOutcome:
            return self._outcome(
                status, tracker,
                cast_ids=cast_ids,
                records=records,
                observed=observed,
                tx_hashes=hashes,
                primary_hash=primary,
                completed_count=len(completed),
                attempts=attempts,
                error=error,
            )

        while attempts < self.max_attempts:
            if self.cancelled:
                return outcome(OutcomeStatus.CANCELLED)

            attempts += 1
            tracker.update_message(
                step_id,
                f"Monitoring {noun}... ({attempts}/{self.max_attempts} checks)",
                metadata={"attempt": attempts},
            )

            pending = [cast_id for cast_id in cast_ids if cast_id not in completed]
            try:
                results = list(await self.backend.query_status(pending))
            except TRANSIENT_ERRORS as e:
                logger.warning(f"Cast status check {attempts} failed: {e}", extra={"attempt": attempts})
                results = None
            except BridgeWatchError as e:
                tracker.fail_step(step_id, e.message)
                raise
            except Exception as e:
                logger.warning(
                    f"Cast status check {attempts} failed ({type(e).__name__}): {e}",
                    extra={"attempt": attempts},
                )
                results = None

            if self.cancelled:
                return outcome(OutcomeStatus.CANCELLED)

            if results is not None:
                if len(results) != len(pending):
                    error = BackendContractError(
                        f"Backend returned {len(results)} statuses for {len(pending)} casts"
                    )
                    tracker.fail_step(step_id, error.message)
                    raise error

                failure = self._fold(pending, results, records, observed, completed, attempts)
                if failure is not None:
                    tracker.fail_step(step_id, failure.message, metadata={"cast_id": failure.cast_id})
                    return outcome(OutcomeStatus.FAILED, error=failure)

                logger.debug(f"Completion check: {len(completed)} of {total} completed",
                             extra={"attempt": attempts})

                if len(completed) == total:
                    hashes = self._collect_hashes(cast_ids, completed, observed)
                    primary = hashes[0] if hashes else f"cast-{cast_ids[0]}"
                    tx_note = f" ({_plural(len(hashes), 'TX')})" if hashes else ""
                    tracker.complete_step(
                        step_id,
                        tx_hash=primary,
                        message=f"{_plural(total, 'cast')} completed successfully{tx_note}",
                        metadata={"tx_hashes": list(hashes)},
                    )
                    logger.info(f"All {total} casts completed, primary hash {primary}")
                    return outcome(OutcomeStatus.SUCCEEDED, hashes=hashes, primary=primary)

                phase = self._phase(cast_ids, records, completed)
                if phase:
                    tracker.update_message(
                        step_id,
                        f"Monitoring {noun}... ({attempts}/{self.max_attempts} checks): {phase}",
                    )

            if attempts < self.max_attempts:
                await self._sleep()

        if self.cancelled:
            return outcome(OutcomeStatus.CANCELLED)

        hashes = self._collect_hashes(cast_ids, completed, observed)
        primary = hashes[0] if hashes else f"cast-{cast_ids[0]}"
        casts = "Casts" if total != 1 else "Cast"
        logger.warning(
            f"Cast monitoring timed out after {attempts} checks "
            f"({len(completed)} of {total} completed)"
        )
        tracker.complete_step(
            step_id,
            tx_hash=primary,
            message=SOFT_TIMEOUT_MESSAGE.format(casts=casts),
            metadata={"soft_timeout": True, "completed_casts": len(completed)},
        )
        return outcome(OutcomeStatus.TIMED_OUT, error=PollTimeout(attempts), hashes=hashes, primary=primary)

    def _fold(
        self,
        pending: List[int],
        results: List[Optional[CastRecord]],
        records: Dict[int, CastRecord],
        observed: Dict[int, List[HistoryEntry]],
        completed: Dict[int, CastRecord],
        attempt: int,
    ) -> Optional[RemoteCastError]:
        """Record one poll's results; return the first hard failure, if any."""
        now = self.clock()
        failure = None

        for cast_id, record in zip(pending, results):
            if record is None:
                logger.debug(f"No status found for cast {cast_id}", extra={"cast_id": cast_id})
                continue

            records[cast_id] = record
            self._observe(observed[cast_id], record.status, now)
            status = record.status

            if status.is_error:
                logger.error(f"Cast {cast_id} failed: {status.describe()}",
                             extra={"cast_id": cast_id, "attempt": attempt})
                if failure is None:
                    failure = RemoteCastError(cast_id, status.describe())
            elif status.kind in self.completion_kinds:
                completed[cast_id] = record
                logger.info(f"Cast {cast_id} completed", extra={"cast_id": cast_id})
            else:
                logger.debug(f"Cast {cast_id} still in progress: {status.describe()}",
                             extra={"cast_id": cast_id, "attempt": attempt})

        return failure

    def _phase(
        self,
        cast_ids: List[int],
        records: Dict[int, CastRecord],
        completed: Dict[int, CastRecord],
    ) -> Optional[str]:
        """Latest status of the first cast still in flight, for the step message."""
        for cast_id in cast_ids:
            if cast_id in completed or cast_id not in records:
                continue
            text = records[cast_id].status.describe()
            return text if len(cast_ids) == 1 else f"cast {cast_id} {text}"
        return None

    def _observe(self, history: List[HistoryEntry], status: CastStatus, now: float) -> None:
        if self.dedupe_history and history and history[-1].status == status:
            return
        history.append(HistoryEntry(status=status, timestamp=now))

    def _collect_hashes(
        self,
        cast_ids: List[int],
        completed: Dict[int, CastRecord],
        observed: Dict[int, List[HistoryEntry]],
    ) -> Tuple[str, ...]:
        """One proof hash per completed cast, in submission order."""
        hashes = []
        for cast_id in cast_ids:
            record = completed.get(cast_id)
            if record is None:
                continue
            tx_hash = extract_transfer_hash(record.history) or extract_transfer_hash(observed[cast_id])
            if tx_hash is None and record.status.kind == CastStatusKind.REMOTE_FINALIZED and record.status.value:
                tx_hash = str(record.status.value)
            if tx_hash is not None:
                hashes.append(tx_hash)
        return tuple(hashes)

    async def _sleep(self) -> None:
        """Wait one poll interval, waking early on cancel."""
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass

    def _tracker(self, progress: Progress) -> ProgressTracker:
        return ProgressTracker(
            progress,
            on_update=self.on_update,
            on_transition=self.on_transition,
            clock=self.clock,
        )

    def _outcome(self, status: OutcomeStatus, tracker: ProgressTracker, **kwargs) -> MonitorOutcome:
        observed = kwargs.pop("observed", {})
        records = kwargs.pop("records", {})
        cast_ids = kwargs.pop("cast_ids", ())
        return MonitorOutcome(
            status=status,
            progress=tracker.progress,
            cast_ids=tuple(cast_ids),
            records=dict(records),
            observed={cast_id: tuple(entries) for cast_id, entries in observed.items()},
            **kwargs,
        )
