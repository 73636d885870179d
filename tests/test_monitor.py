"""Tests for the cast monitor polling loop."""
import asyncio

import pytest

from bridgewatch.casts.backends import ScriptedBackend, ScriptedCast
from bridgewatch.casts.models import CastError, CastStatus, CastStatusKind, Chain, SubmitResult
from bridgewatch.casts.monitor import SOFT_TIMEOUT_MESSAGE, CastMonitor, OutcomeStatus
from bridgewatch.core.exceptions import BackendContractError, CastNotFoundError, PollTimeout, RemoteCastError
from bridgewatch.core.types import StageStatus, StepStatus

WAIT_AA = {"WaitingOnTransfer": {"transaction": "0xAA"}}
WAIT_BB = {"WaitingOnTransfer": {"transaction": "0xBB"}}


def _monitor(backend, **kwargs):
    kwargs.setdefault("poll_interval", 0)
    kwargs.setdefault("max_attempts", 5)
    return CastMonitor(backend, **kwargs)


@pytest.mark.asyncio
async def test_two_casts_complete(scripted, watching_progress):
    backend = scripted(
        [{"Created": None}, WAIT_AA, {"Completed": 100}],
        [{"Created": None}, WAIT_BB, {"Completed": 101}],
    )
    updates = []
    monitor = _monitor(backend, on_update=updates.append)

    outcome = await monitor.watch(watching_progress, "monitor-status", [1, 2])

    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.success
    assert outcome.attempts == 3
    assert outcome.completed_count == 2
    assert outcome.tx_hashes == ("0xAA", "0xBB")
    assert outcome.primary_hash == "0xAA"

    step = outcome.progress.step("monitor-status")
    assert step.status == StepStatus.COMPLETED
    assert step.tx_hash == "0xAA"
    assert step.metadata["tx_hashes"] == ["0xAA", "0xBB"]
    assert step.message == "2 casts completed successfully (2 TXs)"
    assert outcome.progress.is_complete
    assert updates[-1] is outcome.progress


@pytest.mark.asyncio
async def test_first_transfer_hash_is_kept(scripted, watching_progress):
    backend = scripted([WAIT_AA, WAIT_BB, {"Completed": 1}])

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1])

    assert outcome.primary_hash == "0xAA"
    assert outcome.progress.step("monitor-status").tx_hash == "0xAA"


@pytest.mark.asyncio
async def test_step_message_shows_cast_phase(scripted, watching_progress):
    updates = []
    backend = scripted([WAIT_AA, {"Completed": 1}])

    await _monitor(backend, on_update=updates.append).watch(watching_progress, "monitor-status", [1])

    messages = [p.step("monitor-status").message for p in updates]
    assert "Monitoring 1 cast operation... (1/5 checks): WaitingOnTransfer (TX: 0xAA...)" in messages


@pytest.mark.asyncio
async def test_step_message_names_cast_in_batch(scripted, watching_progress):
    updates = []
    backend = scripted(
        [WAIT_AA, {"Completed": 1}],
        [{"Created": None}, WAIT_BB, {"Completed": 2}],
    )

    await _monitor(backend, on_update=updates.append).watch(watching_progress, "monitor-status", [1, 2])

    messages = [p.step("monitor-status").message for p in updates]
    assert "Monitoring 2 cast operations... (2/5 checks): cast 2 WaitingOnTransfer (TX: 0xBB...)" in messages


@pytest.mark.asyncio
async def test_error_stops_polling_immediately(scripted, watching_progress):
    backend = scripted(
        [{"Created": None}, {"Completed": 1}],
        [{"Error": {"GenericError": "insufficient funds"}}],
        [{"Created": None}, {"Completed": 3}],
    )

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1, 2, 3])

    assert outcome.status == OutcomeStatus.FAILED
    assert not outcome.success
    assert backend.query_count == 1
    assert outcome.completed_count == 0
    assert isinstance(outcome.error, RemoteCastError)
    assert outcome.error.cast_id == 2

    step = outcome.progress.step("monitor-status")
    assert step.status == StepStatus.FAILED
    assert step.error == "Cast operation failed: GenericError: insufficient funds"
    assert step.metadata["cast_id"] == 2
    assert outcome.progress.stages[-1].status == StageStatus.FAILED


@pytest.mark.asyncio
async def test_failed_variant_is_an_error(scripted, watching_progress):
    backend = scripted([{"Created": None}, {"Failed": "reverted"}])

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.FAILED
    assert outcome.attempts == 2
    assert outcome.progress.step("monitor-status").error == "Cast operation failed: Failed: reverted"


@pytest.mark.asyncio
async def test_timeout_is_soft_success(scripted, watching_progress):
    backend = scripted([{"Created": None}, WAIT_AA])

    outcome = await _monitor(backend, max_attempts=3).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.TIMED_OUT
    assert outcome.success
    assert outcome.attempts == 3
    assert backend.query_count == 3
    assert outcome.completed_count == 0

    step = outcome.progress.step("monitor-status")
    assert step.status == StepStatus.COMPLETED
    assert step.error is None
    assert step.tx_hash == "cast-1"
    assert step.message == SOFT_TIMEOUT_MESSAGE.format(casts="Cast")
    assert step.metadata["soft_timeout"] is True
    assert step.metadata["completed_casts"] == 0
    assert outcome.progress.is_complete
    assert isinstance(outcome.error, PollTimeout)
    assert outcome.error.attempts == 3


@pytest.mark.asyncio
async def test_timeout_keeps_hashes_of_completed_casts(scripted, watching_progress):
    backend = scripted(
        [WAIT_AA, {"Completed": 1}],
        [{"Created": None}],
    )

    outcome = await _monitor(backend, max_attempts=4).watch(watching_progress, "monitor-status", [1, 2])

    assert outcome.status == OutcomeStatus.TIMED_OUT
    assert outcome.completed_count == 1
    assert outcome.primary_hash == "0xAA"
    # completed casts are not queried again
    assert backend.queries[-1] == (2,)
    assert outcome.record(1).status.kind == CastStatusKind.COMPLETED
    assert outcome.record(2).status.kind == CastStatusKind.CREATED
    with pytest.raises(CastNotFoundError):
        outcome.record(99)


@pytest.mark.asyncio
async def test_transient_errors_are_absorbed(scripted, watching_progress):
    backend = scripted([WAIT_AA, {"Completed": 1}], fail_queries=[1, 3])

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.attempts == 4
    assert outcome.primary_hash == "0xAA"


class _FlakyBackend(ScriptedBackend):
    async def query_status(self, cast_ids):
        if self.query_count == 0:
            self.query_count += 1
            raise ConnectionError("connection reset")
        return await super().query_status(cast_ids)


@pytest.mark.asyncio
async def test_connection_errors_are_absorbed(watching_progress):
    backend = _FlakyBackend(Chain.EVM, [
        ScriptedCast(submit=SubmitResult(cast_id=1), timeline=[CastStatus.decode({"Completed": 1})])
    ])

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.attempts == 2
    assert outcome.primary_hash == "cast-1"


class _TrappingBackend(ScriptedBackend):
    async def query_status(self, cast_ids):
        if self.query_count == 0:
            self.query_count += 1
            raise RuntimeError("decoder trapped")
        return await super().query_status(cast_ids)


@pytest.mark.asyncio
async def test_unexpected_query_errors_are_absorbed(watching_progress):
    backend = _TrappingBackend(Chain.EVM, [
        ScriptedCast(submit=SubmitResult(cast_id=1), timeline=[CastStatus.decode({"Completed": 1})])
    ])

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.attempts == 2
    assert outcome.progress.step("monitor-status").status == StepStatus.COMPLETED


class _MalformedBackend(ScriptedBackend):
    async def query_status(self, cast_ids):
        self.query_count += 1
        raise BackendContractError("status payload is not a variant")


@pytest.mark.asyncio
async def test_contract_error_fails_watch_step(watching_progress):
    updates = []
    backend = _MalformedBackend(Chain.EVM, [ScriptedCast(submit=SubmitResult(cast_id=1))])

    with pytest.raises(BackendContractError):
        await _monitor(backend, on_update=updates.append).watch(watching_progress, "monitor-status", [1])

    assert backend.query_count == 1
    step = updates[-1].step("monitor-status")
    assert step.status == StepStatus.FAILED
    assert step.error == "status payload is not a variant"


@pytest.mark.asyncio
async def test_not_indexed_yet_keeps_polling(scripted, watching_progress):
    backend = scripted([None, None, WAIT_AA, {"Completed": 1}])

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.attempts == 4


@pytest.mark.asyncio
async def test_solana_remote_finalized_counts_as_completed(scripted, watching_progress):
    backend = scripted([{"Created": None}, {"RemoteFinalized": "5xSig"}], chain=Chain.SOLANA)

    outcome = await _monitor(backend).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.primary_hash == "5xSig"


@pytest.mark.asyncio
async def test_evm_remote_finalized_is_not_completion(scripted, watching_progress):
    backend = scripted([{"RemoteFinalized": "0xFIN"}])

    outcome = await _monitor(backend, max_attempts=2).watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.TIMED_OUT


@pytest.mark.asyncio
async def test_observed_history_dedupe(scripted, watching_progress):
    timeline = [{"Created": None}, {"Created": None}, {"Completed": 1}]

    deduped = await _monitor(scripted(timeline)).watch(watching_progress, "monitor-status", [1])
    full = await _monitor(scripted(timeline), dedupe_history=False).watch(
        watching_progress, "monitor-status", [1]
    )

    assert [e.status.kind for e in deduped.observed[1]] == [CastStatusKind.CREATED, CastStatusKind.COMPLETED]
    assert len(full.observed[1]) == 3


@pytest.mark.asyncio
async def test_cancel_during_sleep(scripted, watching_progress):
    backend = scripted([{"Created": None}])
    monitor = _monitor(backend, poll_interval=30)

    task = asyncio.create_task(monitor.watch(watching_progress, "monitor-status", [1]))
    while backend.query_count < 1:
        await asyncio.sleep(0)
    monitor.cancel()

    outcome = await asyncio.wait_for(task, timeout=5)

    assert outcome.status == OutcomeStatus.CANCELLED
    assert monitor.cancelled
    assert backend.query_count == 1
    assert outcome.progress.step("monitor-status").status == StepStatus.LOADING


@pytest.mark.asyncio
async def test_cancel_before_watch(scripted, watching_progress):
    backend = scripted([{"Created": None}])
    monitor = _monitor(backend)
    monitor.cancel()

    outcome = await monitor.watch(watching_progress, "monitor-status", [1])

    assert outcome.status == OutcomeStatus.CANCELLED
    assert backend.query_count == 0
    assert outcome.progress is watching_progress


@pytest.mark.asyncio
async def test_run_submits_then_watches(scripted, cast_progress):
    backend = scripted([WAIT_AA, {"Completed": 1}], first_id=7)

    outcome = await _monitor(backend).run(cast_progress, backend.requests(), "execute-cast", "monitor-status")

    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.cast_ids == (7,)
    submit = outcome.progress.step("execute-cast")
    assert submit.status == StepStatus.COMPLETED
    assert submit.metadata["cast_ids"] == [7]
    assert backend.submitted == backend.requests()


@pytest.mark.asyncio
async def test_run_submit_error_fails_fast(cast_progress):
    backend = ScriptedBackend(Chain.EVM, [
        ScriptedCast(submit=SubmitResult(cast_id=1)),
        ScriptedCast(submit=SubmitResult(error=CastError("GenericError", "token locked"))),
    ])

    outcome = await _monitor(backend).run(cast_progress, backend.requests(), "execute-cast", "monitor-status")

    assert outcome.status == OutcomeStatus.FAILED
    assert backend.query_count == 0
    submit = outcome.progress.step("execute-cast")
    assert submit.status == StepStatus.FAILED
    assert submit.error == "Cast operation failed: request 2: GenericError: token locked"
    assert outcome.progress.step("monitor-status").status == StepStatus.PENDING


@pytest.mark.asyncio
async def test_run_rejects_short_submit_results(scripted, cast_progress):
    backend = scripted([{"Created": None}])
    requests = backend.requests() * 2

    with pytest.raises(BackendContractError):
        await _monitor(backend).run(cast_progress, requests, "execute-cast", "monitor-status")


class _BrokenBackend(ScriptedBackend):
    async def submit(self, requests):
        raise RuntimeError("canister trapped")


@pytest.mark.asyncio
async def test_run_submit_exception_fails_step(cast_progress):
    updates = []
    backend = _BrokenBackend(Chain.IC, [ScriptedCast(submit=SubmitResult(cast_id=1))])

    with pytest.raises(RuntimeError):
        await _monitor(backend, on_update=updates.append).run(
            cast_progress, backend.requests(), "execute-cast", "monitor-status"
        )

    assert updates[-1].step("execute-cast").error == "Cast submission failed: canister trapped"


class _CancellingBackend(ScriptedBackend):
    monitor = None

    async def submit(self, requests):
        self.monitor.cancel()
        return [SubmitResult(cast_id=42)]


@pytest.mark.asyncio
async def test_cancel_during_submit_keeps_cast_ids(cast_progress):
    backend = _CancellingBackend(Chain.IC, [ScriptedCast(submit=SubmitResult(cast_id=1))])
    monitor = _monitor(backend)
    backend.monitor = monitor

    outcome = await monitor.run(cast_progress, backend.requests(), "execute-cast", "monitor-status")

    assert outcome.status == OutcomeStatus.CANCELLED
    assert outcome.cast_ids == (42,)
    assert backend.query_count == 0
    assert outcome.progress.step("execute-cast").status == StepStatus.LOADING
    assert outcome.progress.step("monitor-status").status == StepStatus.PENDING


def test_monitor_uses_config_defaults(monkeypatch, scripted):
    monkeypatch.setenv("BRIDGEWATCH_POLL_INTERVAL", "2.5")
    monkeypatch.setenv("BRIDGEWATCH_MAX_ATTEMPTS", "7")
    monkeypatch.setenv("BRIDGEWATCH_DEDUPE_HISTORY", "false")

    monitor = CastMonitor(scripted([{"Created": None}]))

    assert monitor.poll_interval == 2.5
    assert monitor.max_attempts == 7
    assert monitor.dedupe_history is False


def test_monitor_rejects_empty_budget(scripted):
    with pytest.raises(ValueError):
        CastMonitor(scripted([{"Created": None}]), max_attempts=0)
