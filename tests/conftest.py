"""Shared fixtures for bridgewatch tests."""
import pytest

from bridgewatch.casts.backends import ScriptedBackend, ScriptedCast
from bridgewatch.casts.models import CastStatus, Chain, SubmitResult
from bridgewatch.core.config import set_config
from bridgewatch.core.types import Direction
from bridgewatch.progress.templates import return_cast_steps
from bridgewatch.progress.tracker import create_progress


@pytest.fixture(autouse=True)
def reset_config(monkeypatch, tmp_path):
    """Fresh global config per test, with logs under tmp_path."""
    for name in ("BRIDGEWATCH_POLL_INTERVAL", "BRIDGEWATCH_MAX_ATTEMPTS",
                 "BRIDGEWATCH_DEDUPE_HISTORY", "BRIDGEWATCH_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("BRIDGEWATCH_LOGS_DIR", str(tmp_path / "logs"))
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def cast_progress():
    """Four-step single-cast progress: verify, prepare, execute, monitor."""
    return create_progress(Direction.IC_TO_EVM, steps=return_cast_steps(), now=1000.0)


@pytest.fixture
def watching_progress(cast_progress):
    """Cast progress with the setup steps done, ready to monitor."""
    from bridgewatch.progress.tracker import complete_step

    progress = complete_step(cast_progress, "verify-connection", now=1001.0)
    progress = complete_step(progress, "prepare-cast", now=1002.0)
    return complete_step(progress, "execute-cast", now=1003.0)


@pytest.fixture
def scripted():
    """Factory for a ScriptedBackend with one cast per timeline of raw status variants."""
    def build(*timelines, chain=Chain.EVM, fail_queries=(), first_id=1):
        casts = []
        for offset, timeline in enumerate(timelines):
            casts.append(ScriptedCast(
                submit=SubmitResult(cast_id=first_id + offset),
                timeline=[None if raw is None else CastStatus.decode(raw) for raw in timeline],
            ))
        return ScriptedBackend(chain, casts, fail_queries=fail_queries)

    return build
