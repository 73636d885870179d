"""
Backend collaborator interfaces and the scripted in-memory backend.

A backend wraps one chain family's remote submit and status calls. The
monitor only relies on the ``CastBackend`` protocol; ``ScriptedBackend``
replays recorded status timelines for the CLI and for tests.
"""
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Set, Tuple

from ..core.exceptions import ScenarioError, TransientQueryError
from ..logging import get_logger
from .models import Chain, CastRecord, CastRequest, CastStatus, HistoryEntry, SubmitResult

logger = get_logger("casts.backends")


class CastBackend(Protocol):
    """Remote submit/status collaborator for one chain family."""

    chain: Chain

    async def submit(self, requests: Sequence[CastRequest]) -> List[SubmitResult]:
        """Submit a batch; one result per request, same order."""
        ...

    async def query_status(self, cast_ids: Sequence[int]) -> List[Optional[CastRecord]]:
        """Query a batch; one entry per id, same order, None when not found yet."""
        ...


class TransferSigner(Protocol):
    """Wallet collaborator that signs and sends a chain-specific transfer."""

    async def send_transfer(self, request: Any) -> str:
        """Return the transaction hash."""
        ...


@dataclass
class ScriptedCast:
    """One scripted cast: its submission result and per-query statuses."""
    submit: SubmitResult
    timeline: List[Optional[CastStatus]] = field(default_factory=list)
    request: Optional[CastRequest] = None
    position: int = 0
    history: List[HistoryEntry] = field(default_factory=list)


class ScriptedBackend:
    """
    In-memory backend that replays status timelines.

    Each query returns the next timeline entry for every queried cast; the
    last entry repeats once the timeline is exhausted. A None entry means
    "not indexed yet". Query numbers listed in ``fail_queries`` (1-based)
    raise TransientQueryError instead of answering.
    """

    def __init__(
        self,
        chain: Chain,
        casts: Sequence[ScriptedCast],
        fail_queries: Sequence[int] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.chain = Chain(chain)
        self.casts = list(casts)
        self.fail_queries: Set[int] = set(fail_queries)
        self.clock = clock
        self.query_count = 0
        self.queries: List[Tuple[int, ...]] = []
        self.submitted: List[CastRequest] = []

    async def submit(self, requests: Sequence[CastRequest]) -> List[SubmitResult]:
        self.submitted.extend(requests)
        return [cast.submit for cast in self.casts[:len(requests)]]

    async def query_status(self, cast_ids: Sequence[int]) -> List[Optional[CastRecord]]:
        self.query_count += 1
        self.queries.append(tuple(cast_ids))
        if self.query_count in self.fail_queries:
            raise TransientQueryError(f"Scripted query {self.query_count} failed")

        return [self._advance(cast_id) for cast_id in cast_ids]

    def _advance(self, cast_id: int) -> Optional[CastRecord]:
        cast = self._find(cast_id)
        if cast is None or not cast.timeline:
            return None

        status = cast.timeline[min(cast.position, len(cast.timeline) - 1)]
        cast.position += 1
        if status is None:
            return None

        if not cast.history or cast.history[-1].status != status:
            cast.history.append(HistoryEntry(status=status, timestamp=self.clock()))

        return CastRecord(
            cast_id=cast_id,
            status=status,
            history=tuple(cast.history),
            original_request=cast.request,
            start_time=cast.history[0].timestamp,
        )

    def _find(self, cast_id: int) -> Optional[ScriptedCast]:
        for cast in self.casts:
            if cast.submit.cast_id == cast_id:
                return cast
        return None

    def requests(self) -> List[CastRequest]:
        """Requests matching the scripted casts, in order."""
        return [
            cast.request or CastRequest(
                token_id=i,
                contract="scripted",
                network=self.chain.value,
                target_owner="scripted",
            )
            for i, cast in enumerate(self.casts)
        ]


def load_scenario(path: Path, clock: Callable[[], float] = time.time) -> ScriptedBackend:
    """
    Load a replay scenario file.

    Format::

        {"chain": "evm",
         "fail_queries": [2],
         "casts": [{"submit": {"Ok": 7},
                    "timeline": [{"Created": null},
                                 {"WaitingOnTransfer": {"transaction": "0xAA"}},
                                 {"Completed": 12}]}]}
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ScenarioError(str(path), str(e))

    if not isinstance(data, dict) or not data.get("casts"):
        raise ScenarioError(str(path), "no casts defined")

    try:
        chain = Chain(data.get("chain", "evm"))
        casts = [_decode_cast(raw) for raw in data["casts"]]
    except (ValueError, KeyError, TypeError) as e:
        raise ScenarioError(str(path), str(e))

    logger.debug(f"Loaded scenario {path.name}: {len(casts)} casts on {chain.value}")
    return ScriptedBackend(chain, casts, fail_queries=data.get("fail_queries", []), clock=clock)


def _decode_cast(raw: Dict[str, Any]) -> ScriptedCast:
    timeline = [
        None if entry is None else CastStatus.decode(entry)
        for entry in raw.get("timeline", [])
    ]
    request = CastRequest(**raw["request"]) if raw.get("request") else None
    return ScriptedCast(
        submit=SubmitResult.decode(raw["submit"]),
        timeline=timeline,
        request=request,
    )
