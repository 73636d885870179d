"""
Cast data model.

Mirrors the remote ledger's cast interface: statuses are tagged variants
that decode from and encode to single-key mappings such as
``{"WaitingOnTransfer": {"transaction": "0xAA"}}``.
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


class Chain(str, Enum):
    """Backend family a monitor talks to."""
    EVM = "evm"
    SOLANA = "solana"
    IC = "ic"


class CastStatusKind(str, Enum):
    """Remote cast states, in the order they may legitimately appear."""
    CREATED = "Created"
    SUBMITTING_TO_ORCHESTRATOR = "SubmittingToOrchestrator"
    SUBMITTED_TO_ORCHESTRATOR = "SubmittedToOrchestrator"
    WAITING_ON_CONTRACT = "WaitingOnContract"
    WAITING_ON_MINT = "WaitingOnMint"
    WAITING_ON_TRANSFER = "WaitingOnTransfer"
    REMOTE_FINALIZED = "RemoteFinalized"
    COMPLETED = "Completed"
    ERROR = "Error"
    FAILED = "Failed"


WAITING_KINDS = frozenset({
    CastStatusKind.WAITING_ON_CONTRACT,
    CastStatusKind.WAITING_ON_MINT,
    CastStatusKind.WAITING_ON_TRANSFER,
})

ERROR_KINDS = frozenset({CastStatusKind.ERROR, CastStatusKind.FAILED})


@dataclass(frozen=True)
class CastError:
    """Remote error variant, e.g. ``{"InsufficientCycles": [10, 20]}``."""
    kind: str
    detail: Any = None

    def describe(self) -> str:
        """Human-readable error text."""
        if self.kind == "GenericError":
            return f"GenericError: {self.detail}"
        if self.detail is None:
            return self.kind
        if isinstance(self.detail, str):
            return f"{self.kind}: {self.detail}"
        return f"{self.kind}: {json.dumps(self.detail, default=str)}"

    @classmethod
    def decode(cls, raw: Any) -> "CastError":
        if isinstance(raw, dict) and len(raw) == 1:
            kind, detail = next(iter(raw.items()))
            return cls(kind=str(kind), detail=detail)
        if isinstance(raw, str):
            return cls(kind="GenericError", detail=raw)
        raise ValueError(f"Unrecognized cast error: {raw!r}")

    def encode(self) -> Dict[str, Any]:
        return {self.kind: self.detail}


@dataclass(frozen=True)
class CastStatus:
    """One observed cast status."""
    kind: CastStatusKind
    transaction: Optional[str] = None     # WaitingOnContract/Mint/Transfer
    value: Any = None                     # Completed, RemoteFinalized, SubmittingToOrchestrator
    local_cast_id: Optional[int] = None   # SubmittedToOrchestrator
    remote_cast_id: Optional[int] = None
    error: Optional[CastError] = None     # Error, Failed

    @property
    def is_error(self) -> bool:
        return self.kind in ERROR_KINDS

    @property
    def is_waiting(self) -> bool:
        return self.kind in WAITING_KINDS

    def describe(self) -> str:
        """Short human-readable form used in status lines."""
        if self.is_error:
            return self.error.describe() if self.error else self.kind.value
        if self.transaction:
            return f"{self.kind.value} (TX: {self.transaction[:8]}...)"
        if self.kind == CastStatusKind.SUBMITTED_TO_ORCHESTRATOR:
            return f"{self.kind.value} (remote cast {self.remote_cast_id})"
        return self.kind.value

    @classmethod
    def decode(cls, raw: Any) -> "CastStatus":
        """Decode a single-key variant mapping (or a bare variant name)."""
        if isinstance(raw, str):
            return cls(kind=CastStatusKind(raw))
        if not isinstance(raw, dict) or len(raw) != 1:
            raise ValueError(f"Cast status must be a single-key mapping: {raw!r}")

        name, payload = next(iter(raw.items()))
        kind = CastStatusKind(name)

        if kind in WAITING_KINDS:
            if not isinstance(payload, dict) or "transaction" not in payload:
                raise ValueError(f"{name} requires a transaction: {raw!r}")
            return cls(kind=kind, transaction=str(payload["transaction"]))
        if kind == CastStatusKind.SUBMITTED_TO_ORCHESTRATOR:
            payload = payload or {}
            return cls(
                kind=kind,
                local_cast_id=payload.get("localCastId"),
                remote_cast_id=payload.get("remoteCastId"),
            )
        if kind == CastStatusKind.ERROR:
            return cls(kind=kind, error=CastError.decode(payload))
        if kind == CastStatusKind.FAILED:
            return cls(kind=kind, error=CastError(kind="Failed", detail=payload))
        return cls(kind=kind, value=payload)

    def encode(self) -> Dict[str, Any]:
        if self.kind in WAITING_KINDS:
            return {self.kind.value: {"transaction": self.transaction}}
        if self.kind == CastStatusKind.SUBMITTED_TO_ORCHESTRATOR:
            return {self.kind.value: {
                "localCastId": self.local_cast_id,
                "remoteCastId": self.remote_cast_id,
            }}
        if self.kind == CastStatusKind.ERROR:
            return {self.kind.value: self.error.encode() if self.error else None}
        if self.kind == CastStatusKind.FAILED:
            return {self.kind.value: self.error.detail if self.error else None}
        return {self.kind.value: self.value}


@dataclass(frozen=True)
class HistoryEntry:
    """A status and the time it was recorded."""
    status: CastStatus
    timestamp: float


@dataclass(frozen=True)
class CastRequest:
    """A cross-chain transfer request. Opaque to the monitor."""
    token_id: int
    contract: str
    network: str
    target_owner: str
    gas_price: Optional[int] = None
    gas_limit: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    memo: Optional[bytes] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CastRecord:
    """Remote view of one cast."""
    cast_id: int
    status: CastStatus
    history: Tuple[HistoryEntry, ...] = ()
    original_request: Optional[CastRequest] = None
    start_time: Optional[float] = None


@dataclass(frozen=True)
class SubmitResult:
    """Per-request submission result: a cast id or a remote error."""
    cast_id: Optional[int] = None
    error: Optional[CastError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.cast_id is not None

    @classmethod
    def decode(cls, raw: Any) -> "SubmitResult":
        if isinstance(raw, dict) and "Ok" in raw:
            return cls(cast_id=int(raw["Ok"]))
        if isinstance(raw, dict) and "Err" in raw:
            return cls(error=CastError.decode(raw["Err"]))
        raise ValueError(f"Submit result must be {{'Ok': id}} or {{'Err': ...}}: {raw!r}")


def extract_transfer_hash(history: Iterable[HistoryEntry]) -> Optional[str]:
    """Transaction of the first WaitingOnTransfer entry; later ones are ignored."""
    for entry in history:
        if entry.status.kind == CastStatusKind.WAITING_ON_TRANSFER and entry.status.transaction:
            return entry.status.transaction
    return None
