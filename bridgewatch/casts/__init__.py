"""Cast models, backend interfaces and the polling monitor."""
from .models import Chain, CastError, CastRecord, CastRequest, CastStatus, CastStatusKind, HistoryEntry, SubmitResult
from .backends import CastBackend, ScriptedBackend, TransferSigner, load_scenario
from .monitor import CastMonitor, MonitorOutcome, OutcomeStatus

__all__ = [
    "Chain", "CastError", "CastRecord", "CastRequest", "CastStatus", "CastStatusKind",
    "HistoryEntry", "SubmitResult", "CastBackend", "ScriptedBackend", "TransferSigner",
    "load_scenario", "CastMonitor", "MonitorOutcome", "OutcomeStatus",
]
