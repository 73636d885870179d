"""
Type definitions for bridgewatch.

Immutable dataclasses for bridge steps, stages and progress. Values are
never mutated in place: transitions in ``bridgewatch.progress`` build new
instances with ``dataclasses.replace``.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Dict, Any


class StepStatus(str, Enum):
    """Step lifecycle states."""
    PENDING = "pending"
    LOADING = "loading"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_done(self) -> bool:
        """Counts towards progress completion."""
        return self in (StepStatus.COMPLETED, StepStatus.SKIPPED)


class StageStatus(str, Enum):
    """Derived stage states."""
    PENDING = "pending"
    LOADING = "loading"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNING = "warning"


class TrafficLight(str, Enum):
    """Coarse stage indicator."""
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    GRAY = "gray"


class Direction(str, Enum):
    """Bridging direction."""
    EVM_TO_IC = "evm-to-ic"
    IC_TO_EVM = "ic-to-evm"


@dataclass(frozen=True)
class Step:
    """A single unit of work in a bridging attempt."""
    id: str
    title: str
    description: str
    stage: str
    status: StepStatus = StepStatus.PENDING
    retryable: bool = True
    estimated_duration: Optional[float] = None  # seconds
    error: Optional[str] = None
    tx_hash: Optional[str] = None
    message: Optional[str] = None  # latest human-readable status line
    start_time: Optional[float] = None  # epoch seconds
    end_time: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> Optional[float]:
        """Elapsed seconds between start and end, if both are known."""
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "stage": self.stage,
            "status": self.status.value,
            "retryable": self.retryable,
            "estimated_duration": self.estimated_duration,
            "error": self.error,
            "tx_hash": self.tx_hash,
            "message": self.message,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class StageTemplate:
    """Display information for a stage id."""
    id: str
    title: str
    description: str = ""


@dataclass(frozen=True)
class Stage:
    """A named group of steps. Status is always derived, never set."""
    id: str
    title: str
    description: str
    status: StageStatus
    step_ids: Tuple[str, ...] = ()
    estimated_duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "step_ids": list(self.step_ids),
            "estimated_duration": self.estimated_duration,
        }


@dataclass(frozen=True)
class Progress:
    """Progress of one user-initiated bridging attempt."""
    id: str
    direction: Direction
    steps: Tuple[Step, ...]
    stages: Tuple[Stage, ...]
    stage_templates: Tuple[StageTemplate, ...]
    start_time: float
    current_step: int = 0
    is_complete: bool = False
    end_time: Optional[float] = None
    total_duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_steps(self) -> int:
        """Number of steps."""
        return len(self.steps)

    @property
    def active_step(self) -> Optional[Step]:
        """Step referenced by ``current_step``."""
        if 0 <= self.current_step < len(self.steps):
            return self.steps[self.current_step]
        return None

    def step(self, step_id: str) -> Optional[Step]:
        """Look up a step by id."""
        for s in self.steps:
            if s.id == step_id:
                return s
        return None

    def index_of(self, step_id: str) -> int:
        """Index of a step, or -1."""
        for i, s in enumerate(self.steps):
            if s.id == step_id:
                return i
        return -1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "direction": self.direction.value,
            "steps": [s.to_dict() for s in self.steps],
            "stages": [s.to_dict() for s in self.stages],
            "current_step": self.current_step,
            "is_complete": self.is_complete,
            "total_steps": self.total_steps,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "total_duration": self.total_duration,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class TransitionEvent:
    """Structured record of one step transition, routed to ``on_transition``."""
    kind: str  # start, complete, fail, skip, retry, message
    progress_id: str
    step_id: str
    status: StepStatus
    timestamp: float
    message: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None
