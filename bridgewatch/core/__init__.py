"""Core configuration, errors and types."""
from .config import Config, get_config
from .types import Direction, Progress, Stage, StageStatus, Step, StepStatus

__all__ = ["Config", "get_config", "Direction", "Progress", "Stage", "StageStatus", "Step", "StepStatus"]
