"""
Custom exceptions for bridgewatch.

Provides meaningful error messages and suggestions for common issues.
"""
from typing import List, Optional


class BridgeWatchError(Exception):
    """Base exception for bridgewatch errors."""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.suggestions = suggestions or []


class StepNotFoundError(BridgeWatchError):
    """Step id not present in a progress."""

    def __init__(self, step_id: str):
        super().__init__(
            f'Step with id "{step_id}" not found',
            suggestions=[
                "Check the step id against the direction's step templates",
                "Use 'bridgewatch steps <direction>' to list known step ids",
            ]
        )
        self.step_id = step_id


class CastNotFoundError(BridgeWatchError):
    """Cast id not tracked by the monitor."""

    def __init__(self, cast_id: int):
        super().__init__(f"Cast not found: {cast_id}")
        self.cast_id = cast_id


class NotRetryableError(BridgeWatchError):
    """Retry attempted on a step that is not failed or not retryable."""

    def __init__(self, step_id: str, reason: str):
        super().__init__(f'Step "{step_id}" is not retryable: {reason}')
        self.step_id = step_id


class InvalidTransitionError(BridgeWatchError):
    """Step event not allowed from the step's current status."""

    def __init__(self, step_id: str, status: str, event: str):
        super().__init__(
            f'Cannot {event} step "{step_id}" while it is {status}',
            suggestions=["Retry a failed step before starting it again"],
        )
        self.step_id = step_id


class RemoteCastError(BridgeWatchError):
    """Explicit Error/Failed status reported by the remote system."""

    def __init__(self, cast_id: Optional[int], detail: str):
        super().__init__(
            f"Cast operation failed: {detail}",
            suggestions=[
                "Check the burn/funding address balance",
                "Check network conditions and try again",
            ]
        )
        self.cast_id = cast_id
        self.detail = detail


class TransientQueryError(BridgeWatchError):
    """Status query failed for a single poll (network, rate limit, ...)."""
    pass


class PollTimeout(BridgeWatchError):
    """Poll budget exhausted without a terminal status."""

    def __init__(self, attempts: int):
        super().__init__(f"No terminal cast status after {attempts} checks")
        self.attempts = attempts


class BackendContractError(BridgeWatchError):
    """Backend returned a response that breaks its interface contract."""
    pass


class ScenarioError(BridgeWatchError):
    """Invalid replay scenario file."""

    def __init__(self, path: str, problem: str):
        super().__init__(
            f"Invalid scenario {path}: {problem}",
            suggestions=[
                'Expected {"chain": "...", "casts": [{"submit": {...}, "timeline": [...]}]}',
            ]
        )
