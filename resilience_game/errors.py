"""Error taxonomy of the session engine.

Validation errors are raised before any state changes. Storage errors are not
wrapped here; they reach the caller unchanged, except when a multi-town write
stops halfway (``PartialFailureError``).
"""

from typing import Sequence


class GameError(Exception):
    """Base class for every error raised by the engine."""


class NotFoundError(GameError, LookupError):
    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class InsufficientBudgetError(GameError, ValueError):
    def __init__(self, available: int, required: int):
        self.available = available
        self.required = required
        super().__init__(f"Not enough effort points: {available} < {required}")

    @property
    def shortfall(self) -> int:
        return self.required - self.available


class NothingToRevertError(GameError):
    def __init__(self):
        super().__init__("Nothing to revert")


class PartialFailureError(GameError, RuntimeError):
    """Some documents of a multi-document write were persisted, the rest were not."""

    def __init__(self, operation: str, persisted_ids: Sequence[str], failed_id: str):
        self.operation = operation
        self.persisted_ids = list(persisted_ids)
        self.failed_id = failed_id
        super().__init__(
            f"{operation} stopped at {failed_id} after persisting "
            f"{len(self.persisted_ids)} document(s); persisted state needs reconciliation"
        )


class SessionCompletedError(GameError):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Game session already completed: {session_id}")


class RoundNotActiveError(GameError):
    def __init__(self, session_id: str, current_round: int):
        self.session_id = session_id
        self.current_round = current_round
        super().__init__(f"Game session {session_id} is not in an active round (round {current_round})")


class SessionLimitReachedError(GameError):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum session limit reached ({limit})")


class InvalidSessionNameError(GameError, ValueError):
    def __init__(self):
        super().__init__("Session name cannot be empty")
