"""Exception hierarchy for the theme scout worker."""

from typing import Any


class ThemeScoutError(Exception):
    """Base exception for all theme scout errors.

    `retryable` tells the task worker whether another delivery of the same
    job can change the outcome.
    """

    retryable: bool = True

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class QuotaExceededError(ThemeScoutError):
    """User token budget cannot cover the job estimate."""

    retryable = False

    def __init__(self, user_id: str, estimated_tokens: int) -> None:
        super().__init__(
            f"Quota exceeded for user {user_id}",
            {"user_id": user_id, "estimated_tokens": estimated_tokens},
        )


class AssetNotFoundError(ThemeScoutError):
    """Asset to scout does not exist."""

    retryable = False

    def __init__(self, asset_id: str) -> None:
        super().__init__(f"Asset not found: {asset_id}", {"asset_id": asset_id})


class SuggestionPersistenceError(ThemeScoutError):
    """Writing suggestion rows failed."""

    def __init__(self, asset_id: str, message: str) -> None:
        super().__init__(
            f"Failed to persist suggestions for asset {asset_id}: {message}",
            {"asset_id": asset_id},
        )


class ScoutQueueFullError(ThemeScoutError):
    """Theme scout queue is at capacity."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Theme scout queue is full ({limit} pending jobs)", {"limit": limit})
