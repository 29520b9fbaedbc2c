"""Error taxonomy for the generation pipeline.

Every error carries the HTTP status and message that the API layer renders,
so services raise domain errors and never import FastAPI.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for all pipeline errors."""

    status_code: int = 500
    default_message: str = "generation request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidRequestError(GenerationError):
    status_code = 400
    default_message = "invalid params"


class InsufficientCreditsError(GenerationError):
    status_code = 402
    default_message = "insufficient credits"


class TaskPermissionError(GenerationError):
    status_code = 403
    default_message = "no permission"


class TaskNotFoundError(GenerationError):
    status_code = 404
    default_message = "task not found"


class TaskNotQueryableError(GenerationError):
    """The task exists but its submission never produced an external job id."""

    status_code = 404
    default_message = "task not queryable"


class TaskQueryInProgressError(GenerationError):
    """Another provider round-trip for the same task is in flight.

    Not a failure: callers (the sweeper in particular) treat it as "skip".
    """

    status_code = 409
    default_message = "task query in progress"


class ProviderError(GenerationError):
    """Permanent provider failure. Surfaced to the caller; nothing is written."""

    status_code = 502
    default_message = "query ai task failed"


class TransientProviderError(ProviderError):
    """Connection reset / fetch failure / timeout talking to a provider.

    The query coordinator absorbs these and returns the stored task unchanged.
    """

    default_message = "provider temporarily unreachable"


class ProviderNotFoundError(GenerationError):
    status_code = 400
    default_message = "invalid provider"
