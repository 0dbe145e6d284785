"""Domain errors raised by the study services.

Each error carries the HTTP status and a short machine-readable code; the
application maps them to responses in one place (see ``studysage.main``).
"""


class StudySageError(Exception):
    """Base class for errors local to a single operation."""

    status_code = 500
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(StudySageError):
    """Referenced user, document, flashcard set or quiz does not exist."""

    status_code = 404
    code = "not_found"


class AccessDeniedError(StudySageError):
    """Resource exists but belongs to another user."""

    status_code = 403
    code = "access_denied"


class QuotaExceededError(StudySageError):
    """Free-tier daily generation limit reached."""

    status_code = 403
    code = "quota_exceeded"

    def __init__(self, resource: str, limit: int):
        super().__init__(
            f"Daily {resource} limit of {limit} reached. "
            "Upgrade to Premium for unlimited access or try again tomorrow."
        )
        self.resource = resource
        self.limit = limit


class UpstreamGenerationError(StudySageError):
    """AI generation failed or returned unusable content. Safe to retry."""

    status_code = 502
    code = "generation_failed"


class PersistenceConflictError(StudySageError):
    """Concurrent updates kept colliding after the allowed retries."""

    status_code = 409
    code = "conflict"


class ValidationError(StudySageError):
    """Request values violate an operation's input contract."""

    status_code = 422
    code = "invalid_input"
