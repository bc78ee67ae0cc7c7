"""Domain error taxonomy.

Services raise these; ``aneti.middleware.error_handler`` maps them to HTTP
status codes so routers don't have to translate each one by hand.

- ValidationError   -> 400 (missing reason, empty message, unknown plan/group/target)
- Forbidden         -> 403 (wrong role, non-owner appeal)
- NotFound          -> 404
- InvalidTransition -> 409 (transition not legal from the current status)
- DispatchFailure   -> never surfaced; broadcast logs it per recipient
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DomainError, ValueError):
    status_code = 400


class Forbidden(DomainError, PermissionError):
    status_code = 403


class NotFound(DomainError, LookupError):
    status_code = 404


class InvalidTransition(DomainError, ValueError):
    status_code = 409

    def __init__(self, current: str, target: str, allowed: list[str] | None = None) -> None:
        allowed = allowed or []
        super().__init__(
            f"Invalid transition: {current} -> {target}. Valid transitions: {allowed}"
        )
        self.current = current
        self.target = target


class DispatchFailure(DomainError, RuntimeError):
    """A single recipient's notification write failed during a broadcast."""

    status_code = 500

    def __init__(self, recipient_id: int, cause: BaseException) -> None:
        super().__init__(f"Notification to user {recipient_id} failed: {cause}")
        self.recipient_id = recipient_id
