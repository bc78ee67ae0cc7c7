"""Status machines for membership applications and plan-change requests.

Pure functions only; the services call ``validate_transition`` before they
touch a row, so an illegal move never reaches the database.
"""

from __future__ import annotations

from aneti.errors import InvalidTransition

APPLICATION_STATUSES = ("pending", "documents_requested", "rejected", "approved")

# approved is terminal; rejected is not, the applicant may appeal.
VALID_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["approved", "rejected", "documents_requested"],
    "documents_requested": ["pending"],
    "rejected": ["pending"],
    "approved": [],
}

PLAN_CHANGE_STATUSES = ("pending", "approved", "rejected")

# A rejected request is closed for good; the member files a new one.
PLAN_CHANGE_TRANSITIONS: dict[str, list[str]] = {
    "pending": ["approved", "rejected"],
    "approved": [],
    "rejected": [],
}


def validate_transition(
    current_status: str,
    target_status: str,
    transitions: dict[str, list[str]] = VALID_TRANSITIONS,
) -> None:
    """Validate a state transition. Raises InvalidTransition if invalid."""
    valid = transitions.get(current_status, [])
    if target_status not in valid:
        raise InvalidTransition(current_status, target_status, valid)
