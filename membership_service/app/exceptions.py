from __future__ import annotations


class MembershipError(Exception):
    """Base exception for all membership-service errors."""


class RecordNotFoundError(MembershipError):
    """A user or payment document does not exist."""

    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} not found: {record_id}")
        self.kind = kind
        self.record_id = record_id


class AwardNotFoundError(MembershipError):
    """The referenced user award document does not exist."""

    def __init__(self, user_id: str, award_id: str) -> None:
        super().__init__(f"award {award_id} not found for user {user_id}")
        self.user_id = user_id
        self.award_id = award_id


class AwardTemplateNotFoundError(MembershipError):
    """The award catalog has no template with the given id or name."""


class DuplicateAwardError(MembershipError):
    """The user already holds an award with the same name or template."""

    def __init__(self, user_id: str, name: str) -> None:
        super().__init__(f"award {name!r} already assigned to user {user_id}")
        self.user_id = user_id
        self.name = name


class AwardUpdateConflictError(MembershipError):
    """Concurrent writers kept changing used_value; the update was given up."""


class BonusUnavailableError(MembershipError):
    """Part of a quoted bonus was no longer spendable when it was applied."""


class PaymentStateError(MembershipError):
    """The payment already reached a terminal state."""


class InvalidStatusTransitionError(MembershipError):
    """The cached subscription status does not allow the requested transition."""
