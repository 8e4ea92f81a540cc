"""Access guard: decides whether a record may be shown to a reader.

Pure decision logic with no I/O. The order of the checks is observable: a
reader learns that content is gone before being asked for a password.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from fleeting.errors import (
    ContentError,
    ContentGone,
    GoneReason,
    PasswordIncorrect,
    PasswordRequired,
)
from fleeting.services.content_record import ContentRecord
from fleeting.services.passwords import verify_password


class DenyReason(str, Enum):
    DELETED = "deleted"
    EXPIRED = "expired"
    VIEW_LIMIT_REACHED = "max_views_reached"
    PASSWORD_REQUIRED = "password_required"
    PASSWORD_INCORRECT = "password_incorrect"


_GONE_REASONS = {
    DenyReason.DELETED: GoneReason.DELETED,
    DenyReason.EXPIRED: GoneReason.EXPIRED,
    DenyReason.VIEW_LIMIT_REACHED: GoneReason.MAX_VIEWS_REACHED,
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenyReason | None = None

    def to_error(self, short_id: str) -> ContentError | None:
        """The exception a caller should raise for this decision, if any."""
        if self.allowed:
            return None
        if self.reason in _GONE_REASONS:
            return ContentGone(short_id, _GONE_REASONS[self.reason])
        if self.reason == DenyReason.PASSWORD_REQUIRED:
            return PasswordRequired()
        return PasswordIncorrect()


ALLOW = Decision(allowed=True)


def deny(reason: DenyReason) -> Decision:
    return Decision(allowed=False, reason=reason)


def decide(record: ContentRecord, supplied_password: str | None, now: datetime) -> Decision:
    if record.deleted:
        return deny(DenyReason.DELETED)
    if record.is_expired(now):
        return deny(DenyReason.EXPIRED)
    if record.view_limit_reached():
        return deny(DenyReason.VIEW_LIMIT_REACHED)
    if record.has_password:
        if not supplied_password:
            return deny(DenyReason.PASSWORD_REQUIRED)
        if not verify_password(supplied_password, record.password_hash):
            return deny(DenyReason.PASSWORD_INCORRECT)
    return ALLOW


def gone_reason(record: ContentRecord, now: datetime) -> GoneReason | None:
    """Why a record fails the viewability predicate, or None if it is viewable."""
    decision = decide(record, None, now)
    return _GONE_REASONS.get(decision.reason)
