"""Error taxonomy for content lifecycle and access control.

Every error a caller can observe derives from ``ContentError``. The HTTP
layer maps each subclass to a status code in ``fleeting.main``.
"""

from enum import Enum


class GoneReason(str, Enum):
    DELETED = "deleted"
    EXPIRED = "expired"
    MAX_VIEWS_REACHED = "max_views_reached"


class ContentError(Exception):
    """Base class for content lifecycle errors."""

    status_code = 500
    message = "Content error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ContentNotFound(ContentError):
    status_code = 404
    message = "Content not found"

    def __init__(self, short_id: str):
        super().__init__(f"Content {short_id} not found")
        self.short_id = short_id


class ContentGone(ContentError):
    """The record exists but is no longer viewable."""

    status_code = 410
    message = "Content is no longer available"

    def __init__(self, short_id: str, reason: GoneReason):
        super().__init__()
        self.short_id = short_id
        self.reason = reason


class PasswordRequired(ContentError):
    status_code = 401
    message = "Password required"


class PasswordIncorrect(ContentError):
    status_code = 401
    message = "Password incorrect"


class InvalidExpiry(ContentError):
    status_code = 400
    message = "Expiry date must be in the future"


class StoreUnavailable(ContentError):
    """Transient persistence failure. Safe for the caller to retry."""

    status_code = 503
    message = "Content store unavailable"
