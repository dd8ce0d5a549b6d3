"""
Marketplace errors.

Raised before any state is mutated; the API layer maps them to HTTP statuses.
"""

from typing import List, Optional


class MarketplaceError(Exception):
    """Base class for marketplace failures."""
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or [message]


class ValidationFailed(MarketplaceError):
    """Submitted data is incomplete, duplicated or otherwise unacceptable."""
    status_code = 400


class NotFound(MarketplaceError):
    status_code = 404


class PermissionDenied(MarketplaceError):
    """The acting user may not perform this operation on this record."""
    status_code = 403


class IllegalTransition(MarketplaceError):
    """The offer's (or intent's) current status forbids the requested action."""
    status_code = 409


class ConcurrencyConflict(MarketplaceError):
    """Another writer changed the record since it was read."""
    status_code = 409


class AuthenticationFailed(MarketplaceError):
    """Unknown username or wrong password."""
    status_code = 401
