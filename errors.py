"""
Exception hierarchy for the portal backend.

User-facing messages are safe to show; anything internal goes to the log only.
"""
from __future__ import annotations

import structlog

logger = structlog.get_logger(__name__)


class PortalError(Exception):
    """Base exception. ``user_message`` is safe to display."""

    def __init__(self, user_message: str, *, internal_details: str | None = None) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        if internal_details:
            logger.error(
                "portal_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class InvalidCredentialError(PortalError):
    """No active account matches the username/password pair."""


class AccountExpiredError(PortalError):
    """The matched account's access window has passed."""

    def __init__(self, user_message: str = "Account access expired.", **kwargs) -> None:
        super().__init__(user_message, **kwargs)


class NotFoundError(PortalError):
    """An update targeted a record id that does not exist."""


class InvalidTransitionError(PortalError):
    """An order status change the lifecycle does not allow."""


class StoreError(PortalError):
    """The backing store could not be opened or read."""
