"""
Session state for a single portal client.

The authenticated identity is persisted under the ``session`` key so a restart
resumes where it left off. With a ``PortalAPI`` attached, ``current_user``
re-checks the live account on every call instead of trusting the snapshot.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import structlog
from pydantic import ValidationError

from database import SESSION, Store
from schemas import User

if TYPE_CHECKING:
    from portal import PortalAPI

logger = structlog.get_logger(__name__)


class SessionManager:
    def __init__(self, store: Store, api: Optional["PortalAPI"] = None):
        self.store = store
        self.api = api
        self._identity: Optional[User] = self._restore()

    def _restore(self) -> Optional[User]:
        raw = self.store.get(SESSION)
        if raw is None:
            return None
        try:
            identity = User(**json.loads(raw))
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning("session_restore_failed", error=str(e)[:80])
            return None
        logger.info("session_restored", user_id=identity.id)
        return identity

    @property
    def identity(self) -> Optional[User]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def login(self, identity: User) -> None:
        """Switch to ``identity`` and persist it as given."""
        data = identity.model_dump(mode="json", exclude={"password_hash"})
        self._identity = User(**data)
        self.store.set(SESSION, json.dumps(data))
        logger.info("session_started", user_id=identity.id, role=identity.role.value)

    def logout(self) -> None:
        user_id = self._identity.id if self._identity else None
        self._identity = None
        self.store.delete(SESSION)
        logger.info("session_ended", user_id=user_id)

    def current_user(self, now: Optional[datetime] = None) -> Optional[User]:
        """Identity to authorize with, refreshed from the live account record.

        A session whose account was removed, deactivated or has expired is
        ended. Without an attached API the stored snapshot is returned as is.
        """
        if self._identity is None or self.api is None:
            return self._identity
        live = self.api.get_user(self._identity.id)
        if live is None or not live.can_login(now):
            logger.info("session_revoked", user_id=self._identity.id, found=live is not None)
            self.logout()
            return None
        if live != self._identity:
            self.login(live)
        return live
