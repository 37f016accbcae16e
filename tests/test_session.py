"""Tests for SessionManager."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from structlog.testing import capture_logs

from database import SESSION, JsonFileStore, MemoryStore
from portal import PortalAPI
from session import SessionManager


@pytest.fixture
def doctor(api: PortalAPI):
    return api.authenticate("doctor", "password123")


class TestRestore:
    """Session restore on construction."""

    def test_starts_anonymous_without_record(self, store: MemoryStore) -> None:
        session = SessionManager(store)
        assert session.identity is None
        assert not session.is_authenticated

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '{"id": "x"}', "null"])
    def test_malformed_record_starts_anonymous(self, store: MemoryStore, raw: str) -> None:
        store.set(SESSION, raw)
        assert SessionManager(store).identity is None

    def test_resumes_after_restart(self, tmp_path, doctor) -> None:
        SessionManager(JsonFileStore(tmp_path)).login(doctor)
        resumed = SessionManager(JsonFileStore(tmp_path))
        assert resumed.is_authenticated
        assert resumed.identity == doctor


class TestLoginLogout:
    """login / logout transitions."""

    def test_login_persists_identity(self, seeded_store: MemoryStore, doctor) -> None:
        session = SessionManager(seeded_store)
        session.login(doctor)
        assert session.identity == doctor
        assert json.loads(seeded_store.get(SESSION)) == doctor.model_dump(mode="json")

    def test_login_replaces_current_identity(self, seeded_store: MemoryStore, api: PortalAPI, doctor) -> None:
        session = SessionManager(seeded_store)
        session.login(doctor)
        admin = api.authenticate("admin", "password123")
        session.login(admin)
        assert session.identity.id == "admin-1"

    def test_logout_erases_record(self, seeded_store: MemoryStore, doctor) -> None:
        session = SessionManager(seeded_store)
        session.login(doctor)
        session.logout()
        assert session.identity is None
        assert seeded_store.get(SESSION) is None
        assert SessionManager(seeded_store).identity is None

    def test_logout_when_anonymous(self, store: MemoryStore) -> None:
        session = SessionManager(store)
        session.logout()
        assert not session.is_authenticated


class TestCurrentUser:
    """current_user re-validation against the live account."""

    def test_without_api_returns_snapshot(self, seeded_store: MemoryStore, api: PortalAPI, doctor) -> None:
        session = SessionManager(seeded_store)
        session.login(doctor)
        api.upsert_user(doctor.model_copy(update={"is_active": False}))
        assert session.current_user() == doctor

    def test_refreshes_from_live_record(self, seeded_store: MemoryStore, api: PortalAPI, doctor) -> None:
        session = SessionManager(seeded_store, api)
        session.login(doctor)
        api.upsert_user(doctor.model_copy(update={"discount_tier": 0.7}))
        assert session.current_user().discount_tier == 0.7
        assert SessionManager(seeded_store).identity.discount_tier == 0.7

    def test_deactivated_account_ends_session(self, seeded_store: MemoryStore, api: PortalAPI, doctor) -> None:
        session = SessionManager(seeded_store, api)
        session.login(doctor)
        api.upsert_user(doctor.model_copy(update={"is_active": False}))
        assert session.current_user() is None
        assert seeded_store.get(SESSION) is None

    def test_expired_account_ends_session(self, seeded_store: MemoryStore, api: PortalAPI, doctor) -> None:
        session = SessionManager(seeded_store, api)
        session.login(doctor)
        expires = datetime.now(timezone.utc) + timedelta(hours=1)
        api.upsert_user(doctor.model_copy(update={"access_expires_at": expires}))
        assert session.current_user() is not None
        assert session.current_user(now=expires + timedelta(seconds=1)) is None

    def test_anonymous(self, seeded_store: MemoryStore, api: PortalAPI) -> None:
        assert SessionManager(seeded_store, api).current_user() is None


class TestLogging:
    def test_malformed_record_is_logged(self, store: MemoryStore) -> None:
        store.set(SESSION, "{not json")
        with capture_logs() as logs:
            SessionManager(store)
        assert [entry["event"] for entry in logs] == ["session_restore_failed"]
        assert logs[0]["log_level"] == "warning"
