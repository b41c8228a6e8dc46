"""
Tests for the in-memory stub backend.
"""

import asyncio

import pytest

from residency_docs.backends.stub import StubBackend
from residency_docs.contracts import AuthEvent, DocumentDraft, DocumentStatus, DocumentType
from residency_docs.http import ApiError


class TestStubAuth:
    def test_demo_login(self, stub_backend):
        session = asyncio.run(stub_backend.sign_in_with_password("admin@example.com", "password123"))

        assert session.user_id == "u1"
        assert session.access_token.startswith("stub_")
        assert stub_backend.operations[0]["operation"] == "sign_in"

    def test_wrong_password(self, stub_backend):
        with pytest.raises(ApiError) as exc_info:
            asyncio.run(stub_backend.sign_in_with_password("admin@example.com", "nope"))

        assert exc_info.value.code == "invalid_credentials"
        assert stub_backend.operations == []

    def test_auth_events_in_order(self, stub_backend):
        events = []
        subscription = stub_backend.on_auth_state_change(lambda event, session: events.append(event))

        async def scenario():
            await stub_backend.sign_in_with_password("admin@example.com", "password123")
            await stub_backend.refresh_session()
            await stub_backend.sign_out()
            subscription.unsubscribe()
            await stub_backend.sign_in_with_password("admin@example.com", "password123")

        asyncio.run(scenario())

        assert events == [AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED, AuthEvent.SIGNED_OUT]

    def test_refresh_without_session(self, stub_backend):
        with pytest.raises(ApiError) as exc_info:
            asyncio.run(stub_backend.refresh_session())
        assert exc_info.value.status == 401


class TestStubData:
    """Tests for the in-memory tables."""

    def test_lists_newest_first(self, stub_backend):
        documents = asyncio.run(stub_backend.list_documents())
        assert [d.id for d in documents] == ["d3", "d1", "d2"]

    def test_missing_row_raises_no_rows(self, stub_backend):
        with pytest.raises(ApiError) as exc_info:
            asyncio.run(stub_backend.update_document("missing", {"title": "x"}))
        assert exc_info.value.code == "PGRST116"

    def test_get_missing_returns_none(self, stub_backend):
        assert asyncio.run(stub_backend.get_foreigner("missing")) is None

    def test_document_requires_existing_foreigner(self, stub_backend):
        draft = DocumentDraft(type=DocumentType.STATUS_CHANGE, title="変更", foreigner_id="ghost")

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(stub_backend.create_document(draft))
        assert exc_info.value.code == "23503"

    def test_update_ignores_unknown_fields(self, stub_backend):
        updated = asyncio.run(stub_backend.update_document("d3", {"status": "submitted", "id": "hijack"}))

        assert updated.id == "d3"
        assert updated.status == DocumentStatus.SUBMITTED
        assert updated.updated_at > updated.created_at

    def test_activity_limit(self, stub_backend):
        assert len(asyncio.run(stub_backend.list_activity_logs(2))) == 2

    def test_company_id_follows_session(self, stub_backend):
        assert asyncio.run(stub_backend.get_current_company_id()) is None
        asyncio.run(stub_backend.sign_in_with_password("admin@example.com", "password123"))
        assert asyncio.run(stub_backend.get_current_company_id()) == "c1"

    def test_simulated_failure(self):
        backend = StubBackend(simulate_failures=True, failure_rate=1.0)

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(backend.list_foreigners())

        assert exc_info.value.status == 503
        assert exc_info.value.code == "STUB_SIMULATED_FAILURE"

    def test_empty_backend(self):
        backend = StubBackend(foreigners=[])

        assert asyncio.run(backend.list_foreigners()) == []
        assert asyncio.run(backend.list_documents()) == []
        assert backend.companies == {}
