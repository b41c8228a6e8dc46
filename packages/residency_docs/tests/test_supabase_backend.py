"""
Tests for the Supabase backend over a mocked HTTP transport.
"""

import asyncio
import json
from datetime import date

import httpx
import pytest

from residency_docs.backends.supabase import SupabaseBackend
from residency_docs.backends.supabase.mappers import map_document_update, map_foreigner_update
from residency_docs.contracts import AuthEvent, DocumentStatus, DocumentType
from residency_docs.http import ApiError

URL = "https://demo.supabase.co"
ANON_KEY = "anon-key"

TOKEN_RESPONSE = {
    "access_token": "jwt-access",
    "refresh_token": "jwt-refresh",
    "expires_in": 3600,
    "user": {"id": "u1", "email": "admin@example.com"},
}

DOCUMENT_ROW = {
    "id": "d1",
    "type": "residence_status",
    "title": "在留資格認定証明書交付申請書",
    "status": "submitted",
    "foreigner_id": "f1",
    "data": {"deadline": "2024-03-20"},
    "created_at": "2024-01-12T00:00:00+00:00",
    "updated_at": "2024-01-15T00:00:00+00:00",
}

FOREIGNER_ROW = {
    "id": "f1",
    "company_id": "c1",
    "name": "田中 太郎",
    "name_kana": "たなか たろう",
    "nationality": "ベトナム",
    "birth_date": "1995-04-10",
    "passport_number": "AB1234567",
    "residence_status": "特定技能1号",
    "residence_period": "1年",
    "work_category": "飲食料品製造業",
    "notes": None,
    "created_at": "2024-01-05T00:00:00",
}


class MockSupabase:
    """Routes requests to canned responses and records what was sent."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], list[httpx.Response]] = {}

    def add(self, method, path, *responses):
        self.routes.setdefault((method, path), []).extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "no route"})
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def backend(self, **kwargs):
        return SupabaseBackend(
            URL,
            ANON_KEY,
            retry_delay_ms=0,
            transport=httpx.MockTransport(self.handler),
            **kwargs,
        )


@pytest.fixture
def mock():
    return MockSupabase()


def body_of(request: httpx.Request):
    return json.loads(request.content) if request.content else None


class TestAuth:
    """Tests for GoTrue sign-in and sign-out."""

    def test_sign_in_sets_bearer_and_emits(self, mock):
        mock.add("POST", "/auth/v1/token", httpx.Response(200, json=TOKEN_RESPONSE))
        mock.add("GET", "/rest/v1/documents", httpx.Response(200, json=[DOCUMENT_ROW]))
        backend = mock.backend()
        events = []
        backend.on_auth_state_change(lambda event, session: events.append(event))

        async def scenario():
            session = await backend.sign_in_with_password("admin@example.com", "password123")
            await backend.list_documents()
            await backend.close()
            return session

        session = asyncio.run(scenario())

        assert session.user_id == "u1"
        assert session.refresh_token == "jwt-refresh"
        assert events == [AuthEvent.SIGNED_IN]

        token_request, list_request = mock.requests
        assert token_request.url.params["grant_type"] == "password"
        assert body_of(token_request) == {"email": "admin@example.com", "password": "password123"}
        assert "Authorization" not in token_request.headers
        assert token_request.headers["apikey"] == ANON_KEY
        assert list_request.headers["Authorization"] == "Bearer jwt-access"

    def test_bad_credentials_become_invalid_credentials(self, mock):
        mock.add(
            "POST",
            "/auth/v1/token",
            httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"}),
        )
        backend = mock.backend()

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(backend.sign_in_with_password("admin@example.com", "wrong"))

        assert exc_info.value.status == 401
        assert exc_info.value.code == "invalid_credentials"
        assert exc_info.value.message == "Invalid login credentials"
        assert len(mock.requests) == 1

    def test_sign_out_clears_token_even_if_remote_fails(self, mock):
        mock.add("POST", "/auth/v1/token", httpx.Response(200, json=TOKEN_RESPONSE))
        mock.add("POST", "/auth/v1/logout", httpx.Response(500, json={"message": "boom"}))
        backend = mock.backend()
        events = []
        backend.on_auth_state_change(lambda event, session: events.append(event))

        async def scenario():
            await backend.sign_in_with_password("admin@example.com", "password123")
            await backend.sign_out()
            return await backend.get_session()

        assert asyncio.run(scenario()) is None
        assert backend.api.get_access_token() is None
        assert events == [AuthEvent.SIGNED_IN, AuthEvent.SIGNED_OUT]

    def test_refresh_uses_refresh_token(self, mock):
        refreshed = {**TOKEN_RESPONSE, "access_token": "jwt-access-2"}
        mock.add(
            "POST",
            "/auth/v1/token",
            httpx.Response(200, json=TOKEN_RESPONSE),
            httpx.Response(200, json=refreshed),
        )
        backend = mock.backend()

        async def scenario():
            await backend.sign_in_with_password("admin@example.com", "password123")
            return await backend.refresh_session()

        session = asyncio.run(scenario())

        assert session.access_token == "jwt-access-2"
        assert mock.requests[1].url.params["grant_type"] == "refresh_token"
        assert body_of(mock.requests[1]) == {"refresh_token": "jwt-refresh"}

    def test_refresh_without_session(self, mock):
        with pytest.raises(ApiError) as exc_info:
            asyncio.run(mock.backend().refresh_session())
        assert exc_info.value.code == "no_session"

    def test_401_calls_unauthorized_handler(self, mock):
        mock.add("GET", "/rest/v1/foreigners", httpx.Response(401, json={"message": "JWT expired"}))
        backend = mock.backend()
        calls = []
        backend.unauthorized_handler = lambda: calls.append(True)

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(backend.list_foreigners())

        assert exc_info.value.status == 401
        assert calls == [True]


class TestQueries:
    """Tests for the PostgREST requests each operation sends."""

    def test_list_documents(self, mock):
        mock.add("GET", "/rest/v1/documents", httpx.Response(200, json=[DOCUMENT_ROW]))

        documents = asyncio.run(mock.backend().list_documents())

        assert documents[0].type == DocumentType.RESIDENCE_STATUS
        assert documents[0].status == DocumentStatus.SUBMITTED
        assert documents[0].data == {"deadline": "2024-03-20"}
        params = mock.requests[0].url.params
        assert params["select"] == "*"
        assert params["order"] == "created_at.desc"

    def test_documents_for_foreigner(self, mock):
        mock.add("GET", "/rest/v1/documents", httpx.Response(200, json=[]))

        assert asyncio.run(mock.backend().list_documents_for_foreigner("f1")) == []
        assert mock.requests[0].url.params["foreigner_id"] == "eq.f1"

    def test_activity_logs_limited(self, mock):
        mock.add(
            "GET",
            "/rest/v1/activity_logs",
            httpx.Response(200, json=[{"id": "a1", "message": "hi", "created_at": "2024-01-01T00:00:00Z"}]),
        )

        logs = asyncio.run(mock.backend().list_activity_logs(5))

        assert logs[0].message == "hi"
        assert mock.requests[0].url.params["limit"] == "5"

    def test_missing_single_row_is_none(self, mock):
        mock.add(
            "GET",
            "/rest/v1/profiles",
            httpx.Response(406, json={"code": "PGRST116", "message": "JSON object requested, multiple (or no) rows returned"}),
        )

        assert asyncio.run(mock.backend().get_user_profile("u404")) is None
        request = mock.requests[0]
        assert request.headers["Accept"] == "application/vnd.pgrst.object+json"
        assert request.url.params["id"] == "eq.u404"

    def test_other_single_row_errors_raise(self, mock):
        mock.add("GET", "/rest/v1/companies", httpx.Response(403, json={"code": "42501", "message": "denied"}))

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(mock.backend().get_company_by_id("c1"))
        assert exc_info.value.code == "42501"

    def test_update_foreigner_sends_only_given_fields(self, mock):
        mock.add("PATCH", "/rest/v1/foreigners", httpx.Response(200, json={**FOREIGNER_ROW, "notes": None}))

        foreigner = asyncio.run(mock.backend().update_foreigner("f1", {"notes": None, "residence_period": "1年"}))

        assert foreigner.birth_date == date(1995, 4, 10)
        request = mock.requests[0]
        assert body_of(request) == {"residence_period": "1年", "notes": None}
        assert request.url.params["id"] == "eq.f1"
        assert request.headers["Prefer"] == "return=representation"

    def test_delete_document(self, mock):
        mock.add("DELETE", "/rest/v1/documents", httpx.Response(204))

        assert asyncio.run(mock.backend().delete_document("d1")) is None
        request = mock.requests[0]
        assert request.url.params["id"] == "eq.d1"
        assert request.headers["Prefer"] == "return=minimal"

    def test_foreign_key_violation_surfaces_code(self, mock):
        mock.add(
            "DELETE",
            "/rest/v1/foreigners",
            httpx.Response(409, json={"code": "23503", "message": "violates foreign key constraint", "details": "Key is still referenced"}),
        )

        with pytest.raises(ApiError) as exc_info:
            asyncio.run(mock.backend().delete_foreigner("f1"))

        assert exc_info.value.code == "23503"
        assert exc_info.value.details == {"details": "Key is still referenced"}

    def test_server_errors_retried(self, mock):
        mock.add(
            "GET",
            "/rest/v1/foreigners",
            httpx.Response(503, json={"message": "unavailable"}),
            httpx.Response(200, json=[FOREIGNER_ROW]),
        )

        foreigners = asyncio.run(mock.backend().list_foreigners())

        assert [f.id for f in foreigners] == ["f1"]
        assert len(mock.requests) == 2

    def test_current_company_id(self, mock):
        mock.add("POST", "/auth/v1/token", httpx.Response(200, json=TOKEN_RESPONSE))
        mock.add("GET", "/auth/v1/user", httpx.Response(200, json={"id": "u1"}))
        mock.add("GET", "/rest/v1/profiles", httpx.Response(200, json={"company_id": "c1"}))
        backend = mock.backend()

        async def scenario():
            await backend.sign_in_with_password("admin@example.com", "password123")
            return await backend.get_current_company_id()

        assert asyncio.run(scenario()) == "c1"
        assert mock.requests[-1].url.params["select"] == "company_id"

    def test_current_company_id_signed_out(self, mock):
        assert asyncio.run(mock.backend().get_current_company_id()) is None
        assert mock.requests == []


class TestMappers:
    def test_foreigner_update_converts_values(self):
        payload = map_foreigner_update({"birth_date": date(2000, 1, 2), "unknown": 1})
        assert payload == {"birth_date": "2000-01-02"}

    def test_document_update(self):
        payload = map_document_update({"status": DocumentStatus.APPROVED, "data": None})
        assert payload == {"status": "approved", "data": {}}
