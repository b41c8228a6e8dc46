"""
Stub Residency Backend

Development backend that keeps every table in memory. Used for the offline
demo, local development and tests. Mirrors the hosted backend's observable
behavior: newest-first ordering, foreign-key checks on documents, PGRST116
for missing rows, and auth state events.
"""

import dataclasses
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from residency_docs.backends.base import (
    NO_ROWS_CODE,
    AuthListener,
    AuthStateEmitter,
    ResidencyBackend,
    Subscription,
)
from residency_docs.backends.stub.seed import (
    DEMO_USERS,
    seed_activities,
    seed_company,
    seed_documents,
    seed_foreigners,
)
from residency_docs.backends.supabase.mappers import (
    COMPANY_UPDATABLE_FIELDS,
    DOCUMENT_UPDATABLE_FIELDS,
    FOREIGNER_UPDATABLE_FIELDS,
)
from residency_docs.contracts import (
    ActivityLog,
    AuthEvent,
    AuthSession,
    Company,
    Document,
    DocumentDraft,
    DocumentStatus,
    DocumentType,
    Foreigner,
    ForeignerDraft,
    User,
)
from residency_docs.contracts.entities import parse_date, parse_datetime
from residency_docs.http import ApiError

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "対象のデータが見つかりません。"
FOREIGN_KEY_MESSAGE = "関連する外国人材データが存在するため操作できません。"

# Postgres foreign_key_violation
FOREIGN_KEY_CODE = "23503"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _newest_first(items: list[Any]) -> list[Any]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(items, key=lambda item: item.created_at or epoch, reverse=True)


def _coerce_update(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "birth_date":
        return parse_date(value)
    if name == "synced_at":
        return parse_datetime(value)
    if name == "type":
        return DocumentType(value)
    if name == "status":
        return DocumentStatus(value)
    return value


class StubBackend(ResidencyBackend):
    """
    In-memory backend for development and testing.

    - Seeds demo data (or a persisted state snapshot)
    - Accepts the demo account admin@example.com / password123
    - Records every mutation in ``operations``
    - Can be configured to simulate failures
    """

    def __init__(
        self,
        foreigners: list[Foreigner] | None = None,
        documents: list[Document] | None = None,
        company: Company | None = None,
        activities: list[ActivityLog] | None = None,
        users: list[dict] | None = None,
        simulate_failures: bool = False,
        failure_rate: float = 0.1,
        session_ttl_seconds: int = 3600,
    ):
        self.simulate_failures = simulate_failures
        self.failure_rate = failure_rate
        self.session_ttl_seconds = session_ttl_seconds
        self.users = users if users is not None else DEMO_USERS
        self.operations: list[dict[str, Any]] = []

        seed = foreigners is None and documents is None and company is None and activities is None
        self.foreigners: dict[str, Foreigner] = {
            f.id: f for f in (seed_foreigners() if seed else foreigners or [])
        }
        self.documents: dict[str, Document] = {
            d.id: d for d in (seed_documents() if seed else documents or [])
        }
        company = seed_company() if seed else company
        self.companies: dict[str, Company] = {company.id: company} if company else {}
        self.activities: dict[str, ActivityLog] = {
            a.id: a for a in (seed_activities() if seed else activities or [])
        }

        self.emitter = AuthStateEmitter()
        self._session: AuthSession | None = None

    @classmethod
    def from_state(cls, state: Any, **kwargs: Any) -> "StubBackend":
        """Seed from a restored AppState snapshot (offline/demo fallback)."""
        return cls(
            foreigners=list(state.foreigners),
            documents=list(state.documents),
            company=state.company,
            activities=list(state.activities),
            **kwargs,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _should_fail(self) -> bool:
        return self.simulate_failures and random.random() < self.failure_rate

    def _check_failure(self, operation: str) -> None:
        if self._should_fail():
            logger.info(f"[STUB] Simulating failure for {operation}")
            raise ApiError(
                message="Simulated failure for testing",
                status=503,
                code="STUB_SIMULATED_FAILURE",
            )

    def _record(self, operation: str, **data: Any) -> None:
        entry = {"operation": operation, "timestamp": _now().isoformat(), **data}
        self.operations.append(entry)
        logger.info(f"[STUB] {operation}", extra=data)

    def _not_found(self, table: str, row_id: str) -> ApiError:
        return ApiError(
            message=NOT_FOUND_MESSAGE,
            status=406,
            code=NO_ROWS_CODE,
            details={"table": table, "id": row_id},
        )

    def _current_user(self) -> User | None:
        if self._session is None:
            return None
        for entry in self.users:
            if entry["user"].id == self._session.user_id:
                return entry["user"]
        return None

    def _issue_session(self, user: User) -> AuthSession:
        return AuthSession(
            access_token=f"stub_{uuid4().hex}",
            refresh_token=f"stub_refresh_{uuid4().hex}",
            expires_at=_now() + timedelta(seconds=self.session_ttl_seconds),
            user_id=user.id,
            email=user.email,
        )

    # =========================================================================
    # Auth
    # =========================================================================

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        self._check_failure("sign_in")
        for entry in self.users:
            if entry["email"] == email and entry["password"] == password:
                self._session = self._issue_session(entry["user"])
                self._record("sign_in", user_id=entry["user"].id)
                await self.emitter.emit(AuthEvent.SIGNED_IN, self._session)
                return self._session
        raise ApiError(
            message="メールアドレスまたはパスワードが正しくありません。",
            status=401,
            code="invalid_credentials",
        )

    async def sign_out(self) -> None:
        if self._session is not None:
            self._record("sign_out", user_id=self._session.user_id)
        self._session = None
        await self.emitter.emit(AuthEvent.SIGNED_OUT, None)

    async def refresh_session(self) -> AuthSession:
        self._check_failure("refresh_session")
        user = self._current_user()
        if user is None:
            raise ApiError(message="セッションがありません。再度ログインしてください。", status=401, code="no_session")
        self._session = self._issue_session(user)
        await self.emitter.emit(AuthEvent.TOKEN_REFRESHED, self._session)
        return self._session

    async def get_session(self) -> AuthSession | None:
        return self._session

    async def set_session(self, session: AuthSession) -> None:
        self._session = session
        await self.emitter.emit(AuthEvent.INITIAL_SESSION, session)

    async def get_user_profile(self, user_id: str) -> User | None:
        for entry in self.users:
            if entry["user"].id == user_id:
                return entry["user"]
        return None

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        return self.emitter.subscribe(listener)

    # =========================================================================
    # Foreigners
    # =========================================================================

    async def list_foreigners(self) -> list[Foreigner]:
        self._check_failure("list_foreigners")
        return _newest_first(list(self.foreigners.values()))

    async def get_foreigner(self, foreigner_id: str) -> Foreigner | None:
        self._check_failure("get_foreigner")
        return self.foreigners.get(foreigner_id)

    async def create_foreigner(self, draft: ForeignerDraft) -> Foreigner:
        self._check_failure("create_foreigner")
        now = _now()
        foreigner = Foreigner(id=f"f_{uuid4().hex[:12]}", created_at=now, updated_at=now, **dataclasses.asdict(draft))
        self.foreigners[foreigner.id] = foreigner
        self._record("create_foreigner", foreigner_id=foreigner.id)
        return foreigner

    async def update_foreigner(self, foreigner_id: str, updates: dict[str, Any]) -> Foreigner:
        self._check_failure("update_foreigner")
        current = self.foreigners.get(foreigner_id)
        if current is None:
            raise self._not_found("foreigners", foreigner_id)
        changes = {k: _coerce_update(k, v) for k, v in updates.items() if k in FOREIGNER_UPDATABLE_FIELDS}
        updated = dataclasses.replace(current, updated_at=_now(), **changes)
        self.foreigners[foreigner_id] = updated
        self._record("update_foreigner", foreigner_id=foreigner_id, fields=sorted(changes))
        return updated

    async def delete_foreigner(self, foreigner_id: str) -> None:
        self._check_failure("delete_foreigner")
        if any(doc.foreigner_id == foreigner_id for doc in self.documents.values()):
            raise ApiError(
                message=FOREIGN_KEY_MESSAGE,
                status=409,
                code=FOREIGN_KEY_CODE,
                details={"table": "documents", "foreigner_id": foreigner_id},
            )
        self.foreigners.pop(foreigner_id, None)
        self._record("delete_foreigner", foreigner_id=foreigner_id)

    # =========================================================================
    # Documents
    # =========================================================================

    async def list_documents(self) -> list[Document]:
        self._check_failure("list_documents")
        return _newest_first(list(self.documents.values()))

    async def get_document(self, document_id: str) -> Document | None:
        self._check_failure("get_document")
        return self.documents.get(document_id)

    async def list_documents_for_foreigner(self, foreigner_id: str) -> list[Document]:
        self._check_failure("list_documents_for_foreigner")
        return _newest_first([d for d in self.documents.values() if d.foreigner_id == foreigner_id])

    async def create_document(self, draft: DocumentDraft) -> Document:
        self._check_failure("create_document")
        if draft.foreigner_id not in self.foreigners:
            raise ApiError(
                message="指定された外国人材が存在しません。",
                status=409,
                code=FOREIGN_KEY_CODE,
                details={"table": "foreigners", "id": draft.foreigner_id},
            )
        now = _now()
        document = Document(
            id=f"d_{uuid4().hex[:12]}",
            type=DocumentType(draft.type),
            title=draft.title,
            status=DocumentStatus(draft.status),
            foreigner_id=draft.foreigner_id,
            data=dict(draft.data or {}),
            created_at=now,
            updated_at=now,
        )
        self.documents[document.id] = document
        self._record("create_document", document_id=document.id, type=document.type.value)
        return document

    async def update_document(self, document_id: str, updates: dict[str, Any]) -> Document:
        self._check_failure("update_document")
        current = self.documents.get(document_id)
        if current is None:
            raise self._not_found("documents", document_id)
        changes = {k: _coerce_update(k, v) for k, v in updates.items() if k in DOCUMENT_UPDATABLE_FIELDS}
        if "data" in changes and changes["data"] is None:
            changes["data"] = {}
        updated = dataclasses.replace(current, updated_at=_now(), **changes)
        self.documents[document_id] = updated
        self._record("update_document", document_id=document_id, fields=sorted(changes))
        return updated

    async def update_document_status(self, document_id: str, status: DocumentStatus) -> Document:
        return await self.update_document(document_id, {"status": status})

    async def delete_document(self, document_id: str) -> None:
        self._check_failure("delete_document")
        self.documents.pop(document_id, None)
        self._record("delete_document", document_id=document_id)

    # =========================================================================
    # Company
    # =========================================================================

    async def get_current_company_id(self) -> str | None:
        user = self._current_user()
        return user.company_id if user else None

    async def get_company_by_id(self, company_id: str) -> Company | None:
        self._check_failure("get_company")
        return self.companies.get(company_id)

    async def update_company(self, company_id: str, updates: dict[str, Any]) -> Company:
        self._check_failure("update_company")
        current = self.companies.get(company_id)
        if current is None:
            raise self._not_found("companies", company_id)
        changes = {k: v for k, v in updates.items() if k in COMPANY_UPDATABLE_FIELDS}
        updated = dataclasses.replace(current, updated_at=_now(), **changes)
        self.companies[company_id] = updated
        self._record("update_company", company_id=company_id, fields=sorted(changes))
        return updated

    # =========================================================================
    # Activity logs
    # =========================================================================

    async def list_activity_logs(self, limit: int = 20) -> list[ActivityLog]:
        self._check_failure("list_activity_logs")
        return _newest_first(list(self.activities.values()))[:limit]

    async def create_activity_log(self, message: str, company_id: str) -> ActivityLog:
        self._check_failure("create_activity_log")
        entry = ActivityLog(id=f"a_{uuid4().hex[:12]}", message=message, created_at=_now())
        self.activities[entry.id] = entry
        self._record("create_activity_log", activity_id=entry.id, company_id=company_id)
        return entry
