"""
Supabase Backend

Residency backend for a hosted Supabase project. Data goes through
PostgREST table queries, auth through GoTrue, both over one ApiClient.
"""

import logging
from typing import Any

import httpx

from residency_docs.backends.base import (
    NO_ROWS_CODE,
    AuthListener,
    AuthStateEmitter,
    ResidencyBackend,
    Subscription,
)
from residency_docs.backends.supabase.auth import GoTrueAuth
from residency_docs.backends.supabase.mappers import (
    map_activity_log_insert,
    map_activity_log_row,
    map_company_row,
    map_company_update,
    map_document_insert,
    map_document_row,
    map_document_update,
    map_foreigner_insert,
    map_foreigner_row,
    map_foreigner_update,
    map_profile_row,
)
from residency_docs.backends.supabase.postgrest import PostgrestClient
from residency_docs.contracts import (
    ActivityLog,
    AuthSession,
    Company,
    Document,
    DocumentDraft,
    DocumentStatus,
    Foreigner,
    ForeignerDraft,
    User,
)
from residency_docs.http import ApiClient, ApiError

logger = logging.getLogger(__name__)


class SupabaseBackend(ResidencyBackend):
    """
    Supabase implementation of the residency backend.

    Row-level security on the Supabase side scopes every table to the
    signed-in user's company, so queries here carry no tenant filter.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout_ms: int = 10_000,
        retry: int = 1,
        retry_delay_ms: int = 500,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the Supabase backend.

        Args:
            url: Project URL (e.g., "https://xyz.supabase.co")
            anon_key: Public anon key, sent as the ``apikey`` header
            timeout_ms: Per-attempt request timeout
            retry: Retries after the first attempt
            retry_delay_ms: Delay between attempts
            transport: Optional httpx transport (tests)
        """
        self.emitter = AuthStateEmitter()
        self.api = ApiClient(
            base_url=url,
            timeout_ms=timeout_ms,
            retry=retry,
            retry_delay_ms=retry_delay_ms,
            default_headers={"Content-Type": "application/json", "apikey": anon_key},
            transport=transport,
            on_unauthorized=self._handle_unauthorized,
        )
        self.db = PostgrestClient(self.api)
        self.auth = GoTrueAuth(self.api, self.emitter)

    async def _handle_unauthorized(self) -> None:
        logger.warning("Backend rejected the access token")
        await self._notify_unauthorized()

    async def close(self) -> None:
        await self.api.close()

    async def _maybe_single(self, table: str, column: str, value: Any) -> Any | None:
        try:
            return await self.db.table(table).select("*").eq(column, value).single().execute()
        except ApiError as e:
            if e.code == NO_ROWS_CODE:
                return None
            logger.error(f"Failed to fetch {table} row: {e}", extra={"table": table, column: value})
            raise

    # =========================================================================
    # Auth
    # =========================================================================

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        return await self.auth.sign_in_with_password(email, password)

    async def sign_out(self) -> None:
        await self.auth.sign_out()

    async def refresh_session(self) -> AuthSession:
        return await self.auth.refresh_session()

    async def get_session(self) -> AuthSession | None:
        return self.auth.session

    async def set_session(self, session: AuthSession) -> None:
        await self.auth.set_session(session)

    async def get_user_profile(self, user_id: str) -> User | None:
        row = await self._maybe_single("profiles", "id", user_id)
        return map_profile_row(row) if row else None

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        return self.emitter.subscribe(listener)

    # =========================================================================
    # Foreigners
    # =========================================================================

    async def list_foreigners(self) -> list[Foreigner]:
        rows = await self.db.table("foreigners").select("*").order("created_at", ascending=False).execute()
        return [map_foreigner_row(row) for row in rows or []]

    async def get_foreigner(self, foreigner_id: str) -> Foreigner | None:
        row = await self._maybe_single("foreigners", "id", foreigner_id)
        return map_foreigner_row(row) if row else None

    async def create_foreigner(self, draft: ForeignerDraft) -> Foreigner:
        row = await self.db.table("foreigners").insert(map_foreigner_insert(draft)).select().single().execute()
        return map_foreigner_row(row)

    async def update_foreigner(self, foreigner_id: str, updates: dict[str, Any]) -> Foreigner:
        row = await (
            self.db.table("foreigners")
            .update(map_foreigner_update(updates))
            .eq("id", foreigner_id)
            .select()
            .single()
            .execute()
        )
        return map_foreigner_row(row)

    async def delete_foreigner(self, foreigner_id: str) -> None:
        await self.db.table("foreigners").delete().eq("id", foreigner_id).execute()

    # =========================================================================
    # Documents
    # =========================================================================

    async def list_documents(self) -> list[Document]:
        rows = await self.db.table("documents").select("*").order("created_at", ascending=False).execute()
        return [map_document_row(row) for row in rows or []]

    async def get_document(self, document_id: str) -> Document | None:
        row = await self._maybe_single("documents", "id", document_id)
        return map_document_row(row) if row else None

    async def list_documents_for_foreigner(self, foreigner_id: str) -> list[Document]:
        rows = await (
            self.db.table("documents")
            .select("*")
            .eq("foreigner_id", foreigner_id)
            .order("created_at", ascending=False)
            .execute()
        )
        return [map_document_row(row) for row in rows or []]

    async def create_document(self, draft: DocumentDraft) -> Document:
        row = await self.db.table("documents").insert(map_document_insert(draft)).select().single().execute()
        return map_document_row(row)

    async def update_document(self, document_id: str, updates: dict[str, Any]) -> Document:
        row = await (
            self.db.table("documents")
            .update(map_document_update(updates))
            .eq("id", document_id)
            .select()
            .single()
            .execute()
        )
        return map_document_row(row)

    async def update_document_status(self, document_id: str, status: DocumentStatus) -> Document:
        return await self.update_document(document_id, {"status": status})

    async def delete_document(self, document_id: str) -> None:
        await self.db.table("documents").delete().eq("id", document_id).execute()

    # =========================================================================
    # Company
    # =========================================================================

    async def get_current_company_id(self) -> str | None:
        user = await self.auth.get_user()
        if not user or not user.get("id"):
            return None
        profile = await self.db.table("profiles").select("company_id").eq("id", user["id"]).single().execute()
        return (profile or {}).get("company_id")

    async def get_company_by_id(self, company_id: str) -> Company | None:
        row = await self._maybe_single("companies", "id", company_id)
        return map_company_row(row) if row else None

    async def update_company(self, company_id: str, updates: dict[str, Any]) -> Company:
        row = await (
            self.db.table("companies")
            .update(map_company_update(updates))
            .eq("id", company_id)
            .select()
            .single()
            .execute()
        )
        return map_company_row(row)

    # =========================================================================
    # Activity logs
    # =========================================================================

    async def list_activity_logs(self, limit: int = 20) -> list[ActivityLog]:
        rows = await (
            self.db.table("activity_logs")
            .select("*")
            .order("created_at", ascending=False)
            .limit(limit)
            .execute()
        )
        return [map_activity_log_row(row) for row in rows or []]

    async def create_activity_log(self, message: str, company_id: str) -> ActivityLog:
        row = await (
            self.db.table("activity_logs")
            .insert(map_activity_log_insert(message, company_id))
            .select()
            .single()
            .execute()
        )
        return map_activity_log_row(row)
