"""
Residency Backend Base

Abstract interface for the data + auth service behind the application.
Implementations: Supabase (production) and Stub (development, demo, tests).
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from residency_docs.contracts import (
    ActivityLog,
    AuthEvent,
    AuthSession,
    Company,
    Document,
    DocumentDraft,
    DocumentStatus,
    Foreigner,
    ForeignerDraft,
    User,
)

logger = logging.getLogger(__name__)

AuthListener = Callable[[AuthEvent, AuthSession | None], Awaitable[None] | None]

# PostgREST code for "single row requested, zero rows found"
NO_ROWS_CODE = "PGRST116"


class Subscription:
    """Handle returned by on_auth_state_change."""

    def __init__(self, listeners: list[AuthListener], listener: AuthListener):
        self._listeners = listeners
        self._listener = listener

    def unsubscribe(self) -> None:
        if self._listener in self._listeners:
            self._listeners.remove(self._listener)


class AuthStateEmitter:
    """Keeps auth listeners and fans events out to them in order."""

    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    def subscribe(self, listener: AuthListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    async def emit(self, event: AuthEvent, session: AuthSession | None) -> None:
        logger.info(f"Auth state changed: {event.value}")
        for listener in list(self._listeners):
            result = listener(event, session)
            if inspect.isawaitable(result):
                await result


class ResidencyBackend(ABC):
    """
    Abstract interface for residency data backends.

    Implementations must handle:
    - Password sign-in, sign-out and session refresh
    - Auth state change notifications
    - CRUD on foreigners, documents, the company and the activity feed

    Single-row lookups return None when the row does not exist. All other
    failures raise ApiError.
    """

    # Awaited whenever the backend answers 401 (e.g., to force a logout)
    unauthorized_handler: Callable[[], Awaitable[None] | None] | None = None

    async def _notify_unauthorized(self) -> None:
        if self.unauthorized_handler is None:
            return
        result = self.unauthorized_handler()
        if inspect.isawaitable(result):
            await result

    # =========================================================================
    # Auth
    # =========================================================================

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """
        Sign in with email and password.

        Raises:
            ApiError: status 401 with code "invalid_credentials" on bad credentials
        """
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    @abstractmethod
    async def refresh_session(self) -> AuthSession:
        """Exchange the current refresh token for a new session."""
        ...

    @abstractmethod
    async def get_session(self) -> AuthSession | None:
        ...

    @abstractmethod
    async def set_session(self, session: AuthSession) -> None:
        """Adopt a session restored from local storage."""
        ...

    @abstractmethod
    async def get_user_profile(self, user_id: str) -> User | None:
        ...

    @abstractmethod
    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        ...

    # =========================================================================
    # Foreigners
    # =========================================================================

    @abstractmethod
    async def list_foreigners(self) -> list[Foreigner]:
        """All foreigners, newest first."""
        ...

    @abstractmethod
    async def get_foreigner(self, foreigner_id: str) -> Foreigner | None:
        ...

    @abstractmethod
    async def create_foreigner(self, draft: ForeignerDraft) -> Foreigner:
        ...

    @abstractmethod
    async def update_foreigner(self, foreigner_id: str, updates: dict[str, Any]) -> Foreigner:
        """Apply a partial update. Keys are Foreigner field names."""
        ...

    @abstractmethod
    async def delete_foreigner(self, foreigner_id: str) -> None:
        ...

    # =========================================================================
    # Documents
    # =========================================================================

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """All documents, newest first."""
        ...

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        ...

    @abstractmethod
    async def list_documents_for_foreigner(self, foreigner_id: str) -> list[Document]:
        ...

    @abstractmethod
    async def create_document(self, draft: DocumentDraft) -> Document:
        ...

    @abstractmethod
    async def update_document(self, document_id: str, updates: dict[str, Any]) -> Document:
        """Apply a partial update. Keys are Document field names."""
        ...

    @abstractmethod
    async def update_document_status(self, document_id: str, status: DocumentStatus) -> Document:
        ...

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        ...

    # =========================================================================
    # Company
    # =========================================================================

    @abstractmethod
    async def get_current_company_id(self) -> str | None:
        """Company of the signed-in user, resolved through their profile."""
        ...

    @abstractmethod
    async def get_company_by_id(self, company_id: str) -> Company | None:
        ...

    @abstractmethod
    async def update_company(self, company_id: str, updates: dict[str, Any]) -> Company:
        ...

    async def get_company(self) -> Company | None:
        """The signed-in user's company, or None when signed out."""
        company_id = await self.get_current_company_id()
        if not company_id:
            return None
        return await self.get_company_by_id(company_id)

    # =========================================================================
    # Activity logs
    # =========================================================================

    @abstractmethod
    async def list_activity_logs(self, limit: int = 20) -> list[ActivityLog]:
        """Most recent entries first."""
        ...

    @abstractmethod
    async def create_activity_log(self, message: str, company_id: str) -> ActivityLog:
        ...

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None
