"""
Residency Actions

CRUD operations that keep the store in step with the backend. Each mutation
runs through the ApiExecutor; deletes and status changes are applied to the
store optimistically and rolled back when the backend refuses them.
"""

import asyncio
import dataclasses
import logging
from typing import Any

from residency_docs.backends.base import ResidencyBackend, Subscription
from residency_docs.constants import ACTIVITY_LOG_LIMIT
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
    NetworkStatus,
)
from residency_docs.http.errors import ApiError, to_api_error
from residency_docs.state.executor import ApiExecutor, StoreCommand
from residency_docs.state.store import (
    AddActivity,
    AddDocument,
    AddForeigner,
    AppState,
    DeleteDocument,
    DeleteForeigner,
    FinishRequest,
    ResetState,
    ResetStatus,
    SetError,
    SetInitialData,
    SetLastSyncedAt,
    SetNetworkStatus,
    StartRequest,
    Store,
    UpdateCompany,
    UpdateDocument,
    UpdateDocumentStatus,
    UpdateForeigner,
)

logger = logging.getLogger(__name__)


class CompanyNotLoadedError(Exception):
    """Raised when an operation needs the company but it has not been loaded."""

    def __init__(self) -> None:
        super().__init__("会社情報が読み込まれていないため、アクティビティログを作成できません。")


class OptimisticCommand(StoreCommand):
    """
    Command applied to the store before the request is sent.

    On failure only this command's own change is undone, so writes that
    landed in the same list meanwhile survive. The list is then re-read from
    the backend when the backend is reachable.
    """

    field_name: str = ""

    def __init__(self, backend: ResidencyBackend, store: Store):
        self.backend = backend
        self.store = store

    def apply(self) -> None:
        raise NotImplementedError

    def undo(self) -> None:
        raise NotImplementedError

    async def refetch(self) -> list[Any]:
        raise NotImplementedError

    def rows(self) -> list[Any]:
        return list(getattr(self.store.state, self.field_name))

    async def rollback(self, error: ApiError) -> None:
        self.undo()
        if error.is_network_error:
            return
        try:
            rows = await self.refetch()
        except Exception as e:
            logger.warning(f"Re-fetch after rollback failed: {to_api_error(e).message}")
            return
        self.store.dispatch(SetInitialData({self.field_name: rows}))


class RemoveRowCommand(OptimisticCommand):
    """Optimistic delete that puts the row back where it was."""

    def __init__(self, backend: ResidencyBackend, store: Store, row_id: str):
        super().__init__(backend, store)
        self.row_id = row_id
        self._removed: tuple[int, Any, str | None] | None = None

    def apply(self) -> None:
        rows = self.rows()
        for index, row in enumerate(rows):
            if row.id == self.row_id:
                previous_id = rows[index - 1].id if index else None
                self._removed = (index, row, previous_id)
                break
        self.remove()

    def remove(self) -> None:
        raise NotImplementedError

    def undo(self) -> None:
        if self._removed is None:
            return
        index, removed, previous_id = self._removed
        rows = self.rows()
        ids = [row.id for row in rows]
        if removed.id in ids:
            return
        # Re-anchor after the row that preceded it
        position = ids.index(previous_id) + 1 if previous_id in ids else min(index, len(rows))
        rows.insert(position, removed)
        self.store.dispatch(SetInitialData({self.field_name: rows}))


class DeleteForeignerCommand(RemoveRowCommand):
    field_name = "foreigners"

    def remove(self) -> None:
        self.store.dispatch(DeleteForeigner(self.row_id))

    async def request(self) -> None:
        await self.backend.delete_foreigner(self.row_id)

    async def refetch(self) -> list[Foreigner]:
        return await self.backend.list_foreigners()


class DeleteDocumentCommand(RemoveRowCommand):
    field_name = "documents"

    def remove(self) -> None:
        self.store.dispatch(DeleteDocument(self.row_id))

    async def request(self) -> None:
        await self.backend.delete_document(self.row_id)

    async def refetch(self) -> list[Document]:
        return await self.backend.list_documents()


class UpdateDocumentStatusCommand(OptimisticCommand):
    field_name = "documents"

    def __init__(self, backend: ResidencyBackend, store: Store, document_id: str, status: DocumentStatus):
        super().__init__(backend, store)
        self.document_id = document_id
        self.status = status
        self._previous: Document | None = None

    def find(self) -> Document | None:
        return next((d for d in self.store.state.documents if d.id == self.document_id), None)

    def apply(self) -> None:
        self._previous = self.find()
        self.store.dispatch(UpdateDocumentStatus(self.document_id, self.status))

    def undo(self) -> None:
        current = self.find()
        if self._previous is None or current is None or current.status != self.status:
            return
        previous = self._previous
        self.store.dispatch(
            UpdateDocument(dataclasses.replace(current, status=previous.status, updated_at=previous.updated_at))
        )

    async def request(self) -> Document:
        return await self.backend.update_document_status(self.document_id, self.status)

    def commit(self, result: Document) -> None:
        self.store.dispatch(UpdateDocument(result))

    async def refetch(self) -> list[Document]:
        return await self.backend.list_documents()


class ResidencyActions:
    """Application operations over one backend and one store."""

    def __init__(self, backend: ResidencyBackend, store: Store, executor: ApiExecutor | None = None):
        self.backend = backend
        self.store = store
        self.executor = executor or ApiExecutor(store)

    @property
    def state(self) -> AppState:
        return self.store.state

    async def load_initial_data(self) -> bool:
        """
        Load foreigners, documents, the company and recent activity.

        Skipped when data is already loaded or nobody is signed in. Failures
        are recorded in the status tree rather than raised.

        Returns:
            True if data was loaded by this call
        """
        if self.store.state.is_loaded:
            return False
        if await self.backend.get_session() is None:
            logger.debug("Skipping initial load: no session")
            return False

        self.store.dispatch(StartRequest())
        try:
            foreigners, documents, company, activities = await asyncio.gather(
                self.backend.list_foreigners(),
                self.backend.list_documents(),
                self.backend.get_company(),
                self.backend.list_activity_logs(ACTIVITY_LOG_LIMIT),
            )
        except Exception as e:
            api_error = to_api_error(e)
            logger.error(f"Failed to load initial data: {api_error.message}", extra={"status": api_error.status})
            self.store.dispatch(SetError(api_error))
            if api_error.is_network_error:
                self.store.dispatch(SetNetworkStatus(NetworkStatus.OFFLINE))
            return False
        finally:
            self.store.dispatch(FinishRequest())

        self.store.dispatch(
            SetInitialData(
                {
                    "foreigners": foreigners,
                    "documents": documents,
                    "company": company,
                    "activities": activities,
                }
            )
        )
        self.store.dispatch(SetNetworkStatus(NetworkStatus.ONLINE))
        self.store.dispatch(SetLastSyncedAt())
        logger.info(
            "Initial data loaded",
            extra={"foreigners": len(foreigners), "documents": len(documents), "activities": len(activities)},
        )
        return True

    def reset_state(self) -> None:
        self.store.dispatch(ResetState())
        self.store.dispatch(ResetStatus())

    # =========================================================================
    # Foreigners
    # =========================================================================

    async def create_foreigner(self, draft: ForeignerDraft) -> Foreigner:
        return await self.executor.execute(
            request=lambda: self.backend.create_foreigner(draft),
            on_success=lambda created: self.store.dispatch(AddForeigner(created)),
        )

    async def update_foreigner(self, foreigner_id: str, updates: dict[str, Any]) -> Foreigner:
        return await self.executor.execute(
            request=lambda: self.backend.update_foreigner(foreigner_id, updates),
            on_success=lambda updated: self.store.dispatch(UpdateForeigner(updated)),
        )

    async def delete_foreigner(self, foreigner_id: str) -> None:
        await self.executor.execute(DeleteForeignerCommand(self.backend, self.store, foreigner_id))

    # =========================================================================
    # Documents
    # =========================================================================

    async def create_document(self, draft: DocumentDraft) -> Document:
        return await self.executor.execute(
            request=lambda: self.backend.create_document(draft),
            on_success=lambda created: self.store.dispatch(AddDocument(created)),
        )

    async def update_document(self, document_id: str, updates: dict[str, Any]) -> Document:
        return await self.executor.execute(
            request=lambda: self.backend.update_document(document_id, updates),
            on_success=lambda updated: self.store.dispatch(UpdateDocument(updated)),
        )

    async def update_document_status(self, document_id: str, status: DocumentStatus) -> Document:
        return await self.executor.execute(
            UpdateDocumentStatusCommand(self.backend, self.store, document_id, status)
        )

    async def delete_document(self, document_id: str) -> None:
        await self.executor.execute(DeleteDocumentCommand(self.backend, self.store, document_id))

    # =========================================================================
    # Company and activity
    # =========================================================================

    async def update_company(self, company_id: str, updates: dict[str, Any]) -> Company:
        return await self.executor.execute(
            request=lambda: self.backend.update_company(company_id, updates),
            on_success=lambda updated: self.store.dispatch(UpdateCompany(updated)),
        )

    async def create_activity(self, message: str) -> ActivityLog:
        company = self.store.state.company
        if company is None:
            raise CompanyNotLoadedError()
        return await self.executor.execute(
            request=lambda: self.backend.create_activity_log(message, company.id),
            on_success=lambda created: self.store.dispatch(AddActivity(created)),
        )

    # =========================================================================
    # Auth events
    # =========================================================================

    def bind_auth_events(self) -> Subscription:
        """Load data on sign-in and clear it on sign-out."""

        async def on_auth_event(event: AuthEvent, _session: AuthSession | None) -> None:
            if event == AuthEvent.SIGNED_IN:
                await self.load_initial_data()
            elif event == AuthEvent.SIGNED_OUT:
                self.reset_state()

        return self.backend.on_auth_state_change(on_auth_event)
