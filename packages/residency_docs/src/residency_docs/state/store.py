"""
Application Store

Single state tree for the client, mutated only by dispatching typed actions
through Store.dispatch. Two reducers: one for domain data, one for request
status. Both are pure and return new objects.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from residency_docs.constants import ACTIVITY_LOG_LIMIT
from residency_docs.contracts import (
    ActivityLog,
    Company,
    Document,
    DocumentStatus,
    Foreigner,
    NetworkStatus,
)
from residency_docs.http.errors import ApiError

logger = logging.getLogger(__name__)


# =============================================================================
# State
# =============================================================================


@dataclass
class AppState:
    documents: list[Document] = field(default_factory=list)
    foreigners: list[Foreigner] = field(default_factory=list)
    company: Company | None = None
    activities: list[ActivityLog] = field(default_factory=list)
    is_loaded: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "documents": [d.to_dict() for d in self.documents],
            "foreigners": [f.to_dict() for f in self.foreigners],
            "company": self.company.to_dict() if self.company else None,
            "activities": [a.to_dict() for a in self.activities],
            "is_loaded": self.is_loaded,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppState":
        return cls(
            documents=[Document.from_dict(d) for d in data.get("documents", [])],
            foreigners=[Foreigner.from_dict(f) for f in data.get("foreigners", [])],
            company=Company.from_dict(data["company"]) if data.get("company") else None,
            activities=[ActivityLog.from_dict(a) for a in data.get("activities", [])],
            is_loaded=bool(data.get("is_loaded", False)),
        )


@dataclass
class StatusState:
    error: ApiError | None = None
    network_status: NetworkStatus = NetworkStatus.UNKNOWN
    pending_requests: int = 0
    last_synced_at: str | None = None

    @property
    def is_loading(self) -> bool:
        return self.pending_requests > 0


# =============================================================================
# Actions
# =============================================================================


class AppAction:
    """Base class for actions handled by app_reducer."""


class StatusAction:
    """Base class for actions handled by status_reducer."""


@dataclass(frozen=True)
class SetInitialData(AppAction):
    """Merge loaded data into the state and mark it loaded.

    ``payload`` keys are AppState field names; missing keys keep their value.
    """

    payload: dict[str, Any]


@dataclass(frozen=True)
class AddDocument(AppAction):
    document: Document


@dataclass(frozen=True)
class UpdateDocument(AppAction):
    document: Document


@dataclass(frozen=True)
class UpdateDocumentStatus(AppAction):
    document_id: str
    status: DocumentStatus


@dataclass(frozen=True)
class DeleteDocument(AppAction):
    document_id: str


@dataclass(frozen=True)
class AddForeigner(AppAction):
    foreigner: Foreigner


@dataclass(frozen=True)
class UpdateForeigner(AppAction):
    foreigner: Foreigner


@dataclass(frozen=True)
class DeleteForeigner(AppAction):
    foreigner_id: str


@dataclass(frozen=True)
class AddActivity(AppAction):
    activity: ActivityLog


@dataclass(frozen=True)
class UpdateCompany(AppAction):
    company: Company


@dataclass(frozen=True)
class ResetState(AppAction):
    pass


@dataclass(frozen=True)
class StartRequest(StatusAction):
    pass


@dataclass(frozen=True)
class FinishRequest(StatusAction):
    pass


@dataclass(frozen=True)
class SetError(StatusAction):
    error: ApiError | None


@dataclass(frozen=True)
class SetNetworkStatus(StatusAction):
    status: NetworkStatus


@dataclass(frozen=True)
class SetLastSyncedAt(StatusAction):
    timestamp: str | None = None


@dataclass(frozen=True)
class ResetStatus(StatusAction):
    pass


# =============================================================================
# Reducers
# =============================================================================

_STATE_FIELDS = {f.name for f in dataclasses.fields(AppState)}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def app_reducer(state: AppState, action: AppAction) -> AppState:
    if isinstance(action, SetInitialData):
        unknown = set(action.payload) - _STATE_FIELDS
        if unknown:
            raise ValueError(f"Unknown state fields: {sorted(unknown)}")
        return dataclasses.replace(state, **action.payload, is_loaded=True)

    if isinstance(action, AddDocument):
        return dataclasses.replace(state, documents=[action.document, *state.documents])

    if isinstance(action, UpdateDocument):
        return dataclasses.replace(
            state,
            documents=[action.document if d.id == action.document.id else d for d in state.documents],
        )

    if isinstance(action, UpdateDocumentStatus):
        now = datetime.now(timezone.utc)
        return dataclasses.replace(
            state,
            documents=[
                dataclasses.replace(d, status=action.status, updated_at=now) if d.id == action.document_id else d
                for d in state.documents
            ],
        )

    if isinstance(action, DeleteDocument):
        return dataclasses.replace(state, documents=[d for d in state.documents if d.id != action.document_id])

    if isinstance(action, AddForeigner):
        return dataclasses.replace(state, foreigners=[action.foreigner, *state.foreigners])

    if isinstance(action, UpdateForeigner):
        return dataclasses.replace(
            state,
            foreigners=[action.foreigner if f.id == action.foreigner.id else f for f in state.foreigners],
        )

    if isinstance(action, DeleteForeigner):
        return dataclasses.replace(state, foreigners=[f for f in state.foreigners if f.id != action.foreigner_id])

    if isinstance(action, AddActivity):
        return dataclasses.replace(state, activities=[action.activity, *state.activities][:ACTIVITY_LOG_LIMIT])

    if isinstance(action, UpdateCompany):
        return dataclasses.replace(state, company=action.company)

    if isinstance(action, ResetState):
        return AppState()

    return state


def status_reducer(state: StatusState, action: StatusAction) -> StatusState:
    if isinstance(action, StartRequest):
        return dataclasses.replace(state, pending_requests=state.pending_requests + 1)

    if isinstance(action, FinishRequest):
        return dataclasses.replace(state, pending_requests=max(0, state.pending_requests - 1))

    if isinstance(action, SetError):
        return dataclasses.replace(state, error=action.error)

    if isinstance(action, SetNetworkStatus):
        return dataclasses.replace(state, network_status=action.status)

    if isinstance(action, SetLastSyncedAt):
        return dataclasses.replace(state, last_synced_at=action.timestamp or _now_iso())

    if isinstance(action, ResetStatus):
        return StatusState()

    return state


# =============================================================================
# Store
# =============================================================================

Listener = Callable[[AppState, StatusState], None]


class Store:
    """Owns the state trees. dispatch() is the only way to change them."""

    def __init__(self, state: AppState | None = None, status: StatusState | None = None):
        self._state = state or AppState()
        self._status = status or StatusState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def status(self) -> StatusState:
        return self._status

    def dispatch(self, action: AppAction | StatusAction) -> None:
        if isinstance(action, StatusAction):
            self._status = status_reducer(self._status, action)
        elif isinstance(action, AppAction):
            self._state = app_reducer(self._state, action)
        else:
            raise TypeError(f"Not an action: {action!r}")

        logger.debug(f"Dispatched {type(action).__name__}")
        for listener in list(self._listeners):
            listener(self._state, self._status)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after every dispatch. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
