"""
Tests for the reducers and the store.
"""

from datetime import datetime, timezone

import pytest

from residency_docs.backends.stub.seed import seed_company, seed_documents, seed_foreigners
from residency_docs.contracts import ActivityLog, DocumentStatus, NetworkStatus
from residency_docs.http import ApiError
from residency_docs.state.store import (
    AddActivity,
    AddDocument,
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
    StatusState,
    Store,
    UpdateDocument,
    UpdateDocumentStatus,
    app_reducer,
    status_reducer,
)


def activity(n):
    return ActivityLog(id=f"a{n}", message=f"entry {n}", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def loaded_state():
    return app_reducer(
        AppState(),
        SetInitialData({"documents": seed_documents(), "foreigners": seed_foreigners(), "company": seed_company()}),
    )


class TestAppReducer:
    """Tests for domain data transitions."""

    def test_set_initial_data_marks_loaded(self, loaded_state):
        assert loaded_state.is_loaded is True
        assert len(loaded_state.documents) == 3
        assert loaded_state.activities == []

    def test_set_initial_data_partial_keeps_other_fields(self, loaded_state):
        state = app_reducer(loaded_state, SetInitialData({"documents": []}))
        assert state.documents == []
        assert len(state.foreigners) == 3

    def test_set_initial_data_rejects_unknown_fields(self):
        with pytest.raises(ValueError):
            app_reducer(AppState(), SetInitialData({"bogus": 1}))

    def test_add_document_prepends(self, loaded_state):
        new_doc = seed_documents()[0]
        new_doc.id = "d9"
        state = app_reducer(loaded_state, AddDocument(new_doc))
        assert state.documents[0].id == "d9"
        assert len(state.documents) == 4

    def test_update_document_replaces_by_id(self, loaded_state):
        changed = seed_documents()[1]
        changed.title = "changed"
        state = app_reducer(loaded_state, UpdateDocument(changed))
        assert [d.title for d in state.documents if d.id == changed.id] == ["changed"]

    def test_update_document_status_touches_updated_at(self, loaded_state):
        before = datetime.now(timezone.utc)
        state = app_reducer(loaded_state, UpdateDocumentStatus("d3", DocumentStatus.SUBMITTED))
        doc = next(d for d in state.documents if d.id == "d3")
        assert doc.status == DocumentStatus.SUBMITTED
        assert doc.updated_at >= before

    def test_reducer_does_not_mutate_input(self, loaded_state):
        original_ids = [d.id for d in loaded_state.documents]
        app_reducer(loaded_state, DeleteDocument("d1"))
        assert [d.id for d in loaded_state.documents] == original_ids

    def test_delete_foreigner(self, loaded_state):
        state = app_reducer(loaded_state, DeleteForeigner("f2"))
        assert [f.id for f in state.foreigners] == ["f1", "f3"]

    def test_activity_feed_is_capped_at_20(self):
        state = AppState()
        for n in range(25):
            state = app_reducer(state, AddActivity(activity(n)))
        assert len(state.activities) == 20
        assert state.activities[0].id == "a24"
        assert state.activities[-1].id == "a5"

    def test_reset_state(self, loaded_state):
        assert app_reducer(loaded_state, ResetState()) == AppState()


class TestStatusReducer:
    """Tests for request status transitions."""

    def test_pending_requests_drive_is_loading(self):
        state = status_reducer(StatusState(), StartRequest())
        state = status_reducer(state, StartRequest())
        assert state.pending_requests == 2
        assert state.is_loading is True

        state = status_reducer(state, FinishRequest())
        state = status_reducer(state, FinishRequest())
        assert state.is_loading is False

    def test_finish_request_never_goes_negative(self):
        state = status_reducer(StatusState(), FinishRequest())
        assert state.pending_requests == 0

    def test_set_last_synced_at_defaults_to_now(self):
        state = status_reducer(StatusState(), SetLastSyncedAt())
        synced = datetime.fromisoformat(state.last_synced_at)
        assert synced.tzinfo is not None

        state = status_reducer(state, SetLastSyncedAt("2024-01-01T00:00:00+00:00"))
        assert state.last_synced_at == "2024-01-01T00:00:00+00:00"

    def test_error_and_network_status(self):
        error = ApiError("down")
        state = status_reducer(StatusState(), SetError(error))
        state = status_reducer(state, SetNetworkStatus(NetworkStatus.OFFLINE))
        assert state.error is error
        assert state.network_status == NetworkStatus.OFFLINE

        assert status_reducer(state, ResetStatus()) == StatusState()


class TestStore:
    def test_dispatch_routes_actions_and_notifies(self, store):
        seen = []
        unsubscribe = store.subscribe(lambda state, status: seen.append((state.is_loaded, status.pending_requests)))

        store.dispatch(StartRequest())
        store.dispatch(SetInitialData({}))
        unsubscribe()
        store.dispatch(FinishRequest())

        assert seen == [(False, 1), (True, 1)]
        assert store.status.pending_requests == 0

    def test_dispatch_rejects_non_actions(self, store):
        with pytest.raises(TypeError):
            store.dispatch("ADD_DOCUMENT")

    def test_state_round_trips_through_dict(self, loaded_state):
        assert AppState.from_dict(loaded_state.to_dict()) == loaded_state
