"""
Client State

Store, optimistic executor, CRUD actions, session management and the
persisted state snapshot.
"""

from residency_docs.state.actions import CompanyNotLoadedError, ResidencyActions
from residency_docs.state.executor import ApiExecutor, CallbackCommand, StoreCommand
from residency_docs.state.persistence import AppStateStorage
from residency_docs.state.session import SessionManager, SessionStorage
from residency_docs.state.store import AppState, StatusState, Store

__all__ = [
    "ApiExecutor",
    "AppState",
    "AppStateStorage",
    "CallbackCommand",
    "CompanyNotLoadedError",
    "ResidencyActions",
    "SessionManager",
    "SessionStorage",
    "StatusState",
    "Store",
    "StoreCommand",
]
