"""
Persisted application state.

The AppState snapshot is kept as one JSON blob in Redis so a restarted CLI
(or the stub backend) can pick up where the last run left off.
"""

import logging
from typing import Any, Callable

import redis

from basecore.redis import delete_key, get_json, set_json
from residency_docs.constants import APP_STATE_STORAGE_KEY
from residency_docs.state.store import AppState, StatusState, Store

logger = logging.getLogger(__name__)


class AppStateStorage:
    def __init__(self, key: str = APP_STATE_STORAGE_KEY, client: Any = None):
        self.key = key
        self.client = client

    def load(self) -> AppState | None:
        """Return the saved snapshot, or None when missing or unreadable."""
        data = get_json(self.key, self.client)
        if data is None:
            return None
        if not isinstance(data, dict):
            logger.warning("Ignoring persisted state with unexpected shape", extra={"key": self.key})
            return None
        try:
            return AppState.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring corrupt persisted state: {e}", extra={"key": self.key})
            return None

    def save(self, state: AppState) -> None:
        set_json(self.key, state.to_dict(), self.client)

    def clear(self) -> None:
        delete_key(self.key, self.client)

    def attach(self, store: Store) -> Callable[[], None]:
        """
        Save the store's state after every dispatch that changes it.

        Only loaded states are saved, so a sign-out keeps the last snapshot.
        Storage failures are logged and do not interrupt the dispatch.
        Returns the unsubscribe function.
        """
        last_saved: list[AppState | None] = [None]

        def listener(state: AppState, _status: StatusState) -> None:
            if not state.is_loaded or state is last_saved[0]:
                return
            try:
                self.save(state)
                last_saved[0] = state
            except redis.RedisError as e:
                logger.warning(f"Failed to persist app state: {e}", extra={"key": self.key})

        return store.subscribe(listener)
