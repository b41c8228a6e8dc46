"""
Application wiring.

Builds the backend selected by settings and connects it to the store,
executor, actions, session manager and the persisted snapshot.
"""

import logging
from dataclasses import dataclass
from typing import Any

import redis

from basecore.settings import Settings, get_settings
from residency_docs.backends.base import ResidencyBackend
from residency_docs.backends.stub import StubBackend
from residency_docs.backends.supabase import SupabaseBackend
from residency_docs.notifications import LoggingNotifier, Notifier
from residency_docs.state import (
    ApiExecutor,
    AppState,
    AppStateStorage,
    ResidencyActions,
    SessionManager,
    SessionStorage,
    Store,
)

logger = logging.getLogger(__name__)


def get_backend(settings: Settings | None = None, snapshot: AppState | None = None) -> ResidencyBackend:
    """
    Get the residency backend named by RESIDENCY_BACKEND.

    The stub backend is seeded from ``snapshot`` when one with loaded data
    is given, otherwise from the demo data set.
    """
    settings = settings or get_settings()

    if settings.RESIDENCY_BACKEND == "supabase":
        url, anon_key = settings.require_supabase()
        return SupabaseBackend(
            url=url,
            anon_key=anon_key,
            timeout_ms=settings.API_TIMEOUT_MS,
            retry=settings.API_RETRY,
            retry_delay_ms=settings.API_RETRY_DELAY_MS,
        )

    if snapshot is not None and snapshot.is_loaded:
        logger.debug("Seeding stub backend from persisted state")
        return StubBackend.from_state(snapshot, session_ttl_seconds=settings.STUB_SESSION_TTL_SECONDS)
    return StubBackend(session_ttl_seconds=settings.STUB_SESSION_TTL_SECONDS)


@dataclass
class Application:
    backend: ResidencyBackend
    store: Store
    executor: ApiExecutor
    actions: ResidencyActions
    session: SessionManager
    state_storage: AppStateStorage
    notifier: Notifier

    async def start(self) -> bool:
        """Restore the stored session and load data when signed in."""
        restored = await self.session.initialize()
        if self.session.is_authenticated:
            await self.actions.load_initial_data()
        return restored

    async def close(self) -> None:
        await self.session.close()
        await self.backend.close()


def build_application(
    settings: Settings | None = None,
    notifier: Notifier | None = None,
    redis_client: Any = None,
    backend: ResidencyBackend | None = None,
) -> Application:
    settings = settings or get_settings()
    notifier = notifier or LoggingNotifier()

    state_storage = AppStateStorage(client=redis_client)
    if backend is None:
        try:
            snapshot = state_storage.load()
        except redis.RedisError as e:
            logger.warning(f"Persisted state unavailable: {e}")
            snapshot = None
        backend = get_backend(settings, snapshot)

    store = Store()
    state_storage.attach(store)

    executor = ApiExecutor(store, notifier)
    actions = ResidencyActions(backend, store, executor)
    actions.bind_auth_events()

    session = SessionManager(
        backend,
        notifier=notifier,
        storage=SessionStorage(client=redis_client, encryption_key=settings.SSW_ENCRYPTION_KEY),
        refresh_margin_seconds=settings.SESSION_REFRESH_MARGIN_SECONDS,
    )

    return Application(
        backend=backend,
        store=store,
        executor=executor,
        actions=actions,
        session=session,
        state_storage=state_storage,
        notifier=notifier,
    )
