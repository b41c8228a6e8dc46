"""
Optimistic Request Executor

Runs a backend call wrapped in request bookkeeping: the optimistic update is
applied to the store first, the request awaited, and on failure the update is
rolled back, the error stored and shown, and the normalized ApiError raised
to the caller.
"""

import inspect
import logging
from typing import Any, Awaitable, Callable

from residency_docs.contracts import NetworkStatus
from residency_docs.http.errors import ApiError, to_api_error
from residency_docs.notifications import LoggingNotifier, Notifier, notify_api_error
from residency_docs.state.store import (
    FinishRequest,
    SetError,
    SetLastSyncedAt,
    SetNetworkStatus,
    StartRequest,
    Store,
)

logger = logging.getLogger(__name__)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class StoreCommand:
    """
    One optimistic mutation.

    Subclasses implement ``request``; the other hooks default to no-ops.
    ``rollback`` may be async (e.g., to re-fetch the authoritative list).
    """

    mark_synced: bool = True
    on_error: Callable[[ApiError], None] | None = None

    def apply(self) -> None:
        """Optimistic store update, run before the request."""

    async def request(self) -> Any:
        raise NotImplementedError

    def commit(self, result: Any) -> Awaitable[None] | None:
        """Reconcile the store with the server result."""

    def rollback(self, error: ApiError) -> Awaitable[None] | None:
        """Undo ``apply``."""


class CallbackCommand(StoreCommand):
    """StoreCommand assembled from plain callables."""

    def __init__(
        self,
        request: Callable[[], Awaitable[Any]],
        optimistic_update: Callable[[], None] | None = None,
        on_success: Callable[[Any], Any] | None = None,
        rollback: Callable[[ApiError], Any] | None = None,
        mark_synced: bool = True,
        on_error: Callable[[ApiError], None] | None = None,
    ):
        self._request = request
        self._optimistic_update = optimistic_update
        self._on_success = on_success
        self._rollback = rollback
        self.mark_synced = mark_synced
        self.on_error = on_error

    def apply(self) -> None:
        if self._optimistic_update:
            self._optimistic_update()

    async def request(self) -> Any:
        return await self._request()

    def commit(self, result: Any) -> Awaitable[None] | None:
        if self._on_success:
            return self._on_success(result)
        return None

    def rollback(self, error: ApiError) -> Awaitable[None] | None:
        if self._rollback:
            return self._rollback(error)
        return None


class ApiExecutor:
    """Executes StoreCommands against a Store."""

    def __init__(self, store: Store, notifier: Notifier | None = None):
        self.store = store
        self.notifier = notifier or LoggingNotifier()

    async def execute(
        self,
        command: StoreCommand | None = None,
        *,
        request: Callable[[], Awaitable[Any]] | None = None,
        optimistic_update: Callable[[], None] | None = None,
        on_success: Callable[[Any], Any] | None = None,
        rollback: Callable[[ApiError], Any] | None = None,
        mark_synced: bool = True,
        on_error: Callable[[ApiError], None] | None = None,
    ) -> Any:
        """
        Run ``command`` (or the equivalent keyword callbacks).

        Returns:
            The request result

        Raises:
            ApiError: normalized failure, after rollback and notification
        """
        if command is None:
            if request is None:
                raise TypeError("execute() needs a command or a request callable")
            command = CallbackCommand(
                request=request,
                optimistic_update=optimistic_update,
                on_success=on_success,
                rollback=rollback,
                mark_synced=mark_synced,
                on_error=on_error,
            )
        elif request is not None:
            raise TypeError("execute() takes either a command or callbacks, not both")

        store = self.store
        store.dispatch(StartRequest())
        store.dispatch(SetError(None))
        try:
            command.apply()
            result = await command.request()
            await _maybe_await(command.commit(result))
            store.dispatch(SetNetworkStatus(NetworkStatus.ONLINE))
            if command.mark_synced:
                store.dispatch(SetLastSyncedAt())
            return result
        except Exception as e:
            api_error = to_api_error(e)
            await self._rollback(command, api_error)

            store.dispatch(SetError(api_error))
            if api_error.status > 0:
                store.dispatch(SetNetworkStatus(NetworkStatus.ONLINE))
            elif api_error.code != "aborted":
                store.dispatch(SetNetworkStatus(NetworkStatus.OFFLINE))

            if command.on_error:
                command.on_error(api_error)
            else:
                notify_api_error(api_error, self.notifier)

            if api_error is e:
                raise
            raise api_error from e
        finally:
            store.dispatch(FinishRequest())

    async def _rollback(self, command: StoreCommand, error: ApiError) -> None:
        try:
            await _maybe_await(command.rollback(error))
        except Exception:
            logger.exception("Rollback failed", extra={"command": type(command).__name__})
