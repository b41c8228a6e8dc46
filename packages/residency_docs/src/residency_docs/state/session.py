"""
Session Management

Signs users in and out, restores a persisted session on start-up, and keeps
the session alive with two local timers: a refresh shortly before expiry and
a forced logout at expiry.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable

import redis
from cryptography.fernet import Fernet, InvalidToken

from basecore.redis import delete_key, get_json, set_json
from residency_docs.backends.base import ResidencyBackend
from residency_docs.constants import SESSION_STORAGE_KEY
from residency_docs.contracts import AuthSession, User
from residency_docs.http.errors import ApiError
from residency_docs.notifications import LoggingNotifier, Notifier, Toast, notify_api_error

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "ログインに失敗しました。資格情報をご確認ください。"
REFRESH_FAILED_MESSAGE = "セッションの更新に失敗しました。再度ログインしてください。"
PROFILE_NOT_FOUND_MESSAGE = "ユーザープロフィールが見つかりません。"
SESSION_EXPIRED_MESSAGE = "セッションの有効期限が切れました。再度ログインしてください。"


class SessionStorage:
    """
    Persists the signed-in user and their tokens under one key.

    When an encryption key is configured the refresh token is stored
    Fernet-encrypted.
    """

    def __init__(self, client: Any = None, encryption_key: str | None = None, key: str = SESSION_STORAGE_KEY):
        self.client = client
        self.key = key
        self._fernet = Fernet(encryption_key.encode()) if encryption_key else None

    def save(self, user: User, session: AuthSession) -> None:
        session_data = session.to_dict()
        if self._fernet is not None:
            session_data["refresh_token"] = self._fernet.encrypt(session.refresh_token.encode()).decode()
        set_json(
            self.key,
            {"user": user.to_dict(), "session": session_data, "encrypted": self._fernet is not None},
            self.client,
        )

    def load(self) -> tuple[User, AuthSession] | None:
        data = get_json(self.key, self.client)
        if not isinstance(data, dict) or "user" not in data or "session" not in data:
            return None

        session_data = dict(data["session"])
        if data.get("encrypted"):
            if self._fernet is None:
                logger.warning("Stored session is encrypted but no encryption key is configured")
                return None
            try:
                session_data["refresh_token"] = self._fernet.decrypt(session_data["refresh_token"].encode()).decode()
            except InvalidToken:
                logger.error("Failed to decrypt stored refresh token")
                return None

        try:
            return User.from_dict(data["user"]), AuthSession.from_dict(session_data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring corrupt stored session: {e}")
            return None

    def clear(self) -> None:
        delete_key(self.key, self.client)


class SessionManager:
    """
    Authentication state for one client.

    ``user`` and ``session`` are both set while signed in. ``auth_error``
    holds the last authentication failure.
    """

    def __init__(
        self,
        backend: ResidencyBackend,
        notifier: Notifier | None = None,
        storage: SessionStorage | None = None,
        refresh_margin_seconds: float = 60,
    ):
        self.backend = backend
        self.notifier = notifier or LoggingNotifier()
        self.storage = storage
        self.refresh_margin_seconds = refresh_margin_seconds

        self.user: User | None = None
        self.session: AuthSession | None = None
        self.auth_error: ApiError | None = None
        self.is_initializing = True

        self._refresh_task: asyncio.Task | None = None
        self._logout_task: asyncio.Task | None = None
        self._handling_unauthorized = False

        backend.unauthorized_handler = self._handle_unauthorized

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.session is not None

    # =========================================================================
    # Public API
    # =========================================================================

    async def login(self, email: str, password: str) -> bool:
        """
        Sign in and load the user's profile.

        Failures are shown through the notifier and kept in ``auth_error``.

        Returns:
            True on success
        """
        self.auth_error = None

        try:
            if await self.backend.get_session() is not None:
                self._clear_local()
                await self.backend.sign_out()
        except ApiError as e:
            logger.warning(f"Failed to clear existing session before login: {e}")

        try:
            session = await self.backend.sign_in_with_password(email, password)
            profile = await self.backend.get_user_profile(session.user_id)
            if profile is None:
                await self.backend.sign_out()
                raise ApiError(message=PROFILE_NOT_FOUND_MESSAGE, status=404, code="profile_not_found")
        except Exception as e:
            self.auth_error = notify_api_error(e, self.notifier, fallback_message=LOGIN_FAILED_MESSAGE)
            logger.info("Login failed", extra={"code": self.auth_error.code, "status": self.auth_error.status})
            return False

        self._adopt(session, profile)
        logger.info("Logged in", extra={"user_id": profile.id})
        return True

    async def logout(self) -> None:
        self._cancel_timers()
        # A 401 from the remote sign-out must not re-enter logout
        self._clear_local()
        try:
            await self.backend.sign_out()
        except ApiError as e:
            logger.error(f"Logout error: {e}")
        self.auth_error = None
        self._forget()

    async def refresh_session(self) -> AuthSession:
        """
        Exchange the refresh token for a new session.

        On failure the user is logged out and the error re-raised.
        """
        try:
            session = await self.backend.refresh_session()
            profile = await self.backend.get_user_profile(session.user_id)
        except Exception as e:
            api_error = notify_api_error(e, self.notifier, fallback_message=REFRESH_FAILED_MESSAGE)
            self.auth_error = api_error
            await self.logout()
            self.auth_error = api_error
            if api_error is e:
                raise
            raise api_error from e

        self._adopt(session, profile or self.user)
        logger.info("Session refreshed", extra={"expires_at": session.expires_at.isoformat()})
        return session

    async def initialize(self) -> bool:
        """
        Restore the persisted session, if any.

        A restored session whose profile no longer exists is discarded and
        ``auth_error`` set to ``profile_not_found``.

        Returns:
            True when a session was restored
        """
        try:
            stored = self._load()
            if stored is None:
                return False

            _user, session = stored
            await self.backend.set_session(session)

            if session.is_expired():
                try:
                    session = await self.backend.refresh_session()
                except ApiError as e:
                    logger.info(f"Stored session could not be refreshed: {e}")
                    await self.backend.sign_out()
                    self._forget()
                    return False

            profile = await self.backend.get_user_profile(session.user_id)
            if profile is None:
                self.auth_error = ApiError(message=PROFILE_NOT_FOUND_MESSAGE, status=404, code="profile_not_found")
                self.user = None
                await self.backend.sign_out()
                self._forget()
                return False

            self._adopt(session, profile)
            return True
        finally:
            self.is_initializing = False

    async def close(self) -> None:
        """Stop the session timers without signing out."""
        self._cancel_timers()

    # =========================================================================
    # Timers
    # =========================================================================

    def _schedule_timers(self, session: AuthSession, now: datetime | None = None) -> None:
        self._cancel_timers()
        remaining = session.seconds_until_expiry(now)
        logout_in = max(0.0, remaining)

        # An already expired session only gets the logout timer
        if remaining > 0:
            if remaining > self.refresh_margin_seconds:
                refresh_in = remaining - self.refresh_margin_seconds
            else:
                refresh_in = remaining / 2
            self._refresh_task = asyncio.create_task(self._run_after(refresh_in, self._on_refresh_timer))

        self._logout_task = asyncio.create_task(self._run_after(logout_in, self._on_logout_timer))
        logger.debug("Session timers scheduled", extra={"logout_in": logout_in})

    async def _run_after(self, delay: float, callback: Callable[[], Awaitable[None]]) -> None:
        await asyncio.sleep(delay)
        await callback()

    async def _on_refresh_timer(self) -> None:
        try:
            await self.refresh_session()
        except ApiError as e:
            logger.warning(f"Scheduled session refresh failed: {e}")

    async def _on_logout_timer(self) -> None:
        logger.warning("Session expired")
        self.notifier.notify(Toast(title="ログアウトしました", description=SESSION_EXPIRED_MESSAGE))
        await self.logout()

    def _cancel_timers(self) -> None:
        current = asyncio.current_task() if self._has_running_loop() else None
        for task in (self._refresh_task, self._logout_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._refresh_task = None
        self._logout_task = None

    @staticmethod
    def _has_running_loop() -> bool:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    # =========================================================================
    # Internals
    # =========================================================================

    async def _handle_unauthorized(self) -> None:
        if self._handling_unauthorized or not self.is_authenticated:
            return
        self._handling_unauthorized = True
        try:
            logger.warning("Access token rejected, logging out")
            error = ApiError(message=SESSION_EXPIRED_MESSAGE, status=401, code="unauthorized")
            notify_api_error(error, self.notifier)
            await self.logout()
            self.auth_error = error
        finally:
            self._handling_unauthorized = False

    def _adopt(self, session: AuthSession, user: User | None) -> None:
        self.session = session
        self.user = user
        if user is not None:
            self._persist(user, session)
        if self._has_running_loop():
            self._schedule_timers(session)

    def _clear_local(self) -> None:
        self.session = None
        self.user = None

    def _load(self) -> tuple[User, AuthSession] | None:
        if self.storage is None:
            return None
        try:
            return self.storage.load()
        except redis.RedisError as e:
            logger.warning(f"Failed to read stored session: {e}")
            return None

    def _persist(self, user: User, session: AuthSession) -> None:
        if self.storage is None:
            return
        try:
            self.storage.save(user, session)
        except redis.RedisError as e:
            logger.warning(f"Failed to store session: {e}")

    def _forget(self) -> None:
        if self.storage is None:
            return
        try:
            self.storage.clear()
        except redis.RedisError as e:
            logger.warning(f"Failed to clear stored session: {e}")
