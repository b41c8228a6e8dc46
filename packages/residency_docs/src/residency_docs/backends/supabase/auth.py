"""
GoTrue Auth

Password sign-in, refresh and logout against Supabase's ``/auth/v1``
endpoints. Keeps the shared ApiClient's bearer token in step with the
current session and notifies auth listeners.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from residency_docs.backends.base import AuthStateEmitter
from residency_docs.contracts import AuthEvent, AuthSession
from residency_docs.http import ApiClient, ApiError

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth/v1"

INVALID_CREDENTIALS_MESSAGE = "メールアドレスまたはパスワードが正しくありません。"
SESSION_ERROR_MESSAGE = "セッションの作成に失敗しました。"
NO_SESSION_MESSAGE = "セッションがありません。再度ログインしてください。"


def parse_session(payload: Any) -> AuthSession:
    """
    Build an AuthSession from a GoTrue token response.

    Raises:
        ApiError: code "session_error" when the response carries no session
    """
    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise ApiError(message=SESSION_ERROR_MESSAGE, status=401, code="session_error")

    if payload.get("expires_at"):
        expires_at = datetime.fromtimestamp(int(payload["expires_at"]), tz=timezone.utc)
    else:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(payload.get("expires_in", 3600)))

    user = payload.get("user") or {}
    return AuthSession(
        access_token=payload["access_token"],
        refresh_token=payload.get("refresh_token", ""),
        expires_at=expires_at,
        user_id=user.get("id", ""),
        email=user.get("email", ""),
    )


class GoTrueAuth:
    """Session owner for the Supabase backend."""

    def __init__(self, api: ApiClient, emitter: AuthStateEmitter):
        self.api = api
        self.emitter = emitter
        self._session: AuthSession | None = None

    @property
    def session(self) -> AuthSession | None:
        return self._session

    def _adopt(self, session: AuthSession | None) -> None:
        self._session = session
        if session is None:
            self.api.clear_tokens()
        else:
            self.api.set_tokens(access_token=session.access_token, refresh_token=session.refresh_token)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        try:
            payload = await self.api.post(
                f"{AUTH_PATH}/token",
                query={"grant_type": "password"},
                body={"email": email, "password": password},
                skip_auth=True,
                retry=0,
            )
        except ApiError as e:
            if e.status in (400, 401):
                raise ApiError(
                    message=e.message or INVALID_CREDENTIALS_MESSAGE,
                    status=401,
                    code="invalid_credentials",
                ) from e
            raise

        session = parse_session(payload)
        self._adopt(session)
        logger.info("Signed in", extra={"user_id": session.user_id})
        await self.emitter.emit(AuthEvent.SIGNED_IN, session)
        return session

    async def refresh_session(self) -> AuthSession:
        if self._session is None or not self._session.refresh_token:
            raise ApiError(message=NO_SESSION_MESSAGE, status=401, code="no_session")

        payload = await self.api.post(
            f"{AUTH_PATH}/token",
            query={"grant_type": "refresh_token"},
            body={"refresh_token": self._session.refresh_token},
            skip_auth=True,
        )
        session = parse_session(payload)
        self._adopt(session)
        await self.emitter.emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self) -> None:
        if self._session is not None:
            try:
                await self.api.post(f"{AUTH_PATH}/logout", retry=0)
            except ApiError as e:
                # The local session is discarded either way
                logger.warning(f"Remote logout failed: {e}", extra={"status": e.status})
        self._adopt(None)
        await self.emitter.emit(AuthEvent.SIGNED_OUT, None)

    async def set_session(self, session: AuthSession) -> None:
        self._adopt(session)
        await self.emitter.emit(AuthEvent.INITIAL_SESSION, session)

    async def get_user(self) -> dict[str, Any] | None:
        """The auth user behind the current token, or None when signed out."""
        if self._session is None:
            return None
        try:
            return await self.api.get(f"{AUTH_PATH}/user")
        except ApiError as e:
            if e.status == 401:
                return None
            raise
