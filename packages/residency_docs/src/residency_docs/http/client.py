"""
Retrying HTTP Client

JSON/REST client used by every remote backend. Handles base URL
composition, query strings, bearer-token injection, per-request timeouts,
caller-initiated aborts and bounded retries.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence
from urllib.parse import urlencode

import httpx

from residency_docs.http.errors import ApiError, to_api_error
from residency_docs.http.retry import RequestAborted, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000
DEFAULT_RETRY_COUNT = 1
DEFAULT_RETRY_DELAY_MS = 500

ABORTED_MESSAGE = "リクエストが中断されました。"

QueryValue = str | int | float | bool | None
QueryParams = Mapping[str, QueryValue | Sequence[QueryValue]]

_UNSET: Any = object()


def _format_query_value(value: QueryValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_query_string(params: QueryParams | None) -> str:
    """
    Build "?a=1&b=2" from a mapping.

    None values are dropped, sequences repeat the key, booleans are
    lowercase. Returns "" when nothing remains.
    """
    if not params:
        return ""

    pairs: list[tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _format_query_value(v)) for v in value if v is not None)
            continue
        pairs.append((key, _format_query_value(value)))

    query = urlencode(pairs)
    return f"?{query}" if query else ""


class ApiClient:
    """
    Async REST client with timeout, retry and token handling.

    The transport is pluggable so tests (and alternative runtimes) can swap
    the network layer without touching request logic.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retry: int = DEFAULT_RETRY_COUNT,
        retry_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
        default_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        on_unauthorized: Callable[[], Awaitable[None] | None] | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the client.

        Args:
            base_url: Prefix for every request path ("" keeps paths as given)
            timeout_ms: Default per-attempt deadline for the whole exchange
            retry: Default number of retries after the first attempt
            retry_delay_ms: Fixed delay between attempts
            default_headers: Headers sent with every request
            transport: httpx transport (defaults to the real network)
            on_unauthorized: Hook awaited whenever a response is 401
            retry_policy: Full policy; overrides retry/retry_delay_ms
            sleep: Delay function, replaceable in tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.retry_policy = retry_policy or RetryPolicy(max_retries=retry, delay_ms=retry_delay_ms)
        self.default_headers = (
            dict(default_headers) if default_headers is not None else {"Content-Type": "application/json"}
        )
        self.transport = transport
        self.on_unauthorized = on_unauthorized
        self._sleep = sleep
        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._client: httpx.AsyncClient | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(transport=self.transport)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_tokens(self, access_token: str | None = _UNSET, refresh_token: str | None = _UNSET) -> None:
        """Update tokens. Arguments left out keep their current value."""
        if access_token is not _UNSET:
            self._access_token = access_token
        if refresh_token is not _UNSET:
            self._refresh_token = refresh_token

    def clear_tokens(self) -> None:
        self._access_token = None
        self._refresh_token = None

    def get_access_token(self) -> str | None:
        return self._access_token

    def get_refresh_token(self) -> str | None:
        return self._refresh_token

    def set_timeout(self, timeout_ms: int) -> None:
        self.timeout_ms = timeout_ms

    def set_retry(self, retry: int | None = None, retry_delay_ms: int | None = None) -> None:
        policy = self.retry_policy
        self.retry_policy = RetryPolicy(
            max_retries=retry if retry is not None else policy.max_retries,
            delay_ms=retry_delay_ms if retry_delay_ms is not None else policy.delay_ms,
            status_predicate=policy.status_predicate,
            error_predicate=policy.error_predicate,
        )

    # =========================================================================
    # Verbs
    # =========================================================================

    async def get(self, path: str, **options: Any) -> Any:
        return await self.request(path, method="GET", **options)

    async def get_list(self, path: str, **options: Any) -> Any:
        return await self.request(path, method="GET", **options)

    async def post(self, path: str, **options: Any) -> Any:
        return await self.request(path, method="POST", **options)

    async def put(self, path: str, **options: Any) -> Any:
        return await self.request(path, method="PUT", **options)

    async def patch(self, path: str, **options: Any) -> Any:
        return await self.request(path, method="PATCH", **options)

    async def delete(self, path: str, **options: Any) -> Any:
        return await self.request(path, method="DELETE", **options)

    async def fetch_paginated(
        self,
        path: str,
        page: int | None = None,
        page_size: int | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
        **filters: QueryValue,
    ) -> Any:
        """GET a paginated collection ({"data": [...], "meta": {"pagination": ...}})."""
        query: dict[str, QueryValue] = {
            "page": page,
            "pageSize": page_size,
            "sortBy": sort_by,
            "sortOrder": sort_order,
            **filters,
        }
        return await self.request(path, method="GET", query=query)

    # =========================================================================
    # Request execution
    # =========================================================================

    def compose_url(self, path: str, query: QueryParams | None = None) -> str:
        normalized_path = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{normalized_path}{build_query_string(query)}"

    def prepare_headers(self, headers: Mapping[str, str] | None = None, skip_auth: bool = False) -> dict[str, str]:
        merged = {**self.default_headers, **(headers or {})}
        if not skip_auth and self._access_token:
            merged["Authorization"] = f"Bearer {self._access_token}"
        return merged

    async def request(
        self,
        path: str,
        method: str = "GET",
        query: QueryParams | None = None,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        timeout_ms: int | None = None,
        retry: int | None = None,
        signal: asyncio.Event | None = None,
        skip_auth: bool = False,
    ) -> Any:
        """
        Send a request and return the parsed body.

        Returns None for 204 (or an empty body), decoded JSON for JSON
        content types and text otherwise.

        Raises:
            ApiError: on any non-2xx response once retries are exhausted,
                on transport failures (status 0), and with code "aborted"
                when ``signal`` is set before the response arrives.
        """
        url = self.compose_url(path, query)
        policy = self.retry_policy.with_max_retries(retry)
        timeout = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000

        attempt = 0
        last_error: BaseException | None = None

        while attempt <= policy.max_retries:
            try:
                try:
                    async with asyncio.timeout(timeout):
                        response = await self._send(
                            method,
                            url,
                            body=body,
                            headers=self.prepare_headers(headers, skip_auth),
                            timeout=timeout,
                            signal=signal,
                        )
                except TimeoutError as e:
                    raise httpx.TimeoutException(f"Request timed out after {timeout}s") from e

                if response.status_code == 401 and self.on_unauthorized:
                    await self._notify_unauthorized()

                if not response.is_success:
                    if policy.should_retry_status(response.status_code, attempt):
                        logger.warning(
                            f"Retrying {method} after HTTP {response.status_code}",
                            extra={"url": url, "status": response.status_code, "attempt": attempt + 1},
                        )
                        attempt += 1
                        await self._sleep(policy.delay_seconds)
                        continue
                    raise self._parse_error(response)

                return self._parse_body(response)

            except ApiError:
                raise
            except RequestAborted as e:
                raise ApiError(message=ABORTED_MESSAGE, status=0, code="aborted") from e
            except Exception as e:
                last_error = e
                if not policy.should_retry_error(e, attempt):
                    raise to_api_error(e) from e
                logger.warning(
                    f"Retrying {method} after {type(e).__name__}: {e}",
                    extra={"url": url, "attempt": attempt + 1},
                )
                attempt += 1
                await self._sleep(policy.delay_seconds)

        raise to_api_error(last_error)

    async def _send(
        self,
        method: str,
        url: str,
        body: Any,
        headers: dict[str, str],
        timeout: float,
        signal: asyncio.Event | None,
    ) -> httpx.Response:
        client = await self._get_client()

        body_kwargs: dict[str, Any] = {}
        if isinstance(body, (bytes, str)):
            body_kwargs["content"] = body
        elif body is not None:
            body_kwargs["json"] = body

        send = client.request(method, url, headers=headers, timeout=timeout, **body_kwargs)

        if signal is None:
            return await send
        if signal.is_set():
            send.close()
            raise RequestAborted()

        send_task = asyncio.ensure_future(send)
        abort_task = asyncio.ensure_future(signal.wait())
        try:
            done, _pending = await asyncio.wait({send_task, abort_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (send_task, abort_task):
                if not task.done():
                    task.cancel()

        if send_task in done:
            return send_task.result()
        raise RequestAborted()

    async def _notify_unauthorized(self) -> None:
        result = self.on_unauthorized()
        if inspect.isawaitable(result):
            await result

    def _parse_body(self, response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        content_type = response.headers.get("Content-Type", "")
        if "json" in content_type:
            return response.json()
        return response.text

    def _parse_error(self, response: httpx.Response) -> ApiError:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        return ApiError.from_payload(
            response.status_code,
            payload,
            fallback_message=response.reason_phrase or f"HTTP {response.status_code}",
        )
