"""
PostgREST Query Builder

Table-oriented select/insert/update/delete over the retrying ApiClient,
following PostgREST conventions (``col=eq.value`` filters, ``order=col.desc``,
``Prefer: return=representation``, single-object Accept header).
"""

from typing import Any

from residency_docs.backends.supabase.mappers import to_wire
from residency_docs.http import ApiClient

REST_PATH = "/rest/v1"

SINGLE_OBJECT_ACCEPT = "application/vnd.pgrst.object+json"


class TableQuery:
    """One request against one table, built fluently and sent with execute()."""

    def __init__(self, api: ApiClient, table: str):
        self._api = api
        self._table = table
        self._method = "GET"
        self._columns: str | None = None
        self._filters: dict[str, str] = {}
        self._order: str | None = None
        self._limit: int | None = None
        self._single = False
        self._body: Any = None

    def select(self, columns: str = "*") -> "TableQuery":
        """Choose columns. After insert/update this asks for the written rows back."""
        self._columns = columns
        return self

    def insert(self, payload: dict[str, Any] | list[dict[str, Any]]) -> "TableQuery":
        self._method = "POST"
        self._body = payload
        return self

    def update(self, payload: dict[str, Any]) -> "TableQuery":
        self._method = "PATCH"
        self._body = payload
        return self

    def delete(self) -> "TableQuery":
        self._method = "DELETE"
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self._filters[column] = f"eq.{to_wire(value)}"
        return self

    def order(self, column: str, ascending: bool = True) -> "TableQuery":
        self._order = f"{column}.{'asc' if ascending else 'desc'}"
        return self

    def limit(self, count: int) -> "TableQuery":
        self._limit = count
        return self

    def single(self) -> "TableQuery":
        """Expect exactly one row; zero rows fail with code PGRST116."""
        self._single = True
        return self

    @property
    def path(self) -> str:
        return f"{REST_PATH}/{self._table}"

    def build_query(self) -> dict[str, Any]:
        query: dict[str, Any] = {}
        if self._columns is not None:
            query["select"] = self._columns
        query.update(self._filters)
        if self._order:
            query["order"] = self._order
        if self._limit is not None:
            query["limit"] = self._limit
        return query

    def build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._single:
            headers["Accept"] = SINGLE_OBJECT_ACCEPT
        if self._method != "GET":
            headers["Prefer"] = "return=representation" if self._columns is not None else "return=minimal"
        return headers

    async def execute(self) -> Any:
        """Send the request; returns a list of rows, one row, or None."""
        return await self._api.request(
            self.path,
            method=self._method,
            query=self.build_query(),
            body=self._body,
            headers=self.build_headers(),
        )


class PostgrestClient:
    """Entry point for table queries: ``client.table("documents").select().execute()``."""

    def __init__(self, api: ApiClient):
        self.api = api

    def table(self, name: str) -> TableQuery:
        return TableQuery(self.api, name)
