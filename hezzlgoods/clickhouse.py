"""Client for the ClickHouse HTTP interface."""

from __future__ import annotations

import json
import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, Mapping, Sequence

import httpx

DEFAULT_SETTINGS: Mapping[str, Any] = {"max_execution_time": 60}

_TABLE_NAME = re.compile(r"[A-Za-z_]\w*(\.[A-Za-z_]\w*)?", re.ASCII)


class ClickHouseError(Exception):
    """ClickHouse could not be reached or rejected a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%d %H:%M:%S.%f")
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"cannot encode value of type {type(value).__name__}")


class ClickHouseClient:
    """A connection to one ClickHouse server over HTTP."""

    def __init__(
        self,
        address: str,
        user: str = "default",
        password: str | None = None,
        database: str = "default",
        *,
        settings: Mapping[str, Any] | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        text = address.strip()
        if not text:
            raise ClickHouseError("missing ClickHouse address")
        self.url = (text if "://" in text else "http://" + text).rstrip("/")
        self.database = database
        self._settings = {k: str(v) for k, v in (settings or DEFAULT_SETTINGS).items()}
        headers = {
            "X-ClickHouse-User": user,
            "X-ClickHouse-Database": database,
            "User-Agent": "hezzl-test/0.1",
        }
        if password is not None:
            headers["X-ClickHouse-Key"] = password
        self._http = httpx.Client(base_url=self.url, headers=headers, timeout=timeout,
                                  transport=transport)
        self.closed = False

    def __enter__(self) -> ClickHouseClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def ping(self) -> bool:
        """Check that the server answers; raise ClickHouseError when it does not."""
        response = self._request("GET", "/ping")
        answer = response.text.strip()
        if answer != "Ok.":
            raise ClickHouseError(f"unexpected ping answer {answer!r}", response.status_code)
        return True

    def insert(self, table: str, rows: Iterable[Sequence[Any]]) -> int:
        """Insert rows given as value sequences in column order; return how many."""
        if not _TABLE_NAME.fullmatch(table):
            raise ClickHouseError(f"invalid table name {table!r}")
        items = [list(row) for row in rows]
        if not items:
            return 0
        try:
            body = "".join(json.dumps(row, default=_encode, ensure_ascii=False) + "\n"
                           for row in items)
        except (TypeError, ValueError) as exc:
            raise ClickHouseError(f"cannot encode rows: {exc}") from exc
        params = {**self._settings, "query": f"INSERT INTO {table} FORMAT JSONCompactEachRow"}
        self._request("POST", "/", params=params, content=body.encode("utf-8"))
        return len(items)

    def close(self) -> None:
        """Release the connection; closing twice is harmless."""
        if not self.closed:
            self.closed = True
            self._http.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if self.closed:
            raise ClickHouseError("client is closed")
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ClickHouseError(f"request to {self.url} failed: {exc}") from exc
        if response.status_code != 200:
            raise ClickHouseError(f"[{response.status_code}] {response.text.strip()}",
                                  response.status_code)
        return response