from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests

"""HTTP transport to the spreadsheet web app.

Every call is a GET with query parameters (``mode`` selects the operation) and
a JSON body back. Blocking ``requests`` calls run in a worker thread so callers
stay on the event loop.

Error taxonomy:
- EndpointNotConfiguredError: no base URL, raised before any I/O
- HttpStatusError: non-2xx response, carries the status code
- RemoteConnectionError: the request itself failed (DNS, refused, bad JSON);
  message carries a remediation hint, the URL and the original reason
- RemoteApplicationError: 2xx response whose payload signals failure
"""

logger = logging.getLogger(__name__)

__all__ = [
    "RemoteError",
    "EndpointNotConfiguredError",
    "HttpStatusError",
    "RemoteConnectionError",
    "RemoteApplicationError",
    "CONNECTION_HINT",
    "build_url",
    "GasClient",
]

CONNECTION_HINT = (
    "無法連線到 GAS。請確認：1) GAS_URL 是 Web App 的 /exec 連結 "
    "2) GAS 部署權限為「任何人」 3) 修改 .env 後已重新啟動"
)


class RemoteError(Exception):
    """Base class for remote endpoint failures."""


class EndpointNotConfiguredError(RemoteError):
    def __init__(self) -> None:
        super().__init__("尚未設定 GAS_URL")


class HttpStatusError(RemoteError):
    def __init__(self, status: int, url: str) -> None:
        super().__init__(f"API 錯誤 {status}")
        self.status = status
        self.url = url


class RemoteConnectionError(RemoteError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{CONNECTION_HINT}\nURL: {url}\n原因: {reason}")
        self.url = url
        self.reason = reason


class RemoteApplicationError(RemoteError):
    """The endpoint answered but reported failure (``ok: false`` / ``error``)."""


def build_url(base: str, params: dict[str, Any]) -> str:
    """Merge ``params`` into ``base``; None and blank values are omitted."""
    parts = urlsplit(base)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    for k, v in params.items():
        if v is None:
            continue
        vv = str(v).strip()
        if not vv:
            continue
        query[k] = vv
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def _normalize_base(base_url: str | None) -> str | None:
    s = "".join((base_url or "").split())
    return s or None


class GasClient:
    """Thin JSON-over-GET client.

    ``session`` is any object with a requests-compatible ``get(url, timeout=...)``.
    ``timeout_seconds=None`` leaves timeouts to the transport.
    """

    def __init__(
        self,
        base_url: str | None,
        session: requests.Session | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = _normalize_base(base_url)
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds

    @property
    def is_configured(self) -> bool:
        return self.base_url is not None

    def _require_base(self) -> str:
        if self.base_url is None:
            raise EndpointNotConfiguredError()
        return self.base_url

    def _get_json_sync(self, url: str) -> Any:
        try:
            res = self.session.get(url, timeout=self.timeout_seconds, headers={"Cache-Control": "no-store"})
        except requests.RequestException as e:
            raise RemoteConnectionError(url, str(e)) from e
        if not 200 <= res.status_code < 300:
            raise HttpStatusError(res.status_code, url)
        try:
            return res.json()
        except ValueError as e:
            raise RemoteConnectionError(url, f"invalid JSON: {e}") from e

    async def get_json(self, mode: str, **params: Any) -> Any:
        """GET ``base?mode=...&params&t=<ms>`` and decode the JSON body."""
        base = self._require_base()
        url = build_url(base, {"mode": mode, **params, "t": str(int(time.time() * 1000))})
        logger.debug("GET mode=%s params=%s", mode, params)
        return await asyncio.to_thread(self._get_json_sync, url)

    async def get_object(self, mode: str, fallback_error: str, **params: Any) -> dict[str, Any]:
        """Like get_json, but the body must be an object without ``error`` / ``ok: false``."""
        data = await self.get_json(mode, **params)
        if not isinstance(data, dict):
            raise RemoteApplicationError(fallback_error)
        if data.get("error") or data.get("ok") is False:
            raise RemoteApplicationError(str(data.get("error") or data.get("msg") or fallback_error))
        return data
