from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..models.payload import RawPayload
from .cache import RequestCache
from .client import GasClient, RemoteApplicationError

"""Cached facade over the spreadsheet web app.

One RequestCache per operation; keys are ``base_url|operation|params`` with
each parameter trimmed, whitespace-collapsed and case-folded. Login
verification is never cached and coalesces only identical requests: its key
keeps the credentials exactly as typed.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "CacheTTLs",
    "LoginResult",
    "SheetApi",
    "cache_key",
]


@dataclass(frozen=True)
class CacheTTLs:
    sheets: float = 300.0
    query: float = 120.0
    warehouse_id: float = 600.0
    warehouse_lookup: float = 600.0
    login: float = 0.0


@dataclass(frozen=True)
class LoginResult:
    ok: bool
    msg: str | None = None
    is_admin: bool = False
    name: str | None = None
    warehouse_key: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoginResult:
        wk = data.get("warehouseKey") or data.get("warehouse") or data.get("whKey")
        return cls(
            ok=bool(data.get("ok")),
            msg=data.get("msg"),
            is_admin=bool(data.get("isAdmin")),
            name=data.get("name"),
            warehouse_key=str(wk) if wk else None,
        )


def _norm(value: str | None) -> str:
    return " ".join(str(value or "").split()).casefold()


def cache_key(base: str | None, operation: str, *params: str | None) -> str:
    return "|".join([base or "", operation, *(_norm(p) for p in params)])


class SheetApi:
    """Remote reads: sheet list, sheet query, warehouse id, login, name lookup."""

    def __init__(self, client: GasClient, ttls: CacheTTLs | None = None, clock=None) -> None:
        self.client = client
        t = ttls or CacheTTLs()
        kw = {"clock": clock} if clock is not None else {}
        self.sheets_cache: RequestCache[list[str]] = RequestCache("sheets", t.sheets, **kw)
        self.query_cache: RequestCache[RawPayload] = RequestCache("query", t.query, **kw)
        self.warehouse_id_cache: RequestCache[str] = RequestCache("warehouse_id", t.warehouse_id, **kw)
        self.lookup_cache: RequestCache[str] = RequestCache("warehouse_lookup", t.warehouse_lookup, **kw)
        self.login_cache: RequestCache[LoginResult] = RequestCache("login", t.login, **kw)

    def _key(self, operation: str, *params: str | None) -> str:
        return cache_key(self.client.base_url, operation, *params)

    async def list_sheets(self, warehouse: str) -> list[str]:
        async def fetch() -> list[str]:
            data = await self.client.get_object("getSheets", "取得分頁失敗", wh=warehouse)
            names = data.get("sheetNames")
            return [str(n) for n in names] if isinstance(names, list) else []

        return await self.sheets_cache.get_or_fetch(self._key("getSheets", warehouse), fetch)

    async def query_sheet(self, warehouse: str, sheet: str, name_filter: str = "") -> RawPayload:
        """Sheet payload; an empty ``name_filter`` returns every row."""
        name = (name_filter or "").strip()

        async def fetch() -> RawPayload:
            data = await self.client.get_object("api", "查詢失敗", wh=warehouse, sheet=sheet, name=name)
            payload = RawPayload.from_dict(data)
            logger.debug("query %s/%s rows=%d", warehouse, sheet, len(payload.rows))
            return payload

        return await self.query_cache.get_or_fetch(self._key("api", warehouse, sheet, name), fetch)

    async def resolve_warehouse_id(self, warehouse: str) -> str:
        async def fetch() -> str:
            data = await self.client.get_object("getWarehouseId", "取得試算表 ID 失敗", wh=warehouse)
            sid = data.get("spreadsheetId")
            if not sid:
                raise RemoteApplicationError("取得試算表 ID 失敗")
            return str(sid)

        return await self.warehouse_id_cache.get_or_fetch(self._key("getWarehouseId", warehouse), fetch)

    async def verify_login(self, name: str, birthday_or_code: str) -> LoginResult:
        """Live check; ``ok: false`` is a normal result, not an error."""
        async def fetch() -> LoginResult:
            data = await self.client.get_json("verifyLogin", name=name, birthday=birthday_or_code)
            if not isinstance(data, dict):
                raise RemoteApplicationError("登入驗證失敗")
            return LoginResult.from_dict(data)

        # credentials are case-sensitive; keep them out of the normalized key
        key = "|".join([self.client.base_url or "", "verifyLogin", name, birthday_or_code])
        return await self.login_cache.get_or_fetch(key, fetch)

    async def find_warehouse_by_name(self, name: str) -> str:
        async def fetch() -> str:
            data = await self.client.get_object("findWarehouse", "查無此人員所屬倉別", name=name)
            wk = data.get("warehouseKey") or data.get("warehouse") or data.get("whKey")
            if not wk:
                raise RemoteApplicationError("查無此人員所屬倉別")
            return str(wk)

        return await self.lookup_cache.get_or_fetch(self._key("findWarehouse", name), fetch)
