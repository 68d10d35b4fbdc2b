from __future__ import annotations

import json
from typing import Any

import httpx

from peer_rating.config import Settings, load_settings

# LeanCloud error codes carried in the response body.
CLASS_NOT_FOUND = 101
DUPLICATE_VALUE = 137
# Largest page the store returns for one query.
PAGE_SIZE = 1000


class LeanCloudError(Exception):
    # Not a frozen dataclass: contextlib assigns __traceback__ on exceptions
    # passing through a generator-based context manager.
    def __init__(
        self, message: str, status_code: int | None = None, body: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        return self.message

    @property
    def code(self) -> int | None:
        if not self.body:
            return None
        try:
            payload = json.loads(self.body)
        except json.JSONDecodeError:
            return None
        if not isinstance(payload, dict):
            return None
        code = payload.get("code")
        return code if isinstance(code, int) else None


def where_params(
    where: dict[str, Any],
    *,
    order: str | None = None,
    limit: int | None = None,
    skip: int | None = None,
    keys: list[str] | None = None,
) -> dict[str, Any]:
    params: dict[str, Any] = {"where": json.dumps(where, ensure_ascii=False)}
    if order:
        params["order"] = order
    if limit is not None:
        params["limit"] = limit
    if skip:
        params["skip"] = skip
    if keys:
        params["keys"] = ",".join(keys)
    return params


def date_value(iso: str) -> dict[str, str]:
    return {"__type": "Date", "iso": iso}


class LeanCloudClient:
    def __init__(
        self,
        *,
        app_id: str,
        app_key: str,
        master_key: str,
        server_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._retries = retries
        self._client = httpx.AsyncClient(
            base_url=server_url,
            timeout=timeout,
            transport=transport,
            headers={
                "X-LC-Id": app_id,
                "X-LC-Key": f"{master_key},master",
                "Accept": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "LeanCloudClient":
        settings = settings or load_settings()
        return cls(
            app_id=settings.lean_app_id,
            app_key=settings.lean_app_key,
            master_key=settings.lean_master_key,
            server_url=settings.lean_server_url,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        last_error: Exception | None = None
        for attempt in range(self._retries + 1):
            try:
                response = await self._client.request(method, path, **kwargs)
            except httpx.RequestError as exc:
                last_error = exc
            else:
                if response.status_code >= 500:
                    last_error = LeanCloudError(
                        f"LeanCloud error {response.status_code}",
                        status_code=response.status_code,
                        body=response.text,
                    )
                else:
                    return response
            if attempt < self._retries:
                continue
        raise LeanCloudError("LeanCloud request failed") from last_error

    async def request_json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        if not response.is_success:
            raise LeanCloudError(
                f"LeanCloud error {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.text:
            return {}
        return response.json()

    async def get_json(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request_json("GET", path, **kwargs)

    async def post_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request_json("POST", path, json=payload)

    async def put_json(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.request_json("PUT", path, json=payload)

    async def query(
        self,
        class_path: str,
        where: dict[str, Any],
        *,
        order: str | None = None,
        limit: int | None = None,
        keys: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Rows matching ``where``.

        With an explicit ``limit`` a single page of at most that many rows is
        returned. Without one, pages of ``PAGE_SIZE`` are fetched with
        ``skip`` until a short page, so no matching row is dropped.
        """
        if limit is not None:
            return await self._query_page(class_path, where, order=order, limit=limit, keys=keys)
        # paging needs a stable order
        order = order or "objectId"
        results: list[dict[str, Any]] = []
        while True:
            page = await self._query_page(
                class_path,
                where,
                order=order,
                limit=PAGE_SIZE,
                skip=len(results),
                keys=keys,
            )
            results.extend(page)
            if len(page) < PAGE_SIZE:
                return results

    async def _query_page(
        self,
        class_path: str,
        where: dict[str, Any],
        *,
        order: str | None,
        limit: int,
        skip: int | None = None,
        keys: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        params = where_params(where, order=order, limit=limit, skip=skip, keys=keys)
        try:
            response = await self.get_json(class_path, params=params)
        except LeanCloudError as exc:
            # Querying a class that has never been written to.
            if exc.status_code == 404 and exc.code == CLASS_NOT_FOUND:
                return []
            raise
        return response.get("results", [])

    async def upsert(
        self,
        class_path: str,
        *,
        match: dict[str, Any],
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """Insert or update the single row identified by ``match``.

        ``match`` holds the composite natural key. It is also written to a
        ``naturalKey`` column backed by a unique index, so two concurrent
        inserts for the same key cannot both succeed; the loser re-reads
        the winner's row and updates it instead.
        """
        data = {**match, "naturalKey": natural_key(match), **payload}
        existing = await self.query(class_path, match, limit=1)
        if existing:
            return await self._update_row(class_path, existing[0], data)
        try:
            response = await self.post_json(class_path, data)
        except LeanCloudError as exc:
            if exc.code != DUPLICATE_VALUE:
                raise
            existing = await self.query(class_path, match, limit=1)
            if not existing:
                raise
            return await self._update_row(class_path, existing[0], data)
        return data | response

    async def _update_row(
        self, class_path: str, row: dict[str, Any], data: dict[str, Any]
    ) -> dict[str, Any]:
        object_id = row["objectId"]
        response = await self.put_json(f"{class_path}/{object_id}", data)
        return row | data | response | {"objectId": object_id}


def natural_key(match: dict[str, Any]) -> str:
    return "|".join(f"{key}={match[key]}" for key in sorted(match))
