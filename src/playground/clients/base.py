"""Shared HTTP plumbing for the model backend clients."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, ClassVar, Optional

import httpx

from ..errors import TransportError

logger = logging.getLogger(__name__)


class PooledHttpClient:
    """Reuse one ``httpx.AsyncClient`` per base URL and timeout."""

    _client_lock: ClassVar[asyncio.Lock] = asyncio.Lock()
    _client_pool: ClassVar[dict[tuple[str, float], httpx.AsyncClient]] = {}

    def __init__(
        self,
        base_url: str,
        timeout: float,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._http_client = http_client

    @property
    def _base_url(self) -> str:
        return self._base

    async def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = (self._base, self._timeout)
        client = PooledHttpClient._client_pool.get(key)
        if client is not None:
            return client

        async with PooledHttpClient._client_lock:
            client = PooledHttpClient._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                )
                client = httpx.AsyncClient(timeout=timeout, limits=limits)
                PooledHttpClient._client_pool[key] = client
        return client

    async def _get_json(
        self,
        url: str,
        headers: dict[str, str],
        params: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        client = await self._get_http_client()
        try:
            response = await client.get(url, headers=headers, params=params)
        except httpx.HTTPError as exc:
            raise TransportError(httpx.codes.BAD_GATEWAY, str(exc)) from exc
        return self._decode_json(response)

    async def _post_json(
        self,
        url: str,
        headers: dict[str, str],
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        client = await self._get_http_client()
        try:
            response = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise TransportError(httpx.codes.BAD_GATEWAY, str(exc)) from exc
        return self._decode_json(response)

    def _decode_json(self, response: httpx.Response) -> dict[str, Any]:
        if response.status_code >= 400:
            detail = self._extract_error_detail(response.content)
            raise TransportError(response.status_code, detail)
        try:
            body = response.json()
        except ValueError as exc:
            raise TransportError(httpx.codes.BAD_GATEWAY, str(exc)) from exc
        if not isinstance(body, dict):
            raise TransportError(
                httpx.codes.BAD_GATEWAY, "Expected a JSON object in the response"
            )
        return body

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "Backend returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            # Gemini wraps stream errors in a single-element array
            payload = payload[0]
        if isinstance(payload, dict):
            return payload.get("error") or payload
        return payload

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                logger.debug("Ignoring error while closing HTTP client: %s", exc)


__all__ = ["PooledHttpClient"]
