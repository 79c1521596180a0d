"""Thin async wrapper over the Public.com REST API."""
from __future__ import annotations

import logging

import httpx

from .auth import TokenManager
from .config import PubConfig
from .errors import APIError, PubError, TransportError

log = logging.getLogger(__name__)


def _api_error(resp: httpx.Response) -> APIError:
    message = ""
    code = ""
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = str(body.get("message") or body.get("error") or "")
        code = str(body.get("code") or "")
    if not message:
        message = resp.reason_phrase or "request failed"
    return APIError(resp.status_code, message, code)


def new_http_client(config: PubConfig, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.api_base_url.rstrip("/"),
        timeout=config.request_timeout_sec,
        transport=transport,
    )


class PublicClient:
    def __init__(self, http: httpx.AsyncClient, tokens: TokenManager) -> None:
        self._http = http
        self._tokens = tokens

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: object | None = None,
        params: list[tuple[str, str]] | None = None,
    ) -> object:
        """Issue one request; on 401 refresh the token and retry exactly once."""
        token = await self._tokens.current_token()
        resp = await self._send(method, path, token, json, params)
        if resp.status_code == 401:
            log.info("%s %s returned 401, refreshing token", method, path)
            try:
                token = await self._tokens.force_refresh(token)
            except PubError as exc:
                log.warning("token refresh failed, retrying with previous token: %s", exc)
            resp = await self._send(method, path, token, json, params)
        return self._decode(resp)

    async def _send(
        self,
        method: str,
        path: str,
        token: str,
        json: object | None,
        params: list[tuple[str, str]] | None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {token}"}
        try:
            return await self._http.request(method, path, json=json, params=params, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"request timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"request failed: {exc}") from exc

    @staticmethod
    def _decode(resp: httpx.Response) -> object:
        if resp.status_code < 200 or resp.status_code >= 300:
            raise _api_error(resp)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise PubError(f"failed to decode response: {exc}") from exc
