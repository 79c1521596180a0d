"""Bearer token lifecycle: cache file, secret exchange, single-flight refresh."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
import logging
import os
from pathlib import Path
import time
from typing import Callable

import httpx

from .config import TOKEN_CACHE_FILENAME, config_dir
from .errors import AuthError, TransportError
from .keystore import SecretStore, read_secret

log = logging.getLogger(__name__)

TOKEN_PATH = "/userapiauthservice/personal/access-tokens"


@dataclass(frozen=True)
class Token:
    access_token: str
    expires_at: int

    def is_valid(self, now: float | None = None) -> bool:
        now = time.time() if now is None else now
        return bool(self.access_token) and self.expires_at > int(now)


def token_cache_path() -> Path:
    return config_dir() / TOKEN_CACHE_FILENAME


def load_token(path: Path) -> Token | None:
    """Return the cached token, or None when missing or unreadable."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as exc:
        log.warning("cannot read token cache %s: %s", path, exc)
        return None
    try:
        data = json.loads(raw)
        return Token(str(data["access_token"]), int(data["expires_at"]))
    except (ValueError, KeyError, TypeError) as exc:
        log.info("ignoring corrupt token cache %s: %s", path, exc)
        return None


def save_token(path: Path, token: Token) -> None:
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    payload = json.dumps({"access_token": token.access_token, "expires_at": token.expires_at})
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(payload)
    os.chmod(path, 0o600)


async def exchange_token(
    http: httpx.AsyncClient,
    base_url: str,
    secret: str,
    validity_minutes: int,
    *,
    now: float | None = None,
) -> Token:
    url = base_url.rstrip("/") + TOKEN_PATH
    try:
        resp = await http.post(
            url,
            json={"secret": secret, "validityInMinutes": validity_minutes},
            headers={"Content-Type": "application/json"},
        )
    except httpx.HTTPError as exc:
        raise TransportError(f"token exchange request failed: {exc}") from exc
    if resp.status_code < 200 or resp.status_code >= 300:
        raise AuthError(f"token exchange failed: {resp.status_code} {resp.text.strip()}".rstrip())
    try:
        data = resp.json()
    except ValueError as exc:
        raise AuthError(f"failed to decode response: {exc}") from exc
    if not isinstance(data, dict):
        raise AuthError("failed to decode response: expected an object")
    access_token = str(data.get("accessToken") or "")
    if not access_token:
        raise AuthError("empty access token in response")
    try:
        expires_in = int(data.get("expiresIn") or 0)
    except (TypeError, ValueError):
        expires_in = 0
    if expires_in <= 0:
        expires_in = validity_minutes * 60
    issued = time.time() if now is None else now
    return Token(access_token, int(issued) + expires_in)


class TokenManager:
    """Resolves a usable bearer token; at most one exchange runs at a time."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        base_url: str,
        secret_store: SecretStore,
        validity_minutes: int,
        cache_path: Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http
        self._base_url = base_url
        self._secret_store = secret_store
        self._validity_minutes = validity_minutes
        self._cache_path = cache_path or token_cache_path()
        self._clock = clock
        self._token: Token | None = None
        self._lock = asyncio.Lock()
        self._refresh_generation = 0

    @property
    def refresh_count(self) -> int:
        return self._refresh_generation

    async def current_token(self) -> str:
        token = self._token or load_token(self._cache_path)
        if token is not None and token.is_valid(self._clock()):
            self._token = token
            return token.access_token
        return await self._refresh(self._refresh_generation)

    async def force_refresh(self, stale_token: str | None = None) -> str:
        """Exchange a new token unless `stale_token` was already replaced."""
        return await self._refresh(self._refresh_generation, stale_token)

    async def _refresh(self, seen_generation: int, stale_token: str | None = None) -> str:
        async with self._lock:
            if self._token is not None:
                # Another caller finished an exchange while we waited on the lock.
                if self._refresh_generation != seen_generation:
                    return self._token.access_token
                if stale_token is not None and self._token.access_token != stale_token:
                    return self._token.access_token
            secret = read_secret(self._secret_store)
            token = await exchange_token(
                self._http,
                self._base_url,
                secret,
                self._validity_minutes,
                now=self._clock(),
            )
            try:
                save_token(self._cache_path, token)
            except OSError as exc:
                log.warning("could not write token cache %s: %s", self._cache_path, exc)
            self._token = token
            self._refresh_generation += 1
            log.info("access token refreshed, valid until %s", token.expires_at)
            return token.access_token
