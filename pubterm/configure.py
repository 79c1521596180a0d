"""`pubterm configure`: store the secret key and choose a default account."""
from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
import logging
from pathlib import Path
import re
import sys
from typing import Callable

import httpx
from rich.console import Console
from rich.prompt import IntPrompt, Prompt

from .auth import Token, TokenManager, exchange_token, save_token, token_cache_path
from .client import PublicClient, new_http_client
from .config import CONFIG_FILENAME, PubConfig, UIConfig, config_dir, load_config, save_config
from .errors import AuthError, ConfigurationError, PubError
from .keystore import KEY_SECRET_KEY, SERVICE_NAME, KeyringStore
from .ui.commands import AppContext, fetch_accounts
from .ui.orchestrator import CommandRunner

log = logging.getLogger(__name__)

UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")


def _ask_secret() -> str:
    return Prompt.ask("Enter your secret key", password=True)


def _ask_choice(count: int) -> int:
    return IntPrompt.ask("Select account", choices=[str(i) for i in range(1, count + 1)])


def _load_or_default(path: Path) -> PubConfig:
    try:
        return load_config(path)
    except ConfigurationError as exc:
        log.warning("ignoring unreadable config %s: %s", path, exc)
        return PubConfig()


class Configurator:
    def __init__(
        self,
        *,
        store: KeyringStore | None = None,
        config_path: Path | None = None,
        cache_path: Path | None = None,
        console: Console | None = None,
        ask_secret: Callable[[], str] | None = None,
        ask_choice: Callable[[int], int] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store or KeyringStore()
        self._config_path = config_path or config_dir() / CONFIG_FILENAME
        self._cache_path = cache_path or token_cache_path()
        self._console = console or Console()
        self._interactive = ask_secret is None
        self._ask_secret = ask_secret or _ask_secret
        self._ask_choice = ask_choice or _ask_choice
        self._transport = transport

    def run(self, args: argparse.Namespace) -> None:
        if args.account and not UUID_RE.match(args.account):
            raise ConfigurationError("invalid account UUID format")
        if args.show:
            self.show()
        elif args.clear:
            self.clear()
        elif args.select_account:
            self.select_account()
        else:
            self.setup(args.account)

    # region Setup
    def setup(self, account: str | None = None) -> None:
        if self._interactive and not sys.stdin.isatty():
            raise ConfigurationError("configure requires an interactive terminal")
        secret = self._ask_secret().strip()
        if not secret:
            raise ConfigurationError("secret key cannot be empty")
        config = _load_or_default(self._config_path)
        selected = asyncio.run(self._setup(config, secret, account))
        if selected:
            config = replace(config, account_uuid=selected)
        save_config(config, self._config_path)
        self._console.print("Configuration saved.")

    async def _setup(self, config: PubConfig, secret: str, account: str | None) -> str | None:
        http = new_http_client(config, self._transport)
        try:
            try:
                token = await exchange_token(http, config.api_base_url, secret, config.token_validity_minutes)
            except PubError as exc:
                raise AuthError(f"failed to validate secret key: {exc}") from exc
            self._store.set(SERVICE_NAME, KEY_SECRET_KEY, secret)
            self._cache(token)
            if account:
                return account
            try:
                return await self._pick_account(http, config)
            except PubError as exc:
                self._console.print(f"Note: could not fetch accounts: {exc}")
                return None
        finally:
            await http.aclose()

    def select_account(self) -> None:
        config = _load_or_default(self._config_path)
        selected = asyncio.run(self._select(config))
        if not selected:
            self._console.print("No account selected.")
            return
        save_config(replace(config, account_uuid=selected), self._config_path)
        self._console.print(f"Default account set to: {selected}")

    async def _select(self, config: PubConfig) -> str | None:
        http = new_http_client(config, self._transport)
        try:
            return await self._pick_account(http, config)
        finally:
            await http.aclose()

    async def _pick_account(self, http: httpx.AsyncClient, config: PubConfig) -> str | None:
        tokens = TokenManager(
            http,
            base_url=config.api_base_url,
            secret_store=self._store,
            validity_minutes=config.token_validity_minutes,
            cache_path=self._cache_path,
        )
        runner = CommandRunner(PublicClient(http, tokens), lambda _msg: None)
        ctx = AppContext(config=config, ui_config=UIConfig())
        msg = await runner.execute(fetch_accounts(ctx))
        error = getattr(msg, "error", None)
        if isinstance(error, Exception):
            raise error
        accounts = msg.accounts
        if not accounts:
            return None
        self._console.print("Select a default account:")
        for idx, acct in enumerate(accounts, start=1):
            self._console.print(f"  {idx}. {acct.account_id} ({acct.account_type or '-'})")
        self._console.print(f"  {len(accounts) + 1}. Skip")
        choice = self._ask_choice(len(accounts) + 1)
        if choice < 1 or choice > len(accounts):
            return None
        return accounts[choice - 1].account_id

    def _cache(self, token: Token) -> None:
        try:
            save_token(self._cache_path, token)
        except OSError as exc:
            log.warning("could not write token cache %s: %s", self._cache_path, exc)
    # endregion

    def show(self) -> None:
        config = _load_or_default(self._config_path)
        try:
            stored = bool(self._store.get(SERVICE_NAME, KEY_SECRET_KEY))
        except ConfigurationError as exc:
            log.warning("keyring lookup failed: %s", exc)
            stored = False
        self._console.print("Current configuration:")
        self._console.print(f"  Secret key: {'configured' if stored else 'not configured'}")
        self._console.print(f"  Default account: {config.account_uuid or 'not set'}")
        self._console.print(f"  API base URL: {config.api_base_url}")
        self._console.print(f"  Token validity: {config.token_validity_minutes} minutes")

    def clear(self) -> None:
        if self._store.delete(SERVICE_NAME, KEY_SECRET_KEY):
            self._console.print("Secret key cleared.")
        else:
            self._console.print("No secret key was stored.")


def add_subcommand(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("configure", help="Store the secret key and default account")
    parser.add_argument("--account", help="Default account UUID")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--select-account", action="store_true", help="Pick a different default account")
    mode.add_argument("--show", action="store_true", help="Print the current configuration")
    mode.add_argument("--clear", action="store_true", help="Remove the stored secret key")
