"""Runs command values as asyncio tasks and posts one message per command."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from ..client import PublicClient
from ..config import UIConfig, save_ui_config
from ..errors import PubError
from . import messages as m
from .commands import ApiCommand, Command, Deliver, Quit, SaveWatchlist, ScheduleTick

log = logging.getLogger(__name__)


class CommandRunner:
    def __init__(
        self,
        client: PublicClient,
        post: Callable[[object], None],
        *,
        ui_config_path: Path | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self._post = post
        self._ui_config_path = ui_config_path
        self._sleep = sleep
        self._tasks: set[asyncio.Task] = set()
        self._save_lock = asyncio.Lock()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(self, commands: Iterable[Command]) -> None:
        loop = asyncio.get_running_loop()
        for command in commands:
            if isinstance(command, Quit):
                continue
            task = loop.create_task(self._run(command))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()

    async def _run(self, command: Command) -> None:
        self._post(await self.execute(command))

    async def execute(self, command: Command) -> object:
        if isinstance(command, Deliver):
            return command.message
        if isinstance(command, ScheduleTick):
            await self._sleep(command.delay)
            return m.Tick()
        if isinstance(command, SaveWatchlist):
            async with self._save_lock:
                return await asyncio.to_thread(self._save_watchlist, command)
        if isinstance(command, ApiCommand):
            return await self._call(command)
        raise TypeError(f"unsupported command: {command!r}")

    def _save_watchlist(self, command: SaveWatchlist) -> object:
        try:
            save_ui_config(UIConfig(watchlist=list(command.symbols)), self._ui_config_path)
        except OSError as exc:
            log.warning("saving watchlist failed: %s", exc)
            return m.WatchlistSaveFailed(exc)
        return m.WatchlistSaved(command.symbols)

    async def _call(self, command: ApiCommand) -> object:
        params = list(command.params) if command.params else None
        try:
            data = await self._client.request(command.method, command.path, json=command.body, params=params)
            return command.on_success(data)
        except PubError as exc:
            log.warning("%s %s failed: %s", command.method, command.path, exc)
            return command.on_error(exc)
        except Exception as exc:
            log.exception("%s %s: unexpected failure", command.method, command.path)
            return command.on_error(exc)
