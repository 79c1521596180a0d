from __future__ import annotations

import asyncio
from types import SimpleNamespace

from pubterm.config import PubConfig, UIConfig, load_ui_config
from pubterm.errors import APIError
from pubterm.ui import messages as m
from pubterm.ui.commands import (
    AppContext,
    Deliver,
    Quit,
    SaveWatchlist,
    ScheduleTick,
    fetch_accounts,
    fetch_portfolio,
)
from pubterm.ui.orchestrator import CommandRunner


def _ctx(account_id: str | None = "acct-1") -> AppContext:
    return AppContext(config=PubConfig(), ui_config=UIConfig(), account_id=account_id)


def _client(responses: dict[str, object], calls: list[tuple]) -> SimpleNamespace:
    async def request(method, path, *, json=None, params=None):
        calls.append((method, path, json, params))
        result = responses[path]
        if isinstance(result, Exception):
            raise result
        return result

    return SimpleNamespace(request=request)


def test_api_command_success_posts_decoded_message() -> None:
    calls: list[tuple] = []
    posted: list[object] = []
    client = _client({"/userapigateway/trading/account": {"accounts": [{"accountId": "a1"}]}}, calls)

    async def _run() -> None:
        runner = CommandRunner(client, posted.append)
        runner.submit([fetch_accounts(_ctx())])
        await runner.drain()

    asyncio.run(_run())
    assert calls == [("GET", "/userapigateway/trading/account", None, None)]
    assert len(posted) == 1
    assert isinstance(posted[0], m.AccountsLoaded)
    assert posted[0].accounts[0].account_id == "a1"


def test_api_error_posts_failure_with_generation() -> None:
    calls: list[tuple] = []
    path = "/userapigateway/trading/acct-1/portfolio/v2"
    client = _client({path: APIError(500, "boom")}, calls)

    async def _run() -> object:
        return await CommandRunner(client, lambda _msg: None).execute(fetch_portfolio(_ctx(), 7))

    msg = asyncio.run(_run())
    assert isinstance(msg, m.PortfolioFailed)
    assert msg.generation == 7
    assert isinstance(msg.error, APIError)


def test_no_account_is_delivered_without_a_request() -> None:
    calls: list[tuple] = []
    posted: list[object] = []

    async def _run() -> None:
        runner = CommandRunner(_client({}, calls), posted.append)
        runner.submit([fetch_portfolio(_ctx(account_id=None), 1)])
        await runner.drain()

    asyncio.run(_run())
    assert calls == []
    assert len(posted) == 1
    assert isinstance(posted[0], m.PortfolioFailed)


def test_each_command_posts_exactly_one_message(tmp_path) -> None:
    posted: list[object] = []
    slept: list[float] = []

    async def fake_sleep(delay: float) -> None:
        slept.append(delay)

    async def _run() -> int:
        runner = CommandRunner(
            _client({}, []),
            posted.append,
            ui_config_path=tmp_path / "ui.yaml",
            sleep=fake_sleep,
        )
        runner.submit(
            [
                Deliver(m.Tick()),
                ScheduleTick(30.0),
                SaveWatchlist(("AAPL", "MSFT")),
                Quit(),
            ]
        )
        await runner.drain()
        return runner.pending

    assert asyncio.run(_run()) == 0
    assert slept == [30.0]
    assert len(posted) == 3
    assert sum(isinstance(msg, m.Tick) for msg in posted) == 2
    assert m.WatchlistSaved(("AAPL", "MSFT")) in posted
    assert load_ui_config(tmp_path / "ui.yaml").watchlist == ["AAPL", "MSFT"]


def test_watchlist_save_failure_posts_failed_message(tmp_path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x", encoding="utf-8")

    async def _run() -> object:
        runner = CommandRunner(_client({}, []), lambda _msg: None, ui_config_path=blocker / "ui.yaml")
        return await runner.execute(SaveWatchlist(("AAPL",)))

    msg = asyncio.run(_run())
    assert isinstance(msg, m.WatchlistSaveFailed)


def test_successive_watchlist_saves_land_in_order(tmp_path) -> None:
    posted: list[object] = []

    async def _run() -> None:
        runner = CommandRunner(_client({}, []), posted.append, ui_config_path=tmp_path / "ui.yaml")
        runner.submit([SaveWatchlist(("AAPL",)), SaveWatchlist(("AAPL", "MSFT")), SaveWatchlist(("MSFT",))])
        await runner.drain()

    asyncio.run(_run())
    assert posted == [
        m.WatchlistSaved(("AAPL",)),
        m.WatchlistSaved(("AAPL", "MSFT")),
        m.WatchlistSaved(("MSFT",)),
    ]
    assert load_ui_config(tmp_path / "ui.yaml").watchlist == ["MSFT"]
