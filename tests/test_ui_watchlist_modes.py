from __future__ import annotations

from pubterm.config import PubConfig, UIConfig
from pubterm.models import Quote
from pubterm.ui import messages as m
from pubterm.ui.commands import ApiCommand, AppContext, SaveWatchlist
from pubterm.ui.views import Phase
from pubterm.ui.watchlist import WatchlistView, WatchMode


def _ctx() -> AppContext:
    return AppContext(config=PubConfig(), ui_config=UIConfig(), account_id="acct-1")


def _type(view: WatchlistView, text: str, ctx: AppContext) -> None:
    for ch in text:
        view.handle_key(ch, ch, ctx)


def test_empty_watchlist_starts_loaded_and_skips_fetch() -> None:
    view = WatchlistView([])
    assert view.phase is Phase.LOADED
    assert view.activate(_ctx()) == []


def test_add_saves_and_fetches_quotes() -> None:
    ctx = _ctx()
    view = WatchlistView(["AAPL"])
    commands = view.add_symbol(" msft ", ctx)
    assert view.symbols == ["AAPL", "MSFT"]
    assert commands[0] == SaveWatchlist(("AAPL", "MSFT"))
    assert isinstance(commands[1], ApiCommand)
    assert commands[1].body == {"instruments": [{"symbol": "AAPL", "type": "EQUITY"}, {"symbol": "MSFT", "type": "EQUITY"}]}


def test_duplicate_add_is_idempotent_and_issues_no_save() -> None:
    ctx = _ctx()
    view = WatchlistView(["AAPL"])
    assert view.add_symbol("AAPL", ctx) == []
    assert view.add_symbol("aapl", ctx) == []
    assert view.add_symbol("   ", ctx) == []
    assert view.symbols == ["AAPL"]


def test_adding_mode_collects_text_and_enter_adds() -> None:
    ctx = _ctx()
    view = WatchlistView([])
    view.handle_key("a", "a", ctx)
    assert view.mode is WatchMode.ADDING
    assert view.captures_input
    _type(view, "tsla", ctx)
    assert view.input.value == "TSLA"
    outcome = view.handle_key("enter", None, ctx)
    assert view.mode is WatchMode.NORMAL
    assert view.symbols == ["TSLA"]
    assert any(isinstance(cmd, SaveWatchlist) for cmd in outcome.commands)


def test_adding_mode_escape_cancels_without_changes() -> None:
    ctx = _ctx()
    view = WatchlistView(["AAPL"])
    view.handle_key("a", "a", ctx)
    _type(view, "x", ctx)
    outcome = view.handle_key("escape", None, ctx)
    assert outcome.consumed
    assert not outcome.focus_toolbar
    assert view.mode is WatchMode.NORMAL
    assert view.symbols == ["AAPL"]


def test_delete_removes_symbol_from_list_and_quotes() -> None:
    ctx = _ctx()
    view = WatchlistView(["AAPL", "MSFT"])
    gen = view.next_generation()
    view.handle_message(
        m.WatchlistQuotesLoaded((Quote("AAPL", last="190"), Quote("MSFT", last="410")), gen),
        ctx,
    )
    view.cursor = 1
    view.handle_key("d", "d", ctx)
    assert view.mode is WatchMode.DELETING
    outcome = view.handle_key("y", "y", ctx)
    assert view.symbols == ["AAPL"]
    assert "MSFT" not in view.quotes
    assert view.cursor == 0
    assert outcome.commands == [SaveWatchlist(("AAPL",))]


def test_delete_declined_keeps_symbol() -> None:
    ctx = _ctx()
    view = WatchlistView(["AAPL"])
    view.handle_key("d", "d", ctx)
    view.handle_key("n", "n", ctx)
    assert view.mode is WatchMode.NORMAL
    assert view.symbols == ["AAPL"]


def test_quotes_outside_watchlist_or_failed_are_dropped() -> None:
    ctx = _ctx()
    view = WatchlistView(["AAPL"])
    gen = view.next_generation()
    view.handle_message(
        m.WatchlistQuotesLoaded(
            (Quote("AAPL", outcome="UNKNOWN"), Quote("GOOG", last="1")),
            gen,
        ),
        ctx,
    )
    assert view.quotes == {}
    assert view.phase is Phase.LOADED


def test_enter_requests_trade_for_selected_symbol() -> None:
    view = WatchlistView(["AAPL", "MSFT"])
    view.handle_key("down", None, _ctx())
    assert view.handle_key("enter", None, _ctx()).trade_symbol == "MSFT"


def test_save_failure_is_shown_as_note() -> None:
    view = WatchlistView(["AAPL"])
    view.handle_message(m.WatchlistSaveFailed(PermissionError("read-only")), _ctx())
    assert "read-only" in view.render().plain
