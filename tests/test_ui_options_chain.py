from __future__ import annotations

from pubterm.config import PubConfig, UIConfig
from pubterm.models import Greeks, InstrumentInfo, OptionChain, OptionExpirations, OptionQuote, Quote
from pubterm.ui import messages as m
from pubterm.ui.commands import AppContext
from pubterm.ui.options import OptionsState, OptionsView, atm_index, greeks_window
from pubterm.ui.views import View


def _ctx() -> AppContext:
    return AppContext(config=PubConfig(), ui_config=UIConfig(), account_id="acct-1")


def _osi(side: str, strike: float) -> str:
    return f"AAPL250117{side}{int(round(strike * 1000)):08d}"


def _chain(strikes: list[float]) -> OptionChain:
    return OptionChain(
        base_symbol="AAPL",
        calls=tuple(OptionQuote(_osi("C", s), bid="1.00", ask="1.10") for s in strikes),
        puts=tuple(OptionQuote(_osi("P", s), bid="2.00", ask="2.10") for s in strikes),
    )


def _type(view: OptionsView, text: str, ctx: AppContext) -> None:
    for ch in text:
        view.handle_key(ch, ch, ctx)


def _to_chain(view: OptionsView, ctx: AppContext, strikes: list[float], last: str = "176") -> list:
    _type(view, "aapl", ctx)
    view.handle_key("enter", None, ctx)
    view.handle_message(m.UnderlyingQuoteLoaded(Quote("AAPL", last=last), view.generation), ctx)
    view.handle_message(m.ExpirationsLoaded(OptionExpirations("AAPL", ("2025-01-17",)), view.generation), ctx)
    view.handle_key("enter", None, ctx)
    return view.handle_message(m.ChainLoaded(_chain(strikes), view.chain_generation), ctx)


def test_atm_index_picks_closest_strike() -> None:
    options = [OptionQuote(_osi("C", s)) for s in (170, 175, 180)]
    assert atm_index(options, 176.0) == 1
    assert atm_index(options, 500.0) == 2
    assert atm_index(options, None) == 0
    assert atm_index([], 176.0) == 0


def test_atm_index_tie_prefers_first_row() -> None:
    options = [OptionQuote(_osi("C", s)) for s in (170, 180)]
    assert atm_index(options, 175.0) == 0


def test_strike_decodes_from_osi_symbol() -> None:
    assert OptionQuote("AAPL250117C00175000").strike == 175.0
    assert OptionQuote("AAPL250117C00017500").strike == 17.5
    assert OptionQuote("bogus").strike is None


def test_greeks_window_bounds() -> None:
    assert list(greeks_window(20, 10)) == [7, 8, 9, 10, 11, 12, 13]
    assert list(greeks_window(20, 0)) == [0, 1, 2, 3]
    assert list(greeks_window(5, 4)) == [1, 2, 3, 4]


def test_enter_symbol_fetches_expirations_and_underlying_quote() -> None:
    ctx = _ctx()
    view = OptionsView()
    _type(view, "aapl", ctx)
    commands = view.handle_key("enter", None, ctx).commands
    assert view.state is OptionsState.LOADING_EXPIRATIONS
    assert [cmd.path for cmd in commands] == [
        "/userapigateway/marketdata/acct-1/option-expirations",
        "/userapigateway/marketdata/acct-1/quotes",
    ]


def test_chain_load_centres_on_atm_and_fetches_window_greeks() -> None:
    ctx = _ctx()
    view = OptionsView()
    strikes = [150.0 + 5 * i for i in range(12)]
    commands = _to_chain(view, ctx, strikes, last="176")
    assert view.state is OptionsState.CHAIN_LOADED
    assert view.call_cursor == 5
    assert view.put_cursor == 5
    assert len(commands) == 1
    symbols = [value for key, value in commands[0].params if key == "osiSymbols"]
    assert symbols[0] == _osi("C", 160.0)
    assert len(symbols) == 14


def test_stale_chain_result_is_dropped() -> None:
    ctx = _ctx()
    view = OptionsView()
    _to_chain(view, ctx, [170.0, 175.0])
    stale = view.chain_generation
    view.handle_key("e", "e", ctx)
    assert view.state is OptionsState.SELECTING_EXPIRATION
    view.handle_key("enter", None, ctx)
    view.handle_message(m.ChainLoaded(_chain([1.0]), stale), ctx)
    assert view.state is OptionsState.LOADING_CHAIN


def test_greeks_toggle_fetches_only_missing() -> None:
    ctx = _ctx()
    view = OptionsView()
    commands = _to_chain(view, ctx, [170.0, 175.0, 180.0])
    requested = [value for _key, value in commands[0].params]
    view.handle_message(
        m.GreeksLoaded({symbol: Greeks(delta="0.5") for symbol in requested}, view.greeks_generation),
        ctx,
    )
    assert view.handle_key("g", "g", ctx).commands == []
    assert view.show_greeks
    assert "0.500" in view.render().plain


def test_side_switch_and_cursor_move() -> None:
    ctx = _ctx()
    view = OptionsView()
    _to_chain(view, ctx, [170.0, 175.0, 180.0])
    view.handle_key("right", None, ctx)
    assert view.side == "puts"
    view.handle_key("down", None, ctx)
    assert view.put_cursor == 2
    assert view.cursor_moved


def test_empty_expirations_is_an_error() -> None:
    ctx = _ctx()
    view = OptionsView()
    _type(view, "xyz", ctx)
    view.handle_key("enter", None, ctx)
    view.handle_message(m.ExpirationsLoaded(OptionExpirations("XYZ", ()), view.generation), ctx)
    assert view.state is OptionsState.ERROR
    assert view.captures_input


def test_escape_in_symbol_entry_returns_focus_to_toolbar() -> None:
    assert OptionsView().handle_key("escape", None, _ctx()).focus_toolbar


def test_selector_rejects_symbol_without_options() -> None:
    ctx = _ctx()
    view = OptionsView()
    view.handle_key("ctrl+f", None, ctx)
    _type(view, "brk", ctx)
    commands = view.handle_key("tab", None, ctx).commands
    assert len(commands) == 1
    view.handle_message(
        m.InstrumentLoaded(View.OPTIONS, "BRK", InstrumentInfo("BRK", options_trading="DISABLED")),
        ctx,
    )
    outcome = view.handle_key("enter", None, ctx)
    assert outcome.commands == []
    assert view.selector is None
    assert view.state is OptionsState.ERROR


def _to_chain_before_quote(view: OptionsView, ctx: AppContext, strikes: list[float]) -> tuple[int, list]:
    _type(view, "aapl", ctx)
    view.handle_key("enter", None, ctx)
    quote_generation = view.generation
    view.handle_message(m.ExpirationsLoaded(OptionExpirations("AAPL", ("2025-01-17",)), view.generation), ctx)
    view.handle_key("enter", None, ctx)
    return quote_generation, view.handle_message(m.ChainLoaded(_chain(strikes), view.chain_generation), ctx)


def test_late_underlying_quote_recentres_and_fetches_missing_greeks() -> None:
    ctx = _ctx()
    view = OptionsView()
    strikes = [150.0 + 5 * i for i in range(12)]
    quote_generation, commands = _to_chain_before_quote(view, ctx, strikes)
    assert view.call_cursor == 0
    first = [value for _key, value in commands[0].params]
    view.handle_message(m.GreeksLoaded({symbol: Greeks(delta="0.5") for symbol in first}, view.greeks_generation), ctx)

    commands = view.handle_message(m.UnderlyingQuoteLoaded(Quote("AAPL", last="176"), quote_generation), ctx)
    assert view.call_cursor == 5
    assert view.put_cursor == 5
    assert len(commands) == 1
    symbols = [value for _key, value in commands[0].params]
    assert symbols[0] == _osi("C", 170.0)
    assert len(symbols) == 10
    assert not set(symbols) & set(first)


def test_late_underlying_quote_keeps_a_moved_cursor() -> None:
    ctx = _ctx()
    view = OptionsView()
    quote_generation, _commands = _to_chain_before_quote(view, ctx, [150.0 + 5 * i for i in range(12)])
    view.handle_key("down", None, ctx)
    assert view.call_cursor == 1

    commands = view.handle_message(m.UnderlyingQuoteLoaded(Quote("AAPL", last="176"), quote_generation), ctx)
    assert commands == []
    assert view.call_cursor == 1
    assert view.put_cursor == 0
    assert view.underlying_last == 176.0
