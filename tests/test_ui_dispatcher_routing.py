from __future__ import annotations

from pubterm.config import PubConfig, UIConfig
from pubterm.models import Account, BuyingPower, Instrument, Portfolio, Position
from pubterm.ui import messages as m
from pubterm.ui.commands import ApiCommand, AppContext, Quit, ScheduleTick
from pubterm.ui.dispatcher import (
    AccountPicker,
    Confirmation,
    Dispatcher,
    Focus,
    table_rows_for_height,
)
from pubterm.ui.trade import TradeState
from pubterm.ui.views import Phase, View
from pubterm.ui.watchlist import WatchMode


def _dispatcher(account_id: str | None = "acct-1", watchlist: list[str] | None = None) -> Dispatcher:
    ctx = AppContext(
        config=PubConfig(account_uuid=account_id),
        ui_config=UIConfig(watchlist=list(watchlist or [])),
        account_id=account_id,
    )
    return Dispatcher(ctx, refresh_interval=5.0)


def _paths(commands: list) -> list[str]:
    return [cmd.path for cmd in commands if isinstance(cmd, ApiCommand)]


def _with_accounts(disp: Dispatcher) -> Dispatcher:
    disp.handle_message(m.AccountsLoaded((Account("acct-1", "BROKERAGE"), Account("acct-2", "IRA"))))
    return disp


def test_start_fetches_accounts_portfolio_and_schedules_tick() -> None:
    commands = _dispatcher().start()
    assert _paths(commands) == [
        "/userapigateway/trading/account",
        "/userapigateway/trading/acct-1/portfolio/v2",
    ]
    assert commands[-1] == ScheduleTick(5.0)


def test_toolbar_consumes_directional_keys() -> None:
    disp = _dispatcher()
    disp.portfolio.phase = Phase.LOADED
    disp.handle_key("escape")
    assert disp.focus is Focus.TOOLBAR
    disp.handle_key("right")
    assert disp.active is View.WATCHLIST
    disp.handle_key("left")
    disp.handle_key("left")
    assert disp.active is View.HISTORY
    disp.handle_key("up")
    assert disp.focus is Focus.TOOLBAR
    disp.handle_key("down")
    assert disp.focus is Focus.CONTENT


def test_digit_jump_activates_view_once() -> None:
    disp = _dispatcher()
    first = disp.handle_key("3", "3")
    assert disp.active is View.ORDERS
    assert _paths(first) == ["/userapigateway/trading/acct-1/portfolio/v2"]
    disp.handle_key("1", "1")
    assert disp.handle_key("3", "3") == []


def test_watchlist_adding_consumes_escape_and_account_key() -> None:
    disp = _with_accounts(_dispatcher())
    disp.handle_key("2", "2")
    disp.handle_key("a", "a")
    assert disp.watchlist.mode is WatchMode.ADDING
    assert disp.modal is None
    disp.handle_key("q", "q")
    assert disp.watchlist.input.value == "Q"
    disp.handle_key("escape")
    assert disp.watchlist.mode is WatchMode.NORMAL
    assert disp.focus is Focus.CONTENT


def test_account_picker_switch_refreshes_account_views() -> None:
    disp = _with_accounts(_dispatcher())
    disp.handle_key("6", "6")
    disp.handle_key("a", "a")
    assert isinstance(disp.modal, AccountPicker)
    assert disp.handle_key("1", "1") == []
    assert disp.active is View.HISTORY
    disp.handle_key("down")
    commands = disp.handle_key("enter")
    assert disp.modal is None
    assert disp.ctx.account_id == "acct-2"
    assert _paths(commands) == [
        "/userapigateway/trading/acct-2/portfolio/v2",
        "/userapigateway/trading/acct-2/portfolio/v2",
        "/userapigateway/trading/acct-2/history",
    ]


def test_account_switch_drops_results_for_previous_account() -> None:
    disp = _with_accounts(_dispatcher())
    old = disp.portfolio.generation
    disp.select_account("acct-2")
    disp.handle_message(m.PortfolioLoaded(Portfolio("acct-1"), old))
    assert disp.portfolio.portfolio is None
    disp.handle_message(m.PortfolioLoaded(Portfolio("acct-2"), disp.portfolio.generation))
    assert disp.portfolio.portfolio.account_id == "acct-2"


def test_accounts_loaded_selects_first_when_unset() -> None:
    disp = _dispatcher(account_id=None)
    commands = disp.handle_message(m.AccountsLoaded((Account("acct-9"),)))
    assert disp.ctx.account_id == "acct-9"
    assert _paths(commands) == ["/userapigateway/trading/acct-9/portfolio/v2"]


def test_tick_polls_only_when_idle() -> None:
    disp = _dispatcher()
    disp.start()
    assert disp.handle_message(m.Tick()) == [ScheduleTick(5.0)]
    disp.handle_message(m.PortfolioLoaded(Portfolio("acct-1"), disp.portfolio.generation))
    commands = disp.handle_message(m.Tick())
    assert _paths(commands) == ["/userapigateway/trading/acct-1/portfolio/v2"]
    assert commands[-1] == ScheduleTick(5.0)


def test_watchlist_enter_switches_to_trade_with_symbol() -> None:
    disp = _dispatcher(watchlist=["AAPL"])
    disp.handle_key("2", "2")
    commands = disp.handle_key("enter")
    assert disp.active is View.TRADE
    assert disp.trade.symbol.value == "AAPL"
    assert "/userapigateway/marketdata/acct-1/quotes" in _paths(commands)


def test_quit_confirms_while_order_submitting() -> None:
    disp = _dispatcher()
    assert disp.handle_key("q", "q") == [Quit()]
    disp.trade.state = TradeState.SUBMITTING
    assert disp.handle_key("q", "q") == []
    assert isinstance(disp.modal, Confirmation)
    assert disp.handle_key("n", "n") == []
    assert disp.modal is None
    disp.handle_key("ctrl+c")
    assert disp.handle_key("y", "y") == [Quit()]


def test_context_mirrors_positions_and_watchlist() -> None:
    disp = _dispatcher(watchlist=["AAPL"])
    portfolio = Portfolio(
        "acct-1",
        buying_power=BuyingPower(buying_power="1000"),
        positions=(Position(Instrument("MSFT"), quantity="2"),),
    )
    disp.handle_message(m.PortfolioLoaded(portfolio, disp.portfolio.next_generation()))
    assert disp.ctx.positions[0].symbol == "MSFT"
    assert disp.ctx.buying_power.buying_power == "1000"
    assert disp.ctx.watchlist == ("AAPL",)


def test_resize_sets_table_height_on_every_view() -> None:
    assert table_rows_for_height(40) == 29
    assert table_rows_for_height(8) == 3
    disp = _dispatcher()
    disp.handle_resize(120, 40)
    assert {view.visible_height for view in disp.views.values()} == {29}


def test_unknown_message_is_dropped() -> None:
    assert _dispatcher().handle_message(object()) == []
