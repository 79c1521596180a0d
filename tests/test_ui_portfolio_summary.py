from __future__ import annotations

from pubterm.config import PubConfig, UIConfig
from pubterm.errors import TransportError
from pubterm.models import BuyingPower, EquityItem, Instrument, Portfolio, Position
from pubterm.ui import messages as m
from pubterm.ui.commands import AppContext
from pubterm.ui.portfolio import PortfolioView
from pubterm.ui.views import Phase


def _ctx() -> AppContext:
    return AppContext(config=PubConfig(), ui_config=UIConfig(), account_id="acct-1")


def _portfolio() -> Portfolio:
    return Portfolio(
        "acct-1",
        account_type="BROKERAGE",
        buying_power=BuyingPower(cash_only="250.00", buying_power="500.00", options="100.00"),
        equity=(EquityItem("CASH", "250.00"), EquityItem("STOCK", "1500.00")),
        positions=(
            Position(Instrument("AAPL", name="Apple"), quantity="5", last_price="190", unit_cost="150"),
            Position(Instrument("MSFT", name="Microsoft"), quantity="2", last_price="410"),
        ),
    )


def test_render_shows_summary_and_positions() -> None:
    view = PortfolioView()
    view.handle_message(m.PortfolioLoaded(_portfolio(), view.next_generation()), _ctx())
    text = view.render().plain
    assert "acct-1" in text
    assert "$1,750.00" in text
    assert "$500.00" in text
    assert "AAPL" in text and "MSFT" in text
    assert "$150.00" in text


def test_cursor_moves_only_when_loaded() -> None:
    view = PortfolioView()
    assert not view.handle_key("down", None, _ctx()).consumed
    view.handle_message(m.PortfolioLoaded(_portfolio(), view.next_generation()), _ctx())
    view.handle_key("down", None, _ctx())
    assert view.cursor == 1
    view.handle_key("down", None, _ctx())
    assert view.cursor == 1


def test_failure_then_refresh_returns_to_loading() -> None:
    view = PortfolioView()
    gen = view.next_generation()
    view.handle_message(m.PortfolioFailed(TransportError("connection refused"), gen), _ctx())
    assert view.phase is Phase.ERROR
    assert "connection refused" in view.render().plain
    assert len(view.refresh(_ctx())) == 1
    assert view.phase is Phase.LOADING
