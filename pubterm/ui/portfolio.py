"""Portfolio view: account summary plus the positions table."""

from __future__ import annotations

from rich.text import Text

from ..models import Portfolio, to_float
from . import messages as m
from .commands import AppContext, Command, fetch_portfolio
from .common import (
    MUTED_STYLE,
    Column,
    _clamp,
    _error_line,
    _fmt_money,
    _fmt_price,
    _fmt_qty_raw,
    _gain_text,
    _move_cursor,
    _pct_text,
    _table,
)
from .views import BaseView, IGNORED, Outcome, Phase

_COLUMNS = [
    Column("Symbol", 8),
    Column("Name", 18),
    Column("Qty", 9, "right"),
    Column("Last", 11, "right"),
    Column("Value", 13, "right"),
    Column("Day $", 12, "right"),
    Column("Day %", 8, "right"),
    Column("Total $", 13, "right"),
    Column("Total %", 8, "right"),
    Column("Cost", 11, "right"),
]


class PortfolioView(BaseView):
    def __init__(self) -> None:
        super().__init__()
        self.portfolio: Portfolio | None = None
        self.cursor = 0

    def refresh(self, ctx: AppContext) -> list[Command]:
        self.phase = Phase.LOADING
        return [fetch_portfolio(ctx, self.next_generation())]

    def poll(self, ctx: AppContext) -> list[Command]:
        return [fetch_portfolio(ctx, self.next_generation())]

    def handle_key(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        if self.phase is not Phase.LOADED or self.portfolio is None:
            return IGNORED
        moved = _move_cursor(key, self.cursor, len(self.portfolio.positions))
        if moved is None:
            return IGNORED
        self.cursor = moved
        return Outcome()

    def handle_message(self, msg: object, ctx: AppContext) -> list[Command]:
        if isinstance(msg, m.PortfolioLoaded):
            if not self.is_current(msg.generation):
                return []
            self.fetching = False
            self.portfolio = msg.portfolio
            self.phase = Phase.LOADED
            self.error = None
            self.cursor = _clamp(self.cursor, len(msg.portfolio.positions))
        elif isinstance(msg, m.PortfolioFailed):
            if self.is_current(msg.generation):
                self.fail(msg.error)
        return []

    def footer_hints(self) -> list[tuple[str, str]]:
        return [("↑↓", "move"), ("r", "refresh")]

    def render(self) -> Text:
        if self.phase is Phase.ERROR:
            out = _error_line(self.error or "unknown error")
            out.append("\npress r to retry", style=MUTED_STYLE)
            return out
        if self.phase is Phase.LOADING or self.portfolio is None:
            return Text("Loading portfolio...", style=MUTED_STYLE)
        out = self._summary()
        out.append("\n\n")
        positions = self.portfolio.positions
        if not positions:
            out.append("No positions", style=MUTED_STYLE)
            return out
        rows = [
            [
                Text(pos.symbol, style="bold"),
                pos.instrument.name,
                _fmt_qty_raw(pos.quantity),
                _fmt_price(pos.last_price),
                _fmt_price(pos.current_value),
                _gain_text(pos.day_gain_value),
                _pct_text(pos.day_gain_pct),
                _gain_text(pos.total_gain_value),
                _pct_text(pos.total_gain_pct),
                _fmt_price(pos.unit_cost),
            ]
            for pos in positions
        ]
        out.append_text(_table(_COLUMNS, rows, cursor=self.cursor, height=self.visible_height))
        return out

    def _summary(self) -> Text:
        portfolio = self.portfolio
        out = Text()
        out.append("Account ", style=MUTED_STYLE)
        out.append(portfolio.account_id or "-", style="bold")
        if portfolio.account_type:
            out.append(f"  ({portfolio.account_type})", style=MUTED_STYLE)
        out.append("\nEquity  ", style=MUTED_STYLE)
        out.append(f"${_fmt_money(portfolio.total_equity)}", style="bold")
        for item in portfolio.equity:
            value = to_float(item.value)
            if value is None:
                continue
            out.append(f"   {item.type.title()} ${_fmt_money(value)}", style=MUTED_STYLE)
        bp = portfolio.buying_power
        out.append("\nBuying power  ", style=MUTED_STYLE)
        out.append(_fmt_price(bp.buying_power), style="bold")
        out.append("   cash ", style=MUTED_STYLE)
        out.append(_fmt_price(bp.cash_only))
        out.append("   options ", style=MUTED_STYLE)
        out.append(_fmt_price(bp.options))
        return out
