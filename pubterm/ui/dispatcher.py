"""Root state machine: active view, focus scope, modal overlays, routing.

All handlers run synchronously on the UI loop and return command values;
nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Union

from rich.text import Text

from ..config import DEFAULT_REFRESH_INTERVAL_SEC
from . import messages as m
from .commands import AppContext, Command, Quit, ScheduleTick, fetch_accounts
from .common import CURSOR_STYLE, MUTED_STYLE, _clamp, _key_hints, _move_cursor
from .history import HistoryView
from .options import OptionsView
from .orders import OrdersView
from .portfolio import PortfolioView
from .trade import TradeState, TradeView
from .views import VIEW_BY_DIGIT, VIEW_ORDER, Outcome, View, ViewModel
from .watchlist import WatchlistView

log = logging.getLogger(__name__)

TOOLBAR_HEIGHT = 1
FOOTER_HEIGHT = 1
SUMMARY_HEIGHT = 5
CHROME_HEIGHT = 4
MIN_TABLE_ROWS = 3

QUIT_KEYS = ("q", "ctrl+c")


class Focus(Enum):
    TOOLBAR = "toolbar"
    CONTENT = "content"


@dataclass
class AccountPicker:
    cursor: int = 0


@dataclass
class Confirmation:
    kind: str
    prompt: str
    payload: object = None


Modal = Union[AccountPicker, Confirmation]

_ROUTES: dict[type, View] = {
    m.PortfolioLoaded: View.PORTFOLIO,
    m.PortfolioFailed: View.PORTFOLIO,
    m.WatchlistQuotesLoaded: View.WATCHLIST,
    m.WatchlistQuotesFailed: View.WATCHLIST,
    m.WatchlistSaved: View.WATCHLIST,
    m.WatchlistSaveFailed: View.WATCHLIST,
    m.OrdersLoaded: View.ORDERS,
    m.OrdersFailed: View.ORDERS,
    m.OrderCancelled: View.ORDERS,
    m.OrderCancelFailed: View.ORDERS,
    m.TradeQuoteLoaded: View.TRADE,
    m.TradeQuoteFailed: View.TRADE,
    m.OrderPlaced: View.TRADE,
    m.OrderPlaceFailed: View.TRADE,
    m.ExpirationsLoaded: View.OPTIONS,
    m.ExpirationsFailed: View.OPTIONS,
    m.UnderlyingQuoteLoaded: View.OPTIONS,
    m.UnderlyingQuoteFailed: View.OPTIONS,
    m.ChainLoaded: View.OPTIONS,
    m.ChainFailed: View.OPTIONS,
    m.GreeksLoaded: View.OPTIONS,
    m.GreeksFailed: View.OPTIONS,
    m.HistoryLoaded: View.HISTORY,
    m.HistoryFailed: View.HISTORY,
}


def table_rows_for_height(height: int) -> int:
    rows = height - TOOLBAR_HEIGHT - FOOTER_HEIGHT - SUMMARY_HEIGHT - CHROME_HEIGHT
    return max(MIN_TABLE_ROWS, rows)


class Dispatcher:
    def __init__(self, ctx: AppContext, *, refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SEC) -> None:
        self.ctx = ctx
        self.refresh_interval = refresh_interval
        self.active = View.PORTFOLIO
        self.focus = Focus.CONTENT
        self.modal: Modal | None = None
        self.accounts_error: Exception | None = None
        self.portfolio = PortfolioView()
        self.watchlist = WatchlistView(ctx.ui_config.watchlist)
        self.orders = OrdersView()
        self.trade = TradeView()
        self.options = OptionsView()
        self.history = HistoryView()
        self.views: dict[View, ViewModel] = {
            View.PORTFOLIO: self.portfolio,
            View.WATCHLIST: self.watchlist,
            View.ORDERS: self.orders,
            View.TRADE: self.trade,
            View.OPTIONS: self.options,
            View.HISTORY: self.history,
        }
        self._sync_context()

    @property
    def active_view(self) -> ViewModel:
        return self.views[self.active]

    def start(self) -> list[Command]:
        commands: list[Command] = [fetch_accounts(self.ctx)]
        commands.extend(self.portfolio.activate(self.ctx))
        commands.append(ScheduleTick(self.refresh_interval))
        return commands

    # region Keys
    def handle_key(self, key: str, character: str | None = None) -> list[Command]:
        try:
            if self.modal is not None:
                return self._handle_modal(key)
            view = self.active_view
            if self.focus is Focus.CONTENT and view.captures_input:
                return self._apply(view.handle_key(key, character, self.ctx))
            if self.focus is Focus.TOOLBAR:
                return self._handle_toolbar(key)
            return self._handle_content(key, character)
        finally:
            self._sync_context()

    def _handle_toolbar(self, key: str) -> list[Command]:
        if key in QUIT_KEYS:
            return self._quit()
        if key in ("left", "h"):
            return self._cycle(-1)
        if key in ("right", "l"):
            return self._cycle(1)
        if key in ("down", "j", "enter", "escape"):
            self.focus = Focus.CONTENT
            return []
        if key in VIEW_BY_DIGIT:
            return self.switch_to(VIEW_BY_DIGIT[key])
        return []

    def _handle_content(self, key: str, character: str | None) -> list[Command]:
        view = self.active_view
        if key in QUIT_KEYS:
            return self._quit()
        if key == "escape":
            self.focus = Focus.TOOLBAR
            return []
        if key in VIEW_BY_DIGIT:
            return self.switch_to(VIEW_BY_DIGIT[key])
        if key == "r":
            return view.refresh(self.ctx)
        if key == "a" and not view.claims_key("a") and self.ctx.accounts:
            self._open_account_picker()
            return []
        outcome = view.handle_key(key, character, self.ctx)
        return self._apply(outcome)

    def _apply(self, outcome: Outcome) -> list[Command]:
        commands = list(outcome.commands)
        if outcome.focus_toolbar:
            self.focus = Focus.TOOLBAR
        if outcome.trade_symbol:
            self.active = View.TRADE
            self.focus = Focus.CONTENT
            commands.extend(self.trade.set_symbol(outcome.trade_symbol, self.ctx))
        return commands

    def _cycle(self, step: int) -> list[Command]:
        idx = VIEW_ORDER.index(self.active)
        self.active = VIEW_ORDER[(idx + step) % len(VIEW_ORDER)]
        return self.active_view.activate(self.ctx)

    def switch_to(self, view: View) -> list[Command]:
        self.active = view
        self.focus = Focus.CONTENT
        return self.active_view.activate(self.ctx)

    def _quit(self) -> list[Command]:
        if self.trade.state is TradeState.SUBMITTING:
            self.modal = Confirmation("quit", "An order is still being submitted. Quit anyway? (y/n)")
            return []
        return [Quit()]
    # endregion

    # region Modals
    def _open_account_picker(self) -> None:
        cursor = 0
        for idx, account in enumerate(self.ctx.accounts):
            if account.account_id == self.ctx.account_id:
                cursor = idx
                break
        self.modal = AccountPicker(cursor)

    def _handle_modal(self, key: str) -> list[Command]:
        modal = self.modal
        if isinstance(modal, Confirmation):
            if key in ("y", "Y", "enter"):
                self.modal = None
                if modal.kind == "quit":
                    return [Quit()]
                return []
            if key in ("n", "N", "escape"):
                self.modal = None
            return []
        if key in ("escape", "a"):
            self.modal = None
            return []
        if key in QUIT_KEYS:
            self.modal = None
            return self._quit()
        if key == "enter":
            self.modal = None
            accounts = self.ctx.accounts
            if not accounts:
                return []
            return self.select_account(accounts[_clamp(modal.cursor, len(accounts))].account_id)
        moved = _move_cursor(key, modal.cursor, len(self.ctx.accounts))
        if moved is not None:
            modal.cursor = moved
        return []

    def select_account(self, account_id: str) -> list[Command]:
        if account_id == self.ctx.account_id:
            return []
        log.info("switching account %s -> %s", self.ctx.account_id, account_id)
        self.ctx.account_id = account_id
        self.history.invalidate()
        self.options.invalidate()
        commands = self.portfolio.refresh(self.ctx) + self.orders.refresh(self.ctx)
        if self.watchlist.requested:
            commands.extend(self.watchlist.refresh(self.ctx))
        if self.active is View.HISTORY:
            commands.extend(self.history.activate(self.ctx))
        return commands
    # endregion

    # region Messages
    def handle_message(self, msg: object) -> list[Command]:
        try:
            return self._route(msg)
        finally:
            self._sync_context()

    def _route(self, msg: object) -> list[Command]:
        if isinstance(msg, m.Tick):
            return self._on_tick()
        if isinstance(msg, m.AccountsLoaded):
            return self._on_accounts(msg)
        if isinstance(msg, m.AccountsFailed):
            self.accounts_error = msg.error
            log.warning("loading accounts failed: %s", msg.error)
            return []
        if isinstance(msg, (m.InstrumentLoaded, m.InstrumentFailed)):
            return self.views[msg.owner].handle_message(msg, self.ctx)
        target = _ROUTES.get(type(msg))
        if target is None:
            log.warning("dropping unroutable message %r", msg)
            return []
        return self.views[target].handle_message(msg, self.ctx)

    def _on_tick(self) -> list[Command]:
        commands: list[Command] = []
        view = self.active_view
        if not view.is_fetching:
            commands.extend(view.poll(self.ctx))
        commands.append(ScheduleTick(self.refresh_interval))
        return commands

    def _on_accounts(self, msg: m.AccountsLoaded) -> list[Command]:
        self.ctx.accounts = msg.accounts
        self.accounts_error = None
        if self.ctx.account_id or not msg.accounts:
            return []
        self.ctx.account_id = msg.accounts[0].account_id
        log.info("no account configured, using %s", self.ctx.account_id)
        commands = self.portfolio.refresh(self.ctx)
        for view in (self.watchlist, self.orders, self.history):
            if view.requested:
                commands.extend(view.refresh(self.ctx))
        return commands
    # endregion

    def handle_resize(self, width: int, height: int) -> list[Command]:
        rows = table_rows_for_height(height)
        for view in self.views.values():
            view.set_visible_height(rows)
        return []

    def _sync_context(self) -> None:
        ctx = self.ctx
        ctx.watchlist = tuple(self.watchlist.symbols)
        ctx.watch_quotes = dict(self.watchlist.quotes)
        ctx.ui_config.watchlist = list(self.watchlist.symbols)
        if self.portfolio.portfolio is not None:
            ctx.positions = self.portfolio.portfolio.positions
            ctx.buying_power = self.portfolio.portfolio.buying_power

    # region Rendering
    def render_toolbar(self) -> Text:
        out = Text()
        for idx, view in enumerate(VIEW_ORDER):
            label = f" {idx + 1} {view.label} "
            if view is self.active:
                style = "bold #0d1117 on #7fb4e0" if self.focus is Focus.TOOLBAR else "bold #e6edf3 on #1c3348"
            else:
                style = MUTED_STYLE
            out.append(label, style=style)
        account = self.ctx.account_id or "no account"
        out.append(f"   {account}", style="bold" if self.ctx.account_id else "bold red")
        return out

    def render_content(self) -> Text:
        if isinstance(self.modal, AccountPicker):
            return self._render_account_picker(self.modal)
        if isinstance(self.modal, Confirmation):
            return Text(self.modal.prompt, style="bold yellow")
        return self.active_view.render()

    def _render_account_picker(self, picker: AccountPicker) -> Text:
        out = Text("Select account\n\n", style="bold")
        for idx, account in enumerate(self.ctx.accounts):
            marker = "● " if account.account_id == self.ctx.account_id else "  "
            line = Text(f"{marker}{account.account_id:<38}")
            line.append(f" {account.account_type or '-':<12}", style=MUTED_STYLE)
            if account.options_level:
                line.append(f" options {account.options_level}", style=MUTED_STYLE)
            if idx == picker.cursor:
                line.stylize(CURSOR_STYLE)
            out.append_text(line)
            out.append("\n")
        return out

    def render_footer(self) -> Text:
        if isinstance(self.modal, AccountPicker):
            return _key_hints([("↑↓", "move"), ("enter", "select"), ("esc", "close")])
        if isinstance(self.modal, Confirmation):
            return _key_hints([("y", "yes"), ("n", "no")])
        if self.focus is Focus.TOOLBAR:
            return _key_hints([("←→", "switch view"), ("1-6", "jump"), ("enter", "open"), ("q", "quit")])
        view = self.active_view
        hints = view.footer_hints()
        if not view.captures_input:
            hints = hints + [("1-6", "views"), ("esc", "toolbar")]
            if self.ctx.accounts and not view.claims_key("a"):
                hints.append(("a", "account"))
            hints.append(("q", "quit"))
        return _key_hints(hints)
    # endregion
