"""Watchlist view: persisted symbol list with live quotes."""

from __future__ import annotations

from enum import Enum

from rich.text import Text

from ..models import Quote
from . import messages as m
from .commands import AppContext, Command, fetch_watchlist_quotes, save_watchlist
from .common import (
    MUTED_STYLE,
    Column,
    TextField,
    _clamp,
    _error_line,
    _fmt_price,
    _fmt_volume,
    _move_cursor,
    _table,
)
from .views import BaseView, IGNORED, Outcome, Phase

SYMBOL_LIMIT = 10

_COLUMNS = [
    Column("Symbol", 8),
    Column("Last", 12, "right"),
    Column("Bid", 12, "right"),
    Column("Ask", 12, "right"),
    Column("Volume", 14, "right"),
]


class WatchMode(Enum):
    NORMAL = "normal"
    ADDING = "adding"
    DELETING = "deleting"


class WatchlistView(BaseView):
    def __init__(self, symbols: list[str] | None = None) -> None:
        super().__init__()
        self.symbols: list[str] = list(symbols or [])
        self.quotes: dict[str, Quote] = {}
        self.mode = WatchMode.NORMAL
        self.input = TextField(limit=SYMBOL_LIMIT, placeholder="symbol", upper=True)
        self.cursor = 0
        self.note: Exception | None = None
        if not self.symbols:
            self.phase = Phase.LOADED

    @property
    def captures_input(self) -> bool:
        return self.mode is not WatchMode.NORMAL

    def claims_key(self, key: str) -> bool:
        return self.mode is WatchMode.NORMAL and key == "a"

    @property
    def selected_symbol(self) -> str | None:
        if not self.symbols:
            return None
        return self.symbols[_clamp(self.cursor, len(self.symbols))]

    def refresh(self, ctx: AppContext) -> list[Command]:
        if not self.symbols:
            self.phase = Phase.LOADED
            self.requested = True
            return []
        if self.phase is Phase.ERROR:
            self.phase = Phase.LOADING
        return [fetch_watchlist_quotes(ctx, self.symbols, self.next_generation())]

    def poll(self, ctx: AppContext) -> list[Command]:
        if not self.symbols:
            return []
        return [fetch_watchlist_quotes(ctx, self.symbols, self.next_generation())]

    # region Keys
    def handle_key(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        if self.mode is WatchMode.ADDING:
            return Outcome(self._handle_adding(key, character, ctx))
        if self.mode is WatchMode.DELETING:
            return Outcome(self._handle_deleting(key))
        if key == "a":
            self.mode = WatchMode.ADDING
            self.input.clear()
            return Outcome()
        if key == "d":
            if self.selected_symbol is not None:
                self.mode = WatchMode.DELETING
            return Outcome()
        if key == "enter":
            symbol = self.selected_symbol
            if symbol is None:
                return Outcome()
            return Outcome(trade_symbol=symbol)
        moved = _move_cursor(key, self.cursor, len(self.symbols))
        if moved is None:
            return IGNORED
        self.cursor = moved
        return Outcome()

    def _handle_adding(self, key: str, character: str | None, ctx: AppContext) -> list[Command]:
        if key == "escape":
            self.mode = WatchMode.NORMAL
            self.input.clear()
            return []
        if key != "enter":
            self.input.feed(key, character)
            return []
        symbol = self.input.value.strip().upper()
        self.mode = WatchMode.NORMAL
        self.input.clear()
        return self.add_symbol(symbol, ctx)

    def add_symbol(self, symbol: str, ctx: AppContext) -> list[Command]:
        symbol = symbol.strip().upper()
        if not symbol or symbol in self.symbols:
            return []
        self.symbols.append(symbol)
        self.cursor = len(self.symbols) - 1
        return [
            save_watchlist(self.symbols),
            fetch_watchlist_quotes(ctx, self.symbols, self.next_generation()),
        ]

    def _handle_deleting(self, key: str) -> list[Command]:
        if key in ("n", "N", "escape"):
            self.mode = WatchMode.NORMAL
            return []
        if key not in ("y", "Y"):
            return []
        self.mode = WatchMode.NORMAL
        return self.remove_symbol(self.selected_symbol)

    def remove_symbol(self, symbol: str | None) -> list[Command]:
        if symbol is None or symbol not in self.symbols:
            return []
        self.symbols.remove(symbol)
        self.quotes.pop(symbol, None)
        self.cursor = _clamp(self.cursor, len(self.symbols))
        return [save_watchlist(self.symbols)]
    # endregion

    def handle_message(self, msg: object, ctx: AppContext) -> list[Command]:
        if isinstance(msg, m.WatchlistQuotesLoaded):
            if not self.is_current(msg.generation):
                return []
            self.fetching = False
            self.quotes = {q.symbol: q for q in msg.quotes if q.symbol in self.symbols and q.ok}
            self.phase = Phase.LOADED
            self.error = None
        elif isinstance(msg, m.WatchlistQuotesFailed):
            if self.is_current(msg.generation):
                self.fail(msg.error)
        elif isinstance(msg, m.WatchlistSaved):
            self.note = None
        elif isinstance(msg, m.WatchlistSaveFailed):
            self.note = msg.error
        return []

    def footer_hints(self) -> list[tuple[str, str]]:
        if self.mode is WatchMode.ADDING:
            return [("enter", "add"), ("esc", "cancel")]
        if self.mode is WatchMode.DELETING:
            return [("y", "confirm"), ("n", "cancel")]
        return [("a", "add"), ("d", "delete"), ("enter", "trade"), ("r", "refresh")]

    def render(self) -> Text:
        out = Text()
        if self.phase is Phase.ERROR:
            out.append_text(_error_line(self.error or "unknown error"))
            out.append("\npress r to retry\n\n", style=MUTED_STYLE)
        elif self.phase is Phase.LOADING:
            out.append("Loading quotes...\n\n", style=MUTED_STYLE)
        if not self.symbols:
            out.append("Watchlist is empty. Press a to add a symbol.", style=MUTED_STYLE)
        else:
            rows = []
            for symbol in self.symbols:
                quote = self.quotes.get(symbol)
                rows.append(
                    [
                        Text(symbol, style="bold"),
                        _fmt_price(quote.last) if quote else "-",
                        _fmt_price(quote.bid) if quote else "-",
                        _fmt_price(quote.ask) if quote else "-",
                        _fmt_volume(quote.volume) if quote else "-",
                    ]
                )
            out.append_text(_table(_COLUMNS, rows, cursor=self.cursor, height=self.visible_height))
        if self.note is not None:
            out.append("\n")
            out.append_text(_error_line(self.note, prefix="Save failed"))
        if self.mode is WatchMode.ADDING:
            out.append("\n\nAdd symbol: ", style="bold")
            out.append_text(self.input.render(focused=True))
        elif self.mode is WatchMode.DELETING:
            out.append(f"\n\nRemove {self.selected_symbol} from watchlist? (y/n)", style="bold yellow")
        return out
