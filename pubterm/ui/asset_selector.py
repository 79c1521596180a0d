"""Symbol picker shared by the Trade and Options views.

Three modes: free-text search with an instrument lookup, a browse list over
the watchlist, and a browse list over portfolio positions. The browse lists
are fed from the context; only search mode issues requests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from rich.text import Text

from ..models import InstrumentInfo
from . import messages as m
from .commands import AppContext, Command, lookup_instrument
from .common import MUTED_STYLE, CURSOR_STYLE, TextField, _clamp, _error_line, _fmt_price, _key_hints, _move_cursor
from .views import View

MAX_VISIBLE = 8
SYMBOL_LIMIT = 10


class SelectorMode(Enum):
    SEARCH = "Search"
    WATCHLIST = "Watchlist"
    PORTFOLIO = "Portfolio"


_MODE_KEYS = {"s": SelectorMode.SEARCH, "w": SelectorMode.WATCHLIST, "p": SelectorMode.PORTFOLIO}


@dataclass(frozen=True)
class Selection:
    symbol: str
    type: str = "EQUITY"
    price: str = ""
    options_enabled: bool | None = None


@dataclass(frozen=True)
class SelectorEntry:
    symbol: str
    detail: str = ""
    price: str = ""


@dataclass
class SelectorResult:
    commands: list[Command] = field(default_factory=list)
    selection: Selection | None = None
    cancelled: bool = False


class AssetSelector:
    def __init__(self, owner: View) -> None:
        self.owner = owner
        self.mode = SelectorMode.SEARCH
        self.input = TextField(limit=SYMBOL_LIMIT, placeholder="type a symbol", upper=True)
        self.entries: list[SelectorEntry] = []
        self.cursor = 0
        self.search_symbol = ""
        self.lookup_loading = False
        self.lookup_result: InstrumentInfo | None = None
        self.lookup_error: Exception | None = None

    def open(self, mode: SelectorMode, ctx: AppContext) -> None:
        self.input.clear()
        self._reset_lookup()
        self.switch(mode, ctx)

    def switch(self, mode: SelectorMode, ctx: AppContext) -> None:
        self.mode = mode
        self.cursor = 0
        if mode is SelectorMode.WATCHLIST:
            self.entries = [
                SelectorEntry(symbol, price=ctx.watch_quotes[symbol].last if symbol in ctx.watch_quotes else "")
                for symbol in ctx.watchlist
            ]
        elif mode is SelectorMode.PORTFOLIO:
            self.entries = [
                SelectorEntry(pos.symbol, detail=pos.instrument.name, price=pos.last_price)
                for pos in ctx.positions
                if pos.instrument.type in ("", "EQUITY")
            ]
        else:
            self.entries = []

    def _reset_lookup(self) -> None:
        self.search_symbol = ""
        self.lookup_loading = False
        self.lookup_result = None
        self.lookup_error = None

    def handle_key(self, key: str, character: str | None, ctx: AppContext) -> SelectorResult:
        if key == "escape":
            return SelectorResult(cancelled=True)
        if self.mode is SelectorMode.SEARCH:
            return self._handle_search(key, character, ctx)
        if key in _MODE_KEYS:
            self.switch(_MODE_KEYS[key], ctx)
            return SelectorResult()
        if key == "enter":
            if not self.entries:
                return SelectorResult()
            entry = self.entries[_clamp(self.cursor, len(self.entries))]
            return SelectorResult(selection=Selection(entry.symbol, price=entry.price))
        moved = _move_cursor(key, self.cursor, len(self.entries))
        if moved is not None:
            self.cursor = moved
        return SelectorResult()

    def _handle_search(self, key: str, character: str | None, ctx: AppContext) -> SelectorResult:
        symbol = self.input.value.strip().upper()
        if not self.input.value and key in ("w", "p"):
            self.switch(_MODE_KEYS[key], ctx)
            return SelectorResult()
        if key == "tab":
            if not symbol:
                return SelectorResult()
            answered = self.lookup_result is not None or self.lookup_error is not None
            if symbol == self.search_symbol and (self.lookup_loading or answered):
                return SelectorResult()
            self.search_symbol = symbol
            self.lookup_loading = True
            self.lookup_result = None
            self.lookup_error = None
            return SelectorResult([lookup_instrument(ctx, self.owner, symbol)])
        if key == "enter":
            if not symbol:
                return SelectorResult()
            info = self.lookup_result
            if info is not None and info.symbol.upper() == symbol:
                return SelectorResult(
                    selection=Selection(symbol, info.type or "EQUITY", options_enabled=info.options_enabled)
                )
            return SelectorResult(selection=Selection(symbol))
        if self.input.feed(key, character):
            self._reset_lookup()
        return SelectorResult()

    def handle_message(self, msg: object) -> None:
        if isinstance(msg, m.InstrumentLoaded):
            if msg.symbol != self.search_symbol:
                return
            self.lookup_loading = False
            self.lookup_result = msg.info
            self.lookup_error = None
        elif isinstance(msg, m.InstrumentFailed):
            if msg.symbol != self.search_symbol:
                return
            self.lookup_loading = False
            self.lookup_result = None
            self.lookup_error = msg.error

    def render(self) -> Text:
        out = Text()
        for idx, mode in enumerate(SelectorMode):
            if idx:
                out.append(" | ", style=MUTED_STYLE)
            style = "bold reverse" if mode is self.mode else MUTED_STYLE
            out.append(f" {mode.value} ", style=style)
        out.append("\n")
        if self.mode is SelectorMode.SEARCH:
            out.append("Symbol: ", style="bold")
            out.append_text(self.input.render(focused=True))
            if self.lookup_loading:
                out.append(f"\nLooking up {self.search_symbol}...", style=MUTED_STYLE)
            elif self.lookup_result is not None:
                info = self.lookup_result
                options = "options enabled" if info.options_enabled else "no options"
                out.append(f"\n{info.symbol} {info.type} · {options}", style="green")
            elif self.lookup_error is not None:
                out.append("\n")
                out.append_text(_error_line(self.lookup_error, prefix="Lookup failed"))
            out.append("\n")
            out.append_text(
                _key_hints([("tab", "lookup"), ("enter", "select"), ("w/p", "lists"), ("esc", "cancel")])
            )
            return out
        if not self.entries:
            empty = "Watchlist is empty" if self.mode is SelectorMode.WATCHLIST else "No positions"
            out.append(empty, style=MUTED_STYLE)
        else:
            start = 0 if self.cursor < MAX_VISIBLE else self.cursor - MAX_VISIBLE + 1
            for idx in range(start, min(len(self.entries), start + MAX_VISIBLE)):
                entry = self.entries[idx]
                line = Text(f"{entry.symbol:<8} ", style="bold")
                line.append(f"{_fmt_price(entry.price):>12}")
                if entry.detail:
                    line.append(f"  {entry.detail}", style=MUTED_STYLE)
                if idx == self.cursor:
                    line.stylize(CURSOR_STYLE)
                out.append_text(line)
                out.append("\n")
        out.append_text(_key_hints([("↑↓", "move"), ("enter", "select"), ("s/w/p", "mode"), ("esc", "cancel")]))
        return out
