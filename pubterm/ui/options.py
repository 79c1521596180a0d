"""Option chain browser: symbol → expiration → calls/puts with greeks."""

from __future__ import annotations

from enum import Enum
from typing import Sequence

from rich.text import Text

from ..models import BuyingPower, Greeks, OptionChain, OptionQuote, to_float
from . import messages as m
from .asset_selector import AssetSelector, SelectorMode
from .commands import (
    AppContext,
    Command,
    fetch_chain,
    fetch_expirations,
    fetch_greeks,
    fetch_underlying_quote,
)
from .common import (
    CURSOR_STYLE,
    MUTED_STYLE,
    Column,
    TextField,
    _clamp,
    _error_line,
    _fmt_money,
    _fmt_price,
    _fmt_volume,
    _move_cursor,
    _table,
)
from .views import BaseView, IGNORED, Outcome, Phase, View

GREEKS_ABOVE = 3
GREEKS_BELOW = 4


class OptionsState(Enum):
    IDLE = "idle"
    LOADING_EXPIRATIONS = "loading_expirations"
    SELECTING_EXPIRATION = "selecting_expiration"
    LOADING_CHAIN = "loading_chain"
    CHAIN_LOADED = "chain_loaded"
    ERROR = "error"


def atm_index(options: Sequence[OptionQuote], price: float | None) -> int:
    """Row whose strike is closest to price; the first row wins a tie."""
    if price is None or not options:
        return 0
    best = 0
    best_diff: float | None = None
    for idx, option in enumerate(options):
        strike = option.strike
        if strike is None:
            continue
        diff = abs(strike - price)
        if best_diff is None or diff < best_diff:
            best = idx
            best_diff = diff
    return best


def greeks_window(size: int, cursor: int) -> range:
    return range(max(0, cursor - GREEKS_ABOVE), min(size, cursor + GREEKS_BELOW))


def _fmt_greek(raw: str, digits: int = 3) -> str:
    value = to_float(raw)
    if value is None:
        return "-"
    return f"{value:.{digits}f}"


def _fmt_iv(raw: str) -> str:
    value = to_float(raw)
    if value is None:
        return "-"
    return f"{value * 100:.1f}%"


class OptionsView(BaseView):
    def __init__(self) -> None:
        super().__init__()
        self.phase = Phase.LOADED
        self.requested = True
        self.state = OptionsState.IDLE
        self.input = TextField(limit=10, placeholder="symbol", upper=True)
        self.selector: AssetSelector | None = None
        self.underlying = ""
        self.underlying_last: float | None = None
        self.expirations: list[str] = []
        self.exp_cursor = 0
        self.expiration = ""
        self.chain: OptionChain | None = None
        self.call_cursor = 0
        self.put_cursor = 0
        self.side = "calls"
        self.cursor_moved = False
        self.show_greeks = False
        self.greeks: dict[str, Greeks] = {}
        self.chain_generation = 0
        self.greeks_generation = 0
        self.buying_power: BuyingPower | None = None

    @property
    def captures_input(self) -> bool:
        if self.selector is not None:
            return True
        return self.state in (OptionsState.IDLE, OptionsState.ERROR, OptionsState.SELECTING_EXPIRATION)

    @property
    def is_fetching(self) -> bool:
        return self.state in (OptionsState.LOADING_EXPIRATIONS, OptionsState.LOADING_CHAIN)

    def invalidate(self) -> None:
        self.generation += 1
        self.chain_generation += 1
        self.greeks_generation += 1
        self.selector = None
        self.chain = None
        self.expirations = []
        self.greeks = {}
        self.error = None
        self.state = OptionsState.IDLE

    def activate(self, ctx: AppContext) -> list[Command]:
        self.buying_power = ctx.buying_power
        return []

    # region Requests
    def _load_symbol(self, symbol: str, ctx: AppContext) -> list[Command]:
        symbol = symbol.strip().upper()
        if not symbol:
            return []
        self.input.value = symbol
        self.underlying = symbol
        self.underlying_last = None
        self.expirations = []
        self.expiration = ""
        self.chain = None
        self.greeks = {}
        self.error = None
        self.generation += 1
        self.chain_generation += 1
        self.greeks_generation += 1
        self.state = OptionsState.LOADING_EXPIRATIONS
        return [
            fetch_expirations(ctx, symbol, self.generation),
            fetch_underlying_quote(ctx, symbol, self.generation),
        ]

    def _load_chain(self, ctx: AppContext) -> list[Command]:
        if not self.expirations:
            return []
        self.expiration = self.expirations[_clamp(self.exp_cursor, len(self.expirations))]
        self.chain_generation += 1
        self.greeks_generation += 1
        self.state = OptionsState.LOADING_CHAIN
        return [fetch_chain(ctx, self.underlying, self.expiration, self.chain_generation)]

    def _greeks_commands(self, ctx: AppContext, *, only_missing: bool = False) -> list[Command]:
        if self.chain is None:
            return []
        symbols: list[str] = []
        for rows, cursor in ((self.chain.calls, self.call_cursor), (self.chain.puts, self.put_cursor)):
            for idx in greeks_window(len(rows), cursor):
                symbol = rows[idx].symbol
                if not symbol or symbol in symbols:
                    continue
                if only_missing and symbol in self.greeks:
                    continue
                symbols.append(symbol)
        if not symbols:
            return []
        self.greeks_generation += 1
        return [fetch_greeks(ctx, symbols, self.greeks_generation)]

    def _center_cursors(self) -> None:
        chain = self.chain
        self.call_cursor = atm_index(chain.calls, self.underlying_last)
        self.put_cursor = atm_index(chain.puts, self.underlying_last)
        self.cursor_moved = False

    def refresh(self, ctx: AppContext) -> list[Command]:
        if self.state in (OptionsState.CHAIN_LOADED, OptionsState.LOADING_CHAIN):
            return self._load_chain(ctx)
        if self.state is OptionsState.SELECTING_EXPIRATION or (
            self.state is OptionsState.ERROR and self.underlying and not self.expiration
        ):
            return self._load_symbol(self.underlying, ctx)
        if self.state is OptionsState.ERROR and self.expiration:
            return self._load_chain(ctx)
        return []
    # endregion

    # region Keys
    def handle_key(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        self.buying_power = ctx.buying_power
        if self.selector is not None:
            return self._handle_selector(key, character, ctx)
        if self.state in (OptionsState.IDLE, OptionsState.ERROR):
            return self._handle_symbol_entry(key, character, ctx)
        if self.state is OptionsState.SELECTING_EXPIRATION:
            return self._handle_expiration_key(key, ctx)
        if self.state is OptionsState.CHAIN_LOADED:
            return self._handle_chain_key(key, ctx)
        return IGNORED

    def _handle_symbol_entry(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        if key == "escape":
            return Outcome(focus_toolbar=True)
        if key == "enter":
            return Outcome(self._load_symbol(self.input.value, ctx))
        if key == "ctrl+f":
            self._open_selector(SelectorMode.SEARCH, ctx)
            return Outcome()
        if not self.input.value and key in ("w", "p"):
            self._open_selector(SelectorMode.WATCHLIST if key == "w" else SelectorMode.PORTFOLIO, ctx)
            return Outcome()
        if self.input.feed(key, character) and self.state is OptionsState.ERROR:
            self.state = OptionsState.IDLE
            self.error = None
        return Outcome()

    def _open_selector(self, mode: SelectorMode, ctx: AppContext) -> None:
        self.selector = AssetSelector(View.OPTIONS)
        self.selector.open(mode, ctx)

    def _handle_selector(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        result = self.selector.handle_key(key, character, ctx)
        if result.cancelled:
            self.selector = None
            return Outcome()
        selection = result.selection
        if selection is None:
            return Outcome(result.commands)
        self.selector = None
        if selection.options_enabled is False:
            self.input.value = selection.symbol
            self.underlying = selection.symbol
            self.state = OptionsState.ERROR
            self.error = LookupError(f"options trading is not enabled for {selection.symbol}")
            return Outcome()
        return Outcome(self._load_symbol(selection.symbol, ctx))

    def _handle_expiration_key(self, key: str, ctx: AppContext) -> Outcome:
        if key == "escape":
            self.generation += 1
            self.state = OptionsState.IDLE
            return Outcome()
        if key == "enter":
            return Outcome(self._load_chain(ctx))
        moved = _move_cursor(key, self.exp_cursor, len(self.expirations))
        if moved is not None:
            self.exp_cursor = moved
        return Outcome()

    def _handle_chain_key(self, key: str, ctx: AppContext) -> Outcome:
        chain = self.chain
        if key in ("left", "right", "h", "l", "tab"):
            self.side = "puts" if self.side == "calls" else "calls"
            return Outcome()
        if key == "g":
            self.show_greeks = not self.show_greeks
            if self.show_greeks:
                return Outcome(self._greeks_commands(ctx, only_missing=True))
            return Outcome()
        if key == "e":
            self.chain_generation += 1
            self.greeks_generation += 1
            self.state = OptionsState.SELECTING_EXPIRATION
            return Outcome()
        rows = chain.calls if self.side == "calls" else chain.puts
        cursor = self.call_cursor if self.side == "calls" else self.put_cursor
        moved = _move_cursor(key, cursor, len(rows))
        if moved is None:
            return IGNORED
        if self.side == "calls":
            self.call_cursor = moved
        else:
            self.put_cursor = moved
        self.cursor_moved = True
        return Outcome()
    # endregion

    def handle_message(self, msg: object, ctx: AppContext) -> list[Command]:
        self.buying_power = ctx.buying_power
        if isinstance(msg, m.ExpirationsLoaded):
            if not self.is_current(msg.generation) or self.state is not OptionsState.LOADING_EXPIRATIONS:
                return []
            self.expirations = list(msg.expirations.expirations)
            self.exp_cursor = 0
            if not self.expirations:
                self.state = OptionsState.ERROR
                self.error = LookupError(f"no option expirations for {self.underlying}")
            else:
                self.state = OptionsState.SELECTING_EXPIRATION
        elif isinstance(msg, m.ExpirationsFailed):
            if self.is_current(msg.generation) and self.state is OptionsState.LOADING_EXPIRATIONS:
                self.state = OptionsState.ERROR
                self.error = msg.error
        elif isinstance(msg, m.UnderlyingQuoteLoaded):
            if not self.is_current(msg.generation) or msg.quote is None:
                return []
            self.underlying_last = to_float(msg.quote.last)
            if self.state is OptionsState.CHAIN_LOADED and not self.cursor_moved:
                self._center_cursors()
                return self._greeks_commands(ctx, only_missing=True)
        elif isinstance(msg, m.ChainLoaded):
            if msg.generation != self.chain_generation or self.state is not OptionsState.LOADING_CHAIN:
                return []
            self.chain = msg.chain
            self.greeks = {}
            self.state = OptionsState.CHAIN_LOADED
            self._center_cursors()
            return self._greeks_commands(ctx)
        elif isinstance(msg, m.ChainFailed):
            if msg.generation == self.chain_generation and self.state is OptionsState.LOADING_CHAIN:
                self.state = OptionsState.ERROR
                self.error = msg.error
        elif isinstance(msg, m.GreeksLoaded):
            if msg.generation == self.greeks_generation:
                self.greeks.update(msg.greeks)
        elif isinstance(msg, (m.InstrumentLoaded, m.InstrumentFailed)):
            if self.selector is not None:
                self.selector.handle_message(msg)
        return []

    def footer_hints(self) -> list[tuple[str, str]]:
        if self.selector is not None:
            return [("enter", "select"), ("esc", "cancel")]
        if self.state in (OptionsState.IDLE, OptionsState.ERROR):
            return [("enter", "load"), ("ctrl+f", "find"), ("w/p", "lists"), ("esc", "toolbar")]
        if self.state is OptionsState.SELECTING_EXPIRATION:
            return [("↑↓", "move"), ("enter", "load chain"), ("esc", "back")]
        if self.state is OptionsState.CHAIN_LOADED:
            return [("←→", "calls/puts"), ("↑↓", "move"), ("g", "greeks"), ("e", "expirations"), ("r", "refresh")]
        return []

    # region Rendering
    def render(self) -> Text:
        if self.selector is not None:
            out = Text("Select underlying\n\n", style="bold")
            out.append_text(self.selector.render())
            return out
        out = self._header()
        out.append("\n\n")
        if self.state in (OptionsState.IDLE, OptionsState.ERROR):
            out.append("Symbol: ", style="bold")
            out.append_text(self.input.render(focused=True))
            if self.state is OptionsState.ERROR and self.error is not None:
                out.append("\n\n")
                out.append_text(_error_line(self.error))
                out.append("\nedit the symbol and press enter, or r to retry", style=MUTED_STYLE)
        elif self.state is OptionsState.LOADING_EXPIRATIONS:
            out.append(f"Loading expirations for {self.underlying}...", style=MUTED_STYLE)
        elif self.state is OptionsState.SELECTING_EXPIRATION:
            out.append_text(self._expiration_list())
        elif self.state is OptionsState.LOADING_CHAIN:
            out.append(f"Loading {self.underlying} chain for {self.expiration}...", style=MUTED_STYLE)
        elif self.chain is not None:
            out.append_text(self._chain_tables())
        return out

    def _header(self) -> Text:
        out = Text("Options", style="bold")
        if self.underlying:
            out.append(f"  {self.underlying}", style="bold #7fb4e0")
        if self.underlying_last is not None:
            out.append(f"  last ${_fmt_money(self.underlying_last)}")
        if self.expiration and self.state in (OptionsState.CHAIN_LOADED, OptionsState.LOADING_CHAIN):
            out.append(f"  exp {self.expiration}", style=MUTED_STYLE)
        if self.buying_power is not None and self.buying_power.options:
            out.append(f"  options BP {_fmt_price(self.buying_power.options)}", style=MUTED_STYLE)
        return out

    def _expiration_list(self) -> Text:
        out = Text(f"Expirations for {self.underlying}\n", style="bold")
        height = max(3, self.visible_height)
        start = 0 if self.exp_cursor < height else self.exp_cursor - height + 1
        for idx in range(start, min(len(self.expirations), start + height)):
            line = Text(f"  {self.expirations[idx]}")
            if idx == self.exp_cursor:
                line.stylize(CURSOR_STYLE)
            out.append_text(line)
            out.append("\n")
        return out

    def _columns(self) -> list[Column]:
        columns = [
            Column("Strike", 9, "right"),
            Column("Bid", 8, "right"),
            Column("Ask", 8, "right"),
            Column("Last", 8, "right"),
            Column("Vol", 8, "right"),
            Column("OI", 8, "right"),
        ]
        if self.show_greeks:
            columns.extend(
                [
                    Column("Delta", 7, "right"),
                    Column("Theta", 7, "right"),
                    Column("IV", 7, "right"),
                ]
            )
        return columns

    def _rows(self, options: Sequence[OptionQuote]) -> list[list[Text | str]]:
        rows: list[list[Text | str]] = []
        for option in options:
            strike = option.strike
            row: list[Text | str] = [
                Text(f"{strike:.2f}" if strike is not None else "-", style="bold"),
                _fmt_greek(option.bid, 2),
                _fmt_greek(option.ask, 2),
                _fmt_greek(option.last, 2),
                _fmt_volume(option.volume),
                _fmt_volume(option.open_interest),
            ]
            if self.show_greeks:
                greeks = self.greeks.get(option.symbol)
                row.extend(
                    [
                        _fmt_greek(greeks.delta) if greeks else "-",
                        _fmt_greek(greeks.theta) if greeks else "-",
                        _fmt_iv(greeks.implied_volatility) if greeks else "-",
                    ]
                )
            rows.append(row)
        return rows

    def _chain_tables(self) -> Text:
        chain = self.chain
        columns = self._columns()
        width = sum(col.width for col in columns) + len(columns) - 1
        panels = []
        for title, options, cursor, side in (
            ("CALLS", chain.calls, self.call_cursor, "calls"),
            ("PUTS", chain.puts, self.put_cursor, "puts"),
        ):
            style = "bold reverse" if side == self.side else "bold"
            panel = Text(title, style=style)
            panel.append("\n")
            if options:
                active_cursor = cursor if side == self.side else None
                panel.append_text(_table(columns, self._rows(options), cursor=active_cursor, height=self.visible_height))
                if active_cursor is None and options:
                    panel.append(f"\n@ {options[_clamp(cursor, len(options))].symbol}", style=MUTED_STYLE)
            else:
                panel.append("no contracts", style=MUTED_STYLE)
            panels.append(panel.split("\n"))
        out = Text()
        rows = max(len(panels[0]), len(panels[1]))
        for idx in range(rows):
            left = panels[0][idx].copy() if idx < len(panels[0]) else Text()
            left.align("left", width)
            right = panels[1][idx] if idx < len(panels[1]) else Text()
            if idx:
                out.append("\n")
            out.append_text(left)
            out.append("  │  ", style=MUTED_STYLE)
            out.append_text(right)
        return out
    # endregion
