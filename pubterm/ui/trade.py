"""Trade ticket: symbol, side, type, quantity and optional limit price."""

from __future__ import annotations

from enum import Enum
import uuid

from rich.text import Text

from ..models import OrderRequest, Quote, to_float
from . import messages as m
from .asset_selector import AssetSelector, SelectorMode
from .commands import AppContext, Command, fetch_trade_quote, place_order
from .common import (
    MUTED_STYLE,
    TextField,
    _error_line,
    _fmt_money,
    _fmt_price,
    _fmt_volume,
    _parse_positive,
    _side_text,
)
from .views import BaseView, IGNORED, Outcome, Phase, View

SIDES = ("BUY", "SELL")
ORDER_TYPES = ("MARKET", "LIMIT")


class TradeState(Enum):
    IDLE = "idle"
    FETCHING_QUOTE = "fetching_quote"
    READY = "ready"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"


class TradeMode(Enum):
    FORM = "form"
    CONFIRM = "confirm"


class Field(Enum):
    SYMBOL = "Symbol"
    SIDE = "Side"
    ORDER_TYPE = "Type"
    QUANTITY = "Quantity"
    LIMIT_PRICE = "Limit price"


_TEXT_FIELDS = (Field.SYMBOL, Field.QUANTITY, Field.LIMIT_PRICE)


def is_valid_order(symbol: str, quantity: str, order_type: str, limit_price: str) -> bool:
    if not symbol.strip():
        return False
    if _parse_positive(quantity) is None:
        return False
    if order_type == "LIMIT" and _parse_positive(limit_price) is None:
        return False
    return True


def _toggle(options: tuple[str, ...], current: str) -> str:
    idx = options.index(current) if current in options else 0
    return options[(idx + 1) % len(options)]


class TradeView(BaseView):
    def __init__(self) -> None:
        super().__init__()
        self.phase = Phase.LOADED
        self.requested = True
        self.state = TradeState.IDLE
        self.mode = TradeMode.FORM
        self.focus = Field.SYMBOL
        self.symbol = TextField(limit=10, placeholder="AAPL", upper=True)
        self.quantity = TextField(limit=12, placeholder="0", numeric=True)
        self.limit_price = TextField(limit=12, placeholder="0.00", numeric=True)
        self.side = "BUY"
        self.order_type = "MARKET"
        self.quote: Quote | None = None
        self.last_order_id = ""
        self.last_order_symbol = ""
        self.selector: AssetSelector | None = None

    # region Form state
    @property
    def fields(self) -> list[Field]:
        fields = [Field.SYMBOL, Field.SIDE, Field.ORDER_TYPE, Field.QUANTITY]
        if self.order_type == "LIMIT":
            fields.append(Field.LIMIT_PRICE)
        return fields

    @property
    def text_focused(self) -> bool:
        return self.focus in _TEXT_FIELDS and self.state not in (TradeState.SUBMITTING, TradeState.SUCCESS)

    @property
    def captures_input(self) -> bool:
        if self.selector is not None:
            return True
        if self.state is TradeState.SUBMITTING:
            return False
        return self.mode is TradeMode.CONFIRM or self.text_focused

    @property
    def is_fetching(self) -> bool:
        return self.state in (TradeState.FETCHING_QUOTE, TradeState.SUBMITTING)

    @property
    def is_valid(self) -> bool:
        return is_valid_order(self.symbol.value, self.quantity.value, self.order_type, self.limit_price.value)

    def estimated_cost(self) -> float | None:
        qty = _parse_positive(self.quantity.value)
        if qty is None:
            return None
        if self.order_type == "LIMIT":
            price = _parse_positive(self.limit_price.value)
        elif self.quote is not None:
            price = to_float(self.quote.last) or to_float(self.quote.ask)
        else:
            price = None
        if price is None:
            return None
        return qty * price

    def reset(self) -> None:
        self.generation += 1
        self.state = TradeState.IDLE
        self.mode = TradeMode.FORM
        self.focus = Field.SYMBOL
        self.symbol.clear()
        self.quantity.clear()
        self.limit_price.clear()
        self.side = "BUY"
        self.order_type = "MARKET"
        self.quote = None
        self.error = None
        self.selector = None

    def set_symbol(self, symbol: str, ctx: AppContext, price: str = "") -> list[Command]:
        """Prefill the symbol and fetch its quote; `price` shows until the quote lands."""
        if self.state is TradeState.SUBMITTING:
            return []
        if self.state in (TradeState.SUCCESS, TradeState.ERROR):
            self.state = TradeState.IDLE
        self.mode = TradeMode.FORM
        self.symbol.value = symbol.strip().upper()
        self.focus = Field.SIDE
        commands = self._fetch_quote(ctx)
        if commands and price:
            self.quote = Quote(self.symbol.value, last=price)
        return commands

    def _fetch_quote(self, ctx: AppContext) -> list[Command]:
        symbol = self.symbol.value.strip().upper()
        self.quote = None
        self.error = None
        if not symbol:
            return []
        self.state = TradeState.FETCHING_QUOTE
        return [fetch_trade_quote(ctx, symbol, self.next_generation())]

    def _symbol_changed(self) -> None:
        # Drop the quote and any response still in flight for the old symbol.
        self.generation += 1
        self.fetching = False
        self.quote = None
        if self.state in (TradeState.FETCHING_QUOTE, TradeState.READY, TradeState.ERROR):
            self.state = TradeState.IDLE
    # endregion

    def refresh(self, ctx: AppContext) -> list[Command]:
        if self.symbol.value and self.state is not TradeState.SUBMITTING:
            return self._fetch_quote(ctx)
        return []

    # region Keys
    def handle_key(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        if self.selector is not None:
            return self._handle_selector(key, character, ctx)
        if self.state is TradeState.SUBMITTING:
            return IGNORED
        if self.mode is TradeMode.CONFIRM:
            return Outcome(self._handle_confirm(key, ctx))
        if key == "ctrl+n":
            self.reset()
            return Outcome()
        if self.state is TradeState.SUCCESS:
            if key == "enter":
                self.reset()
                return Outcome()
            return IGNORED
        if key in ("tab", "down"):
            self._cycle(1)
            return Outcome()
        if key in ("shift+tab", "up"):
            self._cycle(-1)
            return Outcome()
        if key == "escape":
            if self.focus in _TEXT_FIELDS:
                self.focus = Field.SIDE
                return Outcome()
            return IGNORED
        if key == "enter":
            return Outcome(self._handle_enter(ctx))
        if self.focus is Field.SIDE and key in ("left", "right", "space", "h", "l"):
            self.side = _toggle(SIDES, self.side)
            return Outcome()
        if self.focus is Field.ORDER_TYPE and key in ("left", "right", "space", "h", "l"):
            self.order_type = _toggle(ORDER_TYPES, self.order_type)
            return Outcome()
        if self.focus is Field.SYMBOL:
            return self._handle_symbol_key(key, character, ctx)
        if self.focus is Field.QUANTITY:
            self.quantity.feed(key, character)
            return Outcome()
        if self.focus is Field.LIMIT_PRICE:
            self.limit_price.feed(key, character)
            return Outcome()
        return IGNORED

    def _cycle(self, step: int) -> None:
        fields = self.fields
        idx = fields.index(self.focus) if self.focus in fields else 0
        self.focus = fields[(idx + step) % len(fields)]

    def _handle_symbol_key(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        if key == "ctrl+f":
            self._open_selector(SelectorMode.SEARCH, ctx)
            return Outcome()
        if not self.symbol.value and key in ("w", "p"):
            self._open_selector(SelectorMode.WATCHLIST if key == "w" else SelectorMode.PORTFOLIO, ctx)
            return Outcome()
        if self.symbol.feed(key, character):
            self._symbol_changed()
        return Outcome()

    def _open_selector(self, mode: SelectorMode, ctx: AppContext) -> None:
        self.selector = AssetSelector(View.TRADE)
        self.selector.open(mode, ctx)

    def _handle_selector(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        result = self.selector.handle_key(key, character, ctx)
        if result.cancelled:
            self.selector = None
            return Outcome()
        if result.selection is not None:
            self.selector = None
            selection = result.selection
            return Outcome(self.set_symbol(selection.symbol, ctx, selection.price))
        return Outcome(result.commands)

    def _handle_enter(self, ctx: AppContext) -> list[Command]:
        if self.focus is Field.SYMBOL and self.symbol.value.strip():
            self.focus = Field.SIDE
            return self._fetch_quote(ctx)
        if self.is_valid:
            self.mode = TradeMode.CONFIRM
        return []

    def _handle_confirm(self, key: str, ctx: AppContext) -> list[Command]:
        if key in ("n", "N", "escape"):
            self.mode = TradeMode.FORM
            return []
        if key not in ("y", "Y", "enter"):
            return []
        if not self.is_valid:
            self.mode = TradeMode.FORM
            return []
        request = OrderRequest(
            order_id=str(uuid.uuid4()),
            symbol=self.symbol.value.strip().upper(),
            side=self.side,
            order_type=self.order_type,
            quantity=self.quantity.value.strip(),
            limit_price=self.limit_price.value.strip() if self.order_type == "LIMIT" else "",
        )
        self.state = TradeState.SUBMITTING
        self.error = None
        return [place_order(ctx, request)]
    # endregion

    def handle_message(self, msg: object, ctx: AppContext) -> list[Command]:
        if isinstance(msg, m.TradeQuoteLoaded):
            if not self.is_current(msg.generation) or self.state is not TradeState.FETCHING_QUOTE:
                return []
            self.fetching = False
            self.quote = msg.quote
            if msg.quote is None or not msg.quote.ok:
                self.state = TradeState.ERROR
                self.error = LookupError(f"no quote for {self.symbol.value}")
            else:
                self.state = TradeState.READY
        elif isinstance(msg, m.TradeQuoteFailed):
            if not self.is_current(msg.generation) or self.state is not TradeState.FETCHING_QUOTE:
                return []
            self.fetching = False
            self.state = TradeState.ERROR
            self.error = msg.error
        elif isinstance(msg, m.OrderPlaced):
            self.state = TradeState.SUCCESS
            self.mode = TradeMode.FORM
            self.focus = Field.SIDE
            self.last_order_id = msg.order_id
            self.last_order_symbol = msg.symbol
        elif isinstance(msg, m.OrderPlaceFailed):
            self.state = TradeState.ERROR
            self.mode = TradeMode.FORM
            self.error = msg.error
        elif isinstance(msg, (m.InstrumentLoaded, m.InstrumentFailed)):
            if self.selector is not None:
                self.selector.handle_message(msg)
        return []

    def footer_hints(self) -> list[tuple[str, str]]:
        if self.selector is not None:
            return [("enter", "select"), ("esc", "cancel")]
        if self.mode is TradeMode.CONFIRM:
            return [("y", "submit"), ("n", "back")]
        if self.state is TradeState.SUCCESS:
            return [("ctrl+n", "new order")]
        hints = [("tab", "next field"), ("←→", "toggle"), ("enter", "quote/review"), ("ctrl+n", "reset")]
        if self.focus is Field.SYMBOL:
            hints.append(("ctrl+f", "find"))
        return hints

    # region Rendering
    def render(self) -> Text:
        if self.selector is not None:
            out = Text("Select symbol\n\n", style="bold")
            out.append_text(self.selector.render())
            return out
        out = Text("New order\n\n", style="bold")
        for field in self.fields:
            focused = field is self.focus and self.mode is TradeMode.FORM
            marker = "› " if focused else "  "
            out.append(marker, style="bold #2c82c9")
            out.append(f"{field.value:<12}", style="bold" if focused else MUTED_STYLE)
            out.append_text(self._field_value(field, focused))
            out.append("\n")
        out.append("\n")
        out.append_text(self._quote_line())
        cost = self.estimated_cost()
        out.append("\nEstimated cost  ", style=MUTED_STYLE)
        out.append(f"${_fmt_money(cost)}" if cost is not None else "-", style="bold")
        out.append("\n\n")
        out.append_text(self._status_line())
        return out

    def _field_value(self, field: Field, focused: bool) -> Text:
        if field is Field.SYMBOL:
            return self.symbol.render(focused)
        if field is Field.QUANTITY:
            return self.quantity.render(focused)
        if field is Field.LIMIT_PRICE:
            return self.limit_price.render(focused)
        if field is Field.SIDE:
            text = _side_text(self.side)
        else:
            text = Text(self.order_type, style="bold")
        if focused:
            text = Text("◂ ").append_text(text).append(" ▸")
        return text

    def _quote_line(self) -> Text:
        if self.state is TradeState.FETCHING_QUOTE and self.quote is None:
            return Text(f"Fetching quote for {self.symbol.value}...", style=MUTED_STYLE)
        if self.quote is None:
            return Text("No quote", style=MUTED_STYLE)
        quote = self.quote
        out = Text(f"{quote.symbol}  ", style="bold")
        out.append(f"last {_fmt_price(quote.last)}  bid {_fmt_price(quote.bid)}  ask {_fmt_price(quote.ask)}")
        out.append(f"  vol {_fmt_volume(quote.volume)}", style=MUTED_STYLE)
        return out

    def _status_line(self) -> Text:
        if self.mode is TradeMode.CONFIRM and self.state is not TradeState.SUBMITTING:
            out = Text("Confirm: ", style="bold yellow")
            out.append_text(_side_text(self.side))
            out.append(f" {self.quantity.value} {self.symbol.value} {self.order_type}", style="bold")
            if self.order_type == "LIMIT":
                out.append(f" @ {_fmt_price(self.limit_price.value)}", style="bold")
            out.append("  (y/n)", style="bold yellow")
            return out
        if self.state is TradeState.SUBMITTING:
            return Text("Submitting order...", style="bold yellow")
        if self.state is TradeState.SUCCESS:
            return Text(f"Order placed: {self.last_order_symbol} ({self.last_order_id})", style="bold green")
        if self.state is TradeState.ERROR and self.error is not None:
            return _error_line(self.error)
        if not self.is_valid:
            return Text("Enter symbol and quantity to review", style=MUTED_STYLE)
        return Text("Press enter to review order", style="green")
    # endregion
