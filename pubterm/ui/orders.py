"""Open orders view with cancel confirmation."""

from __future__ import annotations

from rich.text import Text

from ..models import Order
from . import messages as m
from .commands import AppContext, Command, cancel_order, fetch_orders
from .common import (
    MUTED_STYLE,
    Column,
    _clamp,
    _error_line,
    _fmt_price,
    _fmt_qty_raw,
    _fmt_timestamp,
    _move_cursor,
    _side_text,
    _table,
)
from .views import BaseView, IGNORED, Outcome, Phase

CANCEL_KEYS = ("c", "x", "d")

_COLUMNS = [
    Column("Symbol", 8),
    Column("Side", 5),
    Column("Type", 7),
    Column("Qty", 8, "right"),
    Column("Filled", 8, "right"),
    Column("Limit", 11, "right"),
    Column("Stop", 11, "right"),
    Column("Status", 17),
    Column("Created", 16),
]

_STATUS_STYLE = {
    "NEW": "bold #7fb4e0",
    "PENDING": "bold yellow",
    "PARTIALLY_FILLED": "bold #d7a0ff",
}


class OrdersView(BaseView):
    def __init__(self) -> None:
        super().__init__()
        self.orders: list[Order] = []
        self.cursor = 0
        self.canceling: Order | None = None
        self.note: Exception | None = None

    @property
    def captures_input(self) -> bool:
        return self.canceling is not None

    @property
    def selected(self) -> Order | None:
        if not self.orders:
            return None
        return self.orders[_clamp(self.cursor, len(self.orders))]

    def refresh(self, ctx: AppContext) -> list[Command]:
        if self.phase is Phase.ERROR:
            self.phase = Phase.LOADING
        return [fetch_orders(ctx, self.next_generation())]

    def poll(self, ctx: AppContext) -> list[Command]:
        return [fetch_orders(ctx, self.next_generation())]

    def handle_key(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        if self.canceling is not None:
            return Outcome(self._handle_confirm(key, ctx))
        if key in CANCEL_KEYS:
            order = self.selected
            if order is not None and order.cancellable:
                self.canceling = order
            return Outcome()
        moved = _move_cursor(key, self.cursor, len(self.orders))
        if moved is None:
            return IGNORED
        self.cursor = moved
        return Outcome()

    def _handle_confirm(self, key: str, ctx: AppContext) -> list[Command]:
        if key in ("n", "N", "escape"):
            self.canceling = None
            return []
        if key not in ("y", "Y"):
            return []
        order = self.canceling
        self.canceling = None
        # In-flight polls predate the removal.
        self.generation += 1
        self.fetching = False
        self.orders = [item for item in self.orders if item.order_id != order.order_id]
        self.cursor = _clamp(self.cursor, len(self.orders))
        return [cancel_order(ctx, order.order_id)]

    def handle_message(self, msg: object, ctx: AppContext) -> list[Command]:
        if isinstance(msg, m.OrdersLoaded):
            if not self.is_current(msg.generation):
                return []
            self.fetching = False
            self.orders = list(msg.orders)
            self.cursor = _clamp(self.cursor, len(self.orders))
            self.phase = Phase.LOADED
            self.error = None
        elif isinstance(msg, m.OrdersFailed):
            if self.is_current(msg.generation):
                self.fail(msg.error)
        elif isinstance(msg, m.OrderCancelled):
            self.note = None
            return [fetch_orders(ctx, self.next_generation())]
        elif isinstance(msg, m.OrderCancelFailed):
            self.note = msg.error
            return [fetch_orders(ctx, self.next_generation())]
        return []

    def footer_hints(self) -> list[tuple[str, str]]:
        if self.canceling is not None:
            return [("y", "cancel order"), ("n", "keep")]
        return [("↑↓", "move"), ("c/x/d", "cancel"), ("r", "refresh")]

    def render(self) -> Text:
        if self.phase is Phase.ERROR:
            out = _error_line(self.error or "unknown error")
            out.append("\npress r to retry", style=MUTED_STYLE)
            return out
        if self.phase is Phase.LOADING:
            return Text("Loading orders...", style=MUTED_STYLE)
        out = Text()
        if not self.orders:
            out.append("No open orders", style=MUTED_STYLE)
        else:
            rows = [
                [
                    Text(order.symbol, style="bold"),
                    _side_text(order.side),
                    order.type or "-",
                    _fmt_qty_raw(order.quantity),
                    _fmt_qty_raw(order.filled_quantity) if order.filled_quantity else "-",
                    _fmt_price(order.limit_price),
                    _fmt_price(order.stop_price),
                    Text(order.status or "-", style=_STATUS_STYLE.get(order.status.upper(), MUTED_STYLE)),
                    _fmt_timestamp(order.created_at),
                ]
                for order in self.orders
            ]
            out.append_text(_table(_COLUMNS, rows, cursor=self.cursor, height=self.visible_height))
        if self.note is not None:
            out.append("\n")
            out.append_text(_error_line(self.note, prefix="Cancel failed"))
        if self.canceling is not None:
            order = self.canceling
            out.append(
                f"\n\nCancel {order.side} {_fmt_qty_raw(order.quantity)} {order.symbol} ({order.order_id})? (y/n)",
                style="bold yellow",
            )
        return out
