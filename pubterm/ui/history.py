"""Transaction history with paging and a detail panel."""

from __future__ import annotations

from rich.text import Text

from ..models import Transaction
from . import messages as m
from .commands import AppContext, Command, fetch_history
from .common import (
    MUTED_STYLE,
    Column,
    _clamp,
    _error_line,
    _fmt_price,
    _fmt_qty_raw,
    _fmt_timestamp,
    _gain_text,
    _move_cursor,
    _side_text,
    _table,
)
from .views import BaseView, IGNORED, Outcome, Phase

_COLUMNS = [
    Column("Date", 16),
    Column("Type", 12),
    Column("Symbol", 8),
    Column("Side", 5),
    Column("Qty", 9, "right"),
    Column("Net", 13, "right"),
    Column("Description", 30),
]

_DETAIL_FIELDS = (
    ("ID", "id"),
    ("Type", "type"),
    ("Sub-type", "sub_type"),
    ("Symbol", "symbol"),
    ("Security", "security_type"),
    ("Side", "side"),
    ("Direction", "direction"),
    ("Description", "description"),
)


class HistoryView(BaseView):
    def __init__(self) -> None:
        super().__init__()
        self.transactions: list[Transaction] = []
        self.next_token = ""
        self.cursor = 0
        self.detail = False
        self.loading_more = False
        self.note: Exception | None = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_token)

    @property
    def captures_input(self) -> bool:
        return self.detail

    @property
    def selected(self) -> Transaction | None:
        if not self.transactions:
            return None
        return self.transactions[_clamp(self.cursor, len(self.transactions))]

    def invalidate(self) -> None:
        super().invalidate()
        self.transactions = []
        self.next_token = ""
        self.cursor = 0
        self.detail = False
        self.loading_more = False

    def refresh(self, ctx: AppContext) -> list[Command]:
        if self.phase is Phase.ERROR:
            self.phase = Phase.LOADING
        self.loading_more = False
        self.note = None
        return [fetch_history(ctx, self.next_generation())]

    def load_more(self, ctx: AppContext) -> list[Command]:
        if not self.has_more or self.loading_more or self.phase is not Phase.LOADED:
            return []
        self.loading_more = True
        self.note = None
        return [fetch_history(ctx, self.next_generation(), next_token=self.next_token, append=True)]

    def handle_key(self, key: str, character: str | None, ctx: AppContext) -> Outcome:
        if self.detail:
            if key in ("escape", "enter", "q"):
                self.detail = False
                return Outcome()
            moved = _move_cursor(key, self.cursor, len(self.transactions))
            if moved is not None:
                self.cursor = moved
            return Outcome()
        if key == "m":
            return Outcome(self.load_more(ctx))
        if key == "enter":
            if self.selected is not None:
                self.detail = True
            return Outcome()
        moved = _move_cursor(key, self.cursor, len(self.transactions))
        if moved is None:
            return IGNORED
        self.cursor = moved
        return Outcome()

    def handle_message(self, msg: object, ctx: AppContext) -> list[Command]:
        if isinstance(msg, m.HistoryLoaded):
            if not self.is_current(msg.generation):
                return []
            self.fetching = False
            if msg.append:
                self.transactions.extend(msg.page.transactions)
            else:
                self.transactions = list(msg.page.transactions)
                self.cursor = _clamp(self.cursor, len(self.transactions))
            self.next_token = msg.page.next_token
            self.loading_more = False
            self.phase = Phase.LOADED
            self.error = None
        elif isinstance(msg, m.HistoryFailed):
            if not self.is_current(msg.generation):
                return []
            if msg.append:
                self.fetching = False
                self.loading_more = False
                self.note = msg.error
            else:
                self.fail(msg.error)
        return []

    def footer_hints(self) -> list[tuple[str, str]]:
        if self.detail:
            return [("↑↓", "prev/next"), ("esc", "close")]
        hints = [("↑↓", "move"), ("enter", "details")]
        if self.has_more:
            hints.append(("m", "load more"))
        hints.append(("r", "refresh"))
        return hints

    def render(self) -> Text:
        if self.phase is Phase.ERROR:
            out = _error_line(self.error or "unknown error")
            out.append("\npress r to retry", style=MUTED_STYLE)
            return out
        if self.phase is Phase.LOADING:
            return Text("Loading history...", style=MUTED_STYLE)
        if self.detail and self.selected is not None:
            return self._detail()
        out = Text()
        if not self.transactions:
            out.append("No transactions", style=MUTED_STYLE)
        else:
            rows = [
                [
                    _fmt_timestamp(tx.timestamp),
                    tx.sub_type or tx.type or "-",
                    Text(tx.symbol or "-", style="bold"),
                    _side_text(tx.side) if tx.side else "-",
                    _fmt_qty_raw(tx.quantity) if tx.quantity else "-",
                    _gain_text(tx.net_amount),
                    tx.description,
                ]
                for tx in self.transactions
            ]
            out.append_text(_table(_COLUMNS, rows, cursor=self.cursor, height=self.visible_height))
        out.append(f"\n{len(self.transactions)} transactions", style=MUTED_STYLE)
        if self.loading_more:
            out.append("  loading more...", style=MUTED_STYLE)
        elif self.has_more:
            out.append("  more available (m)", style=MUTED_STYLE)
        if self.note is not None:
            out.append("\n")
            out.append_text(_error_line(self.note, prefix="Load more failed"))
        return out

    def _detail(self) -> Text:
        tx = self.selected
        out = Text(f"Transaction {self.cursor + 1} of {len(self.transactions)}\n\n", style="bold")
        out.append(f"{'Date':<14}", style=MUTED_STYLE)
        out.append(f"{_fmt_timestamp(tx.timestamp)}\n")
        for label, attr in _DETAIL_FIELDS:
            value = getattr(tx, attr)
            if not value:
                continue
            out.append(f"{label:<14}", style=MUTED_STYLE)
            out.append(f"{value}\n")
        if tx.quantity:
            out.append(f"{'Quantity':<14}", style=MUTED_STYLE)
            out.append(f"{_fmt_qty_raw(tx.quantity)}\n")
        for label, raw in (("Principal", tx.principal_amount), ("Fees", tx.fees)):
            if raw:
                out.append(f"{label:<14}", style=MUTED_STYLE)
                out.append(f"{_fmt_price(raw)}\n")
        out.append(f"{'Net amount':<14}", style=MUTED_STYLE)
        out.append_text(_gain_text(tx.net_amount))
        return out
