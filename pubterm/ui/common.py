"""Shared UI helpers.

This module contains pure formatting helpers, the text-entry field and the
fixed-width table renderer used by every view. Keep it free of I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from rich.text import Text

from ..models import to_float

MIN_TABLE_HEIGHT = 3
CURSOR_STYLE = "bold #e6edf3 on #1c3348"
HEADER_STYLE = "bold #c6d4e1"
MUTED_STYLE = "grey58"
ERROR_STYLE = "bold red"
HINT_KEY_STYLE = "bold #7fb4e0"

# region Formatting Helpers
def _fmt_money(value: float) -> str:
    return f"{value:,.2f}"


def _fmt_qty(value: float) -> str:
    if value.is_integer():
        return str(int(value))
    return f"{value:.4f}".rstrip("0").rstrip(".")


def _fmt_price(raw: str) -> str:
    value = to_float(raw)
    if value is None:
        return "-"
    return f"${_fmt_money(value)}"


def _fmt_qty_raw(raw: str) -> str:
    value = to_float(raw)
    if value is None:
        return raw or "-"
    return _fmt_qty(value)


def _fmt_volume(raw: str) -> str:
    value = to_float(raw)
    if not value:
        return "-"
    return f"{int(value):,}"


def _fmt_timestamp(raw: str) -> str:
    if not raw:
        return "-"
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return raw[:16]
    return parsed.astimezone().strftime("%Y-%m-%d %H:%M")


def _pct_style(pct: float) -> str:
    if pct > 0:
        return "green"
    if pct < 0:
        return "red"
    return ""


def _gain_text(raw: str) -> Text:
    value = to_float(raw)
    if value is None:
        return Text("-", style=MUTED_STYLE)
    if value == 0:
        return Text("$0.00")
    sign = "+" if value > 0 else "-"
    return Text(f"{sign}${_fmt_money(abs(value))}", style=_pct_style(value))


def _pct_text(raw: str) -> Text:
    value = to_float(raw)
    if value is None:
        return Text("-", style=MUTED_STYLE)
    sign = "+" if value > 0 else ""
    return Text(f"{sign}{value:.2f}%", style=_pct_style(value))


def _side_text(side: str) -> Text:
    side = side.upper()
    if side == "BUY":
        return Text(side, style="bold green")
    if side == "SELL":
        return Text(side, style="bold red")
    return Text(side or "-")
# endregion


def _parse_positive(value: str) -> float | None:
    parsed = to_float(value.strip()) if value else None
    if parsed is None or parsed <= 0:
        return None
    return parsed


def _clamp(index: int, size: int) -> int:
    if size <= 0:
        return 0
    return max(0, min(index, size - 1))


def _move_cursor(key: str, cursor: int, size: int) -> int | None:
    """New cursor for a navigation key, or None when the key is not navigation."""
    if key in ("up", "k"):
        return _clamp(cursor - 1, size)
    if key in ("down", "j"):
        return _clamp(cursor + 1, size)
    if key == "home":
        return 0
    if key == "end":
        return _clamp(size - 1, size)
    return None


# region Text entry
@dataclass
class TextField:
    value: str = ""
    limit: int = 0
    placeholder: str = ""
    numeric: bool = False
    upper: bool = False

    def feed(self, key: str, character: str | None) -> bool:
        """Apply an editing key; returns True when the value changed."""
        if key == "backspace":
            if not self.value:
                return False
            self.value = self.value[:-1]
            return True
        if key == "ctrl+u":
            changed = bool(self.value)
            self.value = ""
            return changed
        if not character or len(character) != 1 or not character.isprintable():
            return False
        if character.isspace():
            return False
        if self.numeric:
            if character == ".":
                if "." in self.value:
                    return False
            elif not character.isdigit():
                return False
        if self.limit and len(self.value) >= self.limit:
            return False
        self.value += character.upper() if self.upper else character
        return True

    def clear(self) -> None:
        self.value = ""

    def render(self, focused: bool) -> Text:
        if not self.value and not focused:
            return Text(self.placeholder or "", style=MUTED_STYLE)
        text = Text(self.value, style="bold" if focused else "")
        if focused:
            text.append("▏", style="bold #2c82c9")
        return text
# endregion


# region Tables
@dataclass(frozen=True)
class Column:
    title: str
    width: int
    align: str = "left"


def _cell(value: Text | str, column: Column) -> Text:
    cell = value.copy() if isinstance(value, Text) else Text(str(value))
    cell.align(column.align, column.width)
    return cell


def _window_start(cursor: int | None, total: int, height: int) -> int:
    if cursor is None or total <= height:
        return 0
    return max(0, min(cursor - height + 1, total - height)) if cursor >= height else 0


def _table(
    columns: list[Column],
    rows: list[list[Text | str]],
    *,
    cursor: int | None = None,
    height: int = 10,
) -> Text:
    height = max(MIN_TABLE_HEIGHT, height)
    out = Text()
    header = Text(" ").join(_cell(Text(col.title, style=HEADER_STYLE), col) for col in columns)
    out.append_text(header)
    start = _window_start(cursor, len(rows), height)
    for idx in range(start, min(len(rows), start + height)):
        line = Text(" ").join(_cell(value, col) for value, col in zip(rows[idx], columns))
        if cursor is not None and idx == cursor:
            line.stylize(CURSOR_STYLE)
        out.append("\n")
        out.append_text(line)
    if len(rows) > height:
        out.append(f"\n{start + 1}-{min(len(rows), start + height)} of {len(rows)}", style=MUTED_STYLE)
    return out
# endregion


def _key_hints(hints: list[tuple[str, str]]) -> Text:
    out = Text()
    for idx, (key, label) in enumerate(hints):
        if idx:
            out.append("  ")
        out.append(key, style=HINT_KEY_STYLE)
        out.append(f" {label}", style=MUTED_STYLE)
    return out


def _error_line(error: Exception | str, *, prefix: str = "Error") -> Text:
    return Text(f"{prefix}: {error}", style=ERROR_STYLE)
