"""View identifiers and the interface every view state machine implements."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from rich.text import Text

if TYPE_CHECKING:
    from .commands import AppContext, Command


class View(Enum):
    PORTFOLIO = "Portfolio"
    WATCHLIST = "Watchlist"
    ORDERS = "Orders"
    TRADE = "Trade"
    OPTIONS = "Options"
    HISTORY = "History"

    @property
    def label(self) -> str:
        return self.value


VIEW_ORDER: tuple[View, ...] = tuple(View)
VIEW_BY_DIGIT: dict[str, View] = {str(idx + 1): view for idx, view in enumerate(VIEW_ORDER)}


class Phase(Enum):
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass
class Outcome:
    """What a view did with a key."""

    commands: list["Command"] = field(default_factory=list)
    consumed: bool = True
    focus_toolbar: bool = False
    trade_symbol: str | None = None


IGNORED = Outcome(consumed=False)


class ViewModel(Protocol):
    @property
    def captures_input(self) -> bool: ...

    @property
    def is_fetching(self) -> bool: ...

    def claims_key(self, key: str) -> bool: ...

    def handle_key(self, key: str, character: str | None, ctx: "AppContext") -> Outcome: ...

    def handle_message(self, msg: object, ctx: "AppContext") -> list["Command"]: ...

    def activate(self, ctx: "AppContext") -> list["Command"]: ...

    def refresh(self, ctx: "AppContext") -> list["Command"]: ...

    def poll(self, ctx: "AppContext") -> list["Command"]: ...

    def set_visible_height(self, rows: int) -> None: ...

    def render(self) -> Text: ...

    def footer_hints(self) -> list[tuple[str, str]]: ...


class BaseView:
    """Defaults shared by the view state machines."""

    def __init__(self) -> None:
        self.phase = Phase.LOADING
        self.error: Exception | None = None
        self.generation = 0
        self.fetching = False
        self.requested = False
        self.visible_height = 10

    @property
    def captures_input(self) -> bool:
        return False

    @property
    def is_fetching(self) -> bool:
        return self.fetching

    def claims_key(self, key: str) -> bool:
        return False

    def next_generation(self) -> int:
        self.generation += 1
        self.fetching = True
        self.requested = True
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def invalidate(self) -> None:
        """Drop in-flight results and refetch on the next activation."""
        self.generation += 1
        self.fetching = False
        self.requested = False
        self.phase = Phase.LOADING
        self.error = None

    def fail(self, error: Exception) -> None:
        self.fetching = False
        self.phase = Phase.ERROR
        self.error = error

    def activate(self, ctx: "AppContext") -> list["Command"]:
        if self.requested or self.fetching:
            return []
        return self.refresh(ctx)

    def refresh(self, ctx: "AppContext") -> list["Command"]:
        return []

    def poll(self, ctx: "AppContext") -> list["Command"]:
        return []

    def set_visible_height(self, rows: int) -> None:
        self.visible_height = max(3, int(rows))

    def footer_hints(self) -> list[tuple[str, str]]:
        return []
