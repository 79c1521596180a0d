"""Result and event messages consumed by the dispatcher.

Every fetch result carries the generation of the command that produced it so
the owning view can drop results that were superseded.
"""
from __future__ import annotations

from dataclasses import dataclass

from ..models import (
    Account,
    Greeks,
    HistoryPage,
    InstrumentInfo,
    OptionChain,
    OptionExpirations,
    Order,
    Portfolio,
    Quote,
)
from .views import View


@dataclass(frozen=True)
class Tick:
    pass


# region Accounts
@dataclass(frozen=True)
class AccountsLoaded:
    accounts: tuple[Account, ...]


@dataclass(frozen=True)
class AccountsFailed:
    error: Exception
# endregion


# region Portfolio
@dataclass(frozen=True)
class PortfolioLoaded:
    portfolio: Portfolio
    generation: int = 0


@dataclass(frozen=True)
class PortfolioFailed:
    error: Exception
    generation: int = 0
# endregion


# region Watchlist
@dataclass(frozen=True)
class WatchlistQuotesLoaded:
    quotes: tuple[Quote, ...]
    generation: int = 0


@dataclass(frozen=True)
class WatchlistQuotesFailed:
    error: Exception
    generation: int = 0


@dataclass(frozen=True)
class WatchlistSaved:
    symbols: tuple[str, ...]


@dataclass(frozen=True)
class WatchlistSaveFailed:
    error: Exception
# endregion


# region Orders
@dataclass(frozen=True)
class OrdersLoaded:
    orders: tuple[Order, ...]
    generation: int = 0


@dataclass(frozen=True)
class OrdersFailed:
    error: Exception
    generation: int = 0


@dataclass(frozen=True)
class OrderCancelled:
    order_id: str


@dataclass(frozen=True)
class OrderLoaded:
    order: Order


@dataclass(frozen=True)
class OrderFailed:
    order_id: str
    error: Exception


@dataclass(frozen=True)
class OrderCancelFailed:
    order_id: str
    error: Exception
# endregion


# region Trade
@dataclass(frozen=True)
class TradeQuoteLoaded:
    quote: Quote | None
    generation: int = 0


@dataclass(frozen=True)
class TradeQuoteFailed:
    error: Exception
    generation: int = 0


@dataclass(frozen=True)
class OrderPlaced:
    order_id: str
    symbol: str


@dataclass(frozen=True)
class OrderPlaceFailed:
    error: Exception
# endregion


# region Options
@dataclass(frozen=True)
class ExpirationsLoaded:
    expirations: OptionExpirations
    generation: int = 0


@dataclass(frozen=True)
class ExpirationsFailed:
    error: Exception
    generation: int = 0


@dataclass(frozen=True)
class UnderlyingQuoteLoaded:
    quote: Quote | None
    generation: int = 0


@dataclass(frozen=True)
class UnderlyingQuoteFailed:
    error: Exception
    generation: int = 0


@dataclass(frozen=True)
class ChainLoaded:
    chain: OptionChain
    generation: int = 0


@dataclass(frozen=True)
class ChainFailed:
    error: Exception
    generation: int = 0


@dataclass(frozen=True)
class GreeksLoaded:
    greeks: dict[str, Greeks]
    generation: int = 0


@dataclass(frozen=True)
class GreeksFailed:
    error: Exception
    generation: int = 0
# endregion


# region History
@dataclass(frozen=True)
class HistoryLoaded:
    page: HistoryPage
    append: bool = False
    generation: int = 0


@dataclass(frozen=True)
class HistoryFailed:
    error: Exception
    append: bool = False
    generation: int = 0
# endregion


# region Asset selector
@dataclass(frozen=True)
class InstrumentLoaded:
    owner: View
    symbol: str
    info: InstrumentInfo


@dataclass(frozen=True)
class InstrumentFailed:
    owner: View
    symbol: str
    error: Exception
# endregion
