"""Command values and the constructors that build them.

Commands describe work; `CommandRunner` in orchestrator.py performs it.
Every constructor reads the selected account from the context passed in.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Union
from urllib.parse import quote as urlquote

from ..config import PubConfig, UIConfig
from ..errors import ConfigurationError
from ..models import (
    Account,
    BuyingPower,
    HistoryPage,
    InstrumentInfo,
    OptionChain,
    OptionExpirations,
    Order,
    OrderRequest,
    Portfolio,
    Position,
    Quote,
    greeks_from_dict,
)
from . import messages as m
from .views import View

HISTORY_PAGE_SIZE = 50


@dataclass
class AppContext:
    config: PubConfig
    ui_config: UIConfig
    account_id: str | None = None
    accounts: tuple[Account, ...] = ()
    watchlist: tuple[str, ...] = ()
    watch_quotes: dict[str, Quote] = field(default_factory=dict)
    positions: tuple[Position, ...] = ()
    buying_power: BuyingPower | None = None


# region Command values
@dataclass(frozen=True)
class ApiCommand:
    method: str
    path: str
    on_success: Callable[[object], object]
    on_error: Callable[[Exception], object]
    body: dict | None = None
    params: tuple[tuple[str, str], ...] | None = None


@dataclass(frozen=True)
class SaveWatchlist:
    symbols: tuple[str, ...]


@dataclass(frozen=True)
class ScheduleTick:
    delay: float


@dataclass(frozen=True)
class Deliver:
    message: object


@dataclass(frozen=True)
class Quit:
    pass


Command = Union[ApiCommand, SaveWatchlist, ScheduleTick, Deliver, Quit]
# endregion


def _no_account() -> ConfigurationError:
    return ConfigurationError("no account selected; press 'a' to pick one or set account_uuid")


def _first_quote(data: object, symbol: str) -> Quote | None:
    quotes = _quotes(data)
    for quote in quotes:
        if quote.symbol == symbol:
            return quote
    return quotes[0] if quotes else None


def _quotes(data: object) -> tuple[Quote, ...]:
    raw = data.get("quotes") if isinstance(data, dict) else None
    return tuple(Quote.from_dict(item) for item in raw or [])


def _quotes_body(symbols: list[str] | tuple[str, ...]) -> dict:
    return {"instruments": [{"symbol": symbol, "type": "EQUITY"} for symbol in symbols]}


def fetch_accounts(ctx: AppContext) -> Command:
    def _ok(data: object) -> m.AccountsLoaded:
        raw = data.get("accounts") if isinstance(data, dict) else None
        return m.AccountsLoaded(tuple(Account.from_dict(item) for item in raw or []))

    return ApiCommand("GET", "/userapigateway/trading/account", _ok, m.AccountsFailed)


def fetch_portfolio(ctx: AppContext, generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.PortfolioFailed(_no_account(), generation))
    return ApiCommand(
        "GET",
        f"/userapigateway/trading/{ctx.account_id}/portfolio/v2",
        lambda data: m.PortfolioLoaded(Portfolio.from_dict(data), generation),
        lambda exc: m.PortfolioFailed(exc, generation),
    )


def fetch_orders(ctx: AppContext, generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.OrdersFailed(_no_account(), generation))
    return ApiCommand(
        "GET",
        f"/userapigateway/trading/{ctx.account_id}/portfolio/v2",
        lambda data: m.OrdersLoaded(Portfolio.from_dict(data).orders, generation),
        lambda exc: m.OrdersFailed(exc, generation),
    )


def fetch_watchlist_quotes(ctx: AppContext, symbols: list[str], generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.WatchlistQuotesFailed(_no_account(), generation))
    return ApiCommand(
        "POST",
        f"/userapigateway/marketdata/{ctx.account_id}/quotes",
        lambda data: m.WatchlistQuotesLoaded(_quotes(data), generation),
        lambda exc: m.WatchlistQuotesFailed(exc, generation),
        body=_quotes_body(symbols),
    )


def fetch_trade_quote(ctx: AppContext, symbol: str, generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.TradeQuoteFailed(_no_account(), generation))
    return ApiCommand(
        "POST",
        f"/userapigateway/marketdata/{ctx.account_id}/quotes",
        lambda data: m.TradeQuoteLoaded(_first_quote(data, symbol), generation),
        lambda exc: m.TradeQuoteFailed(exc, generation),
        body=_quotes_body([symbol]),
    )


def fetch_underlying_quote(ctx: AppContext, symbol: str, generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.UnderlyingQuoteFailed(_no_account(), generation))
    return ApiCommand(
        "POST",
        f"/userapigateway/marketdata/{ctx.account_id}/quotes",
        lambda data: m.UnderlyingQuoteLoaded(_first_quote(data, symbol), generation),
        lambda exc: m.UnderlyingQuoteFailed(exc, generation),
        body=_quotes_body([symbol]),
    )


def place_order(ctx: AppContext, request: OrderRequest) -> Command:
    if not ctx.account_id:
        return Deliver(m.OrderPlaceFailed(_no_account()))

    def _ok(data: object) -> m.OrderPlaced:
        order_id = data.get("orderId") if isinstance(data, dict) else None
        return m.OrderPlaced(str(order_id or request.order_id), request.symbol)

    return ApiCommand(
        "POST",
        f"/userapigateway/trading/{ctx.account_id}/order",
        _ok,
        m.OrderPlaceFailed,
        body=request.to_dict(),
    )


def fetch_order(ctx: AppContext, order_id: str) -> Command:
    if not ctx.account_id:
        return Deliver(m.OrderFailed(order_id, _no_account()))
    return ApiCommand(
        "GET",
        f"/userapigateway/trading/{ctx.account_id}/order/{urlquote(order_id, safe='')}",
        lambda data: m.OrderLoaded(Order.from_dict(data)),
        lambda exc: m.OrderFailed(order_id, exc),
    )


def cancel_order(ctx: AppContext, order_id: str) -> Command:
    if not ctx.account_id:
        return Deliver(m.OrderCancelFailed(order_id, _no_account()))
    return ApiCommand(
        "DELETE",
        f"/userapigateway/trading/{ctx.account_id}/order/{urlquote(order_id, safe='')}",
        lambda _data: m.OrderCancelled(order_id),
        lambda exc: m.OrderCancelFailed(order_id, exc),
    )


def fetch_history(ctx: AppContext, generation: int, *, next_token: str = "", append: bool = False) -> Command:
    if not ctx.account_id:
        return Deliver(m.HistoryFailed(_no_account(), append, generation))
    params = [("pageSize", str(HISTORY_PAGE_SIZE))]
    if next_token:
        params.append(("nextToken", next_token))
    return ApiCommand(
        "GET",
        f"/userapigateway/trading/{ctx.account_id}/history",
        lambda data: m.HistoryLoaded(HistoryPage.from_dict(data), append, generation),
        lambda exc: m.HistoryFailed(exc, append, generation),
        params=tuple(params),
    )


def fetch_expirations(ctx: AppContext, symbol: str, generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.ExpirationsFailed(_no_account(), generation))
    return ApiCommand(
        "POST",
        f"/userapigateway/marketdata/{ctx.account_id}/option-expirations",
        lambda data: m.ExpirationsLoaded(OptionExpirations.from_dict(data), generation),
        lambda exc: m.ExpirationsFailed(exc, generation),
        body={"instrument": {"symbol": symbol, "type": "EQUITY"}},
    )


def fetch_chain(ctx: AppContext, symbol: str, expiration: str, generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.ChainFailed(_no_account(), generation))
    return ApiCommand(
        "POST",
        f"/userapigateway/marketdata/{ctx.account_id}/option-chain",
        lambda data: m.ChainLoaded(OptionChain.from_dict(data), generation),
        lambda exc: m.ChainFailed(exc, generation),
        body={"instrument": {"symbol": symbol, "type": "EQUITY"}, "expirationDate": expiration},
    )


def fetch_greeks(ctx: AppContext, osi_symbols: list[str], generation: int) -> Command:
    if not ctx.account_id:
        return Deliver(m.GreeksFailed(_no_account(), generation))
    return ApiCommand(
        "GET",
        f"/userapigateway/option-details/{ctx.account_id}/greeks",
        lambda data: m.GreeksLoaded(greeks_from_dict(data), generation),
        lambda exc: m.GreeksFailed(exc, generation),
        params=tuple(("osiSymbols", symbol) for symbol in osi_symbols),
    )


def lookup_instrument(ctx: AppContext, owner: View, symbol: str) -> Command:
    return ApiCommand(
        "GET",
        f"/userapigateway/trading/instruments/{urlquote(symbol, safe='')}/EQUITY",
        lambda data: m.InstrumentLoaded(owner, symbol, InstrumentInfo.from_dict(data)),
        lambda exc: m.InstrumentFailed(owner, symbol, exc),
    )


def save_watchlist(symbols: list[str]) -> Command:
    return SaveWatchlist(tuple(symbols))
