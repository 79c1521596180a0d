"""Wire types decoded from API JSON payloads.

Numeric fields arrive as decimal strings and are kept verbatim; use
`to_float` at the point of display or arithmetic.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import math

OPEN_ORDER_STATUSES = frozenset({"NEW", "PARTIALLY_FILLED", "PENDING"})


def to_float(value: object) -> float | None:
    if value is None or value == "":
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(parsed) or not math.isfinite(parsed):
        return None
    return parsed


def _s(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def _obj(data: object) -> dict:
    return data if isinstance(data, dict) else {}


def _list(data: object) -> list:
    return data if isinstance(data, list) else []


@dataclass(frozen=True)
class Instrument:
    symbol: str
    type: str = "EQUITY"
    name: str = ""

    @classmethod
    def from_dict(cls, data: object) -> "Instrument":
        data = _obj(data)
        return cls(
            symbol=_s(data.get("symbol")),
            type=_s(data.get("type")) or "EQUITY",
            name=_s(data.get("name")),
        )


@dataclass(frozen=True)
class Account:
    account_id: str
    account_type: str = ""
    options_level: str = ""
    brokerage_account_type: str = ""
    trade_permissions: str = ""

    @classmethod
    def from_dict(cls, data: object) -> "Account":
        data = _obj(data)
        return cls(
            account_id=_s(data.get("accountId")),
            account_type=_s(data.get("accountType")),
            options_level=_s(data.get("optionsLevel")),
            brokerage_account_type=_s(data.get("brokerageAccountType")),
            trade_permissions=_s(data.get("tradePermissions")),
        )


@dataclass(frozen=True)
class BuyingPower:
    cash_only: str = ""
    buying_power: str = ""
    options: str = ""


@dataclass(frozen=True)
class EquityItem:
    type: str
    value: str
    percentage: str = ""


@dataclass(frozen=True)
class Position:
    instrument: Instrument
    quantity: str = ""
    current_value: str = ""
    percent_of_portfolio: str = ""
    last_price: str = ""
    day_gain_value: str = ""
    day_gain_pct: str = ""
    total_gain_value: str = ""
    total_gain_pct: str = ""
    total_cost: str = ""
    unit_cost: str = ""

    @property
    def symbol(self) -> str:
        return self.instrument.symbol

    @classmethod
    def from_dict(cls, data: object) -> "Position":
        data = _obj(data)
        last = _obj(data.get("lastPrice"))
        daily = _obj(data.get("positionDailyGain"))
        cost = _obj(data.get("costBasis"))
        return cls(
            instrument=Instrument.from_dict(data.get("instrument")),
            quantity=_s(data.get("quantity")),
            current_value=_s(data.get("currentValue")),
            percent_of_portfolio=_s(data.get("percentOfPortfolio")),
            last_price=_s(last.get("lastPrice")),
            day_gain_value=_s(daily.get("gainValue")),
            day_gain_pct=_s(daily.get("gainPercentage")),
            total_gain_value=_s(cost.get("gainValue")),
            total_gain_pct=_s(cost.get("gainPercentage")),
            total_cost=_s(cost.get("totalCost")),
            unit_cost=_s(cost.get("unitCost")),
        )


@dataclass(frozen=True)
class Order:
    order_id: str
    instrument: Instrument
    side: str = ""
    type: str = ""
    status: str = ""
    quantity: str = ""
    filled_quantity: str = ""
    limit_price: str = ""
    stop_price: str = ""
    created_at: str = ""

    @property
    def symbol(self) -> str:
        return self.instrument.symbol

    @property
    def cancellable(self) -> bool:
        return self.status.upper() in OPEN_ORDER_STATUSES

    @classmethod
    def from_dict(cls, data: object) -> "Order":
        data = _obj(data)
        return cls(
            order_id=_s(data.get("orderId")),
            instrument=Instrument.from_dict(data.get("instrument")),
            side=_s(data.get("side")),
            type=_s(data.get("type")),
            status=_s(data.get("status")),
            quantity=_s(data.get("quantity")),
            filled_quantity=_s(data.get("filledQuantity")),
            limit_price=_s(data.get("limitPrice")),
            stop_price=_s(data.get("stopPrice")),
            created_at=_s(data.get("createdAt")),
        )


@dataclass(frozen=True)
class Portfolio:
    account_id: str
    account_type: str = ""
    buying_power: BuyingPower = field(default_factory=BuyingPower)
    equity: tuple[EquityItem, ...] = ()
    positions: tuple[Position, ...] = ()
    orders: tuple[Order, ...] = ()

    @property
    def total_equity(self) -> float:
        return sum(to_float(item.value) or 0.0 for item in self.equity)

    @classmethod
    def from_dict(cls, data: object) -> "Portfolio":
        data = _obj(data)
        bp = _obj(data.get("buyingPower"))
        return cls(
            account_id=_s(data.get("accountId")),
            account_type=_s(data.get("accountType")),
            buying_power=BuyingPower(
                cash_only=_s(bp.get("cashOnlyBuyingPower")),
                buying_power=_s(bp.get("buyingPower")),
                options=_s(bp.get("optionsBuyingPower")),
            ),
            equity=tuple(
                EquityItem(
                    type=_s(_obj(item).get("type")),
                    value=_s(_obj(item).get("value")),
                    percentage=_s(_obj(item).get("percentageOfPortfolio")),
                )
                for item in _list(data.get("equity"))
            ),
            positions=tuple(Position.from_dict(item) for item in _list(data.get("positions"))),
            orders=tuple(Order.from_dict(item) for item in _list(data.get("orders"))),
        )


@dataclass(frozen=True)
class Quote:
    symbol: str
    type: str = "EQUITY"
    outcome: str = "SUCCESS"
    last: str = ""
    bid: str = ""
    ask: str = ""
    volume: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome in ("", "SUCCESS")

    @classmethod
    def from_dict(cls, data: object) -> "Quote":
        data = _obj(data)
        instrument = Instrument.from_dict(data.get("instrument"))
        return cls(
            symbol=instrument.symbol,
            type=instrument.type,
            outcome=_s(data.get("outcome")),
            last=_s(data.get("last")),
            bid=_s(data.get("bid")),
            ask=_s(data.get("ask")),
            volume=_s(data.get("volume")),
        )


@dataclass(frozen=True)
class Transaction:
    id: str
    timestamp: str = ""
    type: str = ""
    sub_type: str = ""
    symbol: str = ""
    security_type: str = ""
    side: str = ""
    description: str = ""
    net_amount: str = ""
    principal_amount: str = ""
    quantity: str = ""
    direction: str = ""
    fees: str = ""

    @classmethod
    def from_dict(cls, data: object) -> "Transaction":
        data = _obj(data)
        return cls(
            id=_s(data.get("id")),
            timestamp=_s(data.get("timestamp")),
            type=_s(data.get("type")),
            sub_type=_s(data.get("subType")),
            symbol=_s(data.get("symbol")),
            security_type=_s(data.get("securityType")),
            side=_s(data.get("side")),
            description=_s(data.get("description")),
            net_amount=_s(data.get("netAmount")),
            principal_amount=_s(data.get("principalAmount")),
            quantity=_s(data.get("quantity")),
            direction=_s(data.get("direction")),
            fees=_s(data.get("fees")),
        )


@dataclass(frozen=True)
class HistoryPage:
    transactions: tuple[Transaction, ...]
    next_token: str = ""

    @classmethod
    def from_dict(cls, data: object) -> "HistoryPage":
        data = _obj(data)
        return cls(
            transactions=tuple(Transaction.from_dict(item) for item in _list(data.get("transactions"))),
            next_token=_s(data.get("nextToken")),
        )


def strike_from_osi(osi_symbol: str) -> float | None:
    """Strike from an OSI option symbol: trailing 8 digits in thousandths."""
    tail = osi_symbol.strip()[-8:]
    if len(tail) != 8 or not tail.isdigit():
        return None
    return int(tail) / 1000.0


@dataclass(frozen=True)
class Greeks:
    delta: str = ""
    gamma: str = ""
    theta: str = ""
    vega: str = ""
    implied_volatility: str = ""


@dataclass(frozen=True)
class OptionQuote:
    symbol: str
    bid: str = ""
    ask: str = ""
    last: str = ""
    volume: str = ""
    open_interest: str = ""

    @property
    def strike(self) -> float | None:
        return strike_from_osi(self.symbol)

    @classmethod
    def from_dict(cls, data: object) -> "OptionQuote":
        data = _obj(data)
        return cls(
            symbol=Instrument.from_dict(data.get("instrument")).symbol,
            bid=_s(data.get("bid")),
            ask=_s(data.get("ask")),
            last=_s(data.get("last")),
            volume=_s(data.get("volume")),
            open_interest=_s(data.get("openInterest")),
        )


@dataclass(frozen=True)
class OptionChain:
    base_symbol: str
    calls: tuple[OptionQuote, ...] = ()
    puts: tuple[OptionQuote, ...] = ()

    @classmethod
    def from_dict(cls, data: object) -> "OptionChain":
        data = _obj(data)
        return cls(
            base_symbol=_s(data.get("baseSymbol")),
            calls=tuple(OptionQuote.from_dict(item) for item in _list(data.get("calls"))),
            puts=tuple(OptionQuote.from_dict(item) for item in _list(data.get("puts"))),
        )


@dataclass(frozen=True)
class OptionExpirations:
    base_symbol: str
    expirations: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: object) -> "OptionExpirations":
        data = _obj(data)
        return cls(
            base_symbol=_s(data.get("baseSymbol")),
            expirations=tuple(_s(item) for item in _list(data.get("expirations"))),
        )


def greeks_from_dict(data: object) -> dict[str, Greeks]:
    out: dict[str, Greeks] = {}
    for item in _list(_obj(data).get("greeks")):
        item = _obj(item)
        values = _obj(item.get("greeks"))
        symbol = _s(item.get("symbol"))
        if not symbol:
            continue
        out[symbol] = Greeks(
            delta=_s(values.get("delta")),
            gamma=_s(values.get("gamma")),
            theta=_s(values.get("theta")),
            vega=_s(values.get("vega")),
            implied_volatility=_s(values.get("impliedVolatility")),
        )
    return out


@dataclass(frozen=True)
class InstrumentInfo:
    symbol: str
    type: str = "EQUITY"
    trading: str = ""
    options_trading: str = ""

    @property
    def options_enabled(self) -> bool:
        return self.options_trading.upper() == "ENABLED"

    @classmethod
    def from_dict(cls, data: object) -> "InstrumentInfo":
        data = _obj(data)
        instrument = Instrument.from_dict(data.get("instrument"))
        return cls(
            symbol=instrument.symbol,
            type=instrument.type,
            trading=_s(data.get("trading")),
            options_trading=_s(data.get("optionTrading")),
        )


@dataclass(frozen=True)
class OrderRequest:
    order_id: str
    symbol: str
    side: str
    order_type: str
    quantity: str
    limit_price: str = ""
    time_in_force: str = "DAY"

    def to_dict(self) -> dict:
        body: dict = {
            "orderId": self.order_id,
            "instrument": {"symbol": self.symbol, "type": "EQUITY"},
            "orderSide": self.side,
            "orderType": self.order_type,
            "expiration": {"timeInForce": self.time_in_force},
            "quantity": self.quantity,
        }
        if self.order_type == "LIMIT" and self.limit_price:
            body["limitPrice"] = self.limit_price
        return body
