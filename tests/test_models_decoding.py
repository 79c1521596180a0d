from __future__ import annotations

from pubterm.models import (
    HistoryPage,
    InstrumentInfo,
    Order,
    Portfolio,
    greeks_from_dict,
    to_float,
)


def test_to_float_rejects_blank_and_non_finite() -> None:
    assert to_float("12.5") == 12.5
    assert to_float("") is None
    assert to_float(None) is None
    assert to_float("nan") is None
    assert to_float("inf") is None
    assert to_float("abc") is None


def test_portfolio_decodes_nested_payload() -> None:
    portfolio = Portfolio.from_dict(
        {
            "accountId": "acct-1",
            "buyingPower": {"buyingPower": "1000.00", "optionsBuyingPower": "500.00"},
            "equity": [{"type": "CASH", "value": "100.00"}, {"type": "STOCK", "value": "900.50"}],
            "positions": [
                {
                    "instrument": {"symbol": "AAPL", "type": "EQUITY"},
                    "quantity": "3",
                    "lastPrice": {"lastPrice": "190.00"},
                    "positionDailyGain": {"gainValue": "1.20"},
                    "costBasis": {"gainValue": "30.00", "unitCost": "180.00"},
                }
            ],
            "orders": [{"orderId": "o1", "instrument": {"symbol": "MSFT"}, "status": "NEW"}],
        }
    )
    assert portfolio.total_equity == 1000.5
    assert portfolio.buying_power.options == "500.00"
    position = portfolio.positions[0]
    assert (position.symbol, position.last_price, position.day_gain_value, position.unit_cost) == (
        "AAPL",
        "190.00",
        "1.20",
        "180.00",
    )
    assert portfolio.orders[0].cancellable


def test_decoders_tolerate_missing_fields() -> None:
    assert Portfolio.from_dict(None).positions == ()
    assert Order.from_dict({"orderId": "o1"}).cancellable is False
    assert HistoryPage.from_dict({"transactions": None}).transactions == ()


def test_history_page_keeps_next_token() -> None:
    page = HistoryPage.from_dict({"transactions": [{"id": "t1", "netAmount": "-5.00"}], "nextToken": "abc"})
    assert page.next_token == "abc"
    assert page.transactions[0].net_amount == "-5.00"


def test_greeks_keyed_by_symbol() -> None:
    greeks = greeks_from_dict(
        {"greeks": [{"symbol": "AAPL250117C00175000", "greeks": {"delta": "0.52", "impliedVolatility": "0.31"}}, {}]}
    )
    assert list(greeks) == ["AAPL250117C00175000"]
    assert greeks["AAPL250117C00175000"].implied_volatility == "0.31"


def test_instrument_options_flag() -> None:
    info = InstrumentInfo.from_dict({"instrument": {"symbol": "AAPL", "type": "EQUITY"}, "optionTrading": "ENABLED"})
    assert info.options_enabled
    assert not InstrumentInfo.from_dict({"instrument": {"symbol": "X"}}).options_enabled
