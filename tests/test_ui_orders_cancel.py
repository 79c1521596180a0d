from __future__ import annotations

import pytest

from pubterm.config import PubConfig, UIConfig
from pubterm.errors import APIError
from pubterm.models import Instrument, Order
from pubterm.ui import messages as m
from pubterm.ui.commands import ApiCommand, AppContext
from pubterm.ui.orders import OrdersView
from pubterm.ui.views import Phase


def _ctx() -> AppContext:
    return AppContext(config=PubConfig(), ui_config=UIConfig(), account_id="acct-1")


def _order(order_id: str, status: str) -> Order:
    return Order(order_id=order_id, instrument=Instrument("AAPL"), side="BUY", type="LIMIT", status=status, quantity="1")


def _loaded(*orders: Order) -> OrdersView:
    view = OrdersView()
    view.handle_message(m.OrdersLoaded(tuple(orders), view.next_generation()), _ctx())
    return view


@pytest.mark.parametrize(
    "status,offered",
    [
        ("NEW", True),
        ("PARTIALLY_FILLED", True),
        ("PENDING", True),
        ("FILLED", False),
        ("CANCELLED", False),
        ("REJECTED", False),
    ],
)
def test_cancel_offered_only_for_open_statuses(status: str, offered: bool) -> None:
    view = _loaded(_order("o1", status))
    view.handle_key("c", "c", _ctx())
    assert (view.canceling is not None) is offered
    assert view.captures_input is offered


def test_confirmed_cancel_removes_row_and_issues_delete() -> None:
    view = _loaded(_order("o1", "NEW"), _order("o2", "NEW"))
    view.handle_key("x", "x", _ctx())
    outcome = view.handle_key("y", "y", _ctx())
    assert [order.order_id for order in view.orders] == ["o2"]
    assert len(outcome.commands) == 1
    command = outcome.commands[0]
    assert isinstance(command, ApiCommand)
    assert command.method == "DELETE"
    assert command.path == "/userapigateway/trading/acct-1/order/o1"


def test_declined_cancel_keeps_row() -> None:
    view = _loaded(_order("o1", "NEW"))
    view.handle_key("d", "d", _ctx())
    outcome = view.handle_key("escape", None, _ctx())
    assert outcome.commands == []
    assert view.canceling is None
    assert len(view.orders) == 1


def test_cancel_result_triggers_refetch() -> None:
    view = _loaded(_order("o1", "NEW"))
    before = view.generation
    commands = view.handle_message(m.OrderCancelled("o1"), _ctx())
    assert len(commands) == 1
    assert view.generation == before + 1


def test_cancel_failure_is_noted_and_refetched() -> None:
    view = _loaded(_order("o1", "NEW"))
    commands = view.handle_message(m.OrderCancelFailed("o1", APIError(400, "too late")), _ctx())
    assert len(commands) == 1
    assert "too late" in view.render().plain


def test_stale_orders_result_is_dropped() -> None:
    view = OrdersView()
    first = view.next_generation()
    second = view.next_generation()
    view.handle_message(m.OrdersLoaded((_order("old", "NEW"),), first), _ctx())
    assert view.phase is Phase.LOADING
    view.handle_message(m.OrdersLoaded((_order("new", "NEW"),), second), _ctx())
    assert [order.order_id for order in view.orders] == ["new"]
    assert view.phase is Phase.LOADED


def test_poll_sent_before_cancel_does_not_restore_row() -> None:
    ctx = _ctx()
    view = _loaded(_order("o-1", "NEW"))
    poll_generation = view.generation + 1
    view.poll(ctx)
    view.handle_key("c", "c", ctx)
    view.handle_key("y", "y", ctx)
    view.handle_message(m.OrdersLoaded((_order("o-1", "NEW"),), poll_generation), ctx)
    assert view.orders == []
    assert view.canceling is None
