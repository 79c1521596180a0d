"""Non-interactive subcommands: one request each, printed as a table or JSON."""
from __future__ import annotations

import argparse
import asyncio
from dataclasses import asdict, dataclass, is_dataclass, replace
import json
import logging
from typing import Awaitable, Callable
import uuid

import httpx
from rich.console import Console, Group
from rich.prompt import Confirm
from rich.table import Table

from .auth import TokenManager
from .client import PublicClient, new_http_client
from .config import PubConfig, UIConfig
from .errors import ConfigurationError, UsageError
from .keystore import SecretStore, default_store
from .models import HistoryPage, OrderRequest, Portfolio, to_float
from .ui.commands import (
    AppContext,
    Command,
    cancel_order,
    fetch_accounts,
    fetch_chain,
    fetch_expirations,
    fetch_greeks,
    fetch_history,
    fetch_order,
    fetch_orders,
    fetch_portfolio,
    fetch_watchlist_quotes,
    place_order,
)
from .ui.common import _fmt_money, _fmt_price, _fmt_qty_raw, _fmt_timestamp, _fmt_volume
from .ui.orchestrator import CommandRunner
from .ui.trade import is_valid_order

log = logging.getLogger(__name__)

TIME_IN_FORCE = ("DAY", "GTC")
NUMERIC_COLUMNS = frozenset(
    {"Qty", "Filled", "Last", "Bid", "Ask", "Volume", "Value", "Day gain", "Total gain", "Cost", "Limit", "Amount"}
    | {"Call bid", "Call ask", "Strike", "Put bid", "Put ask", "Delta", "Gamma", "Theta", "Vega", "IV"}
)


@dataclass
class Session:
    """What a subcommand needs: the context, a runner and somewhere to print."""

    ctx: AppContext
    runner: CommandRunner
    console: Console
    as_json: bool = False
    confirm: Callable[[str], bool] = lambda prompt: Confirm.ask(prompt, default=False)

    async def run(self, command: Command) -> object:
        msg = await self.runner.execute(command)
        error = getattr(msg, "error", None)
        if isinstance(error, Exception):
            raise error
        return msg

    def emit(self, payload: object, render: Callable[[object], object]) -> None:
        if self.as_json:
            self.console.print_json(json.dumps(_plain(payload)))
        else:
            self.console.print(render(payload))


def _plain(value: object) -> object:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def _table(title: str, *columns: str) -> Table:
    table = Table(title=title, title_justify="left", header_style="bold")
    for name in columns:
        table.add_column(name, justify="right" if name in NUMERIC_COLUMNS else "left")
    return table


# region Account
async def cmd_account(args: argparse.Namespace, session: Session) -> None:
    msg = await session.run(fetch_accounts(session.ctx))

    def render(accounts) -> Table:
        table = _table("Accounts", "Account", "Type", "Options level", "Brokerage", "Permissions")
        for acct in accounts:
            marker = " *" if acct.account_id == session.ctx.account_id else ""
            table.add_row(
                acct.account_id + marker,
                acct.account_type or "-",
                acct.options_level or "-",
                acct.brokerage_account_type or "-",
                acct.trade_permissions or "-",
            )
        return table

    session.emit(msg.accounts, render)


def _render_portfolio(portfolio: Portfolio) -> Group:
    power = portfolio.buying_power
    summary = Table.grid(padding=(0, 2))
    summary.add_row("Account", portfolio.account_id)
    summary.add_row("Total equity", f"${_fmt_money(portfolio.total_equity)}")
    summary.add_row("Buying power", _fmt_price(power.buying_power))
    summary.add_row("Cash", _fmt_price(power.cash_only))
    summary.add_row("Options buying power", _fmt_price(power.options))
    positions = _table("Positions", "Symbol", "Qty", "Last", "Value", "Day gain", "Total gain", "Cost")
    for pos in portfolio.positions:
        positions.add_row(
            pos.symbol,
            _fmt_qty_raw(pos.quantity),
            _fmt_price(pos.last_price),
            _fmt_price(pos.current_value),
            _fmt_price(pos.day_gain_value),
            _fmt_price(pos.total_gain_value),
            _fmt_price(pos.unit_cost),
        )
    return Group(summary, positions)


async def cmd_portfolio(args: argparse.Namespace, session: Session) -> None:
    msg = await session.run(fetch_portfolio(session.ctx, 0))
    session.emit(msg.portfolio, _render_portfolio)
# endregion


# region Quotes
async def cmd_quote(args: argparse.Namespace, session: Session) -> None:
    symbols = [symbol.strip().upper() for symbol in args.symbols if symbol.strip()]
    if not symbols:
        raise UsageError("at least one symbol is required")
    msg = await session.run(fetch_watchlist_quotes(session.ctx, symbols, 0))

    def render(quotes) -> Table:
        table = _table("Quotes", "Symbol", "Last", "Bid", "Ask", "Volume")
        for quote in quotes:
            if not quote.ok:
                table.add_row(quote.symbol, "unavailable", "-", "-", "-")
                continue
            table.add_row(quote.symbol, _fmt_price(quote.last), _fmt_price(quote.bid), _fmt_price(quote.ask), _fmt_volume(quote.volume))
        return table

    session.emit(msg.quotes, render)
# endregion


# region Orders
def _render_orders(orders) -> Table:
    table = _table("Orders", "Order", "Symbol", "Side", "Type", "Status", "Qty", "Filled", "Limit", "Created")
    for order in orders:
        table.add_row(
            order.order_id,
            order.symbol,
            order.side or "-",
            order.type or "-",
            order.status or "-",
            _fmt_qty_raw(order.quantity),
            _fmt_qty_raw(order.filled_quantity),
            _fmt_price(order.limit_price),
            _fmt_timestamp(order.created_at),
        )
    return table


async def cmd_order_list(args: argparse.Namespace, session: Session) -> None:
    msg = await session.run(fetch_orders(session.ctx, 0))
    session.emit(msg.orders, _render_orders)


async def cmd_order_status(args: argparse.Namespace, session: Session) -> None:
    msg = await session.run(fetch_order(session.ctx, args.order_id))
    session.emit(msg.order, lambda order: _render_orders([order]))


async def cmd_order_cancel(args: argparse.Namespace, session: Session) -> None:
    if not args.yes and not session.confirm(f"Cancel order {args.order_id}?"):
        session.console.print("Cancelled.")
        return
    msg = await session.run(cancel_order(session.ctx, args.order_id))
    session.emit({"orderId": msg.order_id, "status": "CANCEL_REQUESTED"}, lambda _: f"Cancel requested for order {msg.order_id}")


def _order_request(args: argparse.Namespace, side: str) -> OrderRequest:
    symbol = args.symbol.strip().upper()
    order_type = "LIMIT" if args.limit else "MARKET"
    if not is_valid_order(symbol, args.quantity, order_type, args.limit or ""):
        raise UsageError("quantity and limit price must be positive numbers")
    return OrderRequest(
        order_id=str(uuid.uuid4()),
        symbol=symbol,
        side=side,
        order_type=order_type,
        quantity=args.quantity,
        limit_price=args.limit or "",
        time_in_force=args.expiration,
    )


async def cmd_order_place(args: argparse.Namespace, session: Session) -> None:
    request = _order_request(args, args.side)
    summary = f"{request.side} {request.quantity} {request.symbol} {request.order_type}"
    if request.order_type == "LIMIT":
        summary += f" @ {_fmt_price(request.limit_price)}"
    summary += f" ({request.time_in_force})"
    if not args.yes and not session.confirm(f"Place order: {summary}?"):
        session.console.print("Cancelled.")
        return
    msg = await session.run(place_order(session.ctx, request))
    session.emit(
        {"orderId": msg.order_id, "symbol": msg.symbol},
        lambda _: f"Order placed: {msg.symbol} ({msg.order_id})",
    )
# endregion


# region Options
async def cmd_options_expirations(args: argparse.Namespace, session: Session) -> None:
    symbol = args.symbol.strip().upper()
    msg = await session.run(fetch_expirations(session.ctx, symbol, 0))

    def render(expirations) -> Table:
        table = _table(f"{expirations.base_symbol or symbol} expirations", "Expiration")
        for date in expirations.expirations:
            table.add_row(date)
        return table

    session.emit(msg.expirations, render)


async def cmd_options_chain(args: argparse.Namespace, session: Session) -> None:
    symbol = args.symbol.strip().upper()
    msg = await session.run(fetch_chain(session.ctx, symbol, args.expiration, 0))

    def render(chain) -> Table:
        table = _table(f"{symbol} {args.expiration}", "Call bid", "Call ask", "Strike", "Put bid", "Put ask")
        puts = {put.strike: put for put in chain.puts}
        strikes = sorted({q.strike for q in chain.calls + chain.puts if q.strike is not None})
        calls = {call.strike: call for call in chain.calls}
        for strike in strikes:
            call = calls.get(strike)
            put = puts.get(strike)
            table.add_row(
                _fmt_price(call.bid) if call else "-",
                _fmt_price(call.ask) if call else "-",
                f"{strike:g}",
                _fmt_price(put.bid) if put else "-",
                _fmt_price(put.ask) if put else "-",
            )
        return table

    session.emit(msg.chain, render)


async def cmd_options_greeks(args: argparse.Namespace, session: Session) -> None:
    msg = await session.run(fetch_greeks(session.ctx, list(args.osi_symbols), 0))

    def render(greeks) -> Table:
        table = _table("Greeks", "Symbol", "Delta", "Gamma", "Theta", "Vega", "IV")
        for symbol, item in greeks.items():
            table.add_row(symbol, item.delta or "-", item.gamma or "-", item.theta or "-", item.vega or "-", item.implied_volatility or "-")
        return table

    session.emit(msg.greeks, render)
# endregion


# region History
async def cmd_history(args: argparse.Namespace, session: Session) -> None:
    transactions = []
    next_token = ""
    while True:
        msg = await session.run(fetch_history(session.ctx, 0, next_token=next_token, append=bool(next_token)))
        page: HistoryPage = msg.page
        transactions.extend(page.transactions)
        next_token = page.next_token
        if not next_token or (args.limit and len(transactions) >= args.limit):
            break
    if args.limit:
        transactions = transactions[: args.limit]

    def render(items) -> Table:
        table = _table("History", "Date", "Type", "Symbol", "Side", "Qty", "Amount", "Description")
        for tx in items:
            amount = to_float(tx.net_amount)
            table.add_row(
                _fmt_timestamp(tx.timestamp),
                tx.sub_type or tx.type or "-",
                tx.symbol or "-",
                tx.side or "-",
                _fmt_qty_raw(tx.quantity),
                "-" if amount is None else f"{amount:+,.2f}",
                tx.description or "",
            )
        return table

    session.emit(transactions, render)
# endregion


def add_subcommands(subparsers: argparse._SubParsersAction) -> None:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-a", "--account", help="Account ID (uses the configured default)")
    common.add_argument("-j", "--json", action="store_true", help="Output JSON")

    subparsers.add_parser("account", help="List accounts", parents=[common]).set_defaults(handler=cmd_account)
    subparsers.add_parser("portfolio", help="Show balances and positions", parents=[common]).set_defaults(
        handler=cmd_portfolio
    )

    quote = subparsers.add_parser("quote", help="Get stock quotes", parents=[common])
    quote.add_argument("symbols", nargs="+", metavar="SYMBOL")
    quote.set_defaults(handler=cmd_quote)

    order = subparsers.add_parser("order", help="Place and manage orders")
    order_sub = order.add_subparsers(dest="order_command", required=True)
    for side in ("buy", "sell"):
        place = order_sub.add_parser(side, help=f"{side.capitalize()} shares", parents=[common])
        place.add_argument("symbol")
        place.add_argument("-q", "--quantity", required=True, help="Number of shares")
        place.add_argument("-l", "--limit", help="Limit price (omit for a market order)")
        place.add_argument("-e", "--expiration", choices=TIME_IN_FORCE, default="DAY", help="Time in force")
        place.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
        place.set_defaults(handler=cmd_order_place, side=side.upper())
    cancel = order_sub.add_parser("cancel", help="Cancel an open order", parents=[common])
    cancel.add_argument("order_id")
    cancel.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    cancel.set_defaults(handler=cmd_order_cancel)
    status = order_sub.add_parser("status", help="Show one order", parents=[common])
    status.add_argument("order_id")
    status.set_defaults(handler=cmd_order_status)
    order_sub.add_parser("list", help="List orders", parents=[common]).set_defaults(handler=cmd_order_list)

    options = subparsers.add_parser("options", help="Option expirations, chains and greeks")
    options_sub = options.add_subparsers(dest="options_command", required=True)
    expirations = options_sub.add_parser("expirations", help="List expiration dates", parents=[common])
    expirations.add_argument("symbol")
    expirations.set_defaults(handler=cmd_options_expirations)
    chain = options_sub.add_parser("chain", help="Show the chain for one expiration", parents=[common])
    chain.add_argument("symbol")
    chain.add_argument("expiration", help="YYYY-MM-DD")
    chain.set_defaults(handler=cmd_options_chain)
    greeks = options_sub.add_parser("greeks", help="Greeks for OSI option symbols", parents=[common])
    greeks.add_argument("osi_symbols", nargs="+", metavar="OSI_SYMBOL")
    greeks.set_defaults(handler=cmd_options_greeks)

    history = subparsers.add_parser("history", help="Account transaction history", parents=[common])
    history.add_argument("-l", "--limit", type=int, default=0, help="Stop after this many transactions")
    history.set_defaults(handler=cmd_history)


async def _run(
    handler: Callable[[argparse.Namespace, Session], Awaitable[None]],
    args: argparse.Namespace,
    config: PubConfig,
    *,
    secret_store: SecretStore | None,
    transport: httpx.AsyncBaseTransport | None,
    console: Console,
    confirm: Callable[[str], bool] | None,
) -> None:
    account_id = getattr(args, "account", None) or config.account_uuid
    if handler is not cmd_account and not account_id:
        raise ConfigurationError("no account selected; pass --account or run 'pubterm configure'")
    http = new_http_client(config, transport)
    tokens = TokenManager(
        http,
        base_url=config.api_base_url,
        secret_store=secret_store or default_store(),
        validity_minutes=config.token_validity_minutes,
    )
    client = PublicClient(http, tokens)
    session = Session(
        ctx=AppContext(config=config, ui_config=UIConfig(), account_id=account_id),
        runner=CommandRunner(client, lambda _msg: None),
        console=console,
        as_json=bool(getattr(args, "json", False)),
    )
    if confirm is not None:
        session = replace(session, confirm=confirm)
    try:
        await handler(args, session)
    finally:
        await client.aclose()


def run_subcommand(
    args: argparse.Namespace,
    config: PubConfig,
    *,
    secret_store: SecretStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    console: Console | None = None,
    confirm: Callable[[str], bool] | None = None,
) -> None:
    log.info("running %s", args.command)
    asyncio.run(
        _run(
            args.handler,
            args,
            config,
            secret_store=secret_store,
            transport=transport,
            console=console or Console(),
            confirm=confirm,
        )
    )
