"""Simulated broker: order matching, slippage, OCO groups, brackets and cash."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Optional

from backtrade.commission import CommissionInfo, ZeroCommission
from backtrade.dataseries import Bar, DataSeries
from backtrade.order import Order, OrderStatus, OrderType, ValidType
from backtrade.position import Position
from backtrade.trade import Trade

_TRAILING_TYPES = frozenset({OrderType.STOP_TRAIL, OrderType.STOP_TRAIL_LIMIT})
_MARKET_TYPES = frozenset({OrderType.MARKET, OrderType.CLOSE})


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class SlippageMode(enum.Enum):
    """Which kind of slippage is applied to fills."""

    NONE = 0
    PERCENT = 1
    FIXED = 2


class BrokerBase(ABC):
    """Interface shared by simulated and live brokers."""

    @abstractmethod
    def get_cash(self) -> float:
        """Available cash."""

    @abstractmethod
    def get_value(self, datas: Sequence[DataSeries]) -> float:
        """Total portfolio value: cash plus open positions."""

    @abstractmethod
    def get_position(self, data: DataSeries) -> Position:
        """Position held in ``data``, created empty if needed."""

    @abstractmethod
    def get_orders_open(self) -> list[Order]:
        """Snapshot of the pending orders."""

    @abstractmethod
    def submit(self, order: Order) -> None:
        """Queue ``order`` for execution."""

    @abstractmethod
    def cancel(self, order: Order) -> None:
        """Cancel a pending order."""

    @abstractmethod
    def next(self, datas: Sequence[DataSeries]) -> None:
        """Process pending orders against the current bar."""

    @abstractmethod
    def drain_notifications(self) -> tuple[list[Order], list[Trade]]:
        """Return and clear the queued order and trade notifications."""

    @abstractmethod
    def add_cash(self, delta: float) -> None:
        """Queue a cash deposit (or withdrawal) for the next bar."""

    @abstractmethod
    def set_cash(self, cash: float) -> None:
        """Set the cash balance."""

    @abstractmethod
    def set_commission(self, comm: CommissionInfo) -> None:
        """Set the default commission scheme."""

    @abstractmethod
    def get_trades(self) -> list[Trade]:
        """All trades opened so far."""


class Broker(BrokerBase):
    """Backtesting broker with slippage, trailing stops, OCO and brackets."""

    def __init__(self, cash: float = 0.0) -> None:
        self._cash = cash
        self._starting_cash = cash
        self._add_cash_queue: list[float] = []

        self._commission: CommissionInfo = ZeroCommission()
        self._comm_per_feed: dict[str, CommissionInfo] = {}

        self._positions: dict[str, Position] = {}

        self._pending: list[Order] = []
        self._to_activate: list[Order] = []

        self.trades: list[Trade] = []

        self._order_notifications: list[Order] = []
        self._trade_notifications: list[Trade] = []

        self._slippage_mode = SlippageMode.NONE
        self._slippage_value = 0.0
        self._slip_open = False
        self._slip_limit = False
        self._slip_match = True
        self._slip_out = False

        self._coc = False
        self._coo = False
        self._short_cash = True

        self._oco_groups: dict[int, list[int]] = {}
        self._oco_parent: dict[int, int] = {}
        self._child_queue: dict[int, list[Order]] = {}

    # ── Cash ────────────────────────────────────────────────────────────

    def set_cash(self, cash: float) -> None:
        self._starting_cash = cash
        self._cash = cash

    def get_cash(self) -> float:
        return self._cash

    @property
    def starting_cash(self) -> float:
        """Cash the broker was started (or last reset) with."""
        return self._starting_cash

    def add_cash(self, delta: float) -> None:
        self._add_cash_queue.append(delta)

    # ── Commission ──────────────────────────────────────────────────────

    def set_commission(self, comm: CommissionInfo) -> None:
        self._commission = comm

    def set_commission_for_feed(self, feed_name: str, comm: CommissionInfo) -> None:
        """Override the commission scheme for one feed."""
        self._comm_per_feed[feed_name] = comm

    def commission_for(self, feed_name: str) -> CommissionInfo:
        """Commission scheme in force for ``feed_name``."""
        return self._comm_per_feed.get(feed_name, self._commission)

    # ── Slippage ────────────────────────────────────────────────────────

    def _configure_slippage(
        self,
        mode: SlippageMode,
        value: float,
        slip_open: bool,
        slip_limit: bool,
        slip_match: bool,
        slip_out: bool,
    ) -> None:
        self._slippage_mode = mode
        self._slippage_value = value
        self._slip_open = slip_open
        self._slip_limit = slip_limit
        self._slip_match = slip_match
        self._slip_out = slip_out

    def set_slippage_percent(
        self,
        perc: float,
        slip_open: bool = False,
        slip_limit: bool = False,
        slip_match: bool = True,
        slip_out: bool = False,
    ) -> None:
        """Slip fills by a fraction of the price, e.g. ``0.001`` for 0.1%."""
        self._configure_slippage(
            SlippageMode.PERCENT, perc, slip_open, slip_limit, slip_match, slip_out
        )

    def set_slippage_fixed(
        self,
        fixed: float,
        slip_open: bool = False,
        slip_limit: bool = False,
        slip_match: bool = True,
        slip_out: bool = False,
    ) -> None:
        """Slip fills by a fixed amount per share or contract."""
        self._configure_slippage(
            SlippageMode.FIXED, fixed, slip_open, slip_limit, slip_match, slip_out
        )

    def _apply_slippage(self, price: float, bar: Bar, is_buy: bool) -> float:
        if self._slippage_mode is SlippageMode.NONE:
            return price
        if self._slippage_mode is SlippageMode.PERCENT:
            slip = price * self._slippage_value
        else:
            slip = self._slippage_value
        capped = self._slip_match and not self._slip_out
        if is_buy:
            price += slip
            if capped and price > bar.high:
                price = bar.high
        else:
            price -= slip
            if capped and price < bar.low:
                price = bar.low
        return price

    # ── Special modes ───────────────────────────────────────────────────

    def set_coc(self, coc: bool) -> None:
        """Cheat-on-close: fill close orders at the same bar's close."""
        self._coc = coc

    def set_coo(self, coo: bool) -> None:
        """Cheat-on-open: fill market orders at the current bar's open."""
        self._coo = coo

    def set_short_cash(self, short_cash: bool) -> None:
        """Whether short sales credit cash."""
        self._short_cash = short_cash

    # ── Portfolio ───────────────────────────────────────────────────────

    def get_value(self, datas: Sequence[DataSeries]) -> float:
        total = self._cash
        for data in datas:
            pos = self._positions.get(data.name)
            if pos is None or not pos.is_open() or len(data) == 0:
                continue
            close = data.close.get(0)
            if pos.size > 0 or self._short_cash:
                total += pos.size * close
        return total

    def get_position(self, data: DataSeries) -> Position:
        return self._positions.setdefault(data.name, Position())

    def get_orders_open(self) -> list[Order]:
        return list(self._pending)

    # ── Submission and cancellation ─────────────────────────────────────

    def submit(self, order: Order) -> None:
        if order.data is not None and len(order.data) > 0:
            order.bar_created_at = order.data.bar().datetime
        else:
            order.bar_created_at = order.created_at

        if order.oco_ref > 0:
            self._oco_parent[order.ref] = order.oco_ref
            self._oco_groups.setdefault(order.oco_ref, []).append(order.ref)

        if order.parent_ref > 0:
            self._child_queue.setdefault(order.parent_ref, []).append(order)
            order.status = OrderStatus.SUBMITTED
            self._order_notifications.append(order)
            return

        self._init_trail_stop(order)

        order.status = OrderStatus.SUBMITTED
        self._order_notifications.append(order)
        order.status = OrderStatus.ACCEPTED
        self._pending.append(order)
        self._order_notifications.append(order)

    def _init_trail_stop(self, order: Order) -> None:
        if order.order_type not in _TRAILING_TYPES:
            return
        if order.price != 0:
            order.trail_stop = order.price
            return
        if order.data is None or len(order.data) == 0:
            return
        current = order.data.close.get(0)
        if order.trail_percent > 0:
            order.trail_amount = current * order.trail_percent
        if order.is_buy():
            order.trail_stop = current + order.trail_amount
        else:
            order.trail_stop = current - order.trail_amount
        order.price = order.trail_stop

    def cancel(self, order: Order) -> None:
        self._cancel_order(order, cancel_children=True)

    def _cancel_order(self, order: Order, cancel_children: bool) -> None:
        if order.is_completed():
            return
        order.status = OrderStatus.CANCELED
        self._order_notifications.append(order)

        for index, pending in enumerate(self._pending):
            if pending.ref == order.ref:
                del self._pending[index]
                break

        if cancel_children:
            for child in self._child_queue.pop(order.ref, []):
                self._cancel_order(child, cancel_children=True)

        self._process_oco(order.ref)

    # ── Notifications ───────────────────────────────────────────────────

    def drain_notifications(self) -> tuple[list[Order], list[Trade]]:
        orders, trades = self._order_notifications, self._trade_notifications
        self._order_notifications = []
        self._trade_notifications = []
        return orders, trades

    # ── Bar processing ──────────────────────────────────────────────────

    def next(self, datas: Sequence[DataSeries]) -> None:
        self._cash += sum(self._add_cash_queue)
        self._add_cash_queue.clear()

        for order in self._to_activate:
            self._init_trail_stop(order)
            order.status = OrderStatus.ACCEPTED
            self._pending.append(order)
            self._order_notifications.append(order)
        self._to_activate.clear()

        remaining: list[Order] = []
        for order in list(self._pending):
            if order.is_completed():
                continue
            data = order.data
            if data is None or len(data) == 0:
                remaining.append(order)
                continue

            bar = data.bar()
            if self._check_expiry(order, bar.datetime):
                continue

            self._update_trail_stop(order, bar)

            fill_price = self._try_fill(order, bar)
            if fill_price is None:
                remaining.append(order)
                continue

            is_market = order.order_type in _MARKET_TYPES
            if is_market:
                if self._slip_open:
                    fill_price = self._apply_slippage(fill_price, bar, order.is_buy())
            elif order.order_type is OrderType.LIMIT:
                if self._slip_limit:
                    fill_price = self._apply_slippage(fill_price, bar, order.is_buy())
            else:
                fill_price = self._apply_slippage(fill_price, bar, order.is_buy())

            self._execute_fill(order, fill_price, order.rem_size(), bar.datetime)
        self._pending = remaining

    def _try_fill(self, order: Order, bar: Bar) -> Optional[float]:
        """Fill price for ``order`` on ``bar``, or None if it does not fill."""
        buy = order.is_buy()
        kind = order.order_type

        if kind is OrderType.MARKET:
            return bar.open
        if kind is OrderType.CLOSE:
            return bar.close
        if kind is OrderType.LIMIT:
            if (buy and bar.low <= order.price) or (not buy and bar.high >= order.price):
                return order.price
            return None
        if kind is OrderType.STOP:
            if (buy and bar.high >= order.price) or (not buy and bar.low <= order.price):
                return bar.open
            return None

        if kind is OrderType.STOP_LIMIT:
            stop, limit = order.price, order.price2
        elif kind is OrderType.STOP_TRAIL:
            stop = order.trail_stop
            if (buy and bar.high >= stop) or (not buy and bar.low <= stop):
                return bar.open
            return None
        else:
            stop = order.trail_stop
            limit = order.trail_stop + order.price2

        triggered = (buy and bar.high >= stop) or (not buy and bar.low <= stop)
        if triggered and ((buy and bar.low <= limit) or (not buy and bar.high >= limit)):
            return limit
        return None

    @staticmethod
    def _update_trail_stop(order: Order, bar: Bar) -> None:
        if order.order_type not in _TRAILING_TYPES:
            return
        if order.is_buy():
            new_stop = bar.close - order.trail_amount
            if new_stop > order.trail_stop:
                order.trail_stop = new_stop
        else:
            new_stop = bar.close + order.trail_amount
            if new_stop < order.trail_stop:
                order.trail_stop = new_stop

    def _check_expiry(self, order: Order, bar_time: datetime) -> bool:
        expired = False
        if order.valid_type is ValidType.DAY:
            created = order.bar_created_at or order.created_at
            expired = _as_utc(bar_time).date() > _as_utc(created).date()
        elif order.valid_type is ValidType.GTD:
            expired = order.valid_time is not None and _as_utc(bar_time) > _as_utc(
                order.valid_time
            )
        if expired:
            order.status = OrderStatus.EXPIRED
            self._order_notifications.append(order)
        return expired

    def _execute_fill(
        self, order: Order, fill_price: float, fill_size: float, bar_time: datetime
    ) -> None:
        data = order.data
        comm = self.commission_for(data.name).get_commission(fill_size, fill_price)
        cost = fill_size * fill_price

        if order.is_buy():
            required = cost + comm
            if required > self._cash:
                order.status = OrderStatus.MARGIN
                self._order_notifications.append(order)
                return
            self._cash -= required
        elif self._short_cash:
            self._cash += cost - comm
        else:
            self._cash -= comm

        pos = self.get_position(data)
        signed_size = fill_size if order.is_buy() else -fill_size
        pnl = pos.update(signed_size, fill_price)

        order.record_fill(bar_time, fill_size, fill_price, cost, comm, pnl)
        order.executed_at = bar_time
        if order.rem_size() <= 1e-10:
            order.status = OrderStatus.COMPLETED
        else:
            order.status = OrderStatus.PARTIAL
        self._order_notifications.append(order)

        self._update_trades(order, pos, signed_size, fill_price, comm)

        if order.oco_ref > 0:
            self._process_oco(order.ref)

        if order.status is OrderStatus.COMPLETED and order.ref in self._child_queue:
            self._to_activate.extend(self._child_queue.pop(order.ref))

    def _process_oco(self, trigger_ref: int) -> None:
        canon = self._oco_parent.get(trigger_ref)
        if canon is None:
            return
        group = self._oco_groups.get(canon, [])
        siblings = {ref for ref in group if ref != trigger_ref}
        for order in self._pending:
            if order.ref in siblings and not order.is_completed():
                order.status = OrderStatus.CANCELED
                self._order_notifications.append(order)
        for ref in group:
            self._oco_parent.pop(ref, None)
        self._oco_groups.pop(canon, None)
        self._pending = [o for o in self._pending if o.status is not OrderStatus.CANCELED]

    def _update_trades(
        self, order: Order, pos: Position, signed_size: float, price: float, comm: float
    ) -> None:
        name = order.data.name
        if not pos.is_open():
            for trade in reversed(self.trades):
                if trade.is_open and trade.data_name == name:
                    trade.close(order, price, comm)
                    self._trade_notifications.append(trade)
                    break
            return
        if abs(signed_size) == 0:
            return
        existing = next(
            (t for t in self.trades if t.is_open and t.data_name == name), None
        )
        if existing is not None:
            self._trade_notifications.append(existing)
            return
        trade = Trade.from_fill(order, abs(signed_size), price, comm)
        self.trades.append(trade)
        self._trade_notifications.append(trade)

    # ── Diagnostics ─────────────────────────────────────────────────────

    def get_trades(self) -> list[Trade]:
        return self.trades

    def pending_orders(self) -> list[Order]:
        """Orders currently waiting to be filled."""
        return list(self._pending)

    def __str__(self) -> str:
        return "Broker[cash=%.2f, pending=%d, trades=%d]" % (
            self._cash,
            len(self._pending),
            len(self.trades),
        )