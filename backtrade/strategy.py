"""Strategy interface, the context strategies trade through, and position sizers."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from backtrade.broker import BrokerBase
from backtrade.dataseries import DataSeries
from backtrade.order import Order, OrderSide, OrderType, ValidType
from backtrade.position import Position


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class Strategy(ABC):
    """Trading logic driven bar by bar.

    Besides ``init`` and ``next`` a strategy may define any of these optional
    hooks, which the engine calls when present: ``start()``, ``stop()``,
    ``prenext()``, ``nextstart()``, ``notify_order(order)``,
    ``notify_trade(trade)``, ``notify_cash_value(cash, value)`` and
    ``notify_timer(timer, when)``.
    """

    @abstractmethod
    def init(self, ctx: StrategyContext) -> None:
        """Called once before the run starts; set up indicators and state."""

    @abstractmethod
    def next(self) -> None:
        """Called once per bar after all data feeds have advanced."""


@dataclass(frozen=True)
class Timer:
    """A scheduled one-off event."""

    id: int
    when: datetime


@dataclass
class _OrderConfig:
    order_type: OrderType = OrderType.MARKET
    price: float = 0.0
    price2: float = 0.0
    trail_amount: float = 0.0
    trail_percent: float = 0.0
    valid_type: ValidType = ValidType.GTC
    valid_time: Optional[datetime] = None
    oco_ref: int = 0
    parent_ref: int = 0
    transmit: bool = True


def _opt_limit(cfg: _OrderConfig, price: float) -> None:
    cfg.order_type = OrderType.LIMIT
    cfg.price = price


def _opt_stop(cfg: _OrderConfig, price: float) -> None:
    cfg.order_type = OrderType.STOP
    cfg.price = price


def _opt_stop_limit(cfg: _OrderConfig, prices: tuple[float, float]) -> None:
    stop_price, limit_price = prices
    cfg.order_type = OrderType.STOP_LIMIT
    cfg.price = stop_price
    cfg.price2 = limit_price


def _opt_at_close(cfg: _OrderConfig, enabled: bool) -> None:
    if enabled:
        cfg.order_type = OrderType.CLOSE


def _opt_stop_trail(cfg: _OrderConfig, spec: tuple[float, float]) -> None:
    price, amount = spec
    cfg.order_type = OrderType.STOP_TRAIL
    cfg.price = price
    cfg.trail_amount = amount


def _opt_stop_trail_percent(cfg: _OrderConfig, spec: tuple[float, float]) -> None:
    price, percent = spec
    cfg.order_type = OrderType.STOP_TRAIL
    cfg.price = price
    cfg.trail_percent = percent


def _opt_stop_trail_limit(cfg: _OrderConfig, spec: tuple[float, float, float]) -> None:
    price, amount, limit_offset = spec
    cfg.order_type = OrderType.STOP_TRAIL_LIMIT
    cfg.price = price
    cfg.price2 = limit_offset
    cfg.trail_amount = amount


def _opt_valid(cfg: _OrderConfig, until: datetime) -> None:
    cfg.valid_type = ValidType.GTD
    cfg.valid_time = until


def _opt_day(cfg: _OrderConfig, enabled: bool) -> None:
    if enabled:
        cfg.valid_type = ValidType.DAY


def _opt_oco(cfg: _OrderConfig, other: Optional[Order]) -> None:
    if other is not None:
        cfg.oco_ref = other.ref


def _opt_parent(cfg: _OrderConfig, parent: Optional[Order]) -> None:
    if parent is not None:
        cfg.parent_ref = parent.ref
        cfg.transmit = True


def _opt_transmit(cfg: _OrderConfig, transmit: bool) -> None:
    cfg.transmit = bool(transmit)


_ORDER_OPTIONS: dict[str, Callable[[_OrderConfig, Any], None]] = {
    "limit": _opt_limit,
    "stop": _opt_stop,
    "stop_limit": _opt_stop_limit,
    "at_close": _opt_at_close,
    "stop_trail": _opt_stop_trail,
    "stop_trail_percent": _opt_stop_trail_percent,
    "stop_trail_limit": _opt_stop_trail_limit,
    "valid": _opt_valid,
    "day": _opt_day,
    "oco": _opt_oco,
    "parent": _opt_parent,
    "transmit": _opt_transmit,
}


def _build_config(options: dict[str, Any]) -> _OrderConfig:
    """Apply keyword order options in the order given; later ones win."""
    cfg = _OrderConfig()
    for name, value in options.items():
        handler = _ORDER_OPTIONS.get(name)
        if handler is None:
            raise TypeError(f"unknown order option: {name!r}")
        handler(cfg, value)
    return cfg


class StrategyContext:
    """Access to data, broker and order helpers handed to a strategy.

    Order helpers accept these keyword options, applied in the order given:
    ``limit=price``, ``stop=price``, ``stop_limit=(stop, limit)``,
    ``at_close=True``, ``stop_trail=(price, amount)``,
    ``stop_trail_percent=(price, pct)``,
    ``stop_trail_limit=(price, amount, limit_offset)``, ``valid=datetime``,
    ``day=True``, ``oco=order``, ``parent=order`` and ``transmit=bool``.
    """

    def __init__(
        self,
        datas: Sequence[DataSeries],
        broker: BrokerBase,
        preloaded_datas: Optional[Sequence[DataSeries]] = None,
    ) -> None:
        self.datas: list[DataSeries] = list(datas)
        self.preloaded_datas: list[DataSeries] = list(preloaded_datas or [])
        self._broker = broker
        self._timers: list[Timer] = []
        self._next_timer_id = 0

    # ── Data and portfolio ──────────────────────────────────────────────

    def data(self) -> Optional[DataSeries]:
        """The primary live data feed, or None when there is none."""
        return self.datas[0] if self.datas else None

    def preloaded_data(self) -> Optional[DataSeries]:
        """The primary fully loaded data series, for building indicators."""
        return self.preloaded_datas[0] if self.preloaded_datas else None

    @property
    def broker(self) -> BrokerBase:
        """The broker orders are sent to."""
        return self._broker

    def get_position(self, data: DataSeries) -> Position:
        return self._broker.get_position(data)

    def get_cash(self) -> float:
        return self._broker.get_cash()

    def get_value(self) -> float:
        return self._broker.get_value(self.datas)

    def get_orders_open(self) -> list[Order]:
        return self._broker.get_orders_open()

    def add_cash(self, delta: float) -> None:
        """Deposit (or withdraw, if negative) cash from the next bar on."""
        self._broker.add_cash(delta)

    # ── Timers ──────────────────────────────────────────────────────────

    def add_timer(self, when: datetime) -> Timer:
        """Schedule a timer that fires at the first bar at or after ``when``."""
        timer = Timer(id=self._next_timer_id, when=_as_utc(when))
        self._next_timer_id += 1
        self._timers.append(timer)
        return timer

    def pop_triggered_timers(self, now: datetime) -> list[Timer]:
        """Remove and return the timers due at ``now``."""
        now = _as_utc(now)
        triggered = [t for t in self._timers if now >= t.when]
        self._timers = [t for t in self._timers if now < t.when]
        return triggered

    # ── Orders ──────────────────────────────────────────────────────────

    def buy(self, size: float, **kwargs: Any) -> Order:
        """Buy ``size`` on the primary data feed."""
        return self.buy_data(self.data(), size, **kwargs)

    def sell(self, size: float, **kwargs: Any) -> Order:
        """Sell ``size`` on the primary data feed."""
        return self.sell_data(self.data(), size, **kwargs)

    def close(self, **kwargs: Any) -> Optional[Order]:
        """Close the whole position on the primary data feed."""
        return self.close_data(self.data(), **kwargs)

    def close_data(self, data: DataSeries, **kwargs: Any) -> Optional[Order]:
        """Close the whole position on ``data``; None when already flat."""
        pos = self._broker.get_position(data)
        if not pos.is_open():
            return None
        if pos.size > 0:
            return self.sell_data(data, pos.size, **kwargs)
        return self.buy_data(data, -pos.size, **kwargs)

    def _place(
        self, data: Optional[DataSeries], side: OrderSide, size: float, options: dict[str, Any]
    ) -> Order:
        cfg = _build_config(options)
        order = Order(
            data,
            side,
            order_type=cfg.order_type,
            size=size,
            price=cfg.price,
            price2=cfg.price2,
            trail_amount=cfg.trail_amount,
            trail_percent=cfg.trail_percent,
            valid_type=cfg.valid_type,
            valid_time=cfg.valid_time,
            oco_ref=cfg.oco_ref,
            parent_ref=cfg.parent_ref,
            transmit=cfg.transmit,
        )
        self._broker.submit(order)
        return order

    def buy_data(self, data: Optional[DataSeries], size: float, **kwargs: Any) -> Order:
        """Create and submit a buy order on ``data``."""
        return self._place(data, OrderSide.BUY, size, kwargs)

    def sell_data(self, data: Optional[DataSeries], size: float, **kwargs: Any) -> Order:
        """Create and submit a sell order on ``data``."""
        return self._place(data, OrderSide.SELL, size, kwargs)

    def cancel(self, order: Order) -> None:
        self._broker.cancel(order)

    def order_target_size(self, target: float, **kwargs: Any) -> Optional[Order]:
        """Trade the primary feed to a position of ``target`` units."""
        return self.order_target_size_data(self.data(), target, **kwargs)

    def order_target_size_data(
        self, data: DataSeries, target: float, **kwargs: Any
    ) -> Optional[Order]:
        """Trade ``data`` to a position of ``target``; None if already there."""
        diff = target - self._broker.get_position(data).size
        if abs(diff) < 1e-10:
            return None
        if diff > 0:
            return self.buy_data(data, diff, **kwargs)
        return self.sell_data(data, -diff, **kwargs)

    def order_target_value(self, target_value: float, **kwargs: Any) -> Optional[Order]:
        """Trade the primary feed to a position worth ``target_value`` at close."""
        data = self.data()
        if data is None or len(data) == 0:
            return None
        price = data.close.get(0)
        if math.isnan(price) or price <= 0:
            return None
        return self.order_target_size_data(data, target_value / price, **kwargs)

    def order_target_percent(self, pct: float, **kwargs: Any) -> Optional[Order]:
        """Trade the primary feed to ``pct`` (a fraction) of portfolio value."""
        return self.order_target_value(self.get_value() * pct, **kwargs)

    def _bracket(
        self,
        entry_side: OrderSide,
        size: float,
        limit_price: float,
        stop_price: float,
        options: dict[str, Any],
    ) -> tuple[Order, Order, Order]:
        data = self.data()
        entry = self._place(data, entry_side, size, options)
        exit_side = OrderSide.SELL if entry_side is OrderSide.BUY else OrderSide.BUY

        take_profit = Order(
            data, exit_side, order_type=OrderType.LIMIT, size=size, price=limit_price
        )
        stop_loss = Order(data, exit_side, order_type=OrderType.STOP, size=size, price=stop_price)
        take_profit.parent_ref = entry.ref
        stop_loss.parent_ref = entry.ref
        take_profit.oco_ref = take_profit.ref
        stop_loss.oco_ref = take_profit.ref

        self._broker.submit(take_profit)
        self._broker.submit(stop_loss)
        return entry, take_profit, stop_loss

    def buy_bracket(
        self, size: float, limit_price: float, stop_price: float, **kwargs: Any
    ) -> tuple[Order, Order, Order]:
        """Buy entry plus take-profit limit and stop-loss sells, linked as OCO."""
        return self._bracket(OrderSide.BUY, size, limit_price, stop_price, kwargs)

    def sell_bracket(
        self, size: float, limit_price: float, stop_price: float, **kwargs: Any
    ) -> tuple[Order, Order, Order]:
        """Sell entry plus take-profit limit and stop-loss buys, linked as OCO."""
        return self._bracket(OrderSide.SELL, size, limit_price, stop_price, kwargs)

    def log(self, message: str) -> None:
        """Print ``message`` prefixed with the current bar's date."""
        data = self.data()
        if data is not None and len(data) > 0:
            moment = data.bar().datetime
        else:
            moment = datetime.now()
        print(f"[{moment:%Y-%m-%d}] {message}")


# ── Sizers ──────────────────────────────────────────────────────────────


class Sizer(ABC):
    """Decides how many shares or contracts to trade."""

    @abstractmethod
    def size(self, ctx: Optional[StrategyContext], data: Optional[DataSeries]) -> float:
        """Size to trade on ``data``."""


@dataclass(frozen=True)
class FixedSizer(Sizer):
    """Always the same amount."""

    amount: float = 0.0

    def size(self, ctx: Optional[StrategyContext], data: Optional[DataSeries]) -> float:
        return self.amount


@dataclass(frozen=True)
class PercentSizer(Sizer):
    """A fraction of portfolio value, e.g. ``0.10`` for 10%."""

    percent: float = 0.0

    def size(self, ctx: StrategyContext, data: DataSeries) -> float:
        price = data.close.get(0)
        if math.isnan(price) or price <= 0:
            return 0.0
        return ctx.get_value() * self.percent / price


@dataclass(frozen=True)
class AllInSizer(Sizer):
    """All available cash."""

    extra: dict = field(default_factory=dict, repr=False, compare=False)

    def size(self, ctx: StrategyContext, data: DataSeries) -> float:
        price = data.close.get(0)
        if math.isnan(price) or price <= 0:
            return 0.0
        return ctx.get_cash() / price