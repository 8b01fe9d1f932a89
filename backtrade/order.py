"""Order types, statuses and the order record that brokers fill."""

from __future__ import annotations

import enum
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from backtrade.dataseries import DataSeries

_order_refs = itertools.count(1)


def _camel(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


class OrderType(enum.Enum):
    """How an order is executed."""

    MARKET = 0
    CLOSE = 1
    LIMIT = 2
    STOP = 3
    STOP_LIMIT = 4
    STOP_TRAIL = 5
    STOP_TRAIL_LIMIT = 6

    def __str__(self) -> str:
        return _camel(self.name)


class OrderSide(enum.Enum):
    """Buy or sell; a sell covers both short sales and closing longs."""

    BUY = 0
    SELL = 1

    def __str__(self) -> str:
        return _camel(self.name)


class OrderStatus(enum.Enum):
    """Lifecycle state of an order."""

    CREATED = 0
    SUBMITTED = 1
    ACCEPTED = 2
    PARTIAL = 3
    COMPLETED = 4
    CANCELED = 5
    EXPIRED = 6
    REJECTED = 7
    MARGIN = 8

    def __str__(self) -> str:
        return _camel(self.name)


_TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.COMPLETED,
        OrderStatus.CANCELED,
        OrderStatus.EXPIRED,
        OrderStatus.REJECTED,
        OrderStatus.MARGIN,
    }
)


class ValidType(enum.Enum):
    """When an order expires."""

    GTC = 0
    DAY = 1
    GTD = 2


@dataclass(frozen=True)
class ExecutionBit:
    """A single (possibly partial) fill."""

    time: Optional[datetime]
    size: float
    price: float
    value: float
    commission: float
    pnl: float


@dataclass(eq=False)
class Order:
    """A trading order with its execution history.

    Every order gets a unique, increasing ``ref`` when it is created.
    ``price`` is the limit, stop or initial trailing-stop price; ``price2`` is
    the stop-limit limit price or the stop-trail-limit limit offset.
    """

    data: Optional[DataSeries]
    side: OrderSide
    order_type: OrderType = OrderType.MARKET
    size: float = 0.0
    price: float = 0.0
    price2: float = 0.0

    trail_amount: float = 0.0
    trail_percent: float = 0.0
    trail_stop: float = 0.0

    valid_type: ValidType = ValidType.GTC
    valid_time: Optional[datetime] = None

    oco_ref: int = 0
    parent_ref: int = 0
    transmit: bool = True

    status: OrderStatus = OrderStatus.CREATED

    exec_size: float = 0.0
    exec_price: float = 0.0
    exec_value: float = 0.0
    exec_comm: float = 0.0
    exec_pnl: float = 0.0
    exec_bits: list[ExecutionBit] = field(default_factory=list)

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    bar_created_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None

    ref: int = field(default_factory=lambda: next(_order_refs))

    def is_buy(self) -> bool:
        return self.side is OrderSide.BUY

    def rem_size(self) -> float:
        """Size still to be filled."""
        return self.size - self.exec_size

    def is_completed(self) -> bool:
        """True once the order has reached a terminal status."""
        return self.status in _TERMINAL_STATUSES

    def record_fill(
        self,
        time: Optional[datetime],
        size: float,
        price: float,
        value: float,
        comm: float,
        pnl: float,
    ) -> None:
        """Record a fill and update the running execution totals."""
        self.exec_bits.append(ExecutionBit(time, size, price, value, comm, pnl))
        old_total = self.exec_size * self.exec_price
        self.exec_size += size
        if self.exec_size > 0:
            self.exec_price = (old_total + size * price) / self.exec_size
        self.exec_value += value
        self.exec_comm += comm
        self.exec_pnl += pnl

    def __str__(self) -> str:
        return "Order[%d] %s %s %.4g @ %.4g (%s)" % (
            self.ref,
            self.side,
            self.order_type,
            self.size,
            self.price,
            self.status,
        )