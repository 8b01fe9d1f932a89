"""Round-trip trade records, opened on a fill and closed when flat again."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from backtrade.order import Order

_trade_refs = itertools.count(1)


@dataclass(eq=False)
class Trade:
    """A round trip in one instrument, from opening fill to flat."""

    ref: int = 0
    data_name: str = ""

    entry_order: Optional[Order] = None
    entry_price: float = 0.0
    entry_value: float = 0.0
    entry_comm: float = 0.0
    entry_time: Optional[datetime] = None

    exit_order: Optional[Order] = None
    exit_price: float = 0.0
    exit_value: float = 0.0
    exit_comm: float = 0.0
    exit_time: Optional[datetime] = None

    size: float = 0.0

    pnl: float = 0.0
    pnl_comm: float = 0.0

    is_open: bool = False

    @classmethod
    def from_fill(cls, order: Order, size: float, price: float, comm: float) -> Trade:
        """Open a new trade from the fill of ``order``, with a fresh ref."""
        return cls(
            ref=next(_trade_refs),
            data_name=order.data.name if order.data is not None else "",
            entry_order=order,
            entry_price=price,
            entry_value=size * price,
            entry_comm=comm,
            entry_time=order.executed_at,
            size=size,
            is_open=True,
        )

    def close(self, order: Order, price: float, comm: float) -> None:
        """Fill in the exit details and compute gross and net PnL."""
        self.exit_order = order
        self.exit_price = price
        self.exit_value = self.size * price
        self.exit_comm = comm
        self.exit_time = order.executed_at
        self.is_open = False
        self.pnl = (price - self.entry_price) * self.size
        self.pnl_comm = self.pnl - (self.entry_comm + self.exit_comm)