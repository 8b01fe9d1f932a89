"""Position tracking for a single instrument."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass


def _signbit(value: float) -> bool:
    return math.copysign(1.0, value) < 0


@dataclass
class Position:
    """Holding in one instrument; ``size > 0`` is long, ``size < 0`` short."""

    size: float = 0.0
    price: float = 0.0
    opened: float = 0.0
    closed: float = 0.0

    def is_open(self) -> bool:
        return self.size != 0

    def update(self, size: float, price: float) -> float:
        """Apply a signed fill and return the realised PnL of any closed part."""
        if size == 0:
            return 0.0

        new_size = self.size + size

        if self.size == 0:
            self.price = price
            self.size = new_size
            return 0.0

        if _signbit(size) == _signbit(self.size):
            held, added = abs(self.size), abs(size)
            self.price = (self.price * held + price * added) / (held + added)
            self.size = new_size
            return 0.0

        closing = min(abs(size), abs(self.size))
        if self.size > 0:
            pnl = closing * (price - self.price)
        else:
            pnl = closing * (self.price - price)

        if abs(new_size) < 1e-9:
            self.size = 0.0
            self.price = 0.0
        elif _signbit(new_size) != _signbit(self.size):
            self.size = new_size
            self.price = price
        else:
            self.size = new_size

        return pnl

    def pnl(self, current_price: float) -> float:
        """Unrealised PnL at ``current_price``."""
        if not self.is_open():
            return 0.0
        return self.size * (current_price - self.price)

    def clone(self) -> Position:
        """Independent copy of this position."""
        return dataclasses.replace(self)