"""Commission, margin, leverage and interest schemes."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass


class CommType(enum.Enum):
    """How a commission rate is applied."""

    PERC = 0
    FIXED = 1


class CommissionInfo(ABC):
    """Anything that can price the commission of a fill."""

    @abstractmethod
    def get_commission(self, size: float, price: float) -> float:
        """Commission owed for trading ``size`` units at ``price``."""


@dataclass(frozen=True)
class PercentCommission(CommissionInfo):
    """Percentage of notional value, e.g. ``0.001`` for 0.1%."""

    percent: float = 0.0

    def get_commission(self, size: float, price: float) -> float:
        return abs(size) * price * self.percent


@dataclass(frozen=True)
class FixedCommission(CommissionInfo):
    """Flat fee per share or contract."""

    per_share: float = 0.0

    def get_commission(self, size: float, price: float) -> float:
        return abs(size) * self.per_share


@dataclass(frozen=True)
class ZeroCommission(CommissionInfo):
    """No commission at all."""

    def get_commission(self, size: float, price: float) -> float:
        return 0.0


@dataclass(frozen=True)
class CommInfo(CommissionInfo):
    """Full commission, margin, multiplier, leverage and interest descriptor.

    With ``perc_abs`` false a percentage rate is read as "XX%" and divided by
    100. ``auto_margin > 0`` makes futures margin a fraction of the price;
    ``auto_margin < 0`` makes it the price times the multiplier.
    """

    commission: float = 0.0
    comm_type: CommType = CommType.PERC
    perc_abs: bool = False
    margin: float = 0.0
    mult: float = 0.0
    auto_margin: float = 0.0
    stock_like: bool = False
    leverage: float = 0.0
    interest: float = 0.0
    interest_long: bool = False

    def get_commission(self, size: float, price: float) -> float:
        size = abs(size)
        if self.comm_type is CommType.FIXED:
            return size * self.commission
        rate = self.commission if self.perc_abs else self.commission / 100.0
        return size * price * self.mult * rate

    def get_margin(self, size: float, price: float) -> float:
        """Margin needed to open or hold ``size`` units at ``price``."""
        size = abs(size)
        if self.stock_like:
            leverage = self.leverage if self.leverage > 0 else 1.0
            return size * price / leverage
        if self.auto_margin > 0:
            return size * price * self.auto_margin
        if self.auto_margin < 0:
            return size * price * self.mult
        return size * self.margin

    def _multiplier(self) -> float:
        return self.mult if self.mult > 0 else 1.0

    def get_value(self, size: float, price: float) -> float:
        """Notional value of a position, including the multiplier."""
        return abs(size) * price * self._multiplier()

    def effective_leverage(self) -> float:
        """Leverage factor, 1 when unset or non-positive."""
        return self.leverage if self.leverage > 0 else 1.0

    def profit_and_loss(self, size: float, entry_price: float, exit_price: float) -> float:
        """Realised PnL of ``size`` units moved from entry to exit price."""
        return size * (exit_price - entry_price) * self._multiplier()

    def daily_interest(self, size: float, price: float, days: int) -> float:
        """Interest for holding the position ``days`` days at a yearly rate."""
        if self.interest == 0:
            return 0.0
        if not self.interest_long and size > 0:
            return 0.0
        return days * price * abs(size) * (self.interest / 365.0)

    def cash_cost(self, size: float, price: float) -> float:
        """Cash needed to open a position: leveraged notional or margin."""
        if self.stock_like:
            return self.get_value(size, price) / self.effective_leverage()
        return self.get_margin(size, price)


def stock_comm_info(commission: float) -> CommInfo:
    """Percentage commission scheme for stocks, e.g. ``0.001`` for 0.1%."""
    return CommInfo(
        commission=commission,
        comm_type=CommType.PERC,
        perc_abs=True,
        mult=1.0,
        leverage=1.0,
        stock_like=True,
    )


def futures_comm_info(commission: float, margin: float, mult: float) -> CommInfo:
    """Per-contract commission scheme for futures with margin and multiplier."""
    return CommInfo(
        commission=commission,
        comm_type=CommType.FIXED,
        margin=margin,
        mult=mult,
        leverage=1.0,
        stock_like=False,
    )