"""Annualised Sharpe ratio computed from closed-trade returns."""

from __future__ import annotations

import math
import statistics
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Optional, TextIO

from backtrade.cerebro import Analyzer, RunResult
from backtrade.dataseries import DataSeries

DEFAULT_ANNUALISATION_FACTOR = 252.0


@dataclass
class SharpeRatio(Analyzer):
    """Sharpe ratio of per-trade net returns.

    ``value = (mean(R) - rf / af) / stdev(R) * sqrt(af)``, where ``R`` is each
    closed trade's net PnL divided by the starting cash, ``rf`` the annual
    risk-free rate and ``af`` the annualisation factor (252 when left at 0).
    ``value`` is NaN with fewer than two closed trades or zero deviation.
    """

    name: ClassVar[str] = "SharpeRatio"

    risk_free_rate: float = 0.0
    annualisation_factor: float = 0.0
    value: float = math.nan

    def analyze(self, result: RunResult, datas: Optional[Sequence[DataSeries]] = None) -> None:
        factor = self.annualisation_factor or DEFAULT_ANNUALISATION_FACTOR

        returns = (
            [t.pnl_comm / result.starting_cash for t in result.trades if not t.is_open]
            if result.starting_cash != 0
            else []
        )
        if len(returns) < 2:
            self.value = math.nan
            return

        mean = statistics.fmean(returns)
        stddev = statistics.stdev(returns)
        if stddev < 1e-12:
            self.value = math.nan
            return

        excess = mean - self.risk_free_rate / factor
        self.value = excess / stddev * math.sqrt(factor)

    def report(self) -> str:
        if math.isnan(self.value):
            body = "  N/A (need at least 2 closed trades)"
        else:
            body = f"  Sharpe Ratio : {self.value:.4f}"
        return f"=== Sharpe Ratio ===\n{body}\n\n"

    def print(self, file: Optional[TextIO] = None) -> None:
        (file or sys.stdout).write(self.report())