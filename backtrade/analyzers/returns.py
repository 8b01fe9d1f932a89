"""Overall return and per-trade PnL figures of a run."""

from __future__ import annotations

import math
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Optional, TextIO

from backtrade.cerebro import Analyzer, RunResult
from backtrade.dataseries import DataSeries


@dataclass
class Returns(Analyzer):
    """Total return, PnL and best, worst and average closed-trade PnL."""

    name: ClassVar[str] = "Returns"

    total_return_pct: float = 0.0
    start_value: float = 0.0
    end_value: float = 0.0
    pnl: float = 0.0

    best_trade_pnl: float = math.nan
    worst_trade_pnl: float = math.nan
    avg_trade_pnl: float = 0.0

    def analyze(self, result: RunResult, datas: Optional[Sequence[DataSeries]] = None) -> None:
        self.start_value = result.starting_cash
        self.end_value = result.final_value
        self.pnl = result.final_value - result.starting_cash
        if result.starting_cash != 0:
            self.total_return_pct = self.pnl / result.starting_cash * 100

        closed = [t.pnl_comm for t in result.trades if not t.is_open]
        if closed:
            self.best_trade_pnl = max(closed)
            self.worst_trade_pnl = min(closed)
            self.avg_trade_pnl = sum(closed) / len(closed)
        else:
            self.best_trade_pnl = math.nan
            self.worst_trade_pnl = math.nan

    def report(self) -> str:
        lines = [
            "=== Returns ===",
            f"  Starting Value : ${self.start_value:.2f}",
            f"  Final Value    : ${self.end_value:.2f}",
            f"  PnL            : ${self.pnl:.2f}",
            f"  Total Return   : {self.total_return_pct:.2f}%",
        ]
        if not math.isnan(self.best_trade_pnl):
            lines += [
                f"  Best Trade     : ${self.best_trade_pnl:.2f}",
                f"  Worst Trade    : ${self.worst_trade_pnl:.2f}",
                f"  Avg Trade PnL  : ${self.avg_trade_pnl:.2f}",
            ]
        return "\n".join(lines) + "\n\n"

    def print(self, file: Optional[TextIO] = None) -> None:
        (file or sys.stdout).write(self.report())