"""System Quality Number of the closed trades."""

from __future__ import annotations

import math
import statistics
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Optional, TextIO

from backtrade.cerebro import Analyzer, RunResult
from backtrade.dataseries import DataSeries

_GRADES = (
    (5.0, "Holy Grail"),
    (3.0, "Excellent"),
    (2.5, "Good"),
    (2.0, "Average"),
    (1.6, "Below Average"),
)


def sqn_grade(value: float) -> str:
    """Verbal grade of an SQN value."""
    for threshold, grade in _GRADES:
        if value >= threshold:
            return grade
    return "Difficult to Trade"


@dataclass
class SQN(Analyzer):
    """``SQN = mean(R) / stdev(R) * sqrt(N)`` over closed-trade returns.

    ``R`` is each closed trade's net PnL divided by the starting cash.
    """

    name: ClassVar[str] = "SQN"

    value: float = math.nan
    grade: str = "N/A"
    n: int = 0

    def analyze(self, result: RunResult, datas: Optional[Sequence[DataSeries]] = None) -> None:
        returns = (
            [t.pnl_comm / result.starting_cash for t in result.trades if not t.is_open]
            if result.starting_cash != 0
            else []
        )
        self.n = len(returns)
        if self.n < 2:
            self.value = math.nan
            self.grade = "N/A"
            return

        stddev = statistics.stdev(returns)
        if stddev < 1e-12:
            self.value = math.nan
            self.grade = "N/A"
            return

        self.value = statistics.fmean(returns) / stddev * math.sqrt(self.n)
        self.grade = sqn_grade(self.value)

    def report(self) -> str:
        lines = ["=== SQN (System Quality Number) ==="]
        if math.isnan(self.value):
            lines.append(f"  N/A (need at least 2 closed trades, got {self.n})")
        else:
            lines += [
                f"  SQN   : {self.value:.4f}",
                f"  Grade : {self.grade}",
                f"  Trades: {self.n}",
            ]
        return "\n".join(lines) + "\n\n"

    def print(self, file: Optional[TextIO] = None) -> None:
        (file or sys.stdout).write(self.report())