"""Maximum and current drawdown of the equity curve."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Optional, TextIO

from backtrade.cerebro import Analyzer, RunResult
from backtrade.dataseries import DataSeries


@dataclass
class DrawDown(Analyzer):
    """Peak-to-trough drawdown figures of a run's equity curve."""

    name: ClassVar[str] = "DrawDown"

    max_drawdown_pct: float = 0.0
    max_drawdown_abs: float = 0.0
    max_dd_start: int = 0
    max_dd_end: int = 0
    max_dd_duration: int = 0
    current_drawdown_pct: float = 0.0
    current_drawdown_abs: float = 0.0

    def analyze(self, result: RunResult, datas: Optional[Sequence[DataSeries]] = None) -> None:
        curve = result.equity_curve
        if not curve:
            return

        peak = curve[0]
        peak_index = 0
        max_dd = 0.0
        max_dd_pct = 0.0
        start = end = 0
        for index, value in enumerate(curve):
            if value > peak:
                peak = value
                peak_index = index
            drawdown = peak - value
            if drawdown > max_dd:
                max_dd = drawdown
                start = peak_index
                end = index
                if peak != 0:
                    max_dd_pct = drawdown / peak * 100

        self.max_drawdown_abs = max_dd
        self.max_drawdown_pct = max_dd_pct
        self.max_dd_start = start
        self.max_dd_end = end
        self.max_dd_duration = end - start

        run_peak = max(curve)
        self.current_drawdown_abs = max(0.0, run_peak - curve[-1])
        if run_peak != 0:
            self.current_drawdown_pct = self.current_drawdown_abs / run_peak * 100

    def report(self) -> str:
        return (
            "=== DrawDown ===\n"
            f"  Max Drawdown       : ${self.max_drawdown_abs:.2f}  "
            f"({self.max_drawdown_pct:.2f}%)\n"
            f"  Max DD Duration    : {self.max_dd_duration} bars  "
            f"(bars {self.max_dd_start} → {self.max_dd_end})\n"
            f"  Current Drawdown   : ${self.current_drawdown_abs:.2f}  "
            f"({self.current_drawdown_pct:.2f}%)\n"
            "\n"
        )

    def print(self, file: Optional[TextIO] = None) -> None:
        (file or sys.stdout).write(self.report())