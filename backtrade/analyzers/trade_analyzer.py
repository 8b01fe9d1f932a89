"""Win/loss statistics of closed trades."""

from __future__ import annotations

import math
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar, Optional, TextIO

from backtrade.cerebro import Analyzer, RunResult
from backtrade.dataseries import DataSeries


@dataclass
class TradeAnalyzer(Analyzer):
    """Counts, win rate, profit factor, streaks and extremes of closed trades.

    ``profit_factor`` is gross profit over absolute gross loss, infinite when
    there are profits and no losses.
    """

    name: ClassVar[str] = "TradeAnalyzer"

    total: int = 0
    won: int = 0
    lost: int = 0
    open: int = 0
    even: int = 0

    win_rate_pct: float = 0.0

    gross_profit: float = 0.0
    gross_loss: float = 0.0
    profit_factor: float = 0.0

    avg_win_pnl: float = 0.0
    avg_loss_pnl: float = 0.0

    max_consec_wins: int = 0
    max_consec_losses: int = 0

    largest_win: float = math.nan
    largest_loss: float = math.nan

    def _reset(self) -> None:
        self.total = self.won = self.lost = self.open = self.even = 0
        self.win_rate_pct = 0.0
        self.gross_profit = self.gross_loss = self.profit_factor = 0.0
        self.avg_win_pnl = self.avg_loss_pnl = 0.0
        self.max_consec_wins = self.max_consec_losses = 0
        self.largest_win = math.nan
        self.largest_loss = math.nan

    def analyze(self, result: RunResult, datas: Optional[Sequence[DataSeries]] = None) -> None:
        self._reset()
        wins_in_row = losses_in_row = 0
        for trade in result.trades:
            if trade.is_open:
                self.open += 1
                continue
            self.total += 1
            pnl = trade.pnl_comm
            if pnl > 0:
                self.won += 1
                self.gross_profit += pnl
                wins_in_row += 1
                losses_in_row = 0
                if math.isnan(self.largest_win) or pnl > self.largest_win:
                    self.largest_win = pnl
            elif pnl < 0:
                self.lost += 1
                self.gross_loss += pnl
                losses_in_row += 1
                wins_in_row = 0
                if math.isnan(self.largest_loss) or pnl < self.largest_loss:
                    self.largest_loss = pnl
            else:
                self.even += 1
                wins_in_row = losses_in_row = 0
            self.max_consec_wins = max(self.max_consec_wins, wins_in_row)
            self.max_consec_losses = max(self.max_consec_losses, losses_in_row)

        if self.total:
            self.win_rate_pct = self.won / self.total * 100
        if self.won:
            self.avg_win_pnl = self.gross_profit / self.won
        if self.lost:
            self.avg_loss_pnl = self.gross_loss / self.lost
        if self.gross_loss == 0:
            if self.gross_profit > 0:
                self.profit_factor = math.inf
        else:
            self.profit_factor = self.gross_profit / abs(self.gross_loss)

    def report(self) -> str:
        lines = [
            "=== Trade Analyzer ===",
            f"  Total Trades   : {self.total}  (Open: {self.open})",
            f"  Won / Lost     : {self.won} / {self.lost}  (Win Rate: {self.win_rate_pct:.1f}%)",
            f"  Even           : {self.even}",
            f"  Gross Profit   : ${self.gross_profit:.2f}",
            f"  Gross Loss     : ${self.gross_loss:.2f}",
        ]
        if self.profit_factor == math.inf:
            lines.append("  Profit Factor  : ∞  (no losing trades)")
        else:
            lines.append(f"  Profit Factor  : {self.profit_factor:.2f}")
        if self.won:
            lines += [
                f"  Avg Win PnL    : ${self.avg_win_pnl:.2f}",
                f"  Largest Win    : ${self.largest_win:.2f}",
            ]
        if self.lost:
            lines += [
                f"  Avg Loss PnL   : ${self.avg_loss_pnl:.2f}",
                f"  Largest Loss   : ${self.largest_loss:.2f}",
            ]
        lines += [
            f"  Max Consec Wins  : {self.max_consec_wins}",
            f"  Max Consec Loss  : {self.max_consec_losses}",
        ]
        return "\n".join(lines) + "\n\n"

    def print(self, file: Optional[TextIO] = None) -> None:
        (file or sys.stdout).write(self.report())