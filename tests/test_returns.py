import io
import math

import pytest

from backtrade.analyzers.returns import Returns
from backtrade.cerebro import RunResult
from backtrade.trade import Trade


def make_trade(pnl, is_open=False):
    return Trade(pnl=pnl, pnl_comm=pnl, is_open=is_open)


def make_result(start_cash, trades, equity):
    return RunResult(
        starting_cash=start_cash,
        final_value=equity[-1] if equity else start_cash,
        trades=list(trades or []),
        equity_curve=list(equity or []),
    )


def test_returns_basic():
    trades = [make_trade(200), make_trade(-50), make_trade(100)]
    r = Returns()
    r.analyze(make_result(10_000, trades, [10_000, 10_200, 10_150, 10_250]), None)
    assert r.total_return_pct == pytest.approx(2.5, abs=1e-6)
    assert r.best_trade_pnl == 200
    assert r.worst_trade_pnl == -50
    assert r.avg_trade_pnl == pytest.approx((200 - 50 + 100) / 3.0)
    assert r.pnl == pytest.approx(250)
    assert r.start_value == 10_000
    assert r.end_value == 10_250


def test_returns_negative():
    r = Returns()
    r.analyze(make_result(10_000, None, [10_000, 9_500]))
    assert r.total_return_pct < 0
    assert r.total_return_pct == pytest.approx(-5.0)


def test_returns_ignore_open_trades():
    r = Returns()
    r.analyze(make_result(1_000, [make_trade(10), make_trade(500, is_open=True)], [1_000]))
    assert r.best_trade_pnl == 10
    assert r.worst_trade_pnl == 10
    assert r.avg_trade_pnl == 10


def test_returns_without_trades_leaves_nan():
    r = Returns()
    r.analyze(make_result(1_000, [], [1_000]))
    assert math.isnan(r.best_trade_pnl)
    assert math.isnan(r.worst_trade_pnl)
    assert r.avg_trade_pnl == 0


def test_returns_zero_start_cash_has_no_percentage():
    r = Returns()
    r.analyze(make_result(0, [], [50]))
    assert r.total_return_pct == 0
    assert r.pnl == 50


def test_returns_report_lines():
    r = Returns()
    r.analyze(make_result(10_000, [make_trade(200)], [10_000, 10_200]))
    text = r.report()
    assert "  Total Return   : 2.00%" in text
    assert "  Best Trade     : $200.00" in text
    out = io.StringIO()
    r.print(out)
    assert out.getvalue() == text

    empty = Returns()
    empty.analyze(make_result(10_000, [], [10_000]))
    assert "Best Trade" not in empty.report()