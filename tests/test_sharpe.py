import io

import pytest

from backtrade.analyzers.sharpe import SharpeRatio
from backtrade.cerebro import RunResult
from backtrade.trade import Trade


def make_trade(pnl, is_open=False):
    return Trade(is_open=is_open, pnl_comm=pnl, pnl=pnl)


def make_result(start_cash, trades):
    return RunResult(starting_cash=start_cash, final_value=start_cash, trades=trades)


def test_identical_trades_give_nan():
    s = SharpeRatio(annualisation_factor=1)
    s.analyze(make_result(10_000, [make_trade(100), make_trade(100)]), None)
    assert str(s.value) == "nan"


def test_varied_winning_trades_give_positive_value():
    s = SharpeRatio(annualisation_factor=1)
    trades = [make_trade(300), make_trade(200), make_trade(100)]
    s.analyze(make_result(10_000, trades), None)
    assert str(s.value) != "nan"
    assert s.value > 0


def test_fewer_than_two_closed_trades_is_nan():
    s = SharpeRatio(annualisation_factor=1)
    s.analyze(make_result(10_000, [make_trade(100), make_trade(50, is_open=True)]), None)
    assert str(s.value) == "nan"


def test_zero_starting_cash_is_nan():
    s = SharpeRatio(annualisation_factor=1)
    s.analyze(make_result(0, [make_trade(100), make_trade(200)]), None)
    assert str(s.value) == "nan"


def test_open_trades_are_ignored():
    trades = [make_trade(300), make_trade(200), make_trade(100)]
    base = SharpeRatio(annualisation_factor=1)
    base.analyze(make_result(10_000, trades), None)
    with_open = SharpeRatio(annualisation_factor=1)
    with_open.analyze(make_result(10_000, trades + [make_trade(-5000, is_open=True)]), None)
    assert with_open.value == pytest.approx(base.value)


def test_annualisation_scales_by_square_root():
    trades = [make_trade(300), make_trade(200), make_trade(100)]
    daily = SharpeRatio(annualisation_factor=1)
    daily.analyze(make_result(10_000, trades), None)
    scaled = SharpeRatio(annualisation_factor=4)
    scaled.analyze(make_result(10_000, trades), None)
    assert scaled.value == pytest.approx(2 * daily.value)


def test_default_factor_is_252():
    trades = [make_trade(300), make_trade(-200), make_trade(100)]
    default = SharpeRatio()
    default.analyze(make_result(10_000, trades), None)
    explicit = SharpeRatio(annualisation_factor=252)
    explicit.analyze(make_result(10_000, trades), None)
    assert default.value == pytest.approx(explicit.value)


def test_risk_free_rate_lowers_value():
    trades = [make_trade(300), make_trade(200), make_trade(100)]
    plain = SharpeRatio(annualisation_factor=1)
    plain.analyze(make_result(10_000, trades), None)
    with_rf = SharpeRatio(annualisation_factor=1, risk_free_rate=0.01)
    with_rf.analyze(make_result(10_000, trades), None)
    assert with_rf.value < plain.value


def test_report_for_nan():
    s = SharpeRatio()
    s.analyze(make_result(10_000, []), None)
    assert "N/A (need at least 2 closed trades)" in s.report()
    assert s.report().startswith("=== Sharpe Ratio ===")


def test_print_writes_report():
    s = SharpeRatio(annualisation_factor=1)
    s.analyze(make_result(10_000, [make_trade(300), make_trade(100)]), None)
    buffer = io.StringIO()
    s.print(buffer)
    assert buffer.getvalue() == s.report()
    assert f"Sharpe Ratio : {s.value:.4f}" in buffer.getvalue()