from datetime import datetime, timedelta, timezone

import pytest

from backtrade.broker import Broker
from backtrade.dataseries import Bar, DataSeries
from backtrade.order import OrderSide, OrderStatus, OrderType, ValidType
from backtrade.strategy import (
    AllInSizer,
    FixedSizer,
    PercentSizer,
    StrategyContext,
    Timer,
)

DAY0 = datetime(2023, 1, 2, tzinfo=timezone.utc)


def _series(*closes, name="test"):
    ds = DataSeries(name)
    for i, close in enumerate(closes):
        ds.forward()
        ds.append_bar(
            Bar(
                datetime=DAY0 + timedelta(days=i),
                open=close,
                high=close + 2,
                low=close - 2,
                close=close,
                volume=100,
            )
        )
    return ds


def _advance(ds, close):
    ds.forward()
    ds.append_bar(
        Bar(
            datetime=ds.bar_ago(-1).datetime + timedelta(days=1) if len(ds) > 1 else DAY0,
            open=close,
            high=close + 2,
            low=close - 2,
            close=close,
        )
    )


def _context(cash=10_000, *closes):
    ds = _series(*(closes or (100,)))
    broker = Broker(cash)
    return StrategyContext([ds], broker, [ds]), broker, ds


# ── Sizers ─────────────────────────────────────────────────────────────


def test_fixed_sizer():
    assert FixedSizer(amount=25).size(None, None) == 25


def test_percent_sizer():
    broker = Broker(10_000)
    ds = DataSeries("test")
    ds.forward()
    ds.append_bar(Bar(close=100))
    ctx = StrategyContext([ds], broker)
    assert PercentSizer(percent=0.10).size(ctx, ds) == 10


def test_all_in_sizer():
    broker = Broker(5_000)
    ds = DataSeries("test")
    ds.forward()
    ds.append_bar(Bar(close=50))
    ctx = StrategyContext([ds], broker)
    assert AllInSizer().size(ctx, ds) == 100


def test_sizers_return_zero_for_non_positive_price():
    broker = Broker(5_000)
    ds = DataSeries("test")
    ds.forward()
    ds.append_bar(Bar(close=0))
    ctx = StrategyContext([ds], broker)
    assert AllInSizer().size(ctx, ds) == 0
    assert PercentSizer(percent=0.5).size(ctx, ds) == 0


# ── Data access ────────────────────────────────────────────────────────


def test_data_and_preloaded_data():
    ctx, broker, ds = _context()
    assert ctx.data() is ds
    assert ctx.preloaded_data() is ds
    assert ctx.broker is broker


def test_data_is_none_without_feeds():
    ctx = StrategyContext([], Broker(1_000))
    assert ctx.data() is None
    assert ctx.preloaded_data() is None


def test_cash_and_value_come_from_broker():
    ctx, _, _ = _context(7_500)
    assert ctx.get_cash() == 7_500
    assert ctx.get_value() == 7_500


def test_add_cash_applies_on_next_bar():
    ctx, broker, ds = _context(10_000)
    ctx.add_cash(5_000)
    assert ctx.get_cash() == 10_000
    broker.next([ds])
    assert ctx.get_cash() == 15_000


# ── Orders ─────────────────────────────────────────────────────────────


def test_buy_submits_accepted_market_order():
    ctx, _, ds = _context()
    order = ctx.buy(10)
    assert order.side is OrderSide.BUY
    assert order.order_type is OrderType.MARKET
    assert order.size == 10
    assert order.data is ds
    assert order.status is OrderStatus.ACCEPTED
    assert ctx.get_orders_open() == [order]


def test_sell_with_limit_option():
    ctx, _, _ = _context()
    order = ctx.sell(5, limit=120.0)
    assert order.side is OrderSide.SELL
    assert order.order_type is OrderType.LIMIT
    assert order.price == 120.0


def test_later_option_wins():
    ctx, _, _ = _context()
    order = ctx.buy(1, limit=10.0, stop=12.0)
    assert order.order_type is OrderType.STOP
    assert order.price == 12.0


def test_stop_limit_and_close_options():
    ctx, _, _ = _context()
    stop_limit = ctx.buy(1, stop_limit=(105.0, 106.0))
    assert (stop_limit.order_type, stop_limit.price, stop_limit.price2) == (
        OrderType.STOP_LIMIT,
        105.0,
        106.0,
    )
    at_close = ctx.buy(1, at_close=True)
    assert at_close.order_type is OrderType.CLOSE


def test_stop_trail_option_computes_trail_stop():
    ctx, _, _ = _context(10_000, 103)
    order = ctx.sell(10, stop_trail=(0, 5.0))
    assert order.order_type is OrderType.STOP_TRAIL
    assert order.trail_amount == 5.0
    assert order.trail_stop == pytest.approx(98.0)


def test_stop_trail_percent_option():
    ctx, _, _ = _context(10_000, 100)
    order = ctx.sell(10, stop_trail_percent=(0, 0.02))
    assert order.trail_percent == 0.02
    assert order.trail_stop == pytest.approx(98.0)


def test_stop_trail_limit_option():
    ctx, _, _ = _context()
    order = ctx.buy(1, stop_trail_limit=(110.0, 3.0, 0.5))
    assert order.order_type is OrderType.STOP_TRAIL_LIMIT
    assert (order.price, order.trail_amount, order.price2) == (110.0, 3.0, 0.5)
    assert order.trail_stop == 110.0


def test_validity_options():
    ctx, _, _ = _context()
    until = DAY0 + timedelta(days=3)
    gtd = ctx.buy(1, limit=1.0, valid=until)
    assert gtd.valid_type is ValidType.GTD
    assert gtd.valid_time == until
    day = ctx.buy(1, limit=1.0, day=True)
    assert day.valid_type is ValidType.DAY


def test_oco_and_parent_options():
    ctx, _, _ = _context()
    first = ctx.buy(1, limit=1.0)
    linked = ctx.buy(1, limit=1.0, oco=first)
    assert linked.oco_ref == first.ref
    child = ctx.sell(1, stop=50.0, parent=first)
    assert child.parent_ref == first.ref
    assert child.status is OrderStatus.SUBMITTED
    assert child not in ctx.get_orders_open()


def test_transmit_option():
    ctx, _, _ = _context()
    assert ctx.buy(1, transmit=False).transmit is False


def test_unknown_option_raises():
    ctx, _, _ = _context()
    with pytest.raises(TypeError):
        ctx.buy(1, bogus=True)


def test_cancel_removes_pending_order():
    ctx, _, _ = _context()
    order = ctx.buy(10, limit=1.0)
    ctx.cancel(order)
    assert order.status is OrderStatus.CANCELED
    assert ctx.get_orders_open() == []


def test_close_returns_none_when_flat():
    ctx, _, _ = _context()
    assert ctx.close() is None


def _filled_long(size=10):
    ctx, broker, ds = _context(10_000, 100)
    ctx.buy(size)
    _advance(ds, 101)
    broker.next([ds])
    assert ctx.get_position(ds).size == size
    return ctx, broker, ds


def test_close_sells_long_position():
    ctx, _, _ = _filled_long()
    order = ctx.close()
    assert order.side is OrderSide.SELL
    assert order.size == 10


def test_close_data_buys_back_short():
    ctx, broker, ds = _context(10_000, 100)
    ctx.sell(4)
    _advance(ds, 99)
    broker.next([ds])
    order = ctx.close_data(ds)
    assert order.side is OrderSide.BUY
    assert order.size == 4


def test_order_target_size():
    ctx, _, _ = _filled_long()
    assert ctx.order_target_size(10) is None
    down = ctx.order_target_size(4)
    assert down.side is OrderSide.SELL
    assert down.size == pytest.approx(6)
    up = ctx.order_target_size(15)
    assert up.side is OrderSide.BUY
    assert up.size == pytest.approx(5)


def test_order_target_value():
    ctx, _, _ = _context(10_000, 100)
    order = ctx.order_target_value(1_000)
    assert order.side is OrderSide.BUY
    assert order.size == pytest.approx(10)


def test_order_target_value_without_data():
    ctx = StrategyContext([DataSeries("empty")], Broker(1_000))
    assert ctx.order_target_value(500) is None


def test_order_target_percent():
    ctx, _, _ = _context(10_000, 100)
    order = ctx.order_target_percent(0.10)
    assert order.size == pytest.approx(10)


def test_buy_bracket_links_children():
    ctx, broker, _ = _context(10_000, 100)
    entry, take_profit, stop_loss = ctx.buy_bracket(10, 110.0, 95.0)
    assert entry.side is OrderSide.BUY
    assert entry.status is OrderStatus.ACCEPTED
    assert (take_profit.side, take_profit.order_type, take_profit.price) == (
        OrderSide.SELL,
        OrderType.LIMIT,
        110.0,
    )
    assert (stop_loss.side, stop_loss.order_type, stop_loss.price) == (
        OrderSide.SELL,
        OrderType.STOP,
        95.0,
    )
    assert take_profit.parent_ref == entry.ref
    assert stop_loss.parent_ref == entry.ref
    assert take_profit.oco_ref == take_profit.ref
    assert stop_loss.oco_ref == take_profit.ref
    assert broker.get_orders_open() == [entry]


def test_sell_bracket_children_are_buys():
    ctx, _, _ = _context(10_000, 100)
    entry, take_profit, stop_loss = ctx.sell_bracket(5, 90.0, 105.0)
    assert entry.side is OrderSide.SELL
    assert take_profit.side is OrderSide.BUY
    assert stop_loss.side is OrderSide.BUY
    assert take_profit.status is OrderStatus.SUBMITTED


def test_bracket_children_activate_after_entry_fills():
    ctx, broker, ds = _context(10_000, 100)
    entry, take_profit, stop_loss = ctx.buy_bracket(10, 150.0, 50.0)
    _advance(ds, 100)
    broker.next([ds])
    assert entry.status is OrderStatus.COMPLETED
    _advance(ds, 100)
    broker.next([ds])
    assert take_profit.status is OrderStatus.ACCEPTED
    assert stop_loss.status is OrderStatus.ACCEPTED


# ── Timers ─────────────────────────────────────────────────────────────


def test_timers_fire_once_when_due():
    ctx, _, _ = _context()
    first = ctx.add_timer(datetime(2023, 1, 3, tzinfo=timezone.utc))
    second = ctx.add_timer(datetime(2023, 1, 5))
    assert (first.id, second.id) == (0, 1)
    assert ctx.pop_triggered_timers(datetime(2023, 1, 2, tzinfo=timezone.utc)) == []
    assert ctx.pop_triggered_timers(datetime(2023, 1, 3, tzinfo=timezone.utc)) == [first]
    assert ctx.pop_triggered_timers(datetime(2023, 1, 4, tzinfo=timezone.utc)) == []
    assert ctx.pop_triggered_timers(datetime(2023, 1, 9, tzinfo=timezone.utc)) == [second]


def test_timer_holds_when():
    ctx, _, _ = _context()
    when = datetime(2023, 1, 3, tzinfo=timezone.utc)
    assert ctx.add_timer(when) == Timer(id=0, when=when)


# ── Logging ────────────────────────────────────────────────────────────


def test_log_prefixes_bar_date(capsys):
    ctx, _, _ = _context(10_000, 100, 101)
    ctx.log("hello 42")
    assert capsys.readouterr().out == "[2023-01-03] hello 42\n"