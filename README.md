# backtrade

An event-driven backtesting engine. Bars are fed in one at a time, a
simulated broker fills pending orders against each new bar, and your
strategy reacts to the result. When the run ends, analyzers summarise
the equity curve and the closed trades.

## Modules

- `backtrade.line`: `Line`, a growing float series read "ago" style
  (`get(0)` is the current bar, `get(-1)` the previous one; out-of-range
  reads give NaN).
- `backtrade.dataseries`: `Bar` and `DataSeries`, the OHLCV lines of one
  instrument. Datetimes are stored as whole Unix seconds and read back
  as UTC.
- `backtrade.position`: `Position`, with averaging in, partial closes,
  reversals and realised/unrealised PnL.
- `backtrade.commission`: `PercentCommission`, `FixedCommission`,
  `ZeroCommission`, and `CommInfo` with margin, multiplier, leverage
  and interest (built with `stock_comm_info` or `futures_comm_info`).
- `backtrade.order`: `Order` with `OrderType`, `OrderSide`,
  `OrderStatus`, `ValidType` and its `ExecutionBit` fill history.
- `backtrade.trade`: `Trade`, a round trip from opening fill to flat.
- `backtrade.broker`: `BrokerBase` and the simulated `Broker`.
- `backtrade.strategy`: `Strategy`, `StrategyContext`, `Timer` and the
  sizers `FixedSizer`, `PercentSizer` and `AllInSizer`.
- `backtrade.cerebro`: `Cerebro`, the feed interfaces `DataFeed`,
  `PreloadedDataFeed` and `LiveFeed`, `RunResult`, `Analyzer` and
  `CerebroError`.
- `backtrade.analyzers`: `drawdown.DrawDown`, `returns.Returns`,
  `sharpe.SharpeRatio`, `sqn.SQN` (with `sqn_grade`) and
  `trade_analyzer.TradeAnalyzer`.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## A short example

A data feed subclasses `DataFeed` and implements `load()`, `next()`
(returning `False` once it runs out of bars) and `data()` returning its
`DataSeries`. Each call to `next()` moves the series forward one bar
with `DataSeries.forward()` and then writes the bar with
`DataSeries.append_bar(bar)`.

```python
from datetime import datetime, timedelta, timezone

from backtrade.analyzers.drawdown import DrawDown
from backtrade.analyzers.returns import Returns
from backtrade.analyzers.trade_analyzer import TradeAnalyzer
from backtrade.cerebro import Cerebro, DataFeed
from backtrade.commission import PercentCommission
from backtrade.dataseries import Bar, DataSeries
from backtrade.strategy import Strategy


class ListFeed(DataFeed):
    """Replays a list of bars that is already in memory."""

    def __init__(self, name, bars):
        self._series = DataSeries(name)
        self._bars = iter(bars)

    def load(self):
        pass

    def next(self):
        bar = next(self._bars, None)
        if bar is None:
            return False
        self._series.forward()
        self._series.append_bar(bar)
        return True

    def data(self):
        return self._series


class Crossover(Strategy):
    def init(self, ctx):
        self.ctx = ctx

    def next(self):
        data = self.ctx.data()
        if len(data) < 6:
            return
        fast = sum(data.close.get(-i) for i in range(3)) / 3
        slow = sum(data.close.get(-i) for i in range(5)) / 5
        position = self.ctx.get_position(data)
        if not position.is_open() and fast > slow:
            self.ctx.buy(10)
        elif position.is_open() and fast < slow:
            self.ctx.close()


start = datetime(2023, 1, 2, tzinfo=timezone.utc)
closes = [100, 101, 99, 98, 102, 105, 107, 104, 101, 99, 103, 106]
bars = [
    Bar(datetime=start + timedelta(days=i), open=c, high=c + 1, low=c - 1, close=c)
    for i, c in enumerate(closes)
]

cerebro = Cerebro()
cerebro.set_cash(10_000)
cerebro.set_commission(PercentCommission(0.001))
cerebro.add_data(ListFeed("DEMO", bars))
cerebro.add_strategy(Crossover)

drawdown, returns, trades = DrawDown(), Returns(), TradeAnalyzer()
for analyzer in (drawdown, returns, trades):
    cerebro.add_analyzer(analyzer)

results = cerebro.run()
print(results[0].final_value)

returns.print()
drawdown.print()
trades.print()
```

`Cerebro.run()` raises `CerebroError` when no feed or no strategy has
been added, when a feed fails to load, or when an analyzer fails. The
run stops as soon as any feed's `next()` returns `False`. Each
`RunResult` carries the starting cash, the final portfolio value, every
trade, and the equity and cash curves sampled after each bar.

`Cerebro.run_live(cancel)` does the same with every `LiveFeed` started
first (given `cancel`) and stopped at the end; the loop also ends once
`cancel.is_set()` is true.

## Strategies

A `Strategy` implements `init(ctx)` and `next()`. The engine also calls
these methods when a strategy defines them: `start()` and `stop()`
around a `run()`, `notify_order(order)`, `notify_trade(trade)`,
`notify_cash_value(cash, value)` (in `run()` only) and
`notify_timer(timer, when)` for timers set with
`StrategyContext.add_timer`.

The order helpers of `StrategyContext` (`buy`, `sell`, `close`,
`buy_data`, `sell_data`, `close_data`, `order_target_size`,
`order_target_size_data`, `order_target_value`,
`order_target_percent`) take keyword options, applied in the order
given: `limit=price`, `stop=price`, `stop_limit=(stop, limit)`,
`at_close=True`, `stop_trail=(price, amount)`,
`stop_trail_percent=(price, pct)`,
`stop_trail_limit=(price, amount, limit_offset)`, `valid=datetime`,
`day=True`, `oco=order`, `parent=order` and `transmit=bool`. An unknown
option raises `TypeError`.

## Orders in brief

Market orders fill at the open of the next bar the broker processes;
close orders fill at that bar's close. Limit orders fill at their limit
price once the bar's range reaches it. Stop and trailing-stop orders
fill at the bar's open once triggered; stop-limit and
trailing-stop-limit orders fill at their limit price. Each bar a
trailing stop is recomputed from the close and the trail amount: for a
buy order it is raised to close minus the amount if that is higher, for
a sell order lowered to close plus the amount if that is lower.

A buy that needs more cash than is available gets status `MARGIN`.
DAY orders expire on the first bar of a later UTC date; good-till-date
orders expire on the first bar after their `valid_time`.

Slippage (`Broker.set_slippage_percent` or `Broker.set_slippage_fixed`)
is always applied to stop-type fills, to market and close fills when
`slip_open` is set, and to limit fills when `slip_limit` is set. With
`slip_match` on and `slip_out` off it is capped at the bar's high or
low.

Bracket orders (`StrategyContext.buy_bracket` and
`StrategyContext.sell_bracket`) submit an entry order plus a
take-profit limit and a stop-loss stop. The two exits form a
one-cancels-other pair and become active on the bar after the entry has
filled completely. Cancelling the entry cancels them too.

## Analyzers

| Analyzer        | Reports                                                        |
|-----------------|----------------------------------------------------------------|
| `DrawDown`      | maximum and current peak-to-trough drawdown, in cash and %     |
| `Returns`       | total return, PnL, best, worst and average closed trade        |
| `SharpeRatio`   | annualised Sharpe ratio of per-trade returns (NaN below 2)     |
| `SQN`           | System Quality Number with its grade (see `sqn_grade`)         |
| `TradeAnalyzer` | win rate, profit factor, streaks, largest win and loss         |

Each analyzer fills its fields in `analyze(result, datas)`, returns its
summary as text from `report()`, and writes it with `print(file)`
(standard output by default).

## What it does not do

The package has no readers for data files such as CSV and no
ready-made live or streaming feeds: you supply bars through your own
`DataFeed`. There is no command-line tool, no plotting and no
persistence of results.