"""The backtest engine: feeds, strategies, broker and analyzers wired together."""

from __future__ import annotations

import sys
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, TextIO

from backtrade.broker import Broker, BrokerBase
from backtrade.commission import CommissionInfo
from backtrade.dataseries import DataSeries
from backtrade.strategy import Strategy, StrategyContext
from backtrade.trade import Trade


class CerebroError(Exception):
    """Raised when a run cannot be set up or finished."""


class DataFeed(ABC):
    """A source that supplies bars one at a time."""

    @abstractmethod
    def load(self) -> None:
        """Prepare the data; called once before the run."""

    @abstractmethod
    def next(self) -> bool:
        """Advance by one bar; False once the data is exhausted."""

    @abstractmethod
    def data(self) -> DataSeries:
        """The series that grows as the feed advances."""


class PreloadedDataFeed(DataFeed):
    """A feed that can also hand out a fully loaded series for indicators."""

    @abstractmethod
    def preloaded_data(self) -> DataSeries:
        """A series with every bar already loaded."""


class LiveFeed(DataFeed):
    """A real-time feed that must be started and stopped."""

    @abstractmethod
    def start(self, cancel: Any) -> None:
        """Start receiving bars; ``cancel`` signals when to give up."""

    @abstractmethod
    def stop(self) -> None:
        """Stop receiving bars."""


@dataclass
class RunResult:
    """Outcome of a run for one strategy."""

    starting_cash: float = 0.0
    final_value: float = 0.0
    trades: list[Trade] = field(default_factory=list)
    equity_curve: list[float] = field(default_factory=list)
    cash_curve: list[float] = field(default_factory=list)


class Analyzer(ABC):
    """Post-run performance analysis."""

    name: ClassVar[str] = "Analyzer"

    @abstractmethod
    def analyze(self, result: RunResult, datas: Optional[Sequence[DataSeries]] = None) -> None:
        """Compute the analysis from ``result``."""

    @abstractmethod
    def report(self) -> str:
        """Formatted summary of the analysis."""

    @abstractmethod
    def print(self, file: Optional[TextIO] = None) -> None:
        """Write the summary to ``file`` (standard output by default)."""


StrategyFactory = Callable[[], Strategy]


def _hook(strategy: Strategy, name: str) -> Optional[Callable[..., Any]]:
    method = getattr(strategy, name, None)
    return method if callable(method) else None


class Cerebro:
    """Runs strategies bar by bar over data feeds against a broker."""

    def __init__(self) -> None:
        self._feeds: list[DataFeed] = []
        self._factories: list[StrategyFactory] = []
        self._analyzers: list[Analyzer] = []
        self._start_cash = 10_000.0
        self._broker: BrokerBase = Broker(self._start_cash)

    @property
    def broker(self) -> BrokerBase:
        return self._broker

    def set_cash(self, cash: float) -> None:
        self._start_cash = cash
        self._broker.set_cash(cash)

    def set_commission(self, comm: CommissionInfo) -> None:
        self._broker.set_commission(comm)

    def set_broker(self, broker: BrokerBase) -> None:
        self._broker = broker

    def add_data(self, feed: DataFeed) -> None:
        self._feeds.append(feed)

    def add_strategy(self, factory: StrategyFactory) -> None:
        """Register a callable that builds a fresh strategy."""
        self._factories.append(factory)

    def add_analyzer(self, analyzer: Analyzer) -> None:
        """Attach an analyzer, filled in after each run."""
        self._analyzers.append(analyzer)

    # ── Run helpers ─────────────────────────────────────────────────────

    def _check_ready(self) -> None:
        if not self._feeds:
            raise CerebroError("cerebro: no data feeds added")
        if not self._factories:
            raise CerebroError("cerebro: no strategies added")

    def _load_feeds(self) -> None:
        for feed in self._feeds:
            try:
                feed.load()
            except Exception as exc:
                raise CerebroError(f"cerebro: load feed: {exc}") from exc

    def _context(self) -> StrategyContext:
        datas = [feed.data() for feed in self._feeds]
        preloaded = [
            feed.preloaded_data() if isinstance(feed, PreloadedDataFeed) else feed.data()
            for feed in self._feeds
        ]
        return StrategyContext(datas, self._broker, preloaded)

    def _create_strategies(self, ctx: StrategyContext) -> list[Strategy]:
        strategies = []
        for factory in self._factories:
            strategy = factory()
            strategy.init(ctx)
            strategies.append(strategy)
        return strategies

    def _advance(self) -> bool:
        # Every feed is advanced, even after one of them runs out.
        advanced = [feed.next() for feed in self._feeds]
        return all(advanced)

    def _notify(
        self, strategies: list[Strategy], datas: list[DataSeries], with_cash_value: bool
    ) -> None:
        orders, trades = self._broker.drain_notifications()
        cash = self._broker.get_cash()
        value = self._broker.get_value(datas)
        for strategy in strategies:
            notify_order = _hook(strategy, "notify_order")
            if notify_order is not None:
                for order in orders:
                    notify_order(order)
            notify_trade = _hook(strategy, "notify_trade")
            if notify_trade is not None:
                for trade in trades:
                    notify_trade(trade)
            if with_cash_value:
                notify_cash_value = _hook(strategy, "notify_cash_value")
                if notify_cash_value is not None:
                    notify_cash_value(cash, value)

    @staticmethod
    def _fire_timers(
        ctx: StrategyContext, strategies: list[Strategy], datas: list[DataSeries]
    ) -> None:
        now = datas[0].bar().datetime
        timers = ctx.pop_triggered_timers(now)
        if not timers:
            return
        for strategy in strategies:
            notify_timer = _hook(strategy, "notify_timer")
            if notify_timer is not None:
                for timer in timers:
                    notify_timer(timer, now)

    def _step(
        self,
        ctx: StrategyContext,
        strategies: list[Strategy],
        equity: list[float],
        cash_curve: list[float],
        with_cash_value: bool,
    ) -> None:
        datas = ctx.datas
        self._broker.next(datas)
        equity.append(self._broker.get_value(datas))
        cash_curve.append(self._broker.get_cash())
        self._notify(strategies, datas, with_cash_value)
        self._fire_timers(ctx, strategies, datas)
        for strategy in strategies:
            strategy.next()

    def _finish(
        self,
        strategies: list[Strategy],
        datas: list[DataSeries],
        starting_cash: float,
        equity: list[float],
        cash_curve: list[float],
    ) -> list[RunResult]:
        results = [
            RunResult(
                starting_cash=starting_cash,
                final_value=self._broker.get_value(datas),
                trades=list(self._broker.get_trades()),
                equity_curve=list(equity),
                cash_curve=list(cash_curve),
            )
            for _ in strategies
        ]
        for result in results:
            for analyzer in self._analyzers:
                try:
                    analyzer.analyze(result, datas)
                except Exception as exc:
                    raise CerebroError(
                        f"cerebro: analyzer {analyzer.name!r}: {exc}"
                    ) from exc
        return results

    # ── Runs ────────────────────────────────────────────────────────────

    def run(self) -> list[RunResult]:
        """Run the backtest and return one result per strategy."""
        self._check_ready()
        self._load_feeds()
        ctx = self._context()
        strategies = self._create_strategies(ctx)

        for strategy in strategies:
            start = _hook(strategy, "start")
            if start is not None:
                start()

        starting_cash = self._broker.get_cash()
        equity: list[float] = []
        cash_curve: list[float] = []
        while self._advance():
            self._step(ctx, strategies, equity, cash_curve, with_cash_value=True)

        for strategy in strategies:
            stop = _hook(strategy, "stop")
            if stop is not None:
                stop()

        return self._finish(strategies, ctx.datas, starting_cash, equity, cash_curve)

    def run_live(self, cancel: Any = None) -> list[RunResult]:
        """Run with live feeds started; stops when data ends or ``cancel`` is set.

        ``cancel`` is an event-like object with ``is_set()``, handed to every
        live feed's ``start``.
        """
        self._check_ready()
        self._load_feeds()

        live_feeds: list[LiveFeed] = []
        for feed in self._feeds:
            if isinstance(feed, LiveFeed):
                try:
                    feed.start(cancel)
                except Exception as exc:
                    raise CerebroError(f"cerebro: start live feed: {exc}") from exc
                live_feeds.append(feed)

        ctx = self._context()
        strategies = self._create_strategies(ctx)

        starting_cash = self._broker.get_cash()
        equity: list[float] = []
        cash_curve: list[float] = []
        while not (cancel is not None and cancel.is_set()) and self._advance():
            self._step(ctx, strategies, equity, cash_curve, with_cash_value=False)

        for feed in live_feeds:
            try:
                feed.stop()
            except Exception:
                pass

        return self._finish(strategies, ctx.datas, starting_cash, equity, cash_curve)