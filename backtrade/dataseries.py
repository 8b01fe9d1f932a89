"""OHLCV bars and the per-instrument series that hold them."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from backtrade.line import Line

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _to_unix(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return float(math.floor((moment - EPOCH).total_seconds()))


def _from_unix(seconds: float) -> datetime:
    if math.isnan(seconds):
        return ZERO_TIME
    return EPOCH + timedelta(seconds=int(seconds))


@dataclass
class Bar:
    """A single OHLCV bar snapshot."""

    datetime: datetime = field(default=ZERO_TIME)
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    close: float = 0.0
    volume: float = 0.0
    open_interest: float = 0.0


class DataSeries:
    """Historical OHLCV lines for a single instrument.

    Datetimes are stored as whole Unix seconds and read back as UTC.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self.datetime = Line()
        self.open = Line()
        self.high = Line()
        self.low = Line()
        self.close = Line()
        self.volume = Line()
        self.open_interest = Line()

    def _lines(self) -> tuple[Line, ...]:
        return (
            self.datetime,
            self.open,
            self.high,
            self.low,
            self.close,
            self.volume,
            self.open_interest,
        )

    def forward(self) -> None:
        """Advance every line by one bar."""
        for line in self._lines():
            line.forward()

    def append_bar(self, bar: Bar) -> None:
        """Write ``bar`` into the current, already forwarded slot."""
        self.datetime.set(_to_unix(bar.datetime))
        self.open.set(bar.open)
        self.high.set(bar.high)
        self.low.set(bar.low)
        self.close.set(bar.close)
        self.volume.set(bar.volume)
        self.open_interest.set(bar.open_interest)

    def bar(self) -> Bar:
        """Snapshot of the current bar."""
        return self.bar_ago(0)

    def bar_ago(self, ago: int) -> Bar:
        """Snapshot of the bar ``ago`` bars back (``ago <= 0``)."""
        return Bar(
            datetime=_from_unix(self.datetime.get(ago)),
            open=self.open.get(ago),
            high=self.high.get(ago),
            low=self.low.get(ago),
            close=self.close.get(ago),
            volume=self.volume.get(ago),
            open_interest=self.open_interest.get(ago),
        )

    def __len__(self) -> int:
        return len(self.close)

    def __repr__(self) -> str:
        return f"DataSeries(name={self.name!r}, len={len(self)})"