import math
from datetime import datetime, timedelta, timezone

from backtrade.dataseries import Bar, DataSeries


def test_bar_append():
    ds = DataSeries("TEST")
    now = datetime(2023, 1, 2, tzinfo=timezone.utc)

    ds.forward()
    ds.append_bar(Bar(datetime=now, open=100, high=105, low=99, close=103, volume=1000))

    assert len(ds) == 1
    bar = ds.bar()
    assert bar.close == 103
    assert bar.datetime == now

    ds.forward()
    ds.append_bar(
        Bar(datetime=now + timedelta(hours=24), open=103, high=110, low=102, close=108, volume=2000)
    )

    assert len(ds) == 2
    prev = ds.bar_ago(-1)
    assert prev.close == 103
    assert ds.bar().close == 108
    assert ds.bar().datetime == datetime(2023, 1, 3, tzinfo=timezone.utc)


def test_bar_roundtrip_all_fields():
    ds = DataSeries("X")
    bar = Bar(
        datetime=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
        open=1.5,
        high=2.5,
        low=0.5,
        close=2.0,
        volume=300.0,
        open_interest=12.0,
    )
    ds.forward()
    ds.append_bar(bar)
    assert ds.bar() == bar


def test_naive_datetime_is_treated_as_utc():
    ds = DataSeries("X")
    ds.forward()
    ds.append_bar(Bar(datetime=datetime(2023, 1, 2), close=1.0))
    assert ds.bar().datetime == datetime(2023, 1, 2, tzinfo=timezone.utc)


def test_datetime_stored_as_unix_seconds():
    ds = DataSeries("X")
    ds.forward()
    ds.append_bar(Bar(datetime=datetime(1970, 1, 2, tzinfo=timezone.utc)))
    assert ds.datetime.get(0) == 86400.0


def test_all_lines_advance_together():
    ds = DataSeries("X")
    for _ in range(3):
        ds.forward()
    assert len(ds) == 3
    assert len(ds.open) == len(ds.volume) == len(ds.datetime) == 3


def test_bar_ago_out_of_range_gives_nan_prices():
    ds = DataSeries("X")
    ds.forward()
    ds.append_bar(Bar(close=5.0))
    old = ds.bar_ago(-3)
    assert str(old.close) == "nan"
    assert str(old.open) == "nan"
    assert ds.bar().close == 5.0


def test_default_bar_roundtrip():
    ds = DataSeries("X")
    ds.forward()
    ds.append_bar(Bar(close=100))
    assert ds.bar().close == 100
    assert ds.bar().datetime == datetime(1, 1, 1, tzinfo=timezone.utc)
    assert not math.isnan(ds.bar().open)