"""A growing, time-indexed series of float values addressed by "ago" offsets."""

from __future__ import annotations

import math


class Line:
    """Float series that grows one bar at a time.

    Offsets are relative to the current bar: ``get(0)`` is the current value,
    ``get(-1)`` the previous one, ``get(-n)`` the value ``n`` bars ago.
    """

    __slots__ = ("_data", "_cursor")

    def __init__(self) -> None:
        self._data: list[float] = []
        self._cursor = -1

    def forward(self) -> None:
        """Advance by one bar, appending a NaN placeholder for the new bar."""
        self._data.append(math.nan)
        self._cursor = len(self._data) - 1

    def set(self, value: float) -> None:
        """Set the value of the current bar."""
        if self._cursor < 0:
            raise RuntimeError("line: set called before forward")
        self._data[self._cursor] = float(value)

    def set_ago(self, ago: int, value: float) -> None:
        """Set the value ``ago`` bars back from the current bar (``ago <= 0``)."""
        index = self._cursor + ago
        if not 0 <= index < len(self._data):
            raise IndexError("line: set_ago index out of range")
        self._data[index] = float(value)

    def get(self, ago: int = 0) -> float:
        """Return the value ``ago`` bars back, or NaN when out of range."""
        index = self._cursor + ago
        if not 0 <= index < len(self._data):
            return math.nan
        return self._data[index]

    def __len__(self) -> int:
        return len(self._data)

    @property
    def cursor(self) -> int:
        """Index of the current bar counted from the start, -1 when empty."""
        return self._cursor

    def array(self) -> list[float]:
        """Return a copy of all values up to and including the current bar."""
        return self._data[: self._cursor + 1]

    def __repr__(self) -> str:
        return f"Line(len={len(self)}, current={self.get(0)!r})"