"""Event-driven backtesting engine: data series, simulated broker, strategies and analyzers."""

__version__ = "0.1.0"