"""Post-run analyzers: drawdown, returns, Sharpe ratio, SQN and trade statistics."""

__all__ = ["drawdown", "returns", "sharpe", "sqn", "trade_analyzer"]