[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "backtrade"
version = "0.1.0"
description = "Event-driven backtesting engine with a simulated broker, strategies and performance analyzers"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "backtesting",
    "trading",
    "broker",
    "strategy",
    "finance",
    "sharpe",
    "drawdown",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["backtrade"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
