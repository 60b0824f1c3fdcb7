"""buildgate: multi-module build policy, coverage aggregation and reproducible archives."""

__version__ = "0.4.0"
