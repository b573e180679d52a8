"""Price-triggered limit sell dispatcher."""

__version__ = "0.1.0"
