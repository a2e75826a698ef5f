"""Team pitch and sales tracker: identity resolution and live aggregation."""

__version__ = "0.1.0"
