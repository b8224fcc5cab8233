"""Admin backend for bus routes, stops and fare tables."""

__version__ = "1.0.0"
