"""contentflow - hierarchy and connection engine for a content-flow editor."""

__version__ = "0.1.0"
