"""Kit Console - plugin management for a local prototyping kit."""

__version__ = "0.3.0"
