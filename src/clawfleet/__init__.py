"""Fleet management toolkit for remote agent instances."""

__version__ = "0.4.0"

__all__ = ["__version__"]
