"""Parent notification adapters."""

from .telegram import ParentNotifier

__all__ = ["ParentNotifier"]
