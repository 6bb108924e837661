"""Notification adapters."""

from .base import Notifier
from .log_notifier import LogNotifier
from .memory import InMemoryNotifier

__all__ = ["InMemoryNotifier", "LogNotifier", "Notifier"]
