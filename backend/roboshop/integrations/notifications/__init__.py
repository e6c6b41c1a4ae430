"""Outgoing notifications"""

from .base import Notifier
from .mail import EmailNotifier

__all__ = ["EmailNotifier", "Notifier"]
