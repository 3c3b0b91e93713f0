"""
Adapters layer - Document store and push notification integrations.
"""

from .memory_storage import InMemoryStorage
from .push_notifier import LoggingNotifier, PushNotifier

__all__ = ["InMemoryStorage", "LoggingNotifier", "PushNotifier"]
