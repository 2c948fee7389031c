"""
Adapters layer - External integrations (booking backend, notifications).
"""

from .http_client import HttpBookingClient
from .mock_backend import InMemoryBookingStore, RecordingNotifier
from .notifier import HttpConfirmationNotifier

__all__ = [
    "HttpBookingClient",
    "HttpConfirmationNotifier",
    "InMemoryBookingStore",
    "RecordingNotifier",
]
