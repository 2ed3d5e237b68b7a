"""Notification delivery: preferences, transport, dispatch and formatting."""

from dompet.notifications.charts import Chart
from dompet.notifications.dispatcher import NotificationDispatcher
from dompet.notifications.preferences import PreferenceStore
from dompet.notifications.transport import (
    TelegramTransport,
    TransportFailure,
    TransportInterface,
)

__all__ = [
    "Chart",
    "NotificationDispatcher",
    "PreferenceStore",
    "TelegramTransport",
    "TransportFailure",
    "TransportInterface",
]
