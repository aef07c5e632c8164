"""Activity records, publish/subscribe bus and the /ws observer channel."""

from nijawallet.activity.bus import ActivityBus, ActivityEvent, Subscription
from nijawallet.activity.models import (
    ActivityRecord,
    ActivityStatus,
    ActivityType,
    MessageType,
    make_message,
)
from nijawallet.activity.observer import ActivityObserver, ObserverGaveUp
from nijawallet.activity.server import ActivityChannel

__all__ = [
    "ActivityBus",
    "ActivityChannel",
    "ActivityEvent",
    "ActivityObserver",
    "ActivityRecord",
    "ActivityStatus",
    "ActivityType",
    "MessageType",
    "ObserverGaveUp",
    "Subscription",
    "make_message",
]
