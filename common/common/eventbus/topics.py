from __future__ import annotations

from .core import Topic


TOPIC_ATTENDANCE = Topic("liberasphere.attendance")
TOPIC_NOTIFICATION = Topic("liberasphere.notification")
