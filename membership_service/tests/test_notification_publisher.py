from __future__ import annotations

import logging

import pytest

from common.eventbus.core import Event
from common.eventbus.topics import TOPIC_NOTIFICATION
from common.events.notification import NotificationCreatedEvent, NotificationEventType
from membership_service.app.models.notification import Notification, NotificationKind
from membership_service.app.services.notifications import KafkaNotificationPublisher


class RecordingBus:
    def __init__(self, error: Exception | None = None) -> None:
        self.published: list[tuple[str, Event]] = []
        self.error = error

    def publish(self, topic: str, event: Event) -> None:
        if self.error is not None:
            raise self.error
        self.published.append((topic, event))


def _notification(user_id: str = "user-001") -> Notification:
    return Notification(
        kind=NotificationKind.BONUS_REFUNDED,
        user_id=user_id,
        title="Bonus rimborsato",
        description="Sono stati riaccreditati 5.00 € di bonus.",
        data={"refunded": 5.0},
    )


def test_publish_sends_one_event_per_notification() -> None:
    bus = RecordingBus()
    publisher = KafkaNotificationPublisher(bus)  # type: ignore[arg-type]

    publisher.publish([_notification("user-001"), _notification("user-002")])

    assert [topic for topic, _ in bus.published] == [TOPIC_NOTIFICATION.base] * 2
    topic, event = bus.published[0]
    decoded = NotificationCreatedEvent.from_dict(event.payload)
    assert decoded.id == event.id
    assert decoded.type == NotificationEventType.NOTIFICATION_CREATED
    assert decoded.user_id == "user-001"
    assert decoded.kind == "bonus_refunded"
    assert decoded.data == {"refunded": 5.0}


def test_publish_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    bus = RecordingBus(error=BufferError("local queue full"))
    publisher = KafkaNotificationPublisher(bus)  # type: ignore[arg-type]

    with caplog.at_level(logging.ERROR):
        publisher.publish([_notification()])

    assert bus.published == []
    assert any("failed to publish notification" in r.getMessage() for r in caplog.records)
