"""처리 결과 알림을 notification 토픽으로 발행한다. 전달/렌더링은 구독하는 쪽의 몫이다."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Protocol, Sequence

from confluent_kafka import KafkaException

from common.eventbus.helpers import new_json_event
from common.eventbus.kafka import KafkaEventBus, get_kafka_event_bus
from common.eventbus.topics import TOPIC_NOTIFICATION
from common.events.notification import NotificationCreatedEvent, NotificationEventType

from ..models.notification import Notification


logger = logging.getLogger(__name__)

EVENT_SOURCE = "membership-service"


class NotificationPublisherInterface(Protocol):
    def publish(
        self, notifications: Sequence[Notification]
    ) -> None:  # pragma: no cover - Protocol
        ...


class KafkaNotificationPublisher(NotificationPublisherInterface):
    def __init__(self, bus: KafkaEventBus) -> None:
        self._bus = bus

    def publish(self, notifications: Sequence[Notification]) -> None:
        for notification in notifications:
            event = NotificationCreatedEvent(
                id=str(uuid.uuid4()),
                type=NotificationEventType.NOTIFICATION_CREATED,
                timestamp=datetime.now(timezone.utc).isoformat(),
                source=EVENT_SOURCE,
                version="1.0",
                user_id=notification.user_id,
                kind=notification.kind.value,
                title=notification.title,
                description=notification.description,
                variant=notification.variant,
                data=dict(notification.data),
            )
            try:
                self._bus.publish(
                    TOPIC_NOTIFICATION.base, new_json_event(payload=event, event_id=event.id)
                )
            except (KafkaException, BufferError) as exc:
                # 원장 변경은 이미 커밋됐다. 알림 유실만 기록한다.
                logger.error(
                    "failed to publish notification: %s",
                    exc,
                    extra={"user_id": notification.user_id, "kind": notification.kind.value},
                )


def get_notification_publisher() -> NotificationPublisherInterface:
    """FastAPI DI용 알림 발행기 팩토리."""
    return KafkaNotificationPublisher(get_kafka_event_bus())
