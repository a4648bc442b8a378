"""출석 이벤트 핸들러.

attendance.changed 이벤트를 소비해 Premio Presenze 값을 재계산한다.
"""

from __future__ import annotations

import logging

from pymongo.database import Database

from common.eventbus.config import get_brokers, get_group_id
from common.eventbus.core import Event
from common.eventbus.kafka import KafkaEventBus
from common.eventbus.topics import TOPIC_ATTENDANCE
from common.events.attendance import AttendanceChangedEvent, AttendanceEventType

from ..services.award_ledger_service import AwardLedgerService, build_award_ledger_service


logger = logging.getLogger(__name__)


def _handle_attendance_event(evt: Event, *, ledger: AwardLedgerService) -> None:
    """출석 이벤트를 처리한다. 알 수 없는 타입은 무시한다."""
    payload = evt.payload
    if not isinstance(payload, dict):
        logger.error("unexpected payload type for event %s: %r", evt.id, type(payload))
        return

    if evt.event_type != AttendanceEventType.ATTENDANCE_CHANGED:
        logger.debug(
            "ignoring unknown attendance event type=%s id=%s", evt.event_type, evt.id
        )
        return

    try:
        event = AttendanceChangedEvent.from_dict(payload)
    except Exception:
        logger.exception("failed to decode AttendanceChangedEvent payload=%r", payload)
        raise

    logger.info(
        "handling attendance.changed event id=%s percentage=%.1f",
        event.id,
        event.percentage,
        extra={"user_id": event.user_id},
    )
    ledger.handle_attendance_changed(event)


def run_attendance_consumer(stop_flag: list[bool], database: Database) -> None:
    """출석 이벤트를 소비하는 구독 루프를 실행한다."""
    logger.info("attendance-consumer starting up")

    brokers = get_brokers()
    group_id = get_group_id() + "-attendance"

    bus = KafkaEventBus(brokers)
    ledger = build_award_ledger_service(database)

    try:
        logger.info(
            "subscribing to topic=%s group_id=%s", TOPIC_ATTENDANCE.base, group_id
        )
        bus.subscribe(
            group_id=group_id,
            topic=TOPIC_ATTENDANCE,
            handler=lambda evt: _handle_attendance_event(evt, ledger=ledger),
            stop_flag=stop_flag,
        )
    finally:
        bus.close()
        logger.info("attendance-consumer stopped")
