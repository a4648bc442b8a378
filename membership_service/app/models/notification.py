from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class NotificationKind(StrEnum):
    AWARD_GRANTED = "award_granted"
    ATTENDANCE_AWARD_MISSING = "attendance_award_missing"
    BONUS_REFUNDED = "bonus_refunded"
    ACCOUNT_UNLOCKED = "account_unlocked"
    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    PAYMENT_REJECTED = "payment_rejected"


class Notification(BaseModel):
    """UI 가 토스트로 보여줄 처리 결과. 렌더링/전달은 이 서비스의 책임이 아니다."""

    kind: NotificationKind
    user_id: str
    title: str
    description: str = ""
    variant: str = "default"  # "default" | "success" | "destructive"
    data: dict[str, Any] = Field(default_factory=dict)
