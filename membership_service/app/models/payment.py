"""결제 도메인 모델.

결제는 pending 으로 생성되고 completed / cancelled / failed 중 하나로 정확히 한 번 전이한다.
award_ids / bonus_used 는 이 결제가 할인으로 끌어다 쓴 premi 를 가리킨다.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

from common.models.user import SubscriptionType

from .award import BonusCalculation, RefundResult
from .notification import Notification


class PaymentType(StrEnum):
    SUBSCRIPTION = "subscription"
    OTHER = "other"


class PaymentStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_PAYMENT_STATUSES: frozenset[PaymentStatus] = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.CANCELLED, PaymentStatus.FAILED}
)

# 전액 premi 로 결제된 경우의 결제 수단
BONUS_PAYMENT_METHOD = "bonus"


class Payment(BaseModel):
    id: str | None = None
    user_id: str
    type: PaymentType
    status: PaymentStatus = PaymentStatus.PENDING
    amount: float
    payment_method: str
    description: str = ""
    subscription_type: SubscriptionType | None = None
    award_ids: list[str] = Field(default_factory=list)
    bonus_used: float = 0.0
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    admin_note: str | None = None
    created_at: datetime
    updated_at: datetime


class PurchaseResult(BaseModel):
    payment: Payment
    bonus: BonusCalculation
    notifications: list[Notification] = Field(default_factory=list)


class PaymentDecisionResult(BaseModel):
    """결제 승인/거절 처리 결과."""

    payment: Payment
    refund: RefundResult | None = None
    refund_errors: list[str] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
