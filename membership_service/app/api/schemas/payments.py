from __future__ import annotations

from pydantic import BaseModel, Field

from common.models.user import SubscriptionType

from ...models.payment import PaymentStatus


class StartSubscriptionRequest(BaseModel):
    """구독 구매 시작 요청. 가능한 premi 는 자동으로 할인에 적용된다."""

    subscription_type: SubscriptionType
    name: str
    price: float = Field(ge=0)
    payment_method: str = "in_person"


class RejectPaymentRequest(BaseModel):
    status: PaymentStatus = PaymentStatus.FAILED
    cancelled_by: str | None = None
    admin_note: str | None = None
