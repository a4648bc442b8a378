from __future__ import annotations

from pydantic import Field

from common.models.user import SubscriptionType
from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.payment import Payment, PaymentStatus, PaymentType


class PaymentDocument(BaseDocument):
    """MongoDB payments 컬렉션 도큐먼트 모델."""

    user_id: str
    type: PaymentType
    status: PaymentStatus
    amount: float
    payment_method: str = ""
    description: str = ""
    subscription_type: SubscriptionType | None = None
    award_ids: list[str] = Field(default_factory=list)
    bonus_used: float = 0.0
    cancelled_at: MongoDateTime | None = None
    cancelled_by: str | None = None
    admin_note: str | None = None

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentDocument":
        data = build_document_data_from_domain(payment)
        return cls.model_validate(data)

    def to_domain(self) -> Payment:
        return Payment(
            id=from_object_id(self.id),
            user_id=self.user_id,
            type=self.type,
            status=self.status,
            amount=self.amount,
            payment_method=self.payment_method,
            description=self.description,
            subscription_type=self.subscription_type,
            award_ids=list(self.award_ids),
            bonus_used=self.bonus_used,
            cancelled_at=self.cancelled_at,
            cancelled_by=self.cancelled_by,
            admin_note=self.admin_note,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
