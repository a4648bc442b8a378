from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class SubscriptionAccessStatus(StrEnum):
    """유저 문서에 캐시되는 구독 접근 상태.

    - 기능 접근 게이트로 사용되는 값이며, 진실의 원천(source of truth)은 결제/구독 레코드다.
    """

    ACTIVE = "active"
    PENDING = "pending"
    EXPIRED = "expired"
    FAILED = "failed"
    NONE = "none"


class SubscriptionType(StrEnum):
    MONTHLY = "monthly"
    SEASONAL = "seasonal"


class ActiveSubscription(BaseModel):
    """유저에게 현재 부여된 구독 스냅샷."""

    id: str
    name: str = ""
    type: SubscriptionType
    purchased_at: datetime
    expires_at: datetime | None = None
    payment_method: str = ""
    payment_id: str | None = None

    def is_valid_at(self, moment: datetime) -> bool:
        """만료일이 존재하고 moment 이후인 경우에만 유효한 구독으로 본다."""
        return self.expires_at is not None and self.expires_at > moment


class User(BaseModel):
    """협회 회원 도메인 모델.

    - Mongo users 컬렉션과 1:1로 매핑되는 공용 모델이다.
    - user_id 는 인증 공급자가 발급한 uid 를 그대로 사용한다.
    """

    user_id: str = Field(alias="user_id")
    name: str = Field(default="", alias="name")
    surname: str = Field(default="", alias="surname")
    email: str = Field(default="", alias="email")
    subscription_access_status: SubscriptionAccessStatus = Field(
        default=SubscriptionAccessStatus.NONE, alias="subscription_access_status"
    )
    subscription_payment_failed: bool = Field(
        default=False, alias="subscription_payment_failed"
    )
    active_subscription: ActiveSubscription | None = Field(
        default=None, alias="active_subscription"
    )
    total_lessons: int | None = Field(default=None, alias="total_lessons")
    created_at: datetime = Field(alias="created_at")
    updated_at: datetime = Field(alias="updated_at")

    @property
    def display_name(self) -> str:
        return f"{self.name} {self.surname}".strip()
