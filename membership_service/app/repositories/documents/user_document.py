from __future__ import annotations

from pydantic import BaseModel

from common.models.user import (
    ActiveSubscription,
    SubscriptionAccessStatus,
    SubscriptionType,
    User,
)
from common.mongo.types import BaseDocument, MongoDateTime


class ActiveSubscriptionDocument(BaseModel):
    """users.active_subscription 서브 도큐먼트."""

    id: str
    name: str = ""
    type: SubscriptionType
    purchased_at: MongoDateTime
    expires_at: MongoDateTime | None = None
    payment_method: str = ""
    payment_id: str | None = None

    @classmethod
    def from_domain(cls, subscription: ActiveSubscription) -> "ActiveSubscriptionDocument":
        return cls.model_validate(subscription.model_dump())

    def to_domain(self) -> ActiveSubscription:
        return ActiveSubscription.model_validate(self.model_dump())


class UserDocument(BaseDocument):
    """MongoDB users 컬렉션 도큐먼트 모델.

    - _id 는 Mongo 가 생성하는 ObjectId 이고, 도메인 식별자는 user_id 이다.
    - subscription_access_status 가 없거나 null 인 레거시 문서는 none 으로 읽는다.
    """

    user_id: str
    name: str = ""
    surname: str = ""
    email: str = ""
    subscription_access_status: SubscriptionAccessStatus | None = None
    subscription_payment_failed: bool = False
    active_subscription: ActiveSubscriptionDocument | None = None
    total_lessons: int | None = None

    @classmethod
    def from_domain(cls, user: User) -> "UserDocument":
        data = user.model_dump(by_alias=True)
        return cls.model_validate(data)

    def to_domain(self) -> User:
        return User(
            user_id=self.user_id,
            name=self.name,
            surname=self.surname,
            email=self.email,
            subscription_access_status=(
                self.subscription_access_status or SubscriptionAccessStatus.NONE
            ),
            subscription_payment_failed=self.subscription_payment_failed,
            active_subscription=(
                self.active_subscription.to_domain()
                if self.active_subscription is not None
                else None
            ),
            total_lessons=self.total_lessons,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
