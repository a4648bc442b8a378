from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Protocol

from common.models.user import ActiveSubscription, SubscriptionAccessStatus, User
from ..models.award import AwardTemplate, UserAward
from ..models.payment import Payment, PaymentStatus


class UserRepositoryInterface(Protocol):
    """users 컬렉션에 대한 최소한의 계약.

    상태 변경은 모두 expected_status 조건부 갱신이며, 조건이 맞지 않으면 False 를 반환한다.
    """

    def find_by_user_id(
        self, user_id: str
    ) -> User | None:  # pragma: no cover - Protocol
        ...

    def list_user_ids(self) -> list[str]:  # pragma: no cover - Protocol
        ...

    def update_access_status(
        self,
        user_id: str,
        status: SubscriptionAccessStatus,
        *,
        expected_status: SubscriptionAccessStatus,
        subscription_payment_failed: bool | None = None,
        session: Any | None = None,
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def activate_subscription(
        self,
        user_id: str,
        subscription: ActiveSubscription,
        *,
        expected_status: SubscriptionAccessStatus,
    ) -> bool:  # pragma: no cover - Protocol
        ...


class PaymentRepositoryInterface(Protocol):
    """payments 컬렉션에 대한 최소한의 계약.

    - 상태 전이는 pending -> 종결 상태 한 번만 허용되며, transition_status 가 이를 원자적으로 보장한다.
    """

    def create(self, payment: Payment) -> Payment:  # pragma: no cover - Protocol
        ...

    def find_by_id(
        self, payment_id: str
    ) -> Payment | None:  # pragma: no cover - Protocol
        ...

    def list_pending_subscription(
        self, user_id: str, *, session: Any | None = None
    ) -> list[Payment]:  # pragma: no cover - Protocol
        ...

    def has_pending_subscription(
        self, user_id: str
    ) -> bool:  # pragma: no cover - Protocol
        ...

    def list_by_user(
        self, user_id: str
    ) -> list[Payment]:  # pragma: no cover - Protocol
        ...

    def transition_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        *,
        cancelled_by: str | None = None,
        admin_note: str | None = None,
        session: Any | None = None,
    ) -> Payment | None:  # pragma: no cover - Protocol
        """pending 인 결제만 status 로 바꾼다. 이미 종결된 결제면 None."""
        ...


class UserAwardRepositoryInterface(Protocol):
    """user_awards 컬렉션에 대한 최소한의 계약.

    - (user_id, award_id) 조합은 유니크하며, 중복 insert 는 DuplicateKeyError 로 실패한다.
    - 잔액 변경은 update_if_unchanged 의 compare-and-set 으로만 수행한다.
    """

    def find(
        self, user_id: str, award_id: str
    ) -> UserAward | None:  # pragma: no cover - Protocol
        ...

    def find_by_name(
        self, user_id: str, name: str
    ) -> UserAward | None:  # pragma: no cover - Protocol
        ...

    def list_by_user(
        self, user_id: str
    ) -> list[UserAward]:  # pragma: no cover - Protocol
        ...

    def insert(self, award: UserAward) -> UserAward:  # pragma: no cover - Protocol
        ...

    def update_if_unchanged(
        self,
        user_id: str,
        award_id: str,
        *,
        expected_used_value: float,
        expected_value: float,
        changes: dict[str, Any],
    ) -> UserAward | None:  # pragma: no cover - Protocol
        """used_value / value 가 읽은 시점 그대로일 때만 changes 를 적용한다. 실패 시 None."""
        ...


class AwardTemplateRepositoryInterface(Protocol):
    def find_by_id(
        self, award_id: str
    ) -> AwardTemplate | None:  # pragma: no cover - Protocol
        ...

    def find_by_name(
        self, name: str
    ) -> AwardTemplate | None:  # pragma: no cover - Protocol
        ...


class AttendanceRepositoryInterface(Protocol):
    def count_present(self, user_id: str) -> int:  # pragma: no cover - Protocol
        ...

    def record(
        self, user_id: str, lesson_date: datetime, status: str
    ) -> None:  # pragma: no cover - Protocol
        ...


class TransactionManagerInterface(Protocol):
    """여러 컬렉션에 걸친 변경을 하나의 트랜잭션으로 묶는다.

    transaction() 은 레포지토리 메서드의 session 인자로 넘길 값을 yield 한다.
    """

    def transaction(
        self,
    ) -> AbstractContextManager[Any]:  # pragma: no cover - Protocol
        ...
