"""테스트용 인메모리 레포지토리와 도메인 객체 빌더."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Iterator

from pymongo.errors import DuplicateKeyError

from common.models.user import (
    ActiveSubscription,
    SubscriptionAccessStatus,
    SubscriptionType,
    User,
)
from membership_service.app.config import MembershipConfig
from membership_service.app.models.award import AwardTemplate, UserAward
from membership_service.app.models.payment import (
    Payment,
    PaymentStatus,
    PaymentType,
)
from membership_service.app.services.attendance_service import AttendanceService
from membership_service.app.services.award_ledger_service import AwardLedgerService
from membership_service.app.services.payment_service import PaymentService
from membership_service.app.services.subscription_reconciler_service import (
    SubscriptionReconcilerService,
)


BASE_TIME = datetime(2025, 1, 10, 9, 0, tzinfo=timezone.utc)


def build_user(
    user_id: str = "user-001",
    *,
    status: SubscriptionAccessStatus = SubscriptionAccessStatus.NONE,
    subscription: ActiveSubscription | None = None,
    total_lessons: int | None = None,
) -> User:
    return User(
        user_id=user_id,
        name="Mario",
        surname="Rossi",
        email=f"{user_id}@example.com",
        subscription_access_status=status,
        active_subscription=subscription,
        total_lessons=total_lessons,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


def build_subscription(
    *,
    expires_in: timedelta = timedelta(days=30),
    type: SubscriptionType = SubscriptionType.MONTHLY,
    payment_method: str = "in_person",
) -> ActiveSubscription:
    now = datetime.now(timezone.utc)
    return ActiveSubscription(
        id="sub-001",
        name="Abbonamento",
        type=type,
        purchased_at=now - timedelta(days=1),
        expires_at=now + expires_in,
        payment_method=payment_method,
        payment_id="pay-old",
    )


def build_award(
    award_id: str,
    *,
    user_id: str = "user-001",
    name: str | None = None,
    value: float = 10.0,
    used_value: float = 0.0,
    assigned_at: datetime | None = None,
    percentage: float | None = None,
) -> UserAward:
    residuo = round(max(0.0, value - used_value), 2)
    assigned = assigned_at or BASE_TIME
    return UserAward(
        id=f"doc-{award_id}",
        user_id=user_id,
        award_id=award_id,
        name=name or f"Premio {award_id}",
        value=value,
        used_value=used_value,
        residuo=residuo,
        used=residuo == 0,
        percentage=percentage,
        assigned_at=assigned,
        created_at=assigned,
        updated_at=assigned,
    )


def build_payment(
    *,
    user_id: str = "user-001",
    status: PaymentStatus = PaymentStatus.PENDING,
    type: PaymentType = PaymentType.SUBSCRIPTION,
    amount: float = 50.0,
    award_ids: list[str] | None = None,
    bonus_used: float = 0.0,
) -> Payment:
    return Payment(
        user_id=user_id,
        type=type,
        status=status,
        amount=amount,
        payment_method="in_person",
        description="Abbonamento mensile",
        subscription_type=SubscriptionType.MONTHLY,
        award_ids=award_ids or [],
        bonus_used=bonus_used,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )


class FakeUserRepository:
    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.failing_user_ids: set[str] = set()
        self.vanished_user_ids: set[str] = set()
        self.sessions: list[Any] = []

    def add(self, user: User) -> User:
        self.users[user.user_id] = user
        return user

    def find_by_user_id(self, user_id: str) -> User | None:
        if user_id in self.failing_user_ids:
            raise RuntimeError(f"storage error for {user_id}")
        if user_id in self.vanished_user_ids:
            return None
        user = self.users.get(user_id)
        return user.model_copy(deep=True) if user is not None else None

    def list_user_ids(self) -> list[str]:
        return sorted(self.users)

    def update_access_status(
        self,
        user_id: str,
        status: SubscriptionAccessStatus,
        *,
        expected_status: SubscriptionAccessStatus,
        subscription_payment_failed: bool | None = None,
        session: Any | None = None,
    ) -> bool:
        self.sessions.append(session)
        user = self.users.get(user_id)
        if user is None or user.subscription_access_status != expected_status:
            return False
        user.subscription_access_status = status
        if subscription_payment_failed is not None:
            user.subscription_payment_failed = subscription_payment_failed
        user.updated_at = datetime.now(timezone.utc)
        return True

    def activate_subscription(
        self,
        user_id: str,
        subscription: ActiveSubscription,
        *,
        expected_status: SubscriptionAccessStatus,
    ) -> bool:
        user = self.users.get(user_id)
        if user is None or user.subscription_access_status != expected_status:
            return False
        user.active_subscription = subscription
        user.subscription_access_status = SubscriptionAccessStatus.ACTIVE
        user.subscription_payment_failed = False
        return True


class FakePaymentRepository:
    def __init__(self) -> None:
        self.payments: dict[str, Payment] = {}
        self.create_error: Exception | None = None
        self._next_id = 1

    def add(self, payment: Payment) -> Payment:
        return self.create(payment)

    def create(self, payment: Payment) -> Payment:
        if self.create_error is not None:
            raise self.create_error
        saved = payment.model_copy(update={"id": f"pay-{self._next_id}"})
        self._next_id += 1
        self.payments[saved.id] = saved
        return saved.model_copy()

    def find_by_id(self, payment_id: str) -> Payment | None:
        payment = self.payments.get(payment_id)
        return payment.model_copy() if payment is not None else None

    def _pending_subscription(self, user_id: str) -> list[Payment]:
        return [
            p
            for p in self.payments.values()
            if p.user_id == user_id
            and p.type == PaymentType.SUBSCRIPTION
            and p.status == PaymentStatus.PENDING
        ]

    def list_pending_subscription(
        self, user_id: str, *, session: Any | None = None
    ) -> list[Payment]:
        return [p.model_copy() for p in self._pending_subscription(user_id)]

    def has_pending_subscription(self, user_id: str) -> bool:
        return bool(self._pending_subscription(user_id))

    def list_by_user(self, user_id: str) -> list[Payment]:
        return [p.model_copy() for p in self.payments.values() if p.user_id == user_id]

    def transition_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        *,
        cancelled_by: str | None = None,
        admin_note: str | None = None,
        session: Any | None = None,
    ) -> Payment | None:
        payment = self.payments.get(payment_id)
        if payment is None or payment.status != PaymentStatus.PENDING:
            return None
        now = datetime.now(timezone.utc)
        payment.status = status
        payment.updated_at = now
        if status in (PaymentStatus.CANCELLED, PaymentStatus.FAILED):
            payment.cancelled_at = now
        if cancelled_by is not None:
            payment.cancelled_by = cancelled_by
        if admin_note is not None:
            payment.admin_note = admin_note
        return payment.model_copy()


class FakeUserAwardRepository:
    """user_awards 인메모리 구현.

    before_update 훅으로 조건부 쓰기 직전에 다른 writer 의 변경을 끼워 넣을 수 있다.
    """

    def __init__(self) -> None:
        self.awards: dict[tuple[str, str], UserAward] = {}
        self.before_update: Callable[[UserAward], None] | None = None
        self.update_calls = 0
        self.failing_award_ids: set[str] = set()

    def add(self, award: UserAward) -> UserAward:
        self.awards[(award.user_id, award.award_id)] = award
        return award

    def get(self, user_id: str, award_id: str) -> UserAward:
        return self.awards[(user_id, award_id)]

    def find(self, user_id: str, award_id: str) -> UserAward | None:
        award = self.awards.get((user_id, award_id))
        return award.model_copy() if award is not None else None

    def find_by_name(self, user_id: str, name: str) -> UserAward | None:
        for award in self.awards.values():
            if award.user_id == user_id and award.name == name:
                return award.model_copy()
        return None

    def list_by_user(self, user_id: str) -> list[UserAward]:
        awards = [a for a in self.awards.values() if a.user_id == user_id]
        return [
            a.model_copy() for a in sorted(awards, key=lambda a: (a.assigned_at, a.award_id))
        ]

    def insert(self, award: UserAward) -> UserAward:
        key = (award.user_id, award.award_id)
        if key in self.awards:
            raise DuplicateKeyError("E11000 duplicate key error", 11000)
        saved = award.model_copy(update={"id": f"doc-{award.award_id}"})
        self.awards[key] = saved
        return saved.model_copy()

    def update_if_unchanged(
        self,
        user_id: str,
        award_id: str,
        *,
        expected_used_value: float,
        expected_value: float,
        changes: dict[str, Any],
    ) -> UserAward | None:
        self.update_calls += 1
        if award_id in self.failing_award_ids:
            raise RuntimeError(f"storage error for award {award_id}")
        current = self.awards.get((user_id, award_id))
        if current is None:
            return None
        if self.before_update is not None:
            self.before_update(current)
            current = self.awards[(user_id, award_id)]
        if current.used_value != expected_used_value or current.value != expected_value:
            return None
        updated = current.model_copy(
            update={**changes, "updated_at": datetime.now(timezone.utc)}
        )
        self.awards[(user_id, award_id)] = updated
        return updated.model_copy()


class FakeAwardTemplateRepository:
    def __init__(self) -> None:
        self.templates: dict[str, AwardTemplate] = {}

    def add(self, template: AwardTemplate) -> AwardTemplate:
        self.templates[template.id] = template
        return template

    def find_by_id(self, award_id: str) -> AwardTemplate | None:
        return self.templates.get(award_id)

    def find_by_name(self, name: str) -> AwardTemplate | None:
        for template in self.templates.values():
            if template.name == name:
                return template
        return None


class FakeAttendanceRepository:
    def __init__(self) -> None:
        self.present: dict[str, int] = {}
        self.records: list[tuple[str, datetime, str]] = []

    def count_present(self, user_id: str) -> int:
        return self.present.get(user_id, 0)

    def record(self, user_id: str, lesson_date: datetime, status: str) -> None:
        self.records.append((user_id, lesson_date, status))
        if status == "presente":
            self.present[user_id] = self.present.get(user_id, 0) + 1


FAKE_SESSION = object()


class FakeTransactionManager:
    def __init__(self) -> None:
        self.committed = 0
        self.aborted = 0

    @contextmanager
    def transaction(self) -> Iterator[object]:
        try:
            yield FAKE_SESSION
        except Exception:
            self.aborted += 1
            raise
        self.committed += 1


class FakeNotificationPublisher:
    def __init__(self) -> None:
        self.published: list = []

    def publish(self, notifications) -> None:  # type: ignore[no-untyped-def]
        self.published.extend(notifications)


@dataclass
class MembershipFixture:
    users: FakeUserRepository
    payments: FakePaymentRepository
    awards: FakeUserAwardRepository
    templates: FakeAwardTemplateRepository
    attendances: FakeAttendanceRepository
    tx: FakeTransactionManager
    config: MembershipConfig
    ledger: AwardLedgerService
    reconciler: SubscriptionReconcilerService
    payment_service: PaymentService
    attendance_service: AttendanceService


def build_membership_fixture(config: MembershipConfig | None = None) -> MembershipFixture:
    users = FakeUserRepository()
    payments = FakePaymentRepository()
    awards = FakeUserAwardRepository()
    templates = FakeAwardTemplateRepository()
    attendances = FakeAttendanceRepository()
    tx = FakeTransactionManager()
    config = config or MembershipConfig()
    ledger = AwardLedgerService(
        awards, templates, max_attempts=config.award_update_max_attempts
    )
    attendance_service = AttendanceService(users, attendances, ledger)
    return MembershipFixture(
        users=users,
        payments=payments,
        awards=awards,
        templates=templates,
        attendances=attendances,
        tx=tx,
        config=config,
        ledger=ledger,
        reconciler=SubscriptionReconcilerService(users, payments, ledger, tx),
        payment_service=PaymentService(
            users, payments, ledger, attendance_service, config
        ),
        attendance_service=attendance_service,
    )


def assert_award_invariant(award: UserAward) -> None:
    assert round(award.used_value + award.residuo, 2) == award.value
    assert award.used == (award.residuo == 0)
