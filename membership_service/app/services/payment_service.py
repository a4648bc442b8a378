"""결제 흐름 서비스.

구독 구매 시작(premi 할인 적용) -> 관리자 승인 또는 거절/취소(premi 환불)를 처리하고,
그에 맞춰 users.subscription_access_status 캐시를 전이시킨다.
"""

from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, time, timezone

from fastapi import Depends
from pymongo.database import Database

from common.models.user import (
    ActiveSubscription,
    SubscriptionAccessStatus,
    SubscriptionType,
    User,
)
from common.mongo.client import get_database

from ..config import MembershipConfig, get_membership_config
from ..exceptions import (
    AwardTemplateNotFoundError,
    DuplicateAwardError,
    InvalidStatusTransitionError,
    PaymentStateError,
    RecordNotFoundError,
)
from ..models.award import ATTENDANCE_AWARD_NAME, BonusCalculation, RefundResult
from ..models.notification import Notification, NotificationKind
from ..models.payment import (
    BONUS_PAYMENT_METHOD,
    Payment,
    PaymentDecisionResult,
    PaymentStatus,
    PaymentType,
    PurchaseResult,
)
from ..models.subscription import can_transition
from ..repositories.attendance_repository import AttendanceRepository
from ..repositories.interfaces import PaymentRepositoryInterface, UserRepositoryInterface
from ..repositories.payment_repository import PaymentRepository
from ..repositories.user_repository import UserRepository
from .attendance_service import AttendanceService
from .attendance_value import attendance_award_value
from .award_ledger_service import AwardLedgerService, build_award_ledger_service


logger = logging.getLogger(__name__)

# 시즌은 9월에 시작해 8월 31일에 끝난다.
SEASON_END_MONTH = 8
SEASON_END_DAY = 31


def end_of_month(moment: datetime) -> datetime:
    last_day = calendar.monthrange(moment.year, moment.month)[1]
    return datetime.combine(
        date(moment.year, moment.month, last_day), time.max, tzinfo=timezone.utc
    )


def season_end(moment: datetime, configured: date | None = None) -> datetime:
    """시즌 구독 만료 시각. 설정값이 없으면 현재 시즌의 8월 31일 23:59:59 (UTC).

    이미 지난 설정값은 무시하고 기본 시즌 종료일을 쓴다.
    """
    if configured is not None and configured < moment.date():
        logger.warning(
            "configured season_end_date %s is in the past, using default season end",
            configured,
        )
        configured = None
    if configured is not None:
        end = configured
    elif moment.month > SEASON_END_MONTH:
        end = date(moment.year + 1, SEASON_END_MONTH, SEASON_END_DAY)
    else:
        end = date(moment.year, SEASON_END_MONTH, SEASON_END_DAY)
    return datetime.combine(end, time.max, tzinfo=timezone.utc)


class PaymentService:
    """구독 결제 비즈니스 로직."""

    def __init__(
        self,
        user_repo: UserRepositoryInterface,
        payment_repo: PaymentRepositoryInterface,
        ledger: AwardLedgerService,
        attendance: AttendanceService,
        config: MembershipConfig,
    ) -> None:
        self._user_repo = user_repo
        self._payment_repo = payment_repo
        self._ledger = ledger
        self._attendance = attendance
        self._config = config

    # 구매 -----------------------------------------------------------------
    def start_subscription_purchase(
        self,
        user_id: str,
        subscription_type: SubscriptionType,
        name: str,
        price: float,
        payment_method: str,
    ) -> PurchaseResult:
        """premi 할인을 적용해 pending 결제를 만들고 유저를 pending 으로 옮긴다.

        - premi 차감에 실패하면 구매 자체를 막는다 (예외 전파).
        - 결제 생성 이후 단계가 실패하면 차감한 premi 를 환불하고 예외를 다시 던진다.
        - premi 로 전액 결제되면 (최종 금액 0) 바로 승인한다.
        """
        user = self._require_user(user_id)
        current = user.subscription_access_status
        if not can_transition(current, SubscriptionAccessStatus.PENDING):
            raise InvalidStatusTransitionError(
                f"cannot start a purchase while subscription status is {current}"
            )

        calculation = self._ledger.quote_bonus(user_id, price)
        self._ledger.apply_bonus(user_id, calculation)

        payment: Payment | None = None
        try:
            now = datetime.now(timezone.utc)
            payment = self._payment_repo.create(
                Payment(
                    user_id=user_id,
                    type=PaymentType.SUBSCRIPTION,
                    status=PaymentStatus.PENDING,
                    amount=calculation.final_price,
                    payment_method=(
                        BONUS_PAYMENT_METHOD
                        if calculation.final_price == 0
                        else payment_method
                    ),
                    description=name,
                    subscription_type=subscription_type,
                    award_ids=calculation.award_ids,
                    bonus_used=calculation.bonus_to_use,
                    created_at=now,
                    updated_at=now,
                )
            )
            moved = self._user_repo.update_access_status(
                user_id,
                SubscriptionAccessStatus.PENDING,
                expected_status=current,
            )
            if not moved:
                raise InvalidStatusTransitionError(
                    f"subscription status of user {user_id} changed during purchase"
                )
        except Exception:
            logger.warning(
                "subscription purchase failed, refunding bonus=%.2f",
                calculation.bonus_to_use,
                extra={"user_id": user_id},
            )
            self._abort_purchase(user_id, payment, calculation)
            raise

        assert payment.id is not None
        logger.info(
            "subscription purchase started type=%s amount=%.2f bonus=%.2f",
            subscription_type,
            payment.amount,
            payment.bonus_used,
            extra={"user_id": user_id, "payment_id": payment.id},
        )

        result = PurchaseResult(payment=payment, bonus=calculation)
        if calculation.final_price == 0:
            accepted = self.accept_payment(user_id, payment.id)
            result.payment = accepted.payment
            result.notifications.extend(accepted.notifications)
        return result

    def _abort_purchase(
        self, user_id: str, payment: Payment | None, calculation: BonusCalculation
    ) -> None:
        # 원래 예외를 그대로 올려야 하므로 정리 단계의 실패는 기록만 한다.
        if payment is not None and payment.id is not None:
            try:
                self._payment_repo.transition_status(payment.id, PaymentStatus.FAILED)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "failed to mark aborted purchase payment as failed",
                    extra={"user_id": user_id, "payment_id": payment.id},
                )
        if calculation.bonus_to_use > 0:
            try:
                self._ledger.refund_bonus(user_id, calculation)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "failed to refund bonus of aborted purchase amount=%.2f",
                    calculation.bonus_to_use,
                    extra={"user_id": user_id},
                )

    # 승인 -----------------------------------------------------------------
    def accept_payment(self, user_id: str, payment_id: str) -> PaymentDecisionResult:
        """pending 결제를 completed 로 바꾸고, 구독 결제면 구독을 활성화한다."""
        payment = self._require_pending_payment(user_id, payment_id)

        user: User | None = None
        if payment.type == PaymentType.SUBSCRIPTION:
            user = self._require_user(user_id)
            if not can_transition(
                user.subscription_access_status, SubscriptionAccessStatus.ACTIVE
            ):
                raise InvalidStatusTransitionError(
                    f"cannot activate subscription while status is {user.subscription_access_status}"
                )

        completed = self._payment_repo.transition_status(
            payment_id, PaymentStatus.COMPLETED
        )
        if completed is None:
            raise PaymentStateError(f"payment {payment_id} is no longer pending")

        result = PaymentDecisionResult(payment=completed)
        if user is None:
            return result

        now = datetime.now(timezone.utc)
        subscription_type = completed.subscription_type or SubscriptionType.MONTHLY
        subscription = ActiveSubscription(
            id=payment_id,
            name=completed.description,
            type=subscription_type,
            purchased_at=completed.created_at,
            expires_at=self._expires_at(subscription_type, now),
            payment_method=completed.payment_method,
            payment_id=payment_id,
        )
        activated = self._user_repo.activate_subscription(
            user_id, subscription, expected_status=user.subscription_access_status
        )
        if not activated:
            raise InvalidStatusTransitionError(
                f"subscription status of user {user_id} changed during acceptance"
            )

        logger.info(
            "subscription activated type=%s expires_at=%s",
            subscription.type,
            subscription.expires_at,
            extra={"user_id": user_id, "payment_id": payment_id},
        )
        result.notifications.append(
            Notification(
                kind=NotificationKind.SUBSCRIPTION_ACTIVATED,
                user_id=user_id,
                title="Abbonamento attivato",
                description=f"Il tuo abbonamento {subscription.name} è attivo.",
                variant="success",
                data={"payment_id": payment_id, "type": subscription.type.value},
            )
        )
        result.notifications.extend(self._grant_attendance_award(user_id))
        return result

    def _grant_attendance_award(self, user_id: str) -> list[Notification]:
        """Premio Presenze 를 지급한다. 전체 수업 수를 알면 현재 출석률 기준 값으로 지급한다."""
        snapshot = self._attendance.snapshot(user_id)
        known = bool(snapshot.total_lessons)
        try:
            granted = self._ledger.create_by_name(
                user_id,
                ATTENDANCE_AWARD_NAME,
                override_value=(
                    attendance_award_value(snapshot.percentage) if known else None
                ),
            )
        except DuplicateAwardError:
            # 재구독이면 이미 가지고 있다.
            return []
        except AwardTemplateNotFoundError:
            logger.warning(
                "attendance award template missing, award not granted",
                extra={"user_id": user_id},
            )
            return [
                Notification(
                    kind=NotificationKind.ATTENDANCE_AWARD_MISSING,
                    user_id=user_id,
                    title="Premio Presenze non assegnato",
                    description="Il modello del Premio Presenze non è configurato.",
                    variant="destructive",
                )
            ]
        if known:
            # 값은 이미 맞으므로 출석률(percentage)만 기록된다.
            self._ledger.recompute_attendance_award(user_id, snapshot.percentage)
        return granted.notifications

    def _expires_at(self, subscription_type: SubscriptionType, now: datetime) -> datetime:
        if subscription_type == SubscriptionType.SEASONAL:
            return season_end(now, self._config.season_end_date)
        return end_of_month(now)

    # 거절 / 취소 ----------------------------------------------------------
    def reject_payment(
        self,
        user_id: str,
        payment_id: str,
        *,
        status: PaymentStatus = PaymentStatus.FAILED,
        cancelled_by: str | None = None,
        admin_note: str | None = None,
    ) -> PaymentDecisionResult:
        """pending 결제를 failed / cancelled 로 종결하고 끌어다 쓴 premi 를 환불한다."""
        if status not in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            raise ValueError(f"reject status must be failed or cancelled: {status}")

        self._require_pending_payment(user_id, payment_id)
        closed = self._payment_repo.transition_status(
            payment_id, status, cancelled_by=cancelled_by, admin_note=admin_note
        )
        if closed is None:
            raise PaymentStateError(f"payment {payment_id} is no longer pending")

        result = PaymentDecisionResult(payment=closed)
        refund: RefundResult | None = None
        if closed.bonus_used > 0 and closed.award_ids:
            # 결제는 이미 종결됐다. 환불이 실패해도 상태 정리는 계속하고 오류를 결과에 남긴다.
            # 결제의 award_ids / bonus_used 로 관리자가 환불을 다시 실행할 수 있다.
            try:
                refund = self._ledger.refund(user_id, closed.award_ids, closed.bonus_used)
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "bonus refund failed after payment was closed amount=%.2f",
                    closed.bonus_used,
                    extra={"user_id": user_id, "payment_id": payment_id},
                )
                result.refund_errors.append(str(exc))
        result.refund = refund

        if closed.type == PaymentType.SUBSCRIPTION:
            self._settle_rejected_subscription(user_id, status)

        result.notifications.append(
            Notification(
                kind=NotificationKind.PAYMENT_REJECTED,
                user_id=user_id,
                title=(
                    "Pagamento rifiutato"
                    if status == PaymentStatus.FAILED
                    else "Pagamento annullato"
                ),
                description=closed.description,
                variant="destructive",
                data={"payment_id": payment_id, "status": status.value},
            )
        )
        if refund is not None:
            result.notifications.extend(refund.notifications)

        logger.info(
            "payment closed status=%s bonus_refunded=%.2f",
            status,
            refund.refunded if refund is not None else 0.0,
            extra={"user_id": user_id, "payment_id": payment_id},
        )
        return result

    def _settle_rejected_subscription(
        self, user_id: str, status: PaymentStatus
    ) -> None:
        # 다른 구독 결제가 아직 대기 중이면 pending 을 유지한다.
        if self._payment_repo.has_pending_subscription(user_id):
            return
        if status == PaymentStatus.FAILED:
            moved = self._user_repo.update_access_status(
                user_id,
                SubscriptionAccessStatus.FAILED,
                expected_status=SubscriptionAccessStatus.PENDING,
                subscription_payment_failed=True,
            )
        else:
            moved = self._user_repo.update_access_status(
                user_id,
                SubscriptionAccessStatus.EXPIRED,
                expected_status=SubscriptionAccessStatus.PENDING,
            )
        if not moved:
            logger.info(
                "user was not pending, status left unchanged",
                extra={"user_id": user_id},
            )

    # 조회 -----------------------------------------------------------------
    def list_payments(self, user_id: str) -> list[Payment]:
        return self._payment_repo.list_by_user(user_id)

    # 내부 util -------------------------------------------------------------
    def _require_user(self, user_id: str) -> User:
        user = self._user_repo.find_by_user_id(user_id)
        if user is None:
            raise RecordNotFoundError("user", user_id)
        return user

    def _require_pending_payment(self, user_id: str, payment_id: str) -> Payment:
        payment = self._payment_repo.find_by_id(payment_id)
        if payment is None or payment.user_id != user_id:
            raise RecordNotFoundError("payment", payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise PaymentStateError(
                f"payment {payment_id} is already {payment.status}"
            )
        return payment


def get_payment_service(db: Database = Depends(get_database)) -> PaymentService:
    """FastAPI DI용 PaymentService 팩토리."""
    user_repo = UserRepository(db)
    ledger = build_award_ledger_service(db)
    return PaymentService(
        user_repo,
        PaymentRepository(db),
        ledger,
        AttendanceService(user_repo, AttendanceRepository(db), ledger),
        get_membership_config(),
    )
