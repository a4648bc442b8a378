"""구독 상태 정합성 점검/복구 서비스.

users.subscription_access_status 는 캐시 값이고, 진실의 원천은 결제 레코드와 active_subscription 이다.
두 가지 어긋남을 찾아 고친다.

- PHANTOM_PENDING: pending 인데 진행 중인 구독 결제가 없다 -> expired 로 되돌린다.
- INCONSISTENT_ACTIVE: 유효한 구독이 있는데 active 가 아니다 -> active 로 맞춘다.

복구는 다시 점검한 뒤 조건부로 쓰기 때문에 몇 번을 실행해도 결과가 같다.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import Depends
from pymongo.database import Database

from common.models.user import SubscriptionAccessStatus, SubscriptionType, User
from common.mongo.client import get_database

from ..exceptions import RecordNotFoundError
from ..models.notification import Notification, NotificationKind
from ..models.payment import BONUS_PAYMENT_METHOD, PaymentStatus
from ..models.subscription import (
    AuditFinding,
    AuditReport,
    AuditStats,
    DriftKind,
    ReconcileReport,
    RepairOutcome,
    SweepError,
    UnlockOutcome,
)
from ..repositories.interfaces import (
    PaymentRepositoryInterface,
    TransactionManagerInterface,
    UserRepositoryInterface,
)
from ..repositories.payment_repository import PaymentRepository
from ..repositories.transaction import MongoTransactionManager
from ..repositories.user_repository import UserRepository
from .award_ledger_service import AwardLedgerService, build_award_ledger_service


logger = logging.getLogger(__name__)

ADMIN_CANCELLED_BY = "admin"
DEFAULT_UNLOCK_NOTE = "Sblocco account da parte dell'amministratore"


class SubscriptionReconcilerService:
    """구독 상태 캐시 점검/복구 비즈니스 로직."""

    def __init__(
        self,
        user_repo: UserRepositoryInterface,
        payment_repo: PaymentRepositoryInterface,
        ledger: AwardLedgerService,
        tx_manager: TransactionManagerInterface,
    ) -> None:
        self._user_repo = user_repo
        self._payment_repo = payment_repo
        self._ledger = ledger
        self._tx_manager = tx_manager

    def detect(self, user: User, now: datetime | None = None) -> list[AuditFinding]:
        """유저 한 명의 상태 캐시 어긋남을 규칙별로 하나씩 반환한다. 정상이면 빈 리스트.

        pending 인데 결제가 없고 유효한 구독도 있으면 두 finding 이 모두 나온다.
        보고 순서대로 (PHANTOM_PENDING -> INCONSISTENT_ACTIVE) 고치면 active 로 끝난다.
        """
        now = now or datetime.now(timezone.utc)
        status = user.subscription_access_status
        subscription = user.active_subscription
        has_valid_subscription = subscription is not None and subscription.is_valid_at(now)
        findings: list[AuditFinding] = []

        if status == SubscriptionAccessStatus.PENDING:
            # 실제 결제가 승인을 기다리는 중이면 정상이다.
            if self._payment_repo.has_pending_subscription(user.user_id):
                return findings
            findings.append(
                AuditFinding(
                    user_id=user.user_id,
                    kind=DriftKind.PHANTOM_PENDING,
                    status=status,
                    detail="pending without pending subscription payment",
                )
            )

        if has_valid_subscription and status != SubscriptionAccessStatus.ACTIVE:
            assert subscription is not None and subscription.expires_at is not None
            findings.append(
                AuditFinding(
                    user_id=user.user_id,
                    kind=DriftKind.INCONSISTENT_ACTIVE,
                    status=status,
                    detail=f"subscription valid until {subscription.expires_at.isoformat()}",
                )
            )
        return findings

    def audit(self) -> AuditReport:
        """모든 유저를 훑어 어긋난 상태를 보고한다. 유저별 오류는 errors 에 모으고 계속 진행한다."""
        now = datetime.now(timezone.utc)
        report = AuditReport()

        for user_id in self._user_repo.list_user_ids():
            try:
                user = self._user_repo.find_by_user_id(user_id)
                if user is None:
                    logger.info("user vanished during audit", extra={"user_id": user_id})
                    continue
                report.stats.scanned += 1
                self._collect_stats(report.stats, user, now)

                for finding in self.detect(user, now):
                    logger.warning(
                        "subscription status drift detected status=%s",
                        finding.status,
                        extra={"user_id": user_id, "kind": finding.kind.value},
                    )
                    report.findings.append(finding)
            except Exception as exc:  # noqa: BLE001
                logger.exception("audit failed for user", extra={"user_id": user_id})
                report.errors.append(SweepError(user_id=user_id, error=str(exc)))

        logger.info(
            "subscription audit finished scanned=%d findings=%d errors=%d",
            report.stats.scanned,
            len(report.findings),
            len(report.errors),
        )
        return report

    @staticmethod
    def _collect_stats(stats: AuditStats, user: User, now: datetime) -> None:
        subscription = user.active_subscription
        if subscription is None or not subscription.is_valid_at(now):
            return
        stats.with_valid_subscription += 1
        if subscription.type == SubscriptionType.MONTHLY:
            stats.monthly += 1
        elif subscription.type == SubscriptionType.SEASONAL:
            stats.seasonal += 1
        if subscription.payment_method == BONUS_PAYMENT_METHOD:
            stats.paid_with_bonus += 1

    def repair(self, user_id: str, kind: DriftKind) -> RepairOutcome:
        """한 유저의 어긋난 상태를 고친다. 이미 정상이면 changed=False.

        active_subscription 은 건드리지 않는다.
        """
        user = self._user_repo.find_by_user_id(user_id)
        if user is None:
            raise RecordNotFoundError("user", user_id)

        if kind not in {finding.kind for finding in self.detect(user)}:
            logger.info(
                "nothing to repair",
                extra={"user_id": user_id, "kind": kind.value},
            )
            return RepairOutcome(user_id=user_id, kind=kind, changed=False)

        if kind == DriftKind.PHANTOM_PENDING:
            changed = self._user_repo.update_access_status(
                user_id,
                SubscriptionAccessStatus.EXPIRED,
                expected_status=user.subscription_access_status,
                subscription_payment_failed=False,
            )
        else:
            changed = self._user_repo.update_access_status(
                user_id,
                SubscriptionAccessStatus.ACTIVE,
                expected_status=user.subscription_access_status,
            )

        if changed:
            logger.info(
                "subscription status repaired from=%s",
                user.subscription_access_status,
                extra={"user_id": user_id, "kind": kind.value},
            )
        return RepairOutcome(user_id=user_id, kind=kind, changed=changed)

    def reconcile(self) -> ReconcileReport:
        """audit 후 모든 finding 을 repair 한다. 중간에 끊겨도 다시 돌리면 이어서 맞춰진다."""
        audit = self.audit()
        report = ReconcileReport(audit=audit)

        for finding in audit.findings:
            try:
                report.repaired.append(self.repair(finding.user_id, finding.kind))
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "repair failed for user",
                    extra={"user_id": finding.user_id, "kind": finding.kind.value},
                )
                report.errors.append(SweepError(user_id=finding.user_id, error=str(exc)))

        logger.info(
            "subscription reconcile finished repaired=%d errors=%d",
            sum(1 for outcome in report.repaired if outcome.changed),
            len(report.errors),
        )
        return report

    def unlock_user(self, user_id: str, *, admin_note: str | None = None) -> UnlockOutcome:
        """pending 에 묶인 유저를 풀어준다.

        - 하나의 트랜잭션에서 대기 중인 구독 결제를 모두 취소하고 상태를 expired 로 되돌린다.
        - 커밋 후 취소된 결제가 끌어다 쓴 premi 를 환불한다.
        """
        user = self._user_repo.find_by_user_id(user_id)
        if user is None:
            raise RecordNotFoundError("user", user_id)
        if user.subscription_access_status != SubscriptionAccessStatus.PENDING:
            logger.info(
                "unlock skipped status=%s",
                user.subscription_access_status,
                extra={"user_id": user_id},
            )
            return UnlockOutcome(user_id=user_id, changed=False)

        note = admin_note or DEFAULT_UNLOCK_NOTE
        cancelled = []
        with self._tx_manager.transaction() as session:
            for payment in self._payment_repo.list_pending_subscription(
                user_id, session=session
            ):
                assert payment.id is not None
                updated = self._payment_repo.transition_status(
                    payment.id,
                    PaymentStatus.CANCELLED,
                    cancelled_by=ADMIN_CANCELLED_BY,
                    admin_note=note,
                    session=session,
                )
                if updated is not None:
                    cancelled.append(updated)
            changed = self._user_repo.update_access_status(
                user_id,
                SubscriptionAccessStatus.EXPIRED,
                expected_status=SubscriptionAccessStatus.PENDING,
                subscription_payment_failed=False,
                session=session,
            )

        outcome = UnlockOutcome(
            user_id=user_id,
            changed=changed,
            cancelled_payment_ids=[p.id for p in cancelled if p.id is not None],
        )

        for payment in cancelled:
            if payment.bonus_used <= 0 or not payment.award_ids:
                continue
            try:
                refund = self._ledger.refund(user_id, payment.award_ids, payment.bonus_used)
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "bonus refund failed after unlock",
                    extra={"user_id": user_id, "payment_id": payment.id},
                )
                outcome.refund_errors.append(f"{payment.id}: {exc}")
                continue
            outcome.refunds.append(refund)
            outcome.notifications.extend(refund.notifications)

        if changed:
            outcome.notifications.insert(
                0,
                Notification(
                    kind=NotificationKind.ACCOUNT_UNLOCKED,
                    user_id=user_id,
                    title="Account sbloccato",
                    description="I pagamenti in sospeso sono stati annullati. Puoi effettuare un nuovo acquisto.",
                    data={"cancelled_payment_ids": outcome.cancelled_payment_ids},
                ),
            )
        logger.info(
            "user unlocked cancelled_payments=%d",
            len(outcome.cancelled_payment_ids),
            extra={"user_id": user_id},
        )
        return outcome


def get_subscription_reconciler_service(
    db: Database = Depends(get_database),
) -> SubscriptionReconcilerService:
    """FastAPI DI용 SubscriptionReconcilerService 팩토리."""
    return SubscriptionReconcilerService(
        UserRepository(db),
        PaymentRepository(db),
        build_award_ledger_service(db),
        MongoTransactionManager(db),
    )
