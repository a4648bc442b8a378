"""구독 상태 캐시와 정합성 점검 결과 모델."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from common.models.user import SubscriptionAccessStatus

from .award import RefundResult
from .notification import Notification


_S = SubscriptionAccessStatus

# 일반 흐름(구매/승인/거절/만료)에서 허용되는 캐시 상태 전이.
# 정합성 복구(repair)는 이 표를 우회하는 유일한 경로다.
ALLOWED_STATUS_TRANSITIONS: dict[SubscriptionAccessStatus, frozenset[SubscriptionAccessStatus]] = {
    _S.NONE: frozenset({_S.PENDING}),
    _S.PENDING: frozenset({_S.ACTIVE, _S.FAILED, _S.EXPIRED}),
    _S.ACTIVE: frozenset({_S.EXPIRED, _S.PENDING}),
    _S.EXPIRED: frozenset({_S.PENDING}),
    _S.FAILED: frozenset({_S.PENDING}),
}


def can_transition(
    current: SubscriptionAccessStatus, target: SubscriptionAccessStatus
) -> bool:
    return target in ALLOWED_STATUS_TRANSITIONS.get(current, frozenset())


class DriftKind(StrEnum):
    # pending 인데 진행 중인 구독 결제가 없다
    PHANTOM_PENDING = "phantom_pending"
    # 유효한 구독이 있는데 상태가 active 가 아니다
    INCONSISTENT_ACTIVE = "inconsistent_active"


class AuditFinding(BaseModel):
    user_id: str
    kind: DriftKind
    status: SubscriptionAccessStatus
    detail: str = ""


class SweepError(BaseModel):
    user_id: str
    error: str


class AuditStats(BaseModel):
    scanned: int = 0
    with_valid_subscription: int = 0
    monthly: int = 0
    seasonal: int = 0
    paid_with_bonus: int = 0


class AuditReport(BaseModel):
    findings: list[AuditFinding] = Field(default_factory=list)
    errors: list[SweepError] = Field(default_factory=list)
    stats: AuditStats = Field(default_factory=AuditStats)


class RepairOutcome(BaseModel):
    user_id: str
    kind: DriftKind
    changed: bool


class ReconcileReport(BaseModel):
    audit: AuditReport
    repaired: list[RepairOutcome] = Field(default_factory=list)
    errors: list[SweepError] = Field(default_factory=list)


class UnlockOutcome(BaseModel):
    user_id: str
    changed: bool
    cancelled_payment_ids: list[str] = Field(default_factory=list)
    refunds: list[RefundResult] = Field(default_factory=list)
    refund_errors: list[str] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
