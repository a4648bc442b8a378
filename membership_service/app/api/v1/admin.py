"""구독 상태 점검/복구 관리자 API 라우터."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends

from ...models.subscription import AuditReport, ReconcileReport, RepairOutcome, UnlockOutcome
from ...services.notifications import (
    NotificationPublisherInterface,
    get_notification_publisher,
)
from ...services.subscription_reconciler_service import (
    SubscriptionReconcilerService,
    get_subscription_reconciler_service,
)
from ..schemas.admin import RepairRequest, UnlockRequest


router = APIRouter(prefix="/admin/subscriptions", tags=["admin"])

ReconcilerDep = Annotated[
    SubscriptionReconcilerService, Depends(get_subscription_reconciler_service)
]


@router.get("/audit", summary="구독 상태 점검 (읽기 전용)")
def audit_subscriptions(reconciler: ReconcilerDep) -> AuditReport:
    return reconciler.audit()


@router.post("/repair", summary="유저 한 명의 구독 상태 복구")
def repair_subscription(req: RepairRequest, reconciler: ReconcilerDep) -> RepairOutcome:
    return reconciler.repair(req.user_id, req.kind)


@router.post("/reconcile", summary="전체 점검 후 일괄 복구")
def reconcile_subscriptions(reconciler: ReconcilerDep) -> ReconcileReport:
    return reconciler.reconcile()


@router.post("/users/{user_id}/unlock", summary="pending 에 묶인 유저 잠금 해제")
def unlock_user(
    user_id: str,
    reconciler: ReconcilerDep,
    publisher: Annotated[NotificationPublisherInterface, Depends(get_notification_publisher)],
    req: Annotated[UnlockRequest | None, Body()] = None,
) -> UnlockOutcome:
    outcome = reconciler.unlock_user(
        user_id, admin_note=req.admin_note if req is not None else None
    )
    publisher.publish(outcome.notifications)
    return outcome
