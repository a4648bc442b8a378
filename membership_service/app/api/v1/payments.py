"""결제 API 라우터."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from ...models.payment import Payment, PaymentDecisionResult, PurchaseResult
from ...services.notifications import (
    NotificationPublisherInterface,
    get_notification_publisher,
)
from ...services.payment_service import PaymentService, get_payment_service
from ..schemas.payments import RejectPaymentRequest, StartSubscriptionRequest


router = APIRouter(prefix="/payments", tags=["payments"])

PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
PublisherDep = Annotated[NotificationPublisherInterface, Depends(get_notification_publisher)]


@router.get("/{user_id}", summary="유저 결제 목록")
def list_payments(user_id: str, service: PaymentServiceDep) -> list[Payment]:
    return service.list_payments(user_id)


@router.post(
    "/{user_id}/subscription",
    status_code=status.HTTP_201_CREATED,
    summary="구독 구매 시작",
)
def start_subscription(
    user_id: str,
    req: StartSubscriptionRequest,
    service: PaymentServiceDep,
    publisher: PublisherDep,
) -> PurchaseResult:
    result = service.start_subscription_purchase(
        user_id,
        req.subscription_type,
        req.name,
        req.price,
        req.payment_method,
    )
    publisher.publish(result.notifications)
    return result


@router.post("/{user_id}/{payment_id}/accept", summary="결제 승인 (관리자)")
def accept_payment(
    user_id: str,
    payment_id: str,
    service: PaymentServiceDep,
    publisher: PublisherDep,
) -> PaymentDecisionResult:
    result = service.accept_payment(user_id, payment_id)
    publisher.publish(result.notifications)
    return result


@router.post("/{user_id}/{payment_id}/reject", summary="결제 거절/취소")
def reject_payment(
    user_id: str,
    payment_id: str,
    req: RejectPaymentRequest,
    service: PaymentServiceDep,
    publisher: PublisherDep,
) -> PaymentDecisionResult:
    result = service.reject_payment(
        user_id,
        payment_id,
        status=req.status,
        cancelled_by=req.cancelled_by,
        admin_note=req.admin_note,
    )
    publisher.publish(result.notifications)
    return result
