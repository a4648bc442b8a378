"""premi 원장 API 라우터."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from ...models.award import BonusCalculation, RefundResult, SpendResult
from ...services.award_ledger_service import AwardLedgerService, get_award_ledger_service
from ...services.notifications import (
    NotificationPublisherInterface,
    get_notification_publisher,
)
from ..schemas.awards import (
    AwardResponse,
    AwardsSummaryResponse,
    BonusQuoteRequest,
    CreateAwardRequest,
    RefundAwardsRequest,
    SpendAwardRequest,
)


router = APIRouter(prefix="/awards", tags=["awards"])

LedgerDep = Annotated[AwardLedgerService, Depends(get_award_ledger_service)]
PublisherDep = Annotated[NotificationPublisherInterface, Depends(get_notification_publisher)]


@router.get("/{user_id}", summary="유저 premi 목록과 잔액 합계")
def get_awards(user_id: str, ledger: LedgerDep) -> AwardsSummaryResponse:
    return AwardsSummaryResponse.from_domain(ledger.get_summary(user_id))


@router.post(
    "/{user_id}",
    status_code=status.HTTP_201_CREATED,
    summary="premi 지급 (관리자)",
)
def create_award(
    user_id: str,
    req: CreateAwardRequest,
    ledger: LedgerDep,
    publisher: PublisherDep,
) -> AwardResponse:
    """템플릿으로 premi 를 지급한다. 같은 premi 가 이미 있으면 409, 템플릿이 없으면 404."""
    result = ledger.create(user_id, req.template_id, override_value=req.value)
    publisher.publish(result.notifications)
    return AwardResponse.from_domain(
        result.award, spendable=ledger.is_spendable(result.award.name)
    )


@router.post("/{user_id}/{award_id}/spend", summary="premi 차감")
def spend_award(
    user_id: str,
    award_id: str,
    req: SpendAwardRequest,
    ledger: LedgerDep,
) -> SpendResult:
    return ledger.spend(user_id, award_id, req.amount)


@router.post("/{user_id}/refund", summary="premi 환불 (LIFO)")
def refund_awards(
    user_id: str,
    req: RefundAwardsRequest,
    ledger: LedgerDep,
    publisher: PublisherDep,
) -> RefundResult:
    """환불 가능액이 부족해도 200 으로 응답하고 shortfall / warning 에 담는다."""
    result = ledger.refund(user_id, req.award_ids, req.amount)
    publisher.publish(result.notifications)
    return result


@router.post("/{user_id}/bonus-quote", summary="구매 할인 견적")
def quote_bonus(
    user_id: str,
    req: BonusQuoteRequest,
    ledger: LedgerDep,
) -> BonusCalculation:
    return ledger.quote_bonus(user_id, req.price)
