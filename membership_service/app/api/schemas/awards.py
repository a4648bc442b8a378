from __future__ import annotations

from pydantic import BaseModel, Field

from common.types.datetime import UtcDateTime

from ...models.award import AwardsSummary, UserAward, is_spendable_award


class CreateAwardRequest(BaseModel):
    """관리자 premi 지급 요청. value 를 비우면 템플릿 값을 쓴다."""

    template_id: str
    value: float | None = Field(default=None, ge=0)


class SpendAwardRequest(BaseModel):
    amount: float = Field(ge=0)


class RefundAwardsRequest(BaseModel):
    """award_ids 는 차감한 순서 그대로 보낸다. 환불은 뒤에서부터 적용된다."""

    award_ids: list[str]
    amount: float = Field(ge=0)


class BonusQuoteRequest(BaseModel):
    price: float = Field(ge=0)


class AwardResponse(BaseModel):
    award_id: str
    name: str
    value: float
    used_value: float
    residuo: float
    used: bool
    spendable: bool
    percentage: float | None = None
    assigned_at: UtcDateTime

    @classmethod
    def from_domain(cls, award: UserAward, *, spendable: bool) -> "AwardResponse":
        return cls(
            award_id=award.award_id,
            name=award.name,
            value=award.value,
            used_value=award.used_value,
            residuo=award.residuo,
            used=award.used,
            spendable=spendable,
            percentage=award.percentage,
            assigned_at=award.assigned_at,
        )


class AwardsSummaryResponse(BaseModel):
    user_id: str
    total_spendable: float
    total_non_spendable: float
    awards: list[AwardResponse]

    @classmethod
    def from_domain(cls, summary: AwardsSummary) -> "AwardsSummaryResponse":
        return cls(
            user_id=summary.user_id,
            total_spendable=summary.total_spendable,
            total_non_spendable=summary.total_non_spendable,
            awards=[
                AwardResponse.from_domain(
                    award, spendable=is_spendable_award(award.name)
                )
                for award in summary.awards
            ],
        )
