"""premi(보너스) 도메인 모델.

유저당 여러 premi 레코드를 가지며, 각 레코드는 value(액면가), used_value(누적 사용액),
residuo(잔액 = value - used_value)를 중복 저장한다. 구매 시 할인으로 소비되고,
결제가 실패/취소되면 환불된다.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from .notification import Notification


# 출석률에 따라 value 가 재계산되는 유일한 premi. 적립 전용이며 구매에 쓸 수 없다.
ATTENDANCE_AWARD_NAME = "Premio Presenze"

NON_SPENDABLE_AWARD_NAMES: frozenset[str] = frozenset({ATTENDANCE_AWARD_NAME})


def is_spendable_award(name: str) -> bool:
    return name not in NON_SPENDABLE_AWARD_NAMES


class AwardTemplate(BaseModel):
    """awards 카탈로그의 premi 정의 (읽기 전용)."""

    id: str
    name: str
    value: float


class UserAward(BaseModel):
    """유저가 보유한 개별 premi 레코드."""

    id: str | None = None
    user_id: str
    award_id: str  # 템플릿 ID
    name: str
    value: float  # 액면가
    used_value: float = 0.0  # 누적 사용액
    residuo: float  # 남은 잔액
    used: bool = False  # residuo == 0 이면 True
    percentage: float | None = None  # Premio Presenze 의 마지막 출석률
    assigned_at: datetime
    created_at: datetime
    updated_at: datetime


class SpendableAward(BaseModel):
    id: str
    name: str
    available_amount: float
    assigned_at: datetime


class AwardUsage(BaseModel):
    award_id: str
    amount: float


class BonusCalculation(BaseModel):
    """구매 1건에 대해 어떤 premi 에서 얼마를 쓸지 계산한 결과."""

    spendable_awards: list[SpendableAward] = Field(default_factory=list)
    total_available: float = 0.0
    bonus_to_use: float = 0.0
    final_price: float = 0.0
    award_usage: list[AwardUsage] = Field(default_factory=list)

    @property
    def award_ids(self) -> list[str]:
        return [usage.award_id for usage in self.award_usage]


class AwardGrantResult(BaseModel):
    award: UserAward
    notifications: list[Notification] = Field(default_factory=list)


class SpendResult(BaseModel):
    award_id: str
    spent: float
    used_value: float
    residuo: float
    used: bool


class RefundedAward(BaseModel):
    award_id: str
    amount: float
    residuo: float


class RefundResult(BaseModel):
    """환불 결과. 환불 가능액이 부족하면 shortfall/warning 으로 보고한다."""

    requested: float
    refunded: float = 0.0
    shortfall: float = 0.0
    refunded_awards: list[RefundedAward] = Field(default_factory=list)
    warning: str | None = None
    notifications: list[Notification] = Field(default_factory=list)


class AwardsSummary(BaseModel):
    user_id: str
    total_spendable: float
    total_non_spendable: float
    awards: list[UserAward]
