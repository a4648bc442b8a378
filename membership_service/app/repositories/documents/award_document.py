"""premi MongoDB 도큐먼트.

user_awards 는 유저가 보유한 premi, awards 는 관리자가 관리하는 템플릿 카탈로그다.
"""

from __future__ import annotations

from common.mongo.types import (
    BaseDocument,
    MongoDateTime,
    build_document_data_from_domain,
    from_object_id,
)

from ...models.award import AwardTemplate, UserAward


class UserAwardDocument(BaseDocument):
    """MongoDB user_awards 컬렉션 도큐먼트 모델."""

    user_id: str
    award_id: str
    name: str
    value: float
    used_value: float = 0.0
    residuo: float
    used: bool = False
    percentage: float | None = None
    assigned_at: MongoDateTime

    @classmethod
    def from_domain(cls, award: UserAward) -> "UserAwardDocument":
        data = build_document_data_from_domain(award)
        return cls.model_validate(data)

    def to_domain(self) -> UserAward:
        return UserAward(
            id=from_object_id(self.id),
            user_id=self.user_id,
            award_id=self.award_id,
            name=self.name,
            value=self.value,
            used_value=self.used_value,
            residuo=self.residuo,
            used=self.used,
            percentage=self.percentage,
            assigned_at=self.assigned_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class AwardTemplateDocument(BaseDocument):
    """MongoDB awards 컬렉션 도큐먼트 모델 (읽기 전용)."""

    name: str
    value: float
    # 관리 콘솔에서 직접 넣은 템플릿은 타임스탬프가 없을 수 있다.
    created_at: MongoDateTime | None = None  # type: ignore[assignment]
    updated_at: MongoDateTime | None = None  # type: ignore[assignment]

    def to_domain(self) -> AwardTemplate:
        return AwardTemplate(
            id=from_object_id(self.id) or "",
            name=self.name,
            value=self.value,
        )
