"""premi 레포지토리 구현체.

잔액 변경은 used_value, value 를 조건으로 건 find_one_and_update 로만 수행한다.
동시에 두 요청이 같은 premi 를 차감/환불해도 한쪽은 조건 불일치로 실패하고 재시도한다.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

from common.mongo.types import parse_object_id

from .documents.award_document import AwardTemplateDocument, UserAwardDocument
from .interfaces import AwardTemplateRepositoryInterface, UserAwardRepositoryInterface
from ..models.award import AwardTemplate, UserAward


class UserAwardRepository(UserAwardRepositoryInterface):
    """user_awards 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["user_awards"]

    @staticmethod
    def _from_document(doc: dict) -> UserAward:
        return UserAwardDocument.model_validate(doc).to_domain()

    def find(self, user_id: str, award_id: str) -> UserAward | None:
        doc = self._col.find_one({"user_id": user_id, "award_id": award_id})
        if not doc:
            return None
        return self._from_document(doc)

    def find_by_name(self, user_id: str, name: str) -> UserAward | None:
        doc = self._col.find_one({"user_id": user_id, "name": name})
        if not doc:
            return None
        return self._from_document(doc)

    def list_by_user(self, user_id: str) -> list[UserAward]:
        cursor = self._col.find(
            {"user_id": user_id},
            sort=[("assigned_at", ASCENDING), ("award_id", ASCENDING)],
        )
        return [self._from_document(doc) for doc in cursor]

    def insert(self, award: UserAward) -> UserAward:
        """새 premi 를 저장한다. (user_id, award_id) 중복이면 DuplicateKeyError 가 그대로 전파된다."""
        document = UserAwardDocument.from_domain(award)
        payload = document.to_mongo_record()
        result = self._col.insert_one(payload)
        payload["_id"] = result.inserted_id
        return self._from_document(payload)

    def update_if_unchanged(
        self,
        user_id: str,
        award_id: str,
        *,
        expected_used_value: float,
        expected_value: float,
        changes: dict[str, Any],
    ) -> UserAward | None:
        doc = self._col.find_one_and_update(
            {
                "user_id": user_id,
                "award_id": award_id,
                "used_value": expected_used_value,
                "value": expected_value,
            },
            {"$set": {**changes, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        return self._from_document(doc)


class AwardTemplateRepository(AwardTemplateRepositoryInterface):
    """awards 컬렉션(템플릿 카탈로그) 읽기 전용 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._col = database["awards"]

    def find_by_id(self, award_id: str) -> AwardTemplate | None:
        oid = parse_object_id(award_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid})
        if not doc:
            return None
        return AwardTemplateDocument.model_validate(doc).to_domain()

    def find_by_name(self, name: str) -> AwardTemplate | None:
        doc = self._col.find_one({"name": name})
        if not doc:
            return None
        return AwardTemplateDocument.model_validate(doc).to_domain()
