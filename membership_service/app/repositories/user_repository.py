from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pymongo import ASCENDING
from pymongo.database import Database

from common.models.user import ActiveSubscription, SubscriptionAccessStatus, User

from .documents.user_document import ActiveSubscriptionDocument, UserDocument
from .interfaces import UserRepositoryInterface


def _status_filter(status: SubscriptionAccessStatus) -> Any:
    # 상태 필드가 없거나 null 인 레거시 문서는 none 과 같은 것으로 본다.
    if status == SubscriptionAccessStatus.NONE:
        return {"$in": [None, SubscriptionAccessStatus.NONE.value]}
    return status.value


class UserRepository(UserRepositoryInterface):
    """users 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["users"]

    @staticmethod
    def _from_document(doc: dict) -> User:
        document = UserDocument.model_validate(doc)
        return document.to_domain()

    def find_by_user_id(self, user_id: str) -> User | None:
        doc = self._col.find_one({"user_id": user_id})
        if not doc:
            return None
        return self._from_document(doc)

    def list_user_ids(self) -> list[str]:
        cursor = self._col.find({}, {"user_id": 1}, sort=[("user_id", ASCENDING)])
        return [str(doc["user_id"]) for doc in cursor if doc.get("user_id")]

    def update_access_status(
        self,
        user_id: str,
        status: SubscriptionAccessStatus,
        *,
        expected_status: SubscriptionAccessStatus,
        subscription_payment_failed: bool | None = None,
        session: Any | None = None,
    ) -> bool:
        """상태가 expected_status 일 때만 status 로 바꾼다.

        - 조건에 맞는 문서가 없으면 (이미 바뀌었거나 유저가 없으면) False 를 반환한다.
        """

        changes: dict[str, Any] = {
            "subscription_access_status": status.value,
            "updated_at": datetime.now(timezone.utc),
        }
        if subscription_payment_failed is not None:
            changes["subscription_payment_failed"] = subscription_payment_failed

        result = self._col.update_one(
            {
                "user_id": user_id,
                "subscription_access_status": _status_filter(expected_status),
            },
            {"$set": changes},
            session=session,
        )
        return result.matched_count > 0

    def activate_subscription(
        self,
        user_id: str,
        subscription: ActiveSubscription,
        *,
        expected_status: SubscriptionAccessStatus,
    ) -> bool:
        """active_subscription 을 기록하고 상태를 active 로 바꾼다."""

        document = ActiveSubscriptionDocument.from_domain(subscription)
        result = self._col.update_one(
            {
                "user_id": user_id,
                "subscription_access_status": _status_filter(expected_status),
            },
            {
                "$set": {
                    "active_subscription": document.model_dump(mode="python"),
                    "subscription_access_status": SubscriptionAccessStatus.ACTIVE.value,
                    "subscription_payment_failed": False,
                    "updated_at": datetime.now(timezone.utc),
                }
            },
        )
        return result.matched_count > 0
