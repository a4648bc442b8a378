from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

from common.mongo.types import parse_object_id

from .documents.payment_document import PaymentDocument
from .interfaces import PaymentRepositoryInterface
from ..models.payment import Payment, PaymentStatus, PaymentType


class PaymentRepository(PaymentRepositoryInterface):
    """payments 컬렉션에 대한 MongoDB 접근 레이어."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._col = database["payments"]

    @staticmethod
    def _from_document(doc: dict) -> Payment:
        return PaymentDocument.model_validate(doc).to_domain()

    def create(self, payment: Payment) -> Payment:
        document = PaymentDocument.from_domain(payment)
        payload = document.to_mongo_record()
        result = self._col.insert_one(payload)
        payload["_id"] = result.inserted_id
        return self._from_document(payload)

    def find_by_id(self, payment_id: str) -> Payment | None:
        oid = parse_object_id(payment_id)
        if oid is None:
            return None
        doc = self._col.find_one({"_id": oid})
        if not doc:
            return None
        return self._from_document(doc)

    def list_pending_subscription(
        self, user_id: str, *, session: Any | None = None
    ) -> list[Payment]:
        cursor = self._col.find(
            {
                "user_id": user_id,
                "type": PaymentType.SUBSCRIPTION.value,
                "status": PaymentStatus.PENDING.value,
            },
            sort=[("created_at", ASCENDING)],
            session=session,
        )
        return [self._from_document(doc) for doc in cursor]

    def has_pending_subscription(self, user_id: str) -> bool:
        doc = self._col.find_one(
            {
                "user_id": user_id,
                "type": PaymentType.SUBSCRIPTION.value,
                "status": PaymentStatus.PENDING.value,
            },
            {"_id": 1},
        )
        return doc is not None

    def list_by_user(self, user_id: str) -> list[Payment]:
        cursor = self._col.find(
            {"user_id": user_id}, sort=[("created_at", ASCENDING)]
        )
        return [self._from_document(doc) for doc in cursor]

    def transition_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        *,
        cancelled_by: str | None = None,
        admin_note: str | None = None,
        session: Any | None = None,
    ) -> Payment | None:
        """pending 조건부 갱신. 이미 종결된 결제는 다시 열 수 없으므로 None 을 반환한다."""

        oid = parse_object_id(payment_id)
        if oid is None:
            return None

        now = datetime.now(timezone.utc)
        changes: dict[str, Any] = {"status": status.value, "updated_at": now}
        if status in (PaymentStatus.CANCELLED, PaymentStatus.FAILED):
            changes["cancelled_at"] = now
        if cancelled_by is not None:
            changes["cancelled_by"] = cancelled_by
        if admin_note is not None:
            changes["admin_note"] = admin_note

        doc = self._col.find_one_and_update(
            {"_id": oid, "status": PaymentStatus.PENDING.value},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        if not doc:
            return None
        return self._from_document(doc)
