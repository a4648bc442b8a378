from __future__ import annotations

from datetime import datetime

from common.models.user import SubscriptionAccessStatus
from membership_service.app.repositories.documents.user_document import UserDocument


def _raw_user(**overrides: object) -> dict:
    raw: dict = {
        "user_id": "user-001",
        "name": "Mario",
        "surname": "Rossi",
        "created_at": datetime(2025, 1, 10, 9, 0),
        "updated_at": datetime(2025, 1, 10, 9, 0),
    }
    raw.update(overrides)
    return raw


def test_null_access_status_reads_as_none() -> None:
    user = UserDocument.model_validate(
        _raw_user(subscription_access_status=None)
    ).to_domain()

    assert user.subscription_access_status == SubscriptionAccessStatus.NONE


def test_naive_mongo_datetimes_become_utc() -> None:
    user = UserDocument.model_validate(
        _raw_user(
            subscription_access_status="active",
            active_subscription={
                "id": "sub-001",
                "type": "seasonal",
                "purchased_at": datetime(2024, 9, 1),
                "expires_at": datetime(2025, 8, 31),
                "legacy_field": "ignored",
            },
        )
    ).to_domain()

    assert user.created_at.utcoffset() is not None
    assert user.active_subscription is not None
    assert user.active_subscription.expires_at is not None
    assert user.active_subscription.expires_at.utcoffset() is not None


def test_legacy_fields_are_ignored() -> None:
    doc = UserDocument.model_validate(_raw_user(firestore_ref="users/abc"))

    assert "firestore_ref" not in doc.to_mongo_record()
