from __future__ import annotations

import logging
import threading
from typing import Optional

from pymongo import ASCENDING, IndexModel, MongoClient
from pymongo.database import Database

from .config import load_mongo_settings


logger = logging.getLogger(__name__)


_client: Optional[MongoClient] = None
_db: Optional[Database] = None
_lock = threading.Lock()


def get_client() -> MongoClient:
    """전역 MongoClient 싱글톤을 반환한다.

    - ping 으로 연결을 검증한다.
    - 데이터베이스 이름은 MONGO_DB_NAME 우선, 없으면 URI 의 기본 DB 를 사용한다.
    - 회원/결제/premi 컬렉션 인덱스를 한 번만 생성한다.
    """

    global _client, _db

    if _client is not None:
        return _client

    with _lock:
        if _client is not None:
            return _client

        settings = load_mongo_settings()
        client: MongoClient = MongoClient(settings.uri, appname=settings.app_name)

        try:
            client.admin.command("ping")
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(f"failed to connect to MongoDB: {exc}") from exc

        try:
            if settings.db_name:
                db = client[settings.db_name]
            else:
                db = client.get_default_database()
        except Exception as exc:  # noqa: BLE001
            client.close()
            raise RuntimeError(
                "MongoDB database name must be specified via MONGO_DB_NAME or in MONGO_URI (mongodb://.../db_name)",
            ) from exc

        try:
            ensure_indexes(db)
        except Exception as exc:  # noqa: BLE001
            # 유니크 인덱스가 없으면 premi 중복 지급을 막을 수 없으므로 치명적 오류로 본다.
            logger.error("failed to ensure MongoDB indexes: %s", exc)
            client.close()
            raise

        _client = client
        _db = db
        logger.info("MongoDB connected and indexes ensured (db=%s)", db.name)
        return _client


def get_database() -> Database:
    """전역 기본 Database 객체를 반환한다."""

    if _db is None:
        get_client()
    assert _db is not None  # get_client 에서 실패했다면 예외가 이미 발생했어야 한다.
    return _db


def ensure_indexes(db: Database) -> None:
    """필수 인덱스를 생성한다. 중복 생성은 MongoDB 가 무시하므로 idempotent 하다."""

    db["users"].create_indexes(
        [
            IndexModel([("user_id", ASCENDING)], name="uniq_user_id", unique=True),
            IndexModel(
                [("subscription_access_status", ASCENDING)],
                name="idx_subscription_access_status",
            ),
        ]
    )

    db["payments"].create_indexes(
        [
            IndexModel(
                [("user_id", ASCENDING), ("type", ASCENDING), ("status", ASCENDING)],
                name="idx_user_type_status",
            ),
            IndexModel(
                [("user_id", ASCENDING), ("created_at", ASCENDING)],
                name="idx_user_created_at",
            ),
        ]
    )

    # (user_id, award_id) 유니크 제약으로 같은 템플릿의 중복 지급을 DB 레벨에서 막는다.
    db["user_awards"].create_indexes(
        [
            IndexModel(
                [("user_id", ASCENDING), ("award_id", ASCENDING)],
                name="uniq_user_award_template",
                unique=True,
            ),
            IndexModel(
                [("user_id", ASCENDING), ("name", ASCENDING)],
                name="idx_user_award_name",
            ),
            IndexModel(
                [("user_id", ASCENDING), ("assigned_at", ASCENDING)],
                name="idx_user_assigned_at",
            ),
        ]
    )

    db["awards"].create_indexes(
        [IndexModel([("name", ASCENDING)], name="idx_award_name")]
    )

    db["attendances"].create_indexes(
        [
            IndexModel(
                [("user_id", ASCENDING), ("status", ASCENDING)],
                name="idx_user_attendance_status",
            )
        ]
    )
