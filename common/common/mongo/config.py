from __future__ import annotations

import os
from dataclasses import dataclass


MONGO_URI_ENV = "MONGO_URI"
MONGO_DB_NAME_ENV = "MONGO_DB_NAME"
MONGO_APP_NAME_ENV = "MONGO_APP_NAME"

DEFAULT_APP_NAME = "liberasphere"


@dataclass(frozen=True, slots=True)
class MongoSettings:
    uri: str
    db_name: str | None
    app_name: str


def load_mongo_settings() -> MongoSettings:
    """MongoDB 연결 설정을 환경 변수에서 읽는다.

    - MONGO_URI 는 필수이며, 없으면 애플리케이션이 즉시 실패하도록 RuntimeError 를 발생시킨다.
    - MONGO_DB_NAME 이 비어 있으면 None 으로 두고, 클라이언트는 URI 의 기본 DB 를 사용한다.
    """

    uri = os.getenv(MONGO_URI_ENV, "").strip()
    if not uri:
        raise RuntimeError(
            f"{MONGO_URI_ENV} environment variable is required for MongoDB",
        )

    db_name = os.getenv(MONGO_DB_NAME_ENV, "").strip() or None
    app_name = os.getenv(MONGO_APP_NAME_ENV, "").strip() or DEFAULT_APP_NAME
    return MongoSettings(uri=uri, db_name=db_name, app_name=app_name)
