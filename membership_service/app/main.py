from __future__ import annotations

import logging
import threading
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from common.logger import setup_logger
from common.middleware.request_trace import RequestTraceMiddleware
from common.mongo.client import get_database

from .api.errors import setup_error_handlers
from .api.health import router as health_router
from .api.v1 import api_router
from .config import get_membership_config, get_service_port
from .event_handlers import run_attendance_consumer


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:  # pragma: no cover - framework hook
    """앱 생명주기 관리.

    - 시작 시: MongoDB 연결/인덱스 확인, 설정 로드, attendance consumer 스레드 시작
    - 종료 시: consumer 스레드 정리
    """
    logger.info("membership-service starting up")

    database = get_database()
    config = get_membership_config()
    logger.info(
        "membership config loaded season_end_date=%s award_update_max_attempts=%d",
        config.season_end_date,
        config.award_update_max_attempts,
    )

    stop_flag = [False]
    consumer_thread = threading.Thread(
        target=run_attendance_consumer,
        args=(stop_flag, database),
        daemon=True,
        name="attendance-consumer",
    )
    consumer_thread.start()
    logger.info("attendance consumer thread started")

    yield

    logger.info("membership-service shutting down")
    stop_flag[0] = True
    consumer_thread.join(timeout=5.0)
    logger.info("membership-service stopped")


def create_app() -> FastAPI:
    """FastAPI 앱 팩토리."""
    setup_logger()
    app = FastAPI(
        title="LiberaSphere Membership Service",
        description="premi 원장과 구독 상태 정합성 관리",
        version="0.1.0",
        lifespan=lifespan,
    )

    # 공통 Request/Span ID 로그 미들웨어
    app.add_middleware(RequestTraceMiddleware)
    setup_error_handlers(app)

    app.include_router(health_router, tags=["health"])
    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def main() -> None:
    import uvicorn

    uvicorn.run(
        "membership_service.app.main:app",
        host="0.0.0.0",
        port=get_service_port(),
        reload=False,
        access_log=False,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
