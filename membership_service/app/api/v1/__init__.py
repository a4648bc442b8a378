from fastapi import APIRouter

from .admin import router as admin_router
from .attendances import router as attendances_router
from .awards import router as awards_router
from .payments import router as payments_router

# prefix 는 각 router 파일 내부에서 정의되어 있음
api_router = APIRouter()
api_router.include_router(awards_router)
api_router.include_router(payments_router)
api_router.include_router(attendances_router)
api_router.include_router(admin_router)
