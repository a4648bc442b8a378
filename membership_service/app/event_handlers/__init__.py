"""이벤트 핸들러 패키지."""

from .attendance_handler import run_attendance_consumer

__all__ = ["run_attendance_consumer"]
