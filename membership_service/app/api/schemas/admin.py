from __future__ import annotations

from pydantic import BaseModel

from ...models.subscription import DriftKind


class RepairRequest(BaseModel):
    user_id: str
    kind: DriftKind


class UnlockRequest(BaseModel):
    admin_note: str | None = None
