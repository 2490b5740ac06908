"""
Schémas Pydantic pour le journal des ajustements (lecture seule).
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from chamada.models.enums import AttendanceStatus


class AdjustmentResponse(BaseModel):
    id: uuid.UUID
    record_id: uuid.UUID
    from_status: AttendanceStatus
    to_status: AttendanceStatus
    changed_by_user_id: uuid.UUID
    changed_by_role: str
    justification: str
    created_at: Optional[datetime]

    model_config = {"from_attributes": True}
