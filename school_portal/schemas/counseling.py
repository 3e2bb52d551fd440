from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from school_portal.db.models import CounselingStatus
from school_portal.schemas.badge import StatusBadgeRead
from school_portal.schemas.user import StudentSummary


class CounselingRequestCreate(BaseModel):
    counselor_id: int
    reason: str = Field(min_length=1, max_length=255)
    message: Optional[str] = None


class CounselingRequestRead(BaseModel):
    id: int
    student_id: int
    counselor_id: int
    reason: str
    message: Optional[str] = None
    status: CounselingStatus
    requested_at: datetime
    accepted_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CounselingRequestRow(CounselingRequestRead):
    student: Optional[StudentSummary] = None
    badge: StatusBadgeRead


class CounselingStats(BaseModel):
    total_requests: int
    pending_requests: int
    active_requests: int
    completed_requests: int


class CounselorDashboard(BaseModel):
    requests: List[CounselingRequestRow]
    stats: CounselingStats
