from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from school_portal.db.models import BookIssueStatus
from school_portal.schemas.badge import StatusBadgeRead
from school_portal.schemas.book import BookRead
from school_portal.schemas.user import StudentSummary


class BookIssueCreate(BaseModel):
    book_id: int


class BookIssueRead(BaseModel):
    id: int
    book_id: int
    student_id: int
    issued_by_id: Optional[int] = None
    status: BookIssueStatus
    issued_date: date
    due_date: date
    return_date: Optional[date] = None
    requested_at: datetime

    class Config:
        from_attributes = True


class BookIssueRow(BookIssueRead):
    book: Optional[BookRead] = None
    student: Optional[StudentSummary] = None
    badge: StatusBadgeRead


class LibraryStats(BaseModel):
    total_books: int
    available_books: int
    issued_books: int
    overdue_books: int
    pending_requests: int


class LibraryDashboard(BaseModel):
    books: List[BookRead]
    recent_issues: List[BookIssueRow]
    stats: LibraryStats
