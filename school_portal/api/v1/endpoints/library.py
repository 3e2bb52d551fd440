from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_portal.api.v1.dependencies import get_db
from school_portal.api.v1.dependencies_auth import require_role
from school_portal.core.logging import get_logger
from school_portal.db.models import BookIssue, User, UserRole
from school_portal.schemas.library import BookIssueCreate, BookIssueRead, LibraryDashboard
from school_portal.services.library_service import (
    approve_issue,
    load_library_snapshot,
    mark_overdue_issues,
    request_book,
    return_issue,
)

logger = get_logger("api.library")

router = APIRouter(
    prefix="/api/v1/library",
    tags=["library"],
)


# ---- Dashboard del bibliotecario ----
@router.get("/dashboard", response_model=LibraryDashboard)
def library_dashboard(
    recent: int | None = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.LIBRARIAN)),
):
    return load_library_snapshot(db, recent_limit=recent)


# ---- Solicitud de préstamo (Student) ----
@router.post(
    "/issues",
    response_model=BookIssueRead,
    status_code=status.HTTP_201_CREATED,
)
def create_issue_request(
    payload: BookIssueCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.STUDENT)),
):
    return request_book(db, current_user, payload.book_id)


# ---- Préstamos del alumno actual ----
@router.get("/issues/mine", response_model=List[BookIssueRead])
def my_issues(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.STUDENT)),
):
    return (
        db.query(BookIssue)
        .filter(BookIssue.student_id == current_user.id)
        .order_by(BookIssue.requested_at.desc(), BookIssue.id.desc())
        .all()
    )


# ---- Transiciones: cada una responde con el snapshot recargado ----
@router.post("/issues/{issue_id}/approve", response_model=LibraryDashboard)
def approve_book_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.LIBRARIAN)),
):
    approve_issue(db, issue_id, current_user)
    return load_library_snapshot(db)


@router.post("/issues/{issue_id}/return", response_model=LibraryDashboard)
def return_book_issue(
    issue_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.LIBRARIAN)),
):
    return_issue(db, issue_id, current_user)
    return load_library_snapshot(db)


# ---- Job manual para marcar OVERDUE ----
@router.post("/run-overdue-job", status_code=status.HTTP_200_OK)
def run_overdue_job(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.LIBRARIAN)),
):
    """
    Marca como OVERDUE los préstamos ISSUED cuya due_date ya pasó.
    """
    updated_count = mark_overdue_issues(db)

    logger.info(
        "Overdue job executed",
        extra={
            "operation": "book_issue_overdue_job",
            "resource": "book_issue",
            "updated_count": updated_count,
            "status_code": 200,
            "run_by_user_id": current_user.id,
        },
    )

    return {"updated_overdue_issues": updated_count}
