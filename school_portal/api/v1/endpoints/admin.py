# school_portal/api/v1/endpoints/admin.py
from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from school_portal.api.v1.dependencies import get_db
from school_portal.api.v1.dependencies_auth import require_role
from school_portal.core.logging import get_logger
from school_portal.db.models import (
    Book,
    BookIssue,
    BookIssueStatus,
    CounselingRequest,
    CounselingStatus,
    User,
    UserRole,
)
from school_portal.schemas.admin import BackupExport, SettingsRead, StatusCount, SystemStats
from school_portal.schemas.counseling import CounselingRequestRead
from school_portal.schemas.book import BookRead
from school_portal.schemas.library import BookIssueRead
from school_portal.services.settings_service import get_settings_section, update_settings_section

logger = get_logger("api.admin")

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
)


def _count_by_status(db: Session, column, enum_cls) -> list[StatusCount]:
    # Todos los valores del enum aparecen, aunque tengan 0
    rows = dict(db.query(column, func.count()).group_by(column).all())
    return [StatusCount(status=member.value, count=rows.get(member, 0)) for member in enum_cls]


@router.get("/stats", response_model=SystemStats)
def get_system_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    """
    Estadísticas globales del sistema (solo ADMIN), agregadas en la BD.
    """

    # === Usuarios ===
    users_by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())

    # === Libros / Inventario ===
    total_titles = db.query(func.count(Book.id)).scalar() or 0
    total_book_copies = db.query(func.coalesce(func.sum(Book.total_copies), 0)).scalar() or 0
    total_available_copies = db.query(func.coalesce(func.sum(Book.available_copies), 0)).scalar() or 0

    stats = SystemStats(
        total_users=sum(users_by_role.values()),
        total_students=users_by_role.get(UserRole.STUDENT, 0),
        total_librarians=users_by_role.get(UserRole.LIBRARIAN, 0),
        total_counselors=users_by_role.get(UserRole.COUNSELOR, 0),
        total_admins=users_by_role.get(UserRole.ADMIN, 0),
        total_titles=total_titles,
        total_book_copies=total_book_copies,
        total_available_copies=total_available_copies,
        issues_by_status=_count_by_status(db, BookIssue.status, BookIssueStatus),
        counseling_by_status=_count_by_status(db, CounselingRequest.status, CounselingStatus),
        generated_at=datetime.now(timezone.utc),
    )

    logger.info(
        "Admin fetched system stats",
        extra={
            "operation": "admin_stats",
            "resource": "stats",
            "user_id": current_user.id,
        },
    )

    return stats


@router.get("/settings/{section}", response_model=SettingsRead)
def read_settings(
    section: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    return get_settings_section(db, section)


@router.put("/settings/{section}", response_model=SettingsRead)
def write_settings(
    section: str,
    changes: dict = Body(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    return update_settings_section(db, section, changes, current_user)


@router.get("/backup", response_model=BackupExport)
def export_backup(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    """
    Exporta libros, préstamos y solicitudes de orientación como JSON.
    """
    books = db.query(Book).order_by(Book.id).all()
    issues = db.query(BookIssue).order_by(BookIssue.id).all()
    requests = db.query(CounselingRequest).order_by(CounselingRequest.id).all()

    backup = BackupExport(
        generated_at=datetime.now(timezone.utc),
        books=[BookRead.model_validate(b).model_dump(mode="json") for b in books],
        book_issues=[BookIssueRead.model_validate(i).model_dump(mode="json") for i in issues],
        counseling_requests=[
            CounselingRequestRead.model_validate(r).model_dump(mode="json") for r in requests
        ],
    )

    logger.info(
        "Admin exported backup",
        extra={
            "operation": "admin_backup",
            "resource": "backup",
            "books": len(books),
            "book_issues": len(issues),
            "counseling_requests": len(requests),
        },
    )
    return backup
