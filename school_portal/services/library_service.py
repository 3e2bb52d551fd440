from collections import Counter
from dataclasses import asdict
from datetime import date, datetime, timedelta, timezone
from typing import Iterable

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from school_portal.core.config import settings
from school_portal.core.logging import get_logger
from school_portal.db.models import Book, BookIssue, BookIssueStatus, User
from school_portal.schemas.badge import StatusBadgeRead
from school_portal.schemas.book import BookRead
from school_portal.schemas.library import (
    BookIssueRead,
    BookIssueRow,
    LibraryDashboard,
    LibraryStats,
)
from school_portal.schemas.user import StudentSummary
from school_portal.services.status_display import badge_for

logger = get_logger("services.library")

# Préstamos que todavía ocupan (o piden) una copia
ACTIVE_ISSUE_STATUSES = (
    BookIssueStatus.REQUESTED,
    BookIssueStatus.ISSUED,
    BookIssueStatus.OVERDUE,
)
RETURNABLE_STATUSES = (BookIssueStatus.ISSUED, BookIssueStatus.OVERDUE)


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ======================
# Snapshot + estadísticas
# ======================

def compute_library_stats(
    books: Iterable[Book],
    issue_statuses: Iterable[BookIssueStatus | str],
) -> LibraryStats:
    """
    Reduce el snapshot a los contadores del dashboard.

    Es una función pura: el orden de las filas no importa. Un estado que no
    pertenece al enum lanza ValueError.
    """
    total_books = 0
    available_books = 0
    for book in books:
        total_books += book.total_copies
        available_books += book.available_copies

    counts = Counter(BookIssueStatus(s) for s in issue_statuses)

    return LibraryStats(
        total_books=total_books,
        available_books=available_books,
        issued_books=counts[BookIssueStatus.ISSUED],
        overdue_books=counts[BookIssueStatus.OVERDUE],
        pending_requests=counts[BookIssueStatus.REQUESTED],
    )


def to_issue_row(issue: BookIssue) -> BookIssueRow:
    base = BookIssueRead.model_validate(issue)
    return BookIssueRow(
        **base.model_dump(),
        book=BookRead.model_validate(issue.book) if issue.book else None,
        student=StudentSummary.model_validate(issue.student) if issue.student else None,
        badge=StatusBadgeRead(**asdict(badge_for(issue.status))),
    )


def load_library_snapshot(db: Session, recent_limit: int | None = None) -> LibraryDashboard:
    """
    Carga todo lo que necesita el dashboard del bibliotecario.

    Si cualquier consulta falla no se devuelve nada parcial: se hace rollback,
    se loguea y se responde 503.
    """
    if recent_limit is None:
        recent_limit = settings.LIBRARY_RECENT_ITEMS_LIMIT

    try:
        books = db.query(Book).order_by(Book.title.asc()).all()

        # Para los contadores solo hace falta la columna status
        statuses = [row[0] for row in db.query(BookIssue.status).all()]

        recent_issues = (
            db.query(BookIssue)
            .options(joinedload(BookIssue.book), joinedload(BookIssue.student))
            .order_by(BookIssue.issued_date.desc(), BookIssue.id.desc())
            .limit(recent_limit)
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "library_snapshot_failed",
            extra={"operation": "library_snapshot", "resource": "book_issue"},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not load library data",
        )

    return LibraryDashboard(
        books=[BookRead.model_validate(b) for b in books],
        recent_issues=[to_issue_row(i) for i in recent_issues],
        stats=compute_library_stats(books, statuses),
    )


# ======================
# Transiciones
# ======================

def _get_issue_or_404(db: Session, issue_id: int) -> BookIssue:
    issue = db.get(BookIssue, issue_id)
    if not issue:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book issue not found")
    return issue


def _invalid_transition(old_status: BookIssueStatus, new_status: BookIssueStatus) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid status transition from {old_status.value} to {new_status.value}",
    )


def _concurrent_change() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Book issue was modified by another request",
    )


def request_book(db: Session, student: User, book_id: int) -> BookIssue:
    """Crea una solicitud de préstamo en estado REQUESTED."""
    book = db.query(Book).filter(Book.id == book_id).first()
    if not book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")

    active_count = (
        db.query(BookIssue)
        .filter(
            BookIssue.student_id == student.id,
            BookIssue.status.in_(ACTIVE_ISSUE_STATUSES),
        )
        .count()
    )
    if active_count >= settings.MAX_ACTIVE_ISSUES_PER_STUDENT:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already have the maximum number of active book issues",
        )

    if book.available_copies < 1:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No available copies for this book",
        )

    today = _today()
    issue = BookIssue(
        book_id=book.id,
        student_id=student.id,
        status=BookIssueStatus.REQUESTED,
        issued_date=today,
        due_date=today + timedelta(days=settings.LOAN_PERIOD_DAYS),
    )
    db.add(issue)
    db.commit()
    db.refresh(issue)

    logger.info(
        "Book requested",
        extra={
            "operation": "book_issue_create",
            "resource": "book_issue",
            "issue_id": issue.id,
            "book_id": issue.book_id,
            "old_status": None,
            "new_status": issue.status.value,
        },
    )
    return issue


def approve_issue(db: Session, issue_id: int, actor: User) -> BookIssue:
    """
    REQUESTED -> ISSUED y resta una copia disponible, todo en una transacción.

    Ambas escrituras son condicionales (compare-and-swap sobre status y sobre
    available_copies > 0): si alguna no afecta filas se hace rollback y no
    cambia ninguna de las dos entidades.
    """
    issue = _get_issue_or_404(db, issue_id)
    old_status = issue.status
    if old_status != BookIssueStatus.REQUESTED:
        raise _invalid_transition(old_status, BookIssueStatus.ISSUED)

    book_id = issue.book_id
    today = _today()

    try:
        claimed = db.execute(
            update(BookIssue)
            .where(BookIssue.id == issue_id, BookIssue.status == BookIssueStatus.REQUESTED)
            .values(
                status=BookIssueStatus.ISSUED,
                issued_by_id=actor.id,
                issued_date=today,
                due_date=today + timedelta(days=settings.LOAN_PERIOD_DAYS),
            )
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            db.rollback()
            raise _concurrent_change()

        stock = db.execute(
            update(Book)
            .where(Book.id == book_id, Book.available_copies > 0)
            .values(available_copies=Book.available_copies - 1)
            .execution_options(synchronize_session=False)
        )
        if stock.rowcount == 0:
            db.rollback()
            logger.warning(
                "book_issue_out_of_stock",
                extra={
                    "operation": "book_issue_approve",
                    "resource": "book_issue",
                    "issue_id": issue_id,
                    "book_id": book_id,
                    "status_code": 409,
                },
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="No available copies for this book",
            )

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "book_issue_approve_failed",
            extra={"operation": "book_issue_approve", "resource": "book_issue", "issue_id": issue_id},
            exc_info=True,
        )
        raise

    db.refresh(issue)
    logger.info(
        "Book issue approved",
        extra={
            "operation": "book_issue_approve",
            "resource": "book_issue",
            "issue_id": issue.id,
            "book_id": book_id,
            "old_status": old_status.value,
            "new_status": issue.status.value,
            "user_id": actor.id,
        },
    )
    return issue


def return_issue(db: Session, issue_id: int, actor: User) -> BookIssue:
    """
    ISSUED/OVERDUE -> RETURNED y suma una copia disponible, sin pasar de
    total_copies.
    """
    issue = _get_issue_or_404(db, issue_id)
    old_status = issue.status
    if old_status not in RETURNABLE_STATUSES:
        raise _invalid_transition(old_status, BookIssueStatus.RETURNED)

    book_id = issue.book_id

    try:
        claimed = db.execute(
            update(BookIssue)
            .where(BookIssue.id == issue_id, BookIssue.status.in_(RETURNABLE_STATUSES))
            .values(status=BookIssueStatus.RETURNED, return_date=_today())
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            db.rollback()
            raise _concurrent_change()

        restocked = db.execute(
            update(Book)
            .where(Book.id == book_id, Book.available_copies < Book.total_copies)
            .values(available_copies=Book.available_copies + 1)
            .execution_options(synchronize_session=False)
        )
        if restocked.rowcount == 0:
            # Inventario ya inconsistente: se devuelve el libro pero no se sube el contador
            logger.warning(
                "book_inventory_at_capacity",
                extra={
                    "operation": "book_issue_return",
                    "resource": "book",
                    "issue_id": issue_id,
                    "book_id": book_id,
                },
            )

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "book_issue_return_failed",
            extra={"operation": "book_issue_return", "resource": "book_issue", "issue_id": issue_id},
            exc_info=True,
        )
        raise

    db.refresh(issue)
    logger.info(
        "Book issue returned",
        extra={
            "operation": "book_issue_return",
            "resource": "book_issue",
            "issue_id": issue.id,
            "book_id": book_id,
            "old_status": old_status.value,
            "new_status": issue.status.value,
            "user_id": actor.id,
        },
    )
    return issue


def mark_overdue_issues(db: Session, today: date | None = None) -> int:
    """
    Marca como OVERDUE todos los préstamos ISSUED cuya due_date ya pasó.
    Devuelve el número de préstamos actualizados.
    Pensada para un job del sistema (cron, endpoint admin, etc.).
    """
    if today is None:
        today = _today()

    result = db.execute(
        update(BookIssue)
        .where(BookIssue.status == BookIssueStatus.ISSUED, BookIssue.due_date < today)
        .values(status=BookIssueStatus.OVERDUE)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
