from collections import Counter
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Iterable

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from school_portal.core.config import settings
from school_portal.core.logging import get_logger
from school_portal.db.models import CounselingRequest, CounselingStatus, User, UserRole
from school_portal.schemas.badge import StatusBadgeRead
from school_portal.schemas.counseling import (
    CounselingRequestCreate,
    CounselingRequestRead,
    CounselingRequestRow,
    CounselingStats,
    CounselorDashboard,
)
from school_portal.schemas.user import StudentSummary
from school_portal.services.status_display import badge_for

logger = get_logger("services.counseling")

# Reglas del flujo de estados de una solicitud de orientación
ALLOWED_TRANSITIONS: dict[CounselingStatus, set[CounselingStatus]] = {
    CounselingStatus.PENDING: {CounselingStatus.ACCEPTED, CounselingStatus.CANCELLED},
    CounselingStatus.ACCEPTED: {CounselingStatus.COMPLETED, CounselingStatus.CANCELLED},
    CounselingStatus.COMPLETED: set(),
    CounselingStatus.CANCELLED: set(),
}


def compute_counseling_stats(statuses: Iterable[CounselingStatus | str]) -> CounselingStats:
    counts = Counter(CounselingStatus(s) for s in statuses)
    return CounselingStats(
        total_requests=sum(counts.values()),
        pending_requests=counts[CounselingStatus.PENDING],
        active_requests=counts[CounselingStatus.ACCEPTED],
        completed_requests=counts[CounselingStatus.COMPLETED],
    )


def to_request_row(request: CounselingRequest) -> CounselingRequestRow:
    base = CounselingRequestRead.model_validate(request)
    return CounselingRequestRow(
        **base.model_dump(),
        student=StudentSummary.model_validate(request.student) if request.student else None,
        badge=StatusBadgeRead(**asdict(badge_for(request.status))),
    )


def load_counseling_snapshot(
    db: Session,
    counselor_id: int,
    recent_limit: int | None = None,
) -> CounselorDashboard:
    """
    Snapshot de la cola de un orientador. Los contadores se calculan sobre
    todas sus solicitudes; la lista solo trae las `recent_limit` más recientes.
    """
    if recent_limit is None:
        recent_limit = settings.COUNSELING_RECENT_ITEMS_LIMIT

    try:
        statuses = [
            row[0]
            for row in db.query(CounselingRequest.status)
            .filter(CounselingRequest.counselor_id == counselor_id)
            .all()
        ]
        requests = (
            db.query(CounselingRequest)
            .options(joinedload(CounselingRequest.student))
            .filter(CounselingRequest.counselor_id == counselor_id)
            .order_by(CounselingRequest.requested_at.desc(), CounselingRequest.id.desc())
            .limit(recent_limit)
            .all()
        )
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "counseling_snapshot_failed",
            extra={
                "operation": "counseling_snapshot",
                "resource": "counseling_request",
                "counselor_id": counselor_id,
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not load counseling data",
        )

    return CounselorDashboard(
        requests=[to_request_row(r) for r in requests],
        stats=compute_counseling_stats(statuses),
    )


def create_counseling_request(
    db: Session,
    student: User,
    payload: CounselingRequestCreate,
) -> CounselingRequest:
    counselor = (
        db.query(User)
        .filter(User.id == payload.counselor_id, User.role == UserRole.COUNSELOR)
        .first()
    )
    if not counselor or not counselor.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Counselor not found")

    request = CounselingRequest(
        student_id=student.id,
        counselor_id=counselor.id,
        reason=payload.reason,
        message=payload.message,
        status=CounselingStatus.PENDING,
    )
    db.add(request)
    db.commit()
    db.refresh(request)

    logger.info(
        "Counseling requested",
        extra={
            "operation": "counseling_request_create",
            "resource": "counseling_request",
            "counseling_request_id": request.id,
            "counselor_id": counselor.id,
            "old_status": None,
            "new_status": request.status.value,
        },
    )
    return request


def _get_request_or_404(db: Session, request_id: int) -> CounselingRequest:
    request = db.get(CounselingRequest, request_id)
    if not request:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Counseling request not found")
    return request


def _change_status(
    db: Session,
    request: CounselingRequest,
    new_status: CounselingStatus,
    actor: User,
) -> CounselingRequest:
    """
    Aplica una transición con escritura condicional sobre el estado leído.

    Si otra petición cambió la fila entre la lectura y la escritura, no se
    toca nada y se responde 409.
    """
    request_id = request.id
    old_status = request.status

    if new_status not in ALLOWED_TRANSITIONS[old_status]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid status transition from {old_status.value} to {new_status.value}",
        )

    values: dict = {"status": new_status}
    now = datetime.now(timezone.utc)
    if new_status == CounselingStatus.ACCEPTED:
        values["accepted_at"] = now
    elif new_status == CounselingStatus.COMPLETED:
        values["completed_at"] = now

    try:
        result = db.execute(
            update(CounselingRequest)
            .where(CounselingRequest.id == request_id, CounselingRequest.status == old_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Counseling request was modified by another request",
            )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error(
            "counseling_status_change_failed",
            extra={
                "operation": "counseling_status_change",
                "resource": "counseling_request",
                "counseling_request_id": request_id,
            },
            exc_info=True,
        )
        raise

    db.refresh(request)
    logger.info(
        "Counseling request status changed",
        extra={
            "operation": "counseling_status_change",
            "resource": "counseling_request",
            "counseling_request_id": request.id,
            "counselor_id": request.counselor_id,
            "old_status": old_status.value,
            "new_status": new_status.value,
            "user_id": actor.id,
        },
    )
    return request


def _ensure_counselor_owns(request: CounselingRequest, actor: User) -> None:
    # El admin puede actuar sobre cualquier cola
    if actor.role == UserRole.ADMIN:
        return
    if request.counselor_id != actor.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Request belongs to another counselor",
        )


def accept_request(db: Session, request_id: int, actor: User) -> CounselingRequest:
    request = _get_request_or_404(db, request_id)
    _ensure_counselor_owns(request, actor)
    return _change_status(db, request, CounselingStatus.ACCEPTED, actor)


def complete_request(db: Session, request_id: int, actor: User) -> CounselingRequest:
    request = _get_request_or_404(db, request_id)
    _ensure_counselor_owns(request, actor)
    return _change_status(db, request, CounselingStatus.COMPLETED, actor)


def cancel_request(db: Session, request_id: int, student: User) -> CounselingRequest:
    """El alumno solo puede cancelar sus propias solicitudes abiertas."""
    request = _get_request_or_404(db, request_id)
    if request.student_id != student.id and student.role != UserRole.ADMIN:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return _change_status(db, request, CounselingStatus.CANCELLED, student)
