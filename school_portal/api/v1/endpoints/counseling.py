from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_portal.api.v1.dependencies import get_db
from school_portal.api.v1.dependencies_auth import require_role
from school_portal.db.models import CounselingRequest, User, UserRole
from school_portal.schemas.counseling import (
    CounselingRequestCreate,
    CounselingRequestRead,
    CounselorDashboard,
)
from school_portal.services.counseling_service import (
    accept_request,
    cancel_request,
    complete_request,
    create_counseling_request,
    load_counseling_snapshot,
)

router = APIRouter(
    prefix="/api/v1/counseling",
    tags=["counseling"],
)


# ---- Dashboard del orientador (su propia cola) ----
@router.get("/dashboard", response_model=CounselorDashboard)
def counselor_dashboard(
    recent: int | None = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.COUNSELOR)),
):
    return load_counseling_snapshot(db, current_user.id, recent_limit=recent)


# ---- Alumno: crear / listar / cancelar ----
@router.post(
    "/requests",
    response_model=CounselingRequestRead,
    status_code=status.HTTP_201_CREATED,
)
def create_request(
    payload: CounselingRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.STUDENT)),
):
    return create_counseling_request(db, current_user, payload)


@router.get("/requests/mine", response_model=List[CounselingRequestRead])
def my_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.STUDENT)),
):
    return (
        db.query(CounselingRequest)
        .filter(CounselingRequest.student_id == current_user.id)
        .order_by(CounselingRequest.requested_at.desc(), CounselingRequest.id.desc())
        .all()
    )


@router.post("/requests/{request_id}/cancel", response_model=CounselingRequestRead)
def cancel_counseling_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.STUDENT)),
):
    return cancel_request(db, request_id, current_user)


# ---- Orientador: transiciones, responden con el snapshot recargado ----
@router.post("/requests/{request_id}/accept", response_model=CounselorDashboard)
def accept_counseling_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.COUNSELOR)),
):
    request = accept_request(db, request_id, current_user)
    return load_counseling_snapshot(db, request.counselor_id)


@router.post("/requests/{request_id}/complete", response_model=CounselorDashboard)
def complete_counseling_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.COUNSELOR)),
):
    request = complete_request(db, request_id, current_user)
    return load_counseling_snapshot(db, request.counselor_id)
