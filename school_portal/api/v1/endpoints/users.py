from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from school_portal.api.v1.dependencies import get_db
from school_portal.api.v1.dependencies_auth import require_role
from school_portal.core.config import settings
from school_portal.core.logging import get_logger
from school_portal.core.security import hash_password
from school_portal.db.models import BookIssue, CounselingRequest, User, UserRole
from school_portal.schemas.user import UserRead, UserCreate, UserUpdate

logger = get_logger("api.users")

# Solo ADMIN puede usar este router
router = APIRouter(
    prefix="/api/v1/users",
    tags=["users"],
    dependencies=[Depends(require_role(UserRole.ADMIN))],
)


@router.get("/", response_model=List[UserRead])
def list_users(
    role: Optional[UserRole] = Query(None),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    return query.order_by(User.id.asc()).offset(skip).limit(limit).all()


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
):
    # verificar email único
    existing = db.query(User).filter(User.email == payload.email).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = User(
        email=payload.email,
        full_name=payload.full_name,
        hashed_password=hash_password(payload.password),
        role=payload.role,
        student_code=payload.student_code,
        class_name=payload.class_name,
        is_active=payload.is_active,
        is_blocked=payload.is_blocked,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(
        "User created",
        extra={
            "operation": "user_create",
            "resource": "user",
            "target_user_id": user.id,
            "role": user.role.value,
        },
    )
    return user


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    update_data = payload.model_dump(exclude_unset=True)
    new_password = update_data.pop("new_password", None)

    for field, value in update_data.items():
        setattr(user, field, value)

    if new_password:
        user.hashed_password = hash_password(new_password)

    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    # proteger admin embebido
    if user.email == settings.BUILTIN_ADMIN_EMAIL:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Built-in admin cannot be deleted")

    # No borrar usuarios con préstamos o solicitudes de orientación; se desactivan
    has_issues = db.query(BookIssue.id).filter(BookIssue.student_id == user_id).first()
    has_counseling = (
        db.query(CounselingRequest.id)
        .filter(
            or_(
                CounselingRequest.student_id == user_id,
                CounselingRequest.counselor_id == user_id,
            )
        )
        .first()
    )
    if has_issues or has_counseling:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User has library or counseling history; deactivate it instead",
        )

    db.delete(user)
    db.commit()
    return None
