from datetime import date, datetime
from typing import Optional
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from school_portal.db.session import Base
from sqlalchemy.sql import func


# ======================
# Enums
# ======================

class UserRole(str, Enum):
    STUDENT = "student"
    LIBRARIAN = "librarian"
    COUNSELOR = "counselor"
    ADMIN = "admin"


class BookIssueStatus(str, Enum):
    REQUESTED = "requested"
    ISSUED = "issued"
    RETURNED = "returned"
    OVERDUE = "overdue"


class CounselingStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Los enums se guardan por valor ("issued"), no por nombre ("ISSUED")
def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# ======================
# User
# ======================

class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    role: Mapped[UserRole] = mapped_column(
        SqlEnum(UserRole, values_callable=_enum_values),
        nullable=False,
        default=UserRole.STUDENT,
    )

    # Datos de alumno (solo para mostrar en los dashboards)
    student_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    class_name: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    book_issues: Mapped[list["BookIssue"]] = relationship(
        "BookIssue",
        back_populates="student",
        foreign_keys="BookIssue.student_id",
    )


# ======================
# Book
# ======================

class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    author: Mapped[str | None] = mapped_column(String(255), nullable=True)
    isbn: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)

    total_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    available_copies: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    issues: Mapped[list["BookIssue"]] = relationship("BookIssue", back_populates="book")


# ======================
# BookIssue
# ======================

class BookIssue(Base):
    __tablename__ = "book_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    book_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("books.id", ondelete="RESTRICT"),
        nullable=False,
    )
    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    issued_by_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    status: Mapped[BookIssueStatus] = mapped_column(
        SqlEnum(BookIssueStatus, values_callable=_enum_values),
        nullable=False,
        default=BookIssueStatus.REQUESTED,
    )

    issued_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    return_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    book: Mapped["Book"] = relationship("Book", back_populates="issues")
    student: Mapped["User"] = relationship(
        "User",
        back_populates="book_issues",
        foreign_keys=[student_id],
    )
    issued_by: Mapped[Optional["User"]] = relationship("User", foreign_keys=[issued_by_id])


# ======================
# CounselingRequest
# ======================

class CounselingRequest(Base):
    __tablename__ = "counseling_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)

    student_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )
    counselor_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[CounselingStatus] = mapped_column(
        SqlEnum(CounselingStatus, values_callable=_enum_values),
        nullable=False,
        default=CounselingStatus.PENDING,
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    student: Mapped["User"] = relationship("User", foreign_keys=[student_id])


# ======================
# SchoolSetting
# ======================

class SchoolSetting(Base):
    __tablename__ = "school_settings"

    # Una fila por sección: "school", "system", "notifications"
    section: Mapped[str] = mapped_column(String(50), primary_key=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)

    updated_by_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
