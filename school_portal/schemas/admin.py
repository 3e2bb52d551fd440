# school_portal/schemas/admin.py

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class StatusCount(BaseModel):
    status: str
    count: int


class SystemStats(BaseModel):
    # Usuarios
    total_users: int
    total_students: int
    total_librarians: int
    total_counselors: int
    total_admins: int

    # Libros / inventario
    total_titles: int
    total_book_copies: int
    total_available_copies: int

    # Préstamos y orientación
    issues_by_status: List[StatusCount]
    counseling_by_status: List[StatusCount]

    generated_at: datetime


# ======================
# Secciones de configuración
# ======================

class SchoolInfoSettings(BaseModel):
    name: str = "SOSE Lajpat Nagar"
    motto: str = "Excellence in Education"
    address: str = "Lajpat Nagar, New Delhi"
    phone: str = "+91-11-12345678"
    email: EmailStr = "info@sose.edu.in"
    website: str = "www.sose.edu.in"
    principal_name: str = "Dr. Rajesh Kumar"
    established_year: int = Field(default=1995, ge=1800, le=2100)


class SystemSettings(BaseModel):
    maintenance_mode: bool = False
    auto_backup: bool = True
    backup_frequency: Literal["hourly", "daily", "weekly", "monthly"] = "daily"
    session_timeout_minutes: int = Field(default=30, ge=5, le=480)
    max_login_attempts: int = Field(default=3, ge=1, le=20)
    enable_logging: bool = True


class NotificationSettings(BaseModel):
    email_notifications: bool = True
    sms_notifications: bool = False
    push_notifications: bool = True
    admin_alerts: bool = True
    system_alerts: bool = True
    user_registration_alerts: bool = True


class SettingsRead(BaseModel):
    section: str
    values: dict
    updated_by_id: Optional[int] = None
    updated_at: Optional[datetime] = None


class BackupExport(BaseModel):
    generated_at: datetime
    books: List[dict]
    book_issues: List[dict]
    counseling_requests: List[dict]
