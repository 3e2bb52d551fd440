from sqlalchemy.orm import Session

from school_portal.core.config import settings
from school_portal.core.security import hash_password
from school_portal.db.models import User, UserRole


def ensure_builtin_admin(db: Session):
    admin = db.query(User).filter(User.email == settings.BUILTIN_ADMIN_EMAIL).first()
    if admin:
        return

    admin = User(
        email=settings.BUILTIN_ADMIN_EMAIL,
        full_name="Built-in Admin",
        hashed_password=hash_password(settings.BUILTIN_ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        is_active=True,
    )
    db.add(admin)
    db.commit()
