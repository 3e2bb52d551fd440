#configuracion de los test
import os
import sys
import tempfile
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# ======================================================
# Ajuste del sys.path para que 'school_portal/' sea importable
# ======================================================
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# ======================================================
# BD SQLite desechable: debe configurarse ANTES de importar la app
# ======================================================
_TMP_DIR = tempfile.mkdtemp(prefix="school_portal_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["JWT_SECRET"] = "test-secret"

from school_portal.main import app  # noqa: E402
from school_portal.core.config import settings  # noqa: E402
from school_portal.core.security import hash_password  # noqa: E402
from school_portal.db.session import Base, SessionLocal, engine  # noqa: E402
from school_portal.db.models import (  # noqa: E402
    Book,
    BookIssue,
    BookIssueStatus,
    CounselingRequest,
    CounselingStatus,
    User,
    UserRole,
)

DEFAULT_PASSWORD = "secret123"


@pytest.fixture(scope="session", autouse=True)
def _create_schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


# ======================================================
# DB SESSION FIXTURE
# ======================================================
@pytest.fixture
def db_session() -> Generator:
    """
    Provee una sesión limpia de DB para cada test.
    """
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ======================================================
# CLIENT FIXTURE
# ======================================================
@pytest.fixture(scope="session")
def client():
    """
    TestClient de FastAPI (con contexto, ejecuta el startup).
    """
    with TestClient(app) as c:
        yield c


def login_headers(client: TestClient, email: str, password: str = DEFAULT_PASSWORD) -> dict:
    resp = client.post(
        "/api/v1/auth/login",
        data={"username": email, "password": password},
    )
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


# ======================================================
# FACTORIES (escriben directo en la BD)
# ======================================================
@pytest.fixture
def make_user():
    """Crea un usuario con email único y devuelve el objeto persistido."""

    def _make(role: UserRole = UserRole.STUDENT, **attrs) -> User:
        email = attrs.pop("email", f"{role.value}_{uuid.uuid4().hex[:8]}@example.com")
        with SessionLocal() as db:
            fields = {
                "full_name": f"Test {role.value.title()}",
                "is_active": True,
                "is_blocked": False,
            }
            fields.update(attrs)
            user = User(
                email=email,
                hashed_password=hash_password(DEFAULT_PASSWORD),
                role=role,
                **fields,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            db.expunge(user)
        return user

    return _make


@pytest.fixture
def make_book():
    def _make(total_copies: int = 2, available_copies: int | None = None, title: str | None = None) -> int:
        with SessionLocal() as db:
            book = Book(
                title=title or f"Book {uuid.uuid4().hex[:6]}",
                author="Test Author",
                total_copies=total_copies,
                available_copies=total_copies if available_copies is None else available_copies,
            )
            db.add(book)
            db.commit()
            return book.id

    return _make


@pytest.fixture
def make_issue():
    def _make(
        book_id: int,
        student_id: int,
        status: BookIssueStatus = BookIssueStatus.REQUESTED,
        due_date: date | None = None,
    ) -> int:
        today = datetime.now(timezone.utc).date()
        with SessionLocal() as db:
            issue = BookIssue(
                book_id=book_id,
                student_id=student_id,
                status=status,
                issued_date=today,
                due_date=due_date or today + timedelta(days=settings.LOAN_PERIOD_DAYS),
            )
            db.add(issue)
            db.commit()
            return issue.id

    return _make


@pytest.fixture
def make_counseling_request():
    def _make(
        student_id: int,
        counselor_id: int,
        status: CounselingStatus = CounselingStatus.PENDING,
        reason: str = "Exam stress",
    ) -> int:
        with SessionLocal() as db:
            request = CounselingRequest(
                student_id=student_id,
                counselor_id=counselor_id,
                reason=reason,
                status=status,
            )
            db.add(request)
            db.commit()
            return request.id

    return _make


# ======================================================
# HEADERS POR ROL
# ======================================================
@pytest.fixture
def admin_headers(client: TestClient):
    # El admin embebido se crea en el startup de la app
    return login_headers(client, settings.BUILTIN_ADMIN_EMAIL, settings.BUILTIN_ADMIN_PASSWORD)


@pytest.fixture
def librarian(make_user):
    return make_user(UserRole.LIBRARIAN)


@pytest.fixture
def librarian_headers(client: TestClient, librarian):
    return login_headers(client, librarian.email)


@pytest.fixture
def counselor(make_user):
    return make_user(UserRole.COUNSELOR)


@pytest.fixture
def counselor_headers(client: TestClient, counselor):
    return login_headers(client, counselor.email)


@pytest.fixture
def student(make_user):
    return make_user(UserRole.STUDENT, student_code="S-1001", class_name="10-A")


@pytest.fixture
def student_headers(client: TestClient, student):
    return login_headers(client, student.email)
