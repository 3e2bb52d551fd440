from fastapi.testclient import TestClient

from school_portal.db.models import CounselingRequest, CounselingStatus, UserRole
from school_portal.db.session import SessionLocal


def _request(request_id: int) -> CounselingRequest:
    with SessionLocal() as db:
        request = db.get(CounselingRequest, request_id)
        db.expunge(request)
        return request


#flujo completo: alumno pide, orientador acepta y completa
def test_counseling_flow(
    client: TestClient,
    counselor,
    counselor_headers,
    student_headers,
):
    resp = client.post(
        "/api/v1/counseling/requests",
        json={"counselor_id": counselor.id, "reason": "Career guidance", "message": "Science or commerce?"},
        headers=student_headers,
    )
    assert resp.status_code == 201, resp.text
    request_id = resp.json()["id"]
    assert resp.json()["status"] == "pending"

    resp = client.post(f"/api/v1/counseling/requests/{request_id}/accept", headers=counselor_headers)
    assert resp.status_code == 200, resp.text
    stats = resp.json()["stats"]
    assert stats == {
        "total_requests": 1,
        "pending_requests": 0,
        "active_requests": 1,
        "completed_requests": 0,
    }

    resp = client.post(f"/api/v1/counseling/requests/{request_id}/complete", headers=counselor_headers)
    assert resp.status_code == 200, resp.text
    row = resp.json()["requests"][0]
    assert row["status"] == "completed"
    assert row["badge"]["icon"] == "check-circle"
    assert row["completed_at"] is not None


def test_complete_pending_request_is_rejected(
    client: TestClient,
    counselor,
    counselor_headers,
    student,
    make_counseling_request,
):
    request_id = make_counseling_request(student.id, counselor.id)

    resp = client.post(f"/api/v1/counseling/requests/{request_id}/complete", headers=counselor_headers)
    assert resp.status_code == 400, resp.text

    request = _request(request_id)
    assert request.status == CounselingStatus.PENDING
    assert request.completed_at is None


def test_accept_twice_is_rejected(
    client: TestClient,
    counselor,
    counselor_headers,
    student,
    make_counseling_request,
):
    request_id = make_counseling_request(student.id, counselor.id)

    first = client.post(f"/api/v1/counseling/requests/{request_id}/accept", headers=counselor_headers)
    assert first.status_code == 200
    second = client.post(f"/api/v1/counseling/requests/{request_id}/accept", headers=counselor_headers)
    assert second.status_code == 400


def test_counselor_cannot_touch_other_queue(
    client: TestClient,
    counselor_headers,
    make_user,
    student,
    make_counseling_request,
):
    other = make_user(UserRole.COUNSELOR)
    request_id = make_counseling_request(student.id, other.id)

    resp = client.post(f"/api/v1/counseling/requests/{request_id}/accept", headers=counselor_headers)
    assert resp.status_code == 403
    assert _request(request_id).status == CounselingStatus.PENDING


def test_dashboard_is_scoped_to_counselor(
    client: TestClient,
    counselor,
    counselor_headers,
    make_user,
    student,
    make_counseling_request,
):
    other = make_user(UserRole.COUNSELOR)
    mine = make_counseling_request(student.id, counselor.id)
    make_counseling_request(student.id, counselor.id, status=CounselingStatus.COMPLETED)
    make_counseling_request(student.id, other.id)

    resp = client.get("/api/v1/counseling/dashboard", headers=counselor_headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()

    assert data["stats"]["total_requests"] == 2
    assert data["stats"]["pending_requests"] == 1
    assert data["stats"]["completed_requests"] == 1
    assert mine in [r["id"] for r in data["requests"]]
    assert all(r["counselor_id"] == counselor.id for r in data["requests"])
    assert data["requests"][0]["student"]["class_name"] == "10-A"


def test_dashboard_lists_five_recent_requests_by_default(
    client: TestClient,
    counselor,
    counselor_headers,
    student,
    make_counseling_request,
):
    ids = [make_counseling_request(student.id, counselor.id) for _ in range(7)]

    data = client.get("/api/v1/counseling/dashboard", headers=counselor_headers).json()
    assert data["stats"]["total_requests"] == 7
    assert [r["id"] for r in data["requests"]] == ids[::-1][:5]

    resp = client.get("/api/v1/counseling/dashboard", params={"recent": 7}, headers=counselor_headers)
    assert len(resp.json()["requests"]) == 7


def test_request_to_non_counselor_fails(
    client: TestClient,
    make_user,
    student_headers,
):
    librarian = make_user(UserRole.LIBRARIAN)
    resp = client.post(
        "/api/v1/counseling/requests",
        json={"counselor_id": librarian.id, "reason": "Help"},
        headers=student_headers,
    )
    assert resp.status_code == 400


def test_student_cancels_own_pending_request(
    client: TestClient,
    counselor,
    student,
    student_headers,
    make_user,
    make_counseling_request,
):
    own = make_counseling_request(student.id, counselor.id)
    foreign = make_counseling_request(make_user().id, counselor.id)

    resp = client.post(f"/api/v1/counseling/requests/{own}/cancel", headers=student_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "cancelled"

    resp = client.post(f"/api/v1/counseling/requests/{foreign}/cancel", headers=student_headers)
    assert resp.status_code == 403

    # cancelled es terminal
    resp = client.post(f"/api/v1/counseling/requests/{own}/cancel", headers=student_headers)
    assert resp.status_code == 400


def test_my_requests_lists_own(
    client: TestClient,
    counselor,
    student,
    student_headers,
    make_counseling_request,
):
    request_id = make_counseling_request(student.id, counselor.id)

    resp = client.get("/api/v1/counseling/requests/mine", headers=student_headers)
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [request_id]


def test_student_cannot_open_counselor_dashboard(client: TestClient, student_headers):
    resp = client.get("/api/v1/counseling/dashboard", headers=student_headers)
    assert resp.status_code == 403
