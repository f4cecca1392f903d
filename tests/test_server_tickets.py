import pytest
from fastapi.testclient import TestClient

from portal.server import create_app
from portal.server.tickets import TicketService

MAKER = {"Authorization": "Bearer maker-token"}
MAKER2 = {"Authorization": "Bearer maker2-token"}
CHECKER = {"Authorization": "Bearer checker-token"}
CHECKER2 = {"Authorization": "Bearer checker2-token"}
ADMIN = {"Authorization": "Bearer admin-token"}
VIEWER = {"Authorization": "Bearer viewer-token"}


@pytest.fixture
def client(settings):
    app = create_app(settings, ticket_service=TicketService())
    return TestClient(app)


def _create(client: TestClient, title: str = "Vendor payment", headers=MAKER) -> dict:
    response = client.post("/api/tickets", json={"title": title, "description": "Q3", "amount": "250.00"}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _submitted(client: TestClient) -> dict:
    ticket = _create(client)
    response = client.post(f"/api/tickets/{ticket['id']}/submit", headers=MAKER)
    assert response.status_code == 200
    return response.json()


def test_ping_is_public(client):
    assert client.get("/api/ping").json() == {"status": "ok"}


def test_login_returns_token_and_roles(client):
    response = client.post("/api/auth/login", json={"username": "checker", "password": "checker-pass"})

    assert response.status_code == 200
    body = response.json()
    assert body["token"]["accessToken"] == "checker-token"
    assert body["user"]["id"] == "u-200"
    assert set(body["user"]["roles"]) == {"checker", "viewer"}


def test_login_with_wrong_password_is_rejected(client):
    response = client.post("/api/auth/login", json={"username": "checker", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid username or password"


def test_requests_without_token_are_unauthorized(client):
    assert client.get("/api/tickets").status_code == 401
    assert client.get("/api/tickets", headers={"Authorization": "Bearer bogus"}).status_code == 401


def test_create_ticket_starts_as_draft(client):
    ticket = _create(client)

    assert ticket["status"] == "DRAFT"
    assert ticket["maker"] == "u-100"
    assert ticket["code"] == "TCK-00001"
    assert ticket["checker"] is None


def test_create_ticket_validates_payload(client):
    response = client.post("/api/tickets", json={"title": "", "amount": "-1"}, headers=MAKER)

    assert response.status_code == 422


def test_only_maker_may_submit(client):
    ticket = _create(client)

    assert client.post(f"/api/tickets/{ticket['id']}/submit", headers=MAKER2).status_code == 403
    response = client.post(f"/api/tickets/{ticket['id']}/submit", headers=MAKER)

    assert response.status_code == 200
    assert response.json()["status"] == "SUBMITTED"


def test_only_makers_and_admins_create_or_submit(client):
    viewer_create = client.post("/api/tickets", json={"title": "Read only"}, headers=VIEWER)
    checker_create = client.post("/api/tickets", json={"title": "Wrong duty"}, headers=CHECKER)
    ticket = _create(client)
    viewer_submit = client.post(f"/api/tickets/{ticket['id']}/submit", headers=VIEWER)

    assert viewer_create.status_code == 403
    assert viewer_create.json()["detail"] == "Insufficient permissions"
    assert checker_create.status_code == 403
    assert viewer_submit.status_code == 403
    assert _create(client, headers=ADMIN)["maker"] == "u-900"


def test_maker_cannot_approve_own_ticket_even_as_admin(client):
    ticket = _create(client, headers=ADMIN)
    client.post(f"/api/tickets/{ticket['id']}/submit", headers=ADMIN)

    response = client.post(f"/api/tickets/{ticket['id']}/approve", headers=ADMIN)

    assert response.status_code == 403


def test_viewer_cannot_decide(client):
    ticket = _submitted(client)

    response = client.post(f"/api/tickets/{ticket['id']}/approve", headers=VIEWER)

    assert response.status_code == 403
    assert response.json()["detail"] == "Checker role required"


def test_approve_records_checker_and_second_decision_conflicts(client):
    ticket = _submitted(client)

    approved = client.post(f"/api/tickets/{ticket['id']}/approve", headers=CHECKER)
    late = client.post(f"/api/tickets/{ticket['id']}/reject", json={"reason": "Too late"}, headers=CHECKER2)

    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"
    assert approved.json()["checker"] == "u-200"
    assert late.status_code == 409


def test_reject_requires_reason_and_allows_resubmission(client):
    ticket = _submitted(client)

    blank = client.post(f"/api/tickets/{ticket['id']}/reject", json={"reason": "   "}, headers=CHECKER)
    rejected = client.post(f"/api/tickets/{ticket['id']}/reject", json={"reason": "Missing PO"}, headers=CHECKER)
    resubmitted = client.post(f"/api/tickets/{ticket['id']}/submit", headers=MAKER)

    assert blank.status_code == 400
    assert rejected.json()["rejectionReason"] == "Missing PO"
    assert rejected.json()["status"] == "REJECTED"
    assert resubmitted.json()["status"] == "SUBMITTED"
    assert resubmitted.json()["checker"] is None
    assert resubmitted.json()["rejectionReason"] is None


def test_complete_approved_ticket_keeps_checker(client):
    ticket = _submitted(client)
    client.post(f"/api/tickets/{ticket['id']}/approve", headers=CHECKER)

    assert client.post(f"/api/tickets/{ticket['id']}/complete", headers=CHECKER).status_code == 403
    response = client.post(f"/api/tickets/{ticket['id']}/complete", headers=MAKER)

    assert response.json()["status"] == "COMPLETED"
    assert response.json()["checker"] == "u-200"


def test_unknown_ticket_is_not_found(client):
    assert client.get("/api/tickets/999", headers=VIEWER).status_code == 404
    assert client.post("/api/tickets/999/submit", headers=MAKER).status_code == 404


def test_list_tickets_pages_searches_and_filters(client):
    for index in range(12):
        _create(client, title=f"Invoice {index}")
    _create(client, title="Travel expenses")
    client.post("/api/tickets/13/submit", headers=MAKER)

    first = client.get("/api/tickets", params={"page": 0, "size": 5}, headers=VIEWER).json()
    search = client.get("/api/tickets", params={"search": "travel"}, headers=VIEWER).json()
    submitted = client.get("/api/tickets", params={"status": "SUBMITTED"}, headers=VIEWER).json()

    assert first["totalElements"] == 13
    assert first["totalPages"] == 3
    assert len(first["content"]) == 5
    assert first["content"][0]["id"] == 13
    assert [ticket["title"] for ticket in search["content"]] == ["Travel expenses"]
    assert [ticket["id"] for ticket in submitted["content"]] == [13]


def test_me_returns_bearer_identity(client):
    response = client.get("/api/auth/me", headers=CHECKER)

    assert response.status_code == 200
    assert response.json()["displayName"] == "Chen Checker"
