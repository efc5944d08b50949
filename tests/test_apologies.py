# tests/test_apologies.py
from conftest import auth

LETTER = {"type": "outing", "message": "Returned late from home", "description": "Train delayed"}


def submit(client, token, **overrides):
    return client.post("/api/student/apologies", json={**LETTER, **overrides}, headers=auth(token))


def test_student_submits_apology(client, student_token):
    resp = submit(client, student_token)
    assert resp.status_code == 201, resp.text
    data = resp.json()
    assert data["id"].startswith("apo_")
    assert data["status"] == "submitted"
    assert data["status_label"] == "Submitted"
    assert data["type_label"] == "Outing"

    mine = client.get("/api/student/apologies", headers=auth(student_token)).json()
    assert mine["count"] == 1


def test_apology_validation(client, student_token):
    assert submit(client, student_token, type="party").status_code == 422
    assert submit(client, student_token, message="").status_code == 422
    assert submit(client, student_token, message="   ").status_code == 400


def test_new_apology_notifies_wardens(client, student_token, warden_token):
    submit(client, student_token)
    notes = client.get("/api/notifications", headers=auth(warden_token)).json()
    assert notes["unread_count"] == 1
    assert notes["data"][0]["type"] == "new_apology"
    assert notes["data"][0]["related_type"] == "apology"


def test_admin_review_flow(client, student_token, warden_token):
    aid = submit(client, student_token).json()["id"]

    listing = client.get("/api/admin/apologies", headers=auth(warden_token)).json()
    assert listing["data"][0]["user"]["email"] == "asha@uni.com"

    resp = client.put(
        f"/api/admin/apologies/{aid}/review",
        json={"status": "accepted", "comment": "Noted, be on time"},
        headers=auth(warden_token),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status_label"] == "Accepted"
    assert resp.json()["comment"] == "Noted, be on time"

    notes = client.get("/api/notifications", headers=auth(student_token)).json()
    assert notes["data"][0]["type"] == "apology_approved"
    assert notes["data"][0]["message"] == "Noted, be on time"

    accepted = client.get("/api/admin/apologies?status=accepted", headers=auth(warden_token)).json()
    assert accepted["count"] == 1
    submitted = client.get("/api/admin/apologies?status=submitted", headers=auth(warden_token)).json()
    assert submitted["count"] == 0


def test_rejection_notification(client, student_token, warden_token):
    aid = submit(client, student_token).json()["id"]
    client.put(f"/api/admin/apologies/{aid}/review", json={"status": "rejected"}, headers=auth(warden_token))
    notes = client.get("/api/notifications", headers=auth(student_token)).json()
    assert notes["data"][0]["type"] == "apology_rejected"
    assert notes["data"][0]["message"] == "Your outing apology is now rejected"


def test_review_errors(client, warden_token):
    resp = client.put("/api/admin/apologies/apo_x/review", json={"status": "accepted"}, headers=auth(warden_token))
    assert resp.status_code == 404
    assert client.get("/api/admin/apologies/apo_x", headers=auth(warden_token)).status_code == 404
    bad = client.put("/api/admin/apologies/apo_x/review", json={"status": "maybe"}, headers=auth(warden_token))
    assert bad.status_code == 422
