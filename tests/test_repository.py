# tests/test_repository.py
"""
Pruebas unitarias del repositorio SQLModel usando SQLite en memoria.
No crea archivos .db.
"""

import re
from datetime import datetime, timedelta, UTC

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from conftest import STUDENT, WARDEN
from hostel_portal.models import ApologyCreate, PasswordResetTable, SignupRequest
from hostel_portal.repository import HostelRepository

ID_RE = r"^cmp_[0-9a-z]{26}$"


@pytest.fixture()
def engine():
    # BD en memoria: StaticPool mantiene UNA conexión viva
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture()
def repo(engine):
    r = HostelRepository(engine)
    r.create_schema()
    return r


@pytest.fixture()
def student(repo):
    return repo.create_user(SignupRequest(**STUDENT))


@pytest.fixture()
def warden(repo):
    return repo.create_user(SignupRequest(**WARDEN))


def test_create_user_normalises_fields(repo):
    user = repo.create_user(SignupRequest(**{**STUDENT, "email": " Asha@Uni.com "}))
    assert user.email == "asha@uni.com"
    assert user.block is None
    assert user.password_hash != STUDENT["password"]
    assert repo.create_user(SignupRequest(**STUDENT)) is None


def test_warden_has_block_but_no_student_fields(repo, warden):
    assert warden.block == "L"
    assert warden.hostel is None
    assert warden.student_id is None


def test_authenticate(repo, student):
    assert repo.authenticate("asha@uni.com", STUDENT["password"]).id == student.id
    assert repo.authenticate("asha@uni.com", "nope") is None
    assert repo.authenticate("ghost@uni.com", STUDENT["password"]) is None


def test_revoked_tokens(repo):
    assert repo.is_token_revoked("abc") is False
    repo.revoke_token("abc")
    repo.revoke_token("abc")
    assert repo.is_token_revoked("abc") is True


def test_expired_reset_token_is_rejected(repo, engine, student):
    with Session(engine) as session:
        session.add(PasswordResetTable(
            token="old",
            user_id=student.id,
            expires_at=(datetime.now(UTC) - timedelta(minutes=1)).isoformat(),
        ))
        session.commit()
    assert repo.consume_password_reset("old", "Fresh#Pass9") is False


def test_create_complaint_notifies_every_warden(repo, student, warden):
    second = repo.create_user(SignupRequest(**{**WARDEN, "email": "deputy@hostel.com"}))
    complaint = repo.create_complaint(student.id, "Fan", "electricity", "", "low")

    assert re.match(ID_RE, complaint.id)
    assert complaint.created_at.endswith("+00:00")
    for user_id in (warden.id, second.id):
        unread, items = repo.list_notifications(user_id)
        assert unread == 1
        assert items[0].related_id == complaint.id
    assert repo.list_notifications(student.id) == (0, [])


def test_list_complaints_counts_before_paging(repo, student):
    for i in range(4):
        repo.create_complaint(student.id, f"C{i}", "plumbing", "", "medium")
    total, page = repo.list_complaints(user_id=student.id, limit=2, offset=0)
    assert total == 4
    assert [c.title for c in page] == ["C3", "C2"]


def test_status_summary(repo, student, warden):
    a = repo.create_complaint(student.id, "A", "plumbing", "", "medium")
    repo.create_complaint(student.id, "B", "plumbing", "", "medium")
    repo.update_complaint_status(a.id, "resolved", warden)

    summary = repo.complaint_status_summary()
    assert (summary.open, summary.inprogress, summary.resolved, summary.total) == (1, 0, 1, 2)


def test_apology_lifecycle(repo, student, warden):
    apology = repo.create_apology(student.id, ApologyCreate(type="misconduct", message=" Sorry "))
    assert apology.message == "Sorry"
    assert apology.description is None

    reviewed = repo.review_apology(apology.id, "reviewed", "  ")
    assert reviewed.status == "reviewed"
    assert reviewed.comment is None
    assert reviewed.user.name == STUDENT["name"]

    unread, items = repo.list_notifications(student.id)
    assert items[0].type == "apology_updated"
    assert repo.review_apology("apo_missing", "accepted", None) is None


def test_mark_all_read_counts_only_unread(repo, student, warden):
    repo.create_complaint(student.id, "A", "plumbing", "", "medium")
    repo.create_complaint(student.id, "B", "plumbing", "", "medium")
    assert repo.mark_all_notifications_read(warden.id) == 2
    assert repo.mark_all_notifications_read(warden.id) == 0


def test_duplicate_email_rejected_on_commit(repo, student, monkeypatch):
    """Dos altas simultáneas con el mismo email: la segunda falla en el commit."""
    monkeypatch.setattr(HostelRepository, "_find_user_by_email", staticmethod(lambda session, email: None))
    assert repo.create_user(SignupRequest(**{**STUDENT, "student_id": "22BCE9999"})) is None

    monkeypatch.undo()
    assert repo.get_user_by_email(STUDENT["email"]).id == student.id


def test_find_student_by_identifier(repo, student, warden):
    assert repo.find_student("22bce2210").id == student.id
    assert repo.find_student(" ASHA@uni.com ").id == student.id
    assert repo.find_student(student.id).id == student.id
    assert repo.find_student(WARDEN["email"]) is None
    assert repo.find_student("") is None


def test_delete_complaint_cascades(repo, engine, student, warden):
    complaint = repo.create_complaint(
        student.id, "Tap", "plumbing", "", "high",
        attachments=[{"filename": "tap.jpg", "content_type": "image/jpeg", "size": 3, "path": "upl_a.jpg"}],
    )
    repo.add_timeline_entry(complaint.id, warden, "On it")

    assert repo.delete_complaint(complaint.id) == ["upl_a.jpg"]
    assert repo.get_complaint(complaint.id) is None
    assert repo.list_timeline(complaint.id) == []
    assert repo.get_attachment(complaint.id, complaint.attachments[0].id) is None
    assert repo.list_notifications(warden.id) == (0, [])
    assert repo.list_notifications(student.id) == (0, [])
    assert repo.delete_complaint(complaint.id) is None
