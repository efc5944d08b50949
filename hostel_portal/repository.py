"""
Repository Layer
Handles all database operations for users, complaints, apologies,
notifications and password resets.
"""

import logging
from datetime import datetime, timedelta, UTC
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import Engine, func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from . import db
from .converters import (
    apology_to_dto,
    complaint_to_dto,
    notification_to_dto,
    status_counts,
    timeline_to_dto,
)
from .models import (
    ApologyCreate,
    ApologyTable,
    Apology,
    AttachmentTable,
    ComplaintStatus,
    ComplaintTable,
    Complaint,
    NotificationTable,
    Notification,
    NotificationType,
    PasswordResetTable,
    RevokedTokenTable,
    Role,
    SignupRequest,
    StatusSummary,
    TimelineEntryTable,
    TimelineEntry,
    UserTable,
)
from .security import hash_password, verify_password
from .util.ids import new_id

logger = logging.getLogger(__name__)

STAFF_ROLES = (Role.admin.value, Role.counselor.value)


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


class HostelRepository:
    """Repository for portal CRUD operations"""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_schema(self):
        """Create all database tables"""
        db.create_schema(self.engine)

    # ------------------------------------------------------------------
    # Users & auth
    # ------------------------------------------------------------------

    def create_user(self, data: SignupRequest) -> Optional[UserTable]:
        """Create an account; None when the email is already registered."""
        email = data.email.strip().lower()
        with Session(self.engine) as session:
            if self._find_user_by_email(session, email):
                return None

            staff = data.role.value in STAFF_ROLES
            user = UserTable(
                id=new_id("usr_"),
                name=data.name.strip(),
                email=email,
                password_hash=hash_password(data.password),
                role=data.role.value,
                block=data.block.strip() if staff and data.block else None,
                hostel=None if staff else (data.hostel or "").strip(),
                room_no=None if staff else (data.room_no or "").strip(),
                student_id=None if staff else (data.student_id or "").strip(),
                created_at=now_iso(),
            )
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                # email taken by a concurrent sign-up
                session.rollback()
                logger.info("duplicate sign-up for %s rejected on commit", email)
                return None
            session.refresh(user)
            logger.info("registered %s account %s", user.role, user.id)
            return user

    @staticmethod
    def _find_user_by_email(session: Session, email: str) -> Optional[UserTable]:
        return session.exec(select(UserTable).where(UserTable.email == email)).first()

    def get_user(self, user_id: str) -> Optional[UserTable]:
        with Session(self.engine) as session:
            return session.get(UserTable, user_id)

    def get_user_by_email(self, email: str) -> Optional[UserTable]:
        with Session(self.engine) as session:
            return self._find_user_by_email(session, email.strip().lower())

    def find_student(self, identifier: str) -> Optional[UserTable]:
        """Look a student up by account id, student id (any case) or email."""
        ident = identifier.strip()
        if not ident:
            return None
        with Session(self.engine) as session:
            return session.exec(
                select(UserTable).where(
                    UserTable.role == Role.student.value,
                    or_(
                        UserTable.id == ident,
                        func.upper(UserTable.student_id) == ident.upper(),
                        UserTable.email == ident.lower(),
                    ),
                )
            ).first()

    def authenticate(self, email: str, password: str) -> Optional[UserTable]:
        user = self.get_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    def revoke_token(self, jti: str) -> None:
        with Session(self.engine) as session:
            if session.get(RevokedTokenTable, jti) is None:
                session.add(RevokedTokenTable(jti=jti, revoked_at=now_iso()))
                session.commit()

    def is_token_revoked(self, jti: str) -> bool:
        with Session(self.engine) as session:
            return session.get(RevokedTokenTable, jti) is not None

    def create_password_reset(self, user_id: str, token: str, ttl_minutes: int) -> None:
        expires_at = (datetime.now(UTC) + timedelta(minutes=ttl_minutes)).isoformat()
        with Session(self.engine) as session:
            session.add(PasswordResetTable(token=token, user_id=user_id, expires_at=expires_at))
            session.commit()

    def consume_password_reset(self, token: str, new_password: str) -> bool:
        """Set a new password if ``token`` is known, unused and not expired."""
        with Session(self.engine) as session:
            reset = session.get(PasswordResetTable, token)
            if reset is None or reset.used:
                return False
            if datetime.fromisoformat(reset.expires_at) <= datetime.now(UTC):
                return False
            user = session.get(UserTable, reset.user_id)
            if user is None:
                return False

            user.password_hash = hash_password(new_password)
            reset.used = True
            session.add(user)
            session.add(reset)
            session.commit()
            logger.info("password reset for user %s", user.id)
            return True

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _warden_ids(self, session: Session) -> List[str]:
        return list(session.exec(select(UserTable.id).where(UserTable.role == Role.admin.value)).all())

    def _notify(
        self,
        session: Session,
        user_ids: Iterable[str],
        type: NotificationType,
        title: str,
        message: str,
        related_id: Optional[str] = None,
        related_type: Optional[str] = None,
    ) -> None:
        created_at = now_iso()
        for user_id in user_ids:
            session.add(NotificationTable(
                id=new_id("ntf_"),
                user_id=user_id,
                type=type.value,
                title=title,
                message=message,
                related_id=related_id,
                related_type=related_type,
                created_at=created_at,
            ))

    def list_notifications(self, user_id: str) -> Tuple[int, List[Notification]]:
        """Return (unread_count, notifications newest first)."""
        with Session(self.engine) as session:
            rows = session.exec(
                select(NotificationTable)
                .where(NotificationTable.user_id == user_id)
                .order_by(NotificationTable.created_at.desc(), NotificationTable.id.desc())
            ).all()
            unread = sum(1 for r in rows if not r.is_read)
            return unread, [notification_to_dto(r) for r in rows]

    def mark_notification_read(self, user_id: str, notification_id: str) -> Optional[Notification]:
        with Session(self.engine) as session:
            row = session.get(NotificationTable, notification_id)
            if row is None or row.user_id != user_id:
                return None
            if not row.is_read:
                row.is_read = True
                row.updated_at = now_iso()
                session.add(row)
                session.commit()
                session.refresh(row)
            return notification_to_dto(row)

    def mark_all_notifications_read(self, user_id: str) -> int:
        with Session(self.engine) as session:
            rows = session.exec(
                select(NotificationTable).where(
                    NotificationTable.user_id == user_id,
                    NotificationTable.is_read == False,  # noqa: E712
                )
            ).all()
            now = now_iso()
            for row in rows:
                row.is_read = True
                row.updated_at = now
                session.add(row)
            session.commit()
            return len(rows)

    # ------------------------------------------------------------------
    # Complaints
    # ------------------------------------------------------------------

    def _complaint_dto(self, session: Session, complaint: ComplaintTable, with_owner: bool) -> Complaint:
        attachments = session.exec(
            select(AttachmentTable)
            .where(AttachmentTable.complaint_id == complaint.id)
            .order_by(AttachmentTable.created_at)
        ).all()
        owner = session.get(UserTable, complaint.user_id) if with_owner else None
        return complaint_to_dto(complaint, attachments, owner)

    def create_complaint(
        self,
        user_id: str,
        title: str,
        type: str,
        description: str,
        priority: str,
        attachments: Iterable[dict] = (),
    ) -> Complaint:
        """
        Create a complaint with already-stored attachment files.

        Each attachment dict carries ``filename``, ``content_type``, ``size``
        and ``path``. Wardens get a ``new_complaint`` notification.
        """
        now = now_iso()
        with Session(self.engine) as session:
            complaint = ComplaintTable(
                id=new_id("cmp_"),
                user_id=user_id,
                title=title,
                type=type,
                status=ComplaintStatus.open.value,
                priority=priority,
                description=description,
                created_at=now,
                updated_at=now,
            )
            session.add(complaint)
            for item in attachments:
                session.add(AttachmentTable(
                    id=new_id("att_"),
                    complaint_id=complaint.id,
                    filename=item["filename"],
                    content_type=item["content_type"],
                    size=item["size"],
                    path=item["path"],
                    created_at=now,
                ))

            self._notify(
                session,
                self._warden_ids(session),
                NotificationType.new_complaint,
                "New complaint",
                f"{title} ({type})",
                related_id=complaint.id,
                related_type="complaint",
            )
            session.commit()
            session.refresh(complaint)
            logger.info("complaint %s created by %s", complaint.id, user_id)
            return self._complaint_dto(session, complaint, with_owner=False)

    def list_complaints(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[int, List[Complaint]]:
        """Return (total, page) newest first; ``user_id`` limits to one student."""
        with Session(self.engine) as session:
            query = select(ComplaintTable)
            count_query = select(func.count()).select_from(ComplaintTable)
            if user_id is not None:
                query = query.where(ComplaintTable.user_id == user_id)
                count_query = count_query.where(ComplaintTable.user_id == user_id)
            if status is not None:
                query = query.where(ComplaintTable.status == status)
                count_query = count_query.where(ComplaintTable.status == status)

            total = session.exec(count_query).one()
            rows = session.exec(
                query.order_by(ComplaintTable.created_at.desc()).offset(offset).limit(limit)
            ).all()
            with_owner = user_id is None
            return total, [self._complaint_dto(session, r, with_owner) for r in rows]

    def get_complaint_owner(self, complaint_id: str) -> Optional[str]:
        with Session(self.engine) as session:
            complaint = session.get(ComplaintTable, complaint_id)
            return complaint.user_id if complaint else None

    def get_complaint(self, complaint_id: str) -> Optional[Complaint]:
        with Session(self.engine) as session:
            complaint = session.get(ComplaintTable, complaint_id)
            if not complaint:
                return None
            return self._complaint_dto(session, complaint, with_owner=True)

    def get_attachment(self, complaint_id: str, attachment_id: str) -> Optional[AttachmentTable]:
        with Session(self.engine) as session:
            attachment = session.get(AttachmentTable, attachment_id)
            if attachment is None or attachment.complaint_id != complaint_id:
                return None
            return attachment

    def delete_complaint(self, complaint_id: str) -> Optional[List[str]]:
        """
        Remove a complaint with its attachments, timeline and notifications.
        Returns the stored attachment paths so the caller can drop the files,
        or None when the complaint does not exist.
        """
        with Session(self.engine) as session:
            complaint = session.get(ComplaintTable, complaint_id)
            if not complaint:
                return None

            attachments = session.exec(
                select(AttachmentTable).where(AttachmentTable.complaint_id == complaint_id)
            ).all()
            paths = [a.path for a in attachments]
            dependents = [
                *attachments,
                *session.exec(
                    select(TimelineEntryTable).where(TimelineEntryTable.complaint_id == complaint_id)
                ).all(),
                *session.exec(
                    select(NotificationTable).where(
                        NotificationTable.related_id == complaint_id,
                        NotificationTable.related_type == "complaint",
                    )
                ).all(),
            ]
            for row in dependents:
                session.delete(row)
            session.flush()
            session.delete(complaint)
            session.commit()
            logger.info("deleted complaint %s (%d attachments)", complaint_id, len(paths))
            return paths

    def update_complaint_status(self, complaint_id: str, status: str, actor: UserTable) -> Optional[Complaint]:
        """Change status, log it on the timeline and notify the owner."""
        with Session(self.engine) as session:
            complaint = session.get(ComplaintTable, complaint_id)
            if not complaint:
                return None

            now = now_iso()
            changed = complaint.status != status
            complaint.status = status
            complaint.updated_at = now
            session.add(complaint)

            if changed:
                session.add(TimelineEntryTable(
                    id=new_id("tle_"),
                    complaint_id=complaint.id,
                    author_id=actor.id,
                    author_role=actor.role,
                    message=f"Status updated to: {status}",
                    created_at=now,
                ))
                resolved = status == ComplaintStatus.resolved.value
                self._notify(
                    session,
                    [complaint.user_id],
                    NotificationType.complaint_resolved if resolved else NotificationType.complaint_updated,
                    "Complaint resolved" if resolved else "Complaint updated",
                    f"Your complaint \"{complaint.title}\" is now {status}",
                    related_id=complaint.id,
                    related_type="complaint",
                )

            session.commit()
            session.refresh(complaint)
            return self._complaint_dto(session, complaint, with_owner=True)

    def list_timeline(self, complaint_id: str) -> List[TimelineEntry]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(TimelineEntryTable)
                .where(TimelineEntryTable.complaint_id == complaint_id)
                .order_by(TimelineEntryTable.created_at)
            ).all()
            return [timeline_to_dto(r) for r in rows]

    def add_timeline_entry(self, complaint_id: str, author: UserTable, message: str) -> Optional[TimelineEntry]:
        """Append a message; a staff reply notifies the complaint owner."""
        with Session(self.engine) as session:
            complaint = session.get(ComplaintTable, complaint_id)
            if not complaint:
                return None

            entry = TimelineEntryTable(
                id=new_id("tle_"),
                complaint_id=complaint_id,
                author_id=author.id,
                author_role=author.role,
                message=message,
                created_at=now_iso(),
            )
            session.add(entry)
            if author.role in STAFF_ROLES and author.id != complaint.user_id:
                self._notify(
                    session,
                    [complaint.user_id],
                    NotificationType.complaint_updated,
                    "New response on your complaint",
                    message,
                    related_id=complaint.id,
                    related_type="complaint",
                )
            session.commit()
            session.refresh(entry)
            return timeline_to_dto(entry)

    def complaint_status_summary(self) -> StatusSummary:
        with Session(self.engine) as session:
            statuses = session.exec(select(ComplaintTable.status)).all()
        counts = status_counts(statuses)
        return StatusSummary(total=len(statuses), **counts)

    # ------------------------------------------------------------------
    # Apologies
    # ------------------------------------------------------------------

    def create_apology(self, user_id: str, data: ApologyCreate) -> Apology:
        now = now_iso()
        with Session(self.engine) as session:
            apology = ApologyTable(
                id=new_id("apo_"),
                user_id=user_id,
                type=data.type.value,
                message=data.message.strip(),
                description=(data.description or "").strip() or None,
                created_at=now,
                updated_at=now,
            )
            session.add(apology)
            self._notify(
                session,
                self._warden_ids(session),
                NotificationType.new_apology,
                "New apology letter",
                f"A {apology.type} apology was submitted",
                related_id=apology.id,
                related_type="apology",
            )
            session.commit()
            session.refresh(apology)
            logger.info("apology %s submitted by %s", apology.id, user_id)
            return apology_to_dto(apology)

    def list_apologies(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[int, List[Apology]]:
        with Session(self.engine) as session:
            query = select(ApologyTable)
            count_query = select(func.count()).select_from(ApologyTable)
            if user_id is not None:
                query = query.where(ApologyTable.user_id == user_id)
                count_query = count_query.where(ApologyTable.user_id == user_id)
            if status is not None:
                query = query.where(ApologyTable.status == status)
                count_query = count_query.where(ApologyTable.status == status)

            total = session.exec(count_query).one()
            rows = session.exec(
                query.order_by(ApologyTable.created_at.desc()).offset(offset).limit(limit)
            ).all()
            if user_id is not None:
                return total, [apology_to_dto(r) for r in rows]
            return total, [apology_to_dto(r, session.get(UserTable, r.user_id)) for r in rows]

    def get_apology(self, apology_id: str) -> Optional[Apology]:
        with Session(self.engine) as session:
            apology = session.get(ApologyTable, apology_id)
            if not apology:
                return None
            return apology_to_dto(apology, session.get(UserTable, apology.user_id))

    def review_apology(self, apology_id: str, status: str, comment: Optional[str]) -> Optional[Apology]:
        """Record a warden decision and notify the student."""
        with Session(self.engine) as session:
            apology = session.get(ApologyTable, apology_id)
            if not apology:
                return None

            apology.status = status
            if comment is not None and comment.strip():
                apology.comment = comment.strip()
            apology.updated_at = now_iso()
            session.add(apology)

            if status == "accepted":
                kind, title = NotificationType.apology_approved, "Apology accepted"
            elif status == "rejected":
                kind, title = NotificationType.apology_rejected, "Apology rejected"
            else:
                kind, title = NotificationType.apology_updated, "Apology updated"
            self._notify(
                session,
                [apology.user_id],
                kind,
                title,
                apology.comment or f"Your {apology.type} apology is now {status}",
                related_id=apology.id,
                related_type="apology",
            )
            session.commit()
            session.refresh(apology)
            return apology_to_dto(apology, session.get(UserTable, apology.user_id))
