"""
Format Converters
Normalizes raw status strings, maps statuses to display labels and turns
table rows into API DTOs.
"""

from typing import Dict, Iterable, Optional

from .models import (
    ApologyTable,
    Apology,
    Attachment,
    AttachmentTable,
    ComplaintTable,
    Complaint,
    NotificationTable,
    Notification,
    Profile,
    TimelineEntryTable,
    TimelineEntry,
    UserSummary,
    UserTable,
)

KNOWN_STATUSES = (
    "open",
    "inprogress",
    "resolved",
    "accepted",
    "rejected",
    "reviewed",
    "submitted",
)

STATUS_ALIASES = {
    "pending": "open",
    "inreview": "inprogress",
}

STATUS_LABELS = {
    "open": "Open",
    "inprogress": "In Progress",
    "resolved": "Resolved",
    "accepted": "Accepted",
    "rejected": "Rejected",
    "reviewed": "Reviewed",
    "submitted": "Submitted",
}

PRIORITY_LABELS = {
    "high": "High Priority",
    "medium": "Medium",
    "low": "Low",
}


def _status_key(raw: str) -> str:
    key = raw.lower().replace("-", "").replace("_", "")
    return STATUS_ALIASES.get(key, key)


def normalize_status(status: Optional[str]) -> str:
    """
    Map backend status variations onto the standard set.

    "pending" -> "open", "in-review"/"in_progress" -> "inprogress".
    Empty or unknown values fall back to "open".
    """
    if not status:
        return "open"
    key = _status_key(status)
    return key if key in KNOWN_STATUSES else "open"


def parse_complaint_status(status: Optional[str]) -> Optional[str]:
    """Strict variant for updates: None unless the value is a complaint status."""
    if not status:
        return None
    key = _status_key(status)
    return key if key in ("open", "inprogress", "resolved") else None


def status_label(status: Optional[str]) -> str:
    return STATUS_LABELS[normalize_status(status)]


def priority_label(priority: Optional[str]) -> Optional[str]:
    if not priority:
        return None
    return PRIORITY_LABELS.get(priority.lower())


def apology_type_label(apology_type: Optional[str]) -> Optional[str]:
    if not apology_type:
        return None
    return apology_type[:1].upper() + apology_type[1:]


# ============================================================================
# Table -> DTO
# ============================================================================

def user_to_profile(user: UserTable) -> Profile:
    return Profile(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        hostel=user.hostel,
        room_no=user.room_no,
        student_id=user.student_id,
        block=user.block,
        created_at=user.created_at,
    )


def user_to_summary(user: Optional[UserTable]) -> Optional[UserSummary]:
    if user is None:
        return None
    return UserSummary(
        id=user.id,
        name=user.name,
        email=user.email,
        hostel=user.hostel,
        room_no=user.room_no,
        student_id=user.student_id,
    )


def complaint_to_dto(
    complaint: ComplaintTable,
    attachments: Iterable[AttachmentTable] = (),
    owner: Optional[UserTable] = None,
) -> Complaint:
    status = normalize_status(complaint.status)
    if status not in ("open", "inprogress", "resolved"):
        status = "open"
    return Complaint(
        id=complaint.id,
        title=complaint.title,
        type=complaint.type,
        status=status,
        status_label=STATUS_LABELS[status],
        priority=complaint.priority,
        priority_label=priority_label(complaint.priority),
        description=complaint.description,
        created_at=complaint.created_at,
        updated_at=complaint.updated_at,
        attachments=[
            Attachment(
                id=a.id,
                filename=a.filename,
                content_type=a.content_type,
                size=a.size,
                created_at=a.created_at,
                url=f"/api/complaints/{complaint.id}/attachments/{a.id}",
            )
            for a in attachments
        ],
        user=user_to_summary(owner),
    )


def timeline_to_dto(entry: TimelineEntryTable) -> TimelineEntry:
    return TimelineEntry(
        id=entry.id,
        complaint_id=entry.complaint_id,
        author_id=entry.author_id,
        author_role=entry.author_role,
        message=entry.message,
        created_at=entry.created_at,
    )


def apology_to_dto(apology: ApologyTable, owner: Optional[UserTable] = None) -> Apology:
    status = normalize_status(apology.status)
    if status not in ("submitted", "reviewed", "accepted", "rejected"):
        status = "submitted"
    return Apology(
        id=apology.id,
        type=apology.type,
        type_label=apology_type_label(apology.type),
        message=apology.message,
        description=apology.description,
        status=status,
        status_label=STATUS_LABELS[status],
        comment=apology.comment,
        created_at=apology.created_at,
        updated_at=apology.updated_at,
        user=user_to_summary(owner),
    )


def notification_to_dto(notification: NotificationTable) -> Notification:
    return Notification(
        id=notification.id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        related_id=notification.related_id,
        related_type=notification.related_type,
        is_read=notification.is_read,
        created_at=notification.created_at,
        updated_at=notification.updated_at,
    )


def status_counts(statuses: Iterable[str]) -> Dict[str, int]:
    """Count complaint statuses after normalization."""
    counts = {"open": 0, "inprogress": 0, "resolved": 0}
    for status in statuses:
        key = normalize_status(status)
        if key in counts:
            counts[key] += 1
    return counts
