"""
Data Models
SQLModel tables for the portal database and Pydantic DTOs for the API.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field as PydanticField, field_validator, model_validator
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from .validation import password_problems, signup_problems


# ============================================================================
# ENUMS
# ============================================================================

class Role(str, Enum):
    student = "student"
    admin = "admin"
    counselor = "counselor"


class ComplaintType(str, Enum):
    roommate = "roommate"
    plumbing = "plumbing"
    cleanliness = "cleanliness"
    electricity = "electricity"
    lost_and_found = "Lost and Found"
    other = "Other Issues"


class ComplaintStatus(str, Enum):
    open = "open"
    inprogress = "inprogress"
    resolved = "resolved"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ApologyType(str, Enum):
    outing = "outing"
    misconduct = "misconduct"
    miscellaneous = "miscellaneous"


class ApologyStatus(str, Enum):
    submitted = "submitted"
    reviewed = "reviewed"
    accepted = "accepted"
    rejected = "rejected"


class NotificationType(str, Enum):
    complaint_updated = "complaint_updated"
    apology_updated = "apology_updated"
    new_complaint = "new_complaint"
    new_apology = "new_apology"
    complaint_resolved = "complaint_resolved"
    apology_approved = "apology_approved"
    apology_rejected = "apology_rejected"


# ============================================================================
# DATABASE TABLES
# ============================================================================

class UserTable(SQLModel, table=True):
    """Students and wardens. Emails are stored lower-cased."""
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str = Field(index=True)
    hostel: Optional[str] = None
    room_no: Optional[str] = None
    student_id: Optional[str] = None
    block: Optional[str] = None
    created_at: str  # ISO timestamp


class ComplaintTable(SQLModel, table=True):
    __tablename__ = "complaints"

    id: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    title: str
    type: str
    status: str = Field(default=ComplaintStatus.open.value, index=True)
    priority: str = Field(default=Priority.medium.value)
    description: str = ""
    created_at: str
    updated_at: str


class AttachmentTable(SQLModel, table=True):
    """Files uploaded with a complaint; ``path`` is relative to the upload dir."""
    __tablename__ = "complaint_attachments"

    id: str = Field(primary_key=True)
    complaint_id: str = Field(foreign_key="complaints.id", index=True)
    filename: str
    content_type: str
    size: int
    path: str
    created_at: str


class TimelineEntryTable(SQLModel, table=True):
    __tablename__ = "complaint_timeline"

    id: str = Field(primary_key=True)
    complaint_id: str = Field(foreign_key="complaints.id", index=True)
    author_id: str = Field(foreign_key="users.id")
    author_role: str
    message: str
    created_at: str


class ApologyTable(SQLModel, table=True):
    __tablename__ = "apologies"

    id: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    type: str
    message: str
    description: Optional[str] = None
    status: str = Field(default=ApologyStatus.submitted.value, index=True)
    comment: Optional[str] = None
    created_at: str
    updated_at: str


class NotificationTable(SQLModel, table=True):
    __tablename__ = "notifications"

    id: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    type: str
    title: str
    message: str
    related_id: Optional[str] = None
    related_type: Optional[str] = None  # "complaint" | "apology"
    is_read: bool = Field(default=False, index=True)
    created_at: str
    updated_at: Optional[str] = None


class PasswordResetTable(SQLModel, table=True):
    __tablename__ = "password_resets"

    token: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    expires_at: str
    used: bool = False


class RevokedTokenTable(SQLModel, table=True):
    """JWT ids invalidated by logout."""
    __tablename__ = "revoked_tokens"

    jti: str = Field(primary_key=True)
    revoked_at: str


class DraftEntryTable(SQLModel, table=True):
    """Server-side form drafts, one row per (owner, storage key)."""
    __tablename__ = "draft_entries"
    __table_args__ = (UniqueConstraint("owner_id", "key", name="uq_draft_owner_key"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(index=True)
    key: str = Field(index=True)
    value: str  # JSON serialized record
    updated_at: str


# ============================================================================
# PYDANTIC MODELS (API DTOs)
# ============================================================================

# --- Authentication ---

class SignupRequest(BaseModel):
    """Sign-up payload. Students need hostel/room/student id, wardens a block."""
    name: str
    email: str
    password: str
    role: Role = Role.student
    block: Optional[str] = None
    hostel: Optional[str] = None
    room_no: Optional[str] = None
    student_id: Optional[str] = None

    @field_validator("name", "email")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("is required")
        return value

    @model_validator(mode="after")
    def check_role_fields(self) -> "SignupRequest":
        problems = signup_problems(self)
        if problems:
            raise ValueError("; ".join(problems))
        return self


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    message: str
    token: str
    role: Role


class MessageResponse(BaseModel):
    message: str


class SignupResponse(BaseModel):
    message: str
    id: str


class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str
    password: str

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        problems = password_problems(value)
        if problems:
            raise ValueError("; ".join(problems))
        return value


class Profile(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    hostel: Optional[str] = None
    room_no: Optional[str] = None
    student_id: Optional[str] = None
    block: Optional[str] = None
    created_at: str


class UserSummary(BaseModel):
    """Owner details attached to complaints and apologies in warden views."""
    id: str
    name: str
    email: str
    hostel: Optional[str] = None
    room_no: Optional[str] = None
    student_id: Optional[str] = None


# --- Complaints ---

class Attachment(BaseModel):
    id: str
    filename: str
    content_type: str
    size: int
    created_at: str
    url: str


class Complaint(BaseModel):
    id: str
    title: str
    type: str
    status: ComplaintStatus
    status_label: str
    priority: str
    priority_label: Optional[str] = None
    description: str = ""
    created_at: str
    updated_at: str
    attachments: List[Attachment] = []
    user: Optional[UserSummary] = None


class ComplaintListResponse(BaseModel):
    count: int
    data: List[Complaint]


class ComplaintStatusUpdate(BaseModel):
    status: str


class TimelineEntryCreate(BaseModel):
    message: str = PydanticField(min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("message is required")
        return value


class TimelineEntry(BaseModel):
    id: str
    complaint_id: str
    author_id: str
    author_role: str
    message: str
    created_at: str


# --- Apologies ---

class ApologyCreate(BaseModel):
    type: ApologyType
    message: str = PydanticField(min_length=1)
    description: Optional[str] = None


class Apology(BaseModel):
    id: str
    type: ApologyType
    type_label: Optional[str] = None
    message: str
    description: Optional[str] = None
    status: ApologyStatus
    status_label: str
    comment: Optional[str] = None
    created_at: str
    updated_at: str
    user: Optional[UserSummary] = None


class ApologyListResponse(BaseModel):
    count: int
    data: List[Apology]


class ApologyReview(BaseModel):
    status: ApologyStatus
    comment: Optional[str] = None


# --- Notifications ---

class Notification(BaseModel):
    id: str
    type: NotificationType
    title: str
    message: str
    related_id: Optional[str] = None
    related_type: Optional[str] = None
    is_read: bool
    created_at: str
    updated_at: Optional[str] = None


class NotificationListResponse(BaseModel):
    count: int
    unread_count: int
    data: List[Notification]


# --- Metrics ---

class StatusSummary(BaseModel):
    open: int
    inprogress: int
    resolved: int
    total: int


class PendingCount(BaseModel):
    count: int


class ResolutionRate(BaseModel):
    rate: float  # percentage, one decimal
    resolved: int
    total: int
