"""
Hostel Portal API
Backend for the student/warden portal: accounts, complaints, apologies,
notifications, dashboard metrics and server-side form drafts.
"""

from dotenv import load_dotenv
load_dotenv()

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .converters import parse_complaint_status, user_to_profile
from .db import make_engine
from .deps import current_user, get_repo, get_token_claims, require_role
from .drafts import DraftRecord, DraftStore, SQLStorage, draft_key
from .log import configure_logging
from .models import (
    # Auth
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    Profile,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    UserTable,
    # Complaints
    Complaint,
    ComplaintListResponse,
    ComplaintStatusUpdate,
    ComplaintType,
    Priority,
    TimelineEntry,
    TimelineEntryCreate,
    # Apologies
    Apology,
    ApologyCreate,
    ApologyListResponse,
    ApologyReview,
    ApologyStatus,
    # Notifications
    Notification,
    NotificationListResponse,
    # Metrics
    PendingCount,
    ResolutionRate,
    StatusSummary,
)
from .repository import STAFF_ROLES, HostelRepository
from .security import create_access_token, new_reset_token
from .util.ids import new_id
from .util.pagination import clamp_limit, clamp_offset

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

JPEG_TYPES = ("image/jpeg", "image/jpg")


# ============================================================================
# App Configuration
# ============================================================================

app = FastAPI(
    title="Hostel Portal API",
    version="1.0.0",
    description="Backend for the hostel student/warden portal",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Database Configuration
# ============================================================================

engine = make_engine(settings.database_url)

repo = HostelRepository(engine)
repo.create_schema()
app.state.repo = repo

logger.info("using database %s", engine.url.render_as_string(hide_password=True))


# ============================================================================
# Middleware & Error Handlers
# ============================================================================

@app.middleware("http")
async def add_request_id_header(request: Request, call_next):
    resp: Response = await call_next(request)
    resp.headers.setdefault("X-Request-Id", new_id("req_"))
    return resp


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {"path": ".".join(str(p) for p in err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = details[0]["msg"] if details else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={"detail": message, "error": message, "details": details},
    )


@app.exception_handler(Exception)
async def default_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL",
                "message": "Unhandled error",
                "details": [{"path": request.url.path, "msg": str(exc)}],
            }
        },
    )


@app.get("/health", tags=["health"])
def health():
    return {"status": "ok"}


student_only = require_role("student")
staff_only = require_role(*STAFF_ROLES)


# ============================================================================
# Authentication Endpoints
# ============================================================================

@app.post("/api/signup", response_model=SignupResponse, status_code=201, tags=["auth"])
def signup(payload: SignupRequest, repo: HostelRepository = Depends(get_repo)) -> SignupResponse:
    user = repo.create_user(payload)
    if user is None:
        raise HTTPException(status_code=409, detail="Email already registered")
    return SignupResponse(message="Account created", id=user.id)


@app.post("/api/login", response_model=LoginResponse, tags=["auth"])
def login(payload: LoginRequest, repo: HostelRepository = Depends(get_repo)) -> LoginResponse:
    user = repo.authenticate(payload.email, payload.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return LoginResponse(
        message="Login successful",
        token=create_access_token(user.id, user.role),
        role=user.role,
    )


@app.post("/api/logout", response_model=MessageResponse, tags=["auth"])
def logout(
    claims: dict = Depends(get_token_claims),
    repo: HostelRepository = Depends(get_repo),
) -> MessageResponse:
    repo.revoke_token(claims["jti"])
    return MessageResponse(message="Logged out")


@app.post("/api/forgot-password", response_model=MessageResponse, tags=["auth"])
def forgot_password(
    payload: ForgotPasswordRequest,
    repo: HostelRepository = Depends(get_repo),
) -> MessageResponse:
    """Same answer whether or not the account exists."""
    user = repo.get_user_by_email(payload.email)
    if user is not None:
        repo.create_password_reset(user.id, new_reset_token(), settings.reset_token_expire_minutes)
        # TODO: deliver the reset link by email once an SMTP relay is configured
        logger.info("password reset requested for user %s", user.id)
    return MessageResponse(message="If the account exists, a reset link has been sent")


@app.post("/api/reset-password", response_model=MessageResponse, tags=["auth"])
def reset_password(
    payload: ResetPasswordRequest,
    repo: HostelRepository = Depends(get_repo),
) -> MessageResponse:
    if not repo.consume_password_reset(payload.token, payload.password):
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    return MessageResponse(message="Password updated")


@app.get("/api/profile", response_model=Profile, tags=["auth"])
def profile(user: UserTable = Depends(current_user)) -> Profile:
    return user_to_profile(user)


# ============================================================================
# Complaint Endpoints
# ============================================================================

async def _store_attachments(files: List[UploadFile]) -> List[dict]:
    """Validate JPEG uploads, then write them under the upload directory."""
    accepted = []
    for upload in files:
        content = await upload.read()
        name = upload.filename or "attachment.jpg"
        if len(content) > settings.max_upload_bytes:
            raise HTTPException(status_code=400, detail=f"File {name} exceeds 5MB size limit")
        if upload.content_type not in JPEG_TYPES:
            raise HTTPException(status_code=400, detail=f"File {name} must be JPEG format")
        accepted.append((name, upload.content_type, content))

    upload_dir = Path(settings.upload_dir)
    if accepted:
        upload_dir.mkdir(parents=True, exist_ok=True)

    stored = []
    for name, content_type, content in accepted:
        stored_name = new_id("upl_") + ".jpg"
        (upload_dir / stored_name).write_bytes(content)
        stored.append({
            "filename": name,
            "content_type": "image/jpeg",
            "size": len(content),
            "path": stored_name,
        })
    return stored


@app.get("/api/student/complaints", response_model=ComplaintListResponse, tags=["complaints"])
def list_my_complaints(
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user: UserTable = Depends(student_only),
    repo: HostelRepository = Depends(get_repo),
) -> ComplaintListResponse:
    total, items = repo.list_complaints(
        user_id=user.id, limit=clamp_limit(limit), offset=clamp_offset(offset)
    )
    return ComplaintListResponse(count=total, data=items)


@app.post("/api/student/complaints", response_model=Complaint, status_code=201, tags=["complaints"])
async def create_complaint(
    title: str = Form(...),
    type: ComplaintType = Form(...),
    description: str = Form(""),
    priority: Priority = Form(Priority.medium),
    attachments: Optional[List[UploadFile]] = File(None, alias="attachments[]"),
    user: UserTable = Depends(student_only),
    repo: HostelRepository = Depends(get_repo),
) -> Complaint:
    """
    Create a complaint (multipart form).
    Attachments are optional, JPEG only, at most 5MB each.
    """
    title = title.strip()
    if not title:
        raise HTTPException(status_code=400, detail="Title is required")

    stored = await _store_attachments(attachments or [])
    return repo.create_complaint(
        user.id,
        title=title,
        type=type.value,
        description=description.strip(),
        priority=priority.value,
        attachments=stored,
    )


@app.get("/api/admin/complaints", response_model=ComplaintListResponse, tags=["complaints"])
def list_all_complaints(
    status: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> ComplaintListResponse:
    wanted = None
    if status:
        wanted = parse_complaint_status(status)
        if wanted is None:
            raise HTTPException(status_code=400, detail="Invalid status")
    total, items = repo.list_complaints(
        status=wanted, limit=clamp_limit(limit), offset=clamp_offset(offset)
    )
    return ComplaintListResponse(count=total, data=items)


@app.get("/api/admin/complaints/{id}", response_model=Complaint, tags=["complaints"])
def get_complaint(
    id: str,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> Complaint:
    complaint = repo.get_complaint(id)
    if not complaint:
        raise HTTPException(status_code=404, detail="Complaint not found")
    return complaint


@app.delete("/api/admin/complaints/{id}", status_code=204, tags=["complaints"])
def delete_complaint(
    id: str,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> Response:
    """Delete a complaint with its timeline, notifications and uploaded files."""
    paths = repo.delete_complaint(id)
    if paths is None:
        raise HTTPException(status_code=404, detail="Complaint not found")
    upload_dir = Path(settings.upload_dir)
    for stored_name in paths:
        (upload_dir / stored_name).unlink(missing_ok=True)
    logger.info("complaint %s deleted by %s", id, user.id)
    return Response(status_code=204)


@app.put("/api/admin/complaints/{id}/status", response_model=Complaint, tags=["complaints"])
def update_complaint_status(
    id: str,
    payload: ComplaintStatusUpdate,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> Complaint:
    """Accepts status variants such as "pending" or "in-progress"."""
    status = parse_complaint_status(payload.status)
    if status is None:
        raise HTTPException(status_code=400, detail="Invalid status")
    complaint = repo.update_complaint_status(id, status, user)
    if not complaint:
        raise HTTPException(status_code=404, detail="Complaint not found")
    return complaint


def _check_timeline_access(complaint_id: str, user: UserTable, repo: HostelRepository) -> None:
    owner_id = repo.get_complaint_owner(complaint_id)
    if owner_id is None:
        raise HTTPException(status_code=404, detail="Complaint not found")
    if user.role not in STAFF_ROLES and user.id != owner_id:
        raise HTTPException(status_code=403, detail="Forbidden")


@app.get("/api/complaints/{id}/timeline", response_model=List[TimelineEntry], tags=["complaints"])
def get_timeline(
    id: str,
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> List[TimelineEntry]:
    _check_timeline_access(id, user, repo)
    return repo.list_timeline(id)


@app.post(
    "/api/complaints/{id}/timeline",
    response_model=TimelineEntry,
    status_code=201,
    tags=["complaints"],
)
def add_timeline_entry(
    id: str,
    payload: TimelineEntryCreate,
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> TimelineEntry:
    _check_timeline_access(id, user, repo)
    entry = repo.add_timeline_entry(id, user, payload.message)
    if not entry:
        raise HTTPException(status_code=404, detail="Complaint not found")
    return entry


@app.get("/api/complaints/{id}/attachments/{attachment_id}", tags=["complaints"])
def download_attachment(
    id: str,
    attachment_id: str,
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> FileResponse:
    _check_timeline_access(id, user, repo)
    attachment = repo.get_attachment(id, attachment_id)
    path = Path(settings.upload_dir) / attachment.path if attachment else None
    if path is None or not path.is_file():
        raise HTTPException(status_code=404, detail="Attachment not found")
    return FileResponse(path, media_type=attachment.content_type, filename=attachment.filename)


@app.get("/api/admin/student/{identifier}", response_model=Profile, tags=["students"])
def find_student(
    identifier: str,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> Profile:
    """Staff lookup by account id, student id or email."""
    student = repo.find_student(identifier)
    if not student:
        raise HTTPException(status_code=404, detail="Student not found")
    return user_to_profile(student)


# ============================================================================
# Apology Endpoints
# ============================================================================

@app.get("/api/student/apologies", response_model=ApologyListResponse, tags=["apologies"])
def list_my_apologies(
    user: UserTable = Depends(student_only),
    repo: HostelRepository = Depends(get_repo),
) -> ApologyListResponse:
    total, items = repo.list_apologies(user_id=user.id)
    return ApologyListResponse(count=total, data=items)


@app.post("/api/student/apologies", response_model=Apology, status_code=201, tags=["apologies"])
def create_apology(
    payload: ApologyCreate,
    user: UserTable = Depends(student_only),
    repo: HostelRepository = Depends(get_repo),
) -> Apology:
    if not payload.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    return repo.create_apology(user.id, payload)


@app.get("/api/admin/apologies", response_model=ApologyListResponse, tags=["apologies"])
def list_all_apologies(
    status: Optional[ApologyStatus] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> ApologyListResponse:
    total, items = repo.list_apologies(
        status=status.value if status else None,
        limit=clamp_limit(limit),
        offset=clamp_offset(offset),
    )
    return ApologyListResponse(count=total, data=items)


@app.get("/api/admin/apologies/{id}", response_model=Apology, tags=["apologies"])
def get_apology(
    id: str,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> Apology:
    apology = repo.get_apology(id)
    if not apology:
        raise HTTPException(status_code=404, detail="Apology not found")
    return apology


@app.put("/api/admin/apologies/{id}/review", response_model=Apology, tags=["apologies"])
def review_apology(
    id: str,
    payload: ApologyReview,
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> Apology:
    apology = repo.review_apology(id, payload.status.value, payload.comment)
    if not apology:
        raise HTTPException(status_code=404, detail="Apology not found")
    return apology


# ============================================================================
# Notification Endpoints
# ============================================================================

@app.get("/api/notifications", response_model=NotificationListResponse, tags=["notifications"])
def list_notifications(
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> NotificationListResponse:
    unread, items = repo.list_notifications(user.id)
    return NotificationListResponse(count=len(items), unread_count=unread, data=items)


@app.patch("/api/notifications/read-all", response_model=MessageResponse, tags=["notifications"])
def mark_all_notifications_read(
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> MessageResponse:
    updated = repo.mark_all_notifications_read(user.id)
    return MessageResponse(message=f"{updated} notification(s) marked as read")


@app.patch("/api/notifications/{id}/read", response_model=Notification, tags=["notifications"])
def mark_notification_read(
    id: str,
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> Notification:
    notification = repo.mark_notification_read(user.id, id)
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


# ============================================================================
# Metrics Endpoints
# ============================================================================

@app.get("/api/metrics/status-summary", response_model=StatusSummary, tags=["metrics"])
def status_summary(
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> StatusSummary:
    return repo.complaint_status_summary()


@app.get("/api/metrics/pending-count", response_model=PendingCount, tags=["metrics"])
def pending_count(
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> PendingCount:
    """Complaints not yet resolved (open or in progress)."""
    summary = repo.complaint_status_summary()
    return PendingCount(count=summary.open + summary.inprogress)


@app.get("/api/metrics/resolution-rate", response_model=ResolutionRate, tags=["metrics"])
def resolution_rate(
    user: UserTable = Depends(staff_only),
    repo: HostelRepository = Depends(get_repo),
) -> ResolutionRate:
    summary = repo.complaint_status_summary()
    rate = round(summary.resolved * 100 / summary.total, 1) if summary.total else 0.0
    return ResolutionRate(rate=rate, resolved=summary.resolved, total=summary.total)


# ============================================================================
# Draft Endpoints
# ============================================================================

def _draft_store(user: UserTable, repo: HostelRepository) -> DraftStore:
    return DraftStore(SQLStorage(repo.engine, user.id))


@app.get("/api/drafts/{form_id:path}", tags=["drafts"])
def get_draft(
    form_id: str,
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> dict:
    record = _draft_store(user, repo).get(draft_key(form_id))
    if record is None:
        raise HTTPException(status_code=404, detail="Draft not found")
    return record.to_storage()


@app.put("/api/drafts/{form_id:path}", tags=["drafts"])
def put_draft(
    form_id: str,
    record: DraftRecord,
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
) -> dict:
    """Replace the caller's draft of ``form_id`` with ``record``."""
    if record.form_id != form_id:
        raise HTTPException(status_code=400, detail="formId does not match the URL")
    if not _draft_store(user, repo).set(draft_key(form_id), record):
        raise HTTPException(status_code=503, detail="Draft storage unavailable")
    return record.to_storage()


@app.delete("/api/drafts/{form_id:path}", status_code=204, tags=["drafts"])
def delete_draft(
    form_id: str,
    user: UserTable = Depends(current_user),
    repo: HostelRepository = Depends(get_repo),
):
    if not _draft_store(user, repo).delete(draft_key(form_id)):
        raise HTTPException(status_code=503, detail="Draft storage unavailable")
    return Response(status_code=204)
