"""
Account validation rules
Same checks the sign-up and reset-password forms run client-side.
"""

import re
from typing import List

from .config import settings

ROOM_NO_RE = re.compile(r"^[A-Z]-\d{3}$")
STUDENT_ID_RE = re.compile(r"^\d{2}[A-Z]{3}\d{4}$")


def password_problems(password: str) -> List[str]:
    """Unmet strength requirements: length >= 8, upper-case, digit, special."""
    problems = []
    if len(password) < 8:
        problems.append("password must be at least 8 characters")
    if not re.search(r"[A-Z]", password):
        problems.append("password must contain an uppercase letter")
    if not re.search(r"[0-9]", password):
        problems.append("password must contain a number")
    if not re.search(r"[^A-Za-z0-9]", password):
        problems.append("password must contain a special character")
    return problems


def signup_problems(payload) -> List[str]:
    problems = password_problems(payload.password)
    email = payload.email.lower()

    if payload.role.value in ("admin", "counselor"):
        if not email.endswith(settings.warden_email_domain):
            problems.append(f"warden email must end with {settings.warden_email_domain}")
        if not (payload.block or "").strip():
            problems.append("hostel block is required")
        return problems

    if not email.endswith(settings.student_email_domain):
        problems.append(f"student email must end with {settings.student_email_domain}")
    if not (payload.hostel or "").strip():
        problems.append("hostel is required")
    room_no = (payload.room_no or "").strip()
    if not room_no:
        problems.append("room number is required")
    elif not ROOM_NO_RE.match(room_no):
        problems.append("room number must be in format L-204")
    student_id = (payload.student_id or "").strip()
    if not student_id:
        problems.append("student id is required")
    elif not STUDENT_ID_RE.match(student_id):
        problems.append("student id must be in format 22BCE2210")
    return problems
