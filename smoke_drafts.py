#!/usr/bin/env python
"""Manual check of draft autosave against a running portal (uvicorn hostel_portal.main:app)"""
import asyncio
import sys

import requests

from hostel_portal.drafts import DraftStore, FormDraft, RemoteStorage
from hostel_portal.log import configure_logging

BASE_URL = "http://localhost:8000/api"

ACCOUNT = {
    "name": "Smoke Student",
    "email": "smoke@uni.com",
    "password": "Smoke#1234",
    "role": "student",
    "hostel": "Himalaya",
    "room_no": "S-101",
    "student_id": "24SMK0001",
}


def login() -> str:
    # 409 just means the account already exists from a previous run
    requests.post(f"{BASE_URL}/signup", json=ACCOUNT, timeout=5)
    resp = requests.post(
        f"{BASE_URL}/login",
        json={"email": ACCOUNT["email"], "password": ACCOUNT["password"]},
        timeout=5,
    )
    resp.raise_for_status()
    return resp.json()["token"]


async def autosave(token: str) -> bool:
    store = DraftStore(RemoteStorage(BASE_URL, token))
    with FormDraft("complaint-form", {"title": "", "body": ""}, store, auto_save_delay_ms=500) as form:
        form.update_form_data(title="Leak")
        form.update_form_data(body="Bathroom tap")
        await asyncio.sleep(1)
        print(f"1. autosave: dirty={form.is_dirty} last_saved={form.last_saved}")

    with FormDraft("complaint-form", {"title": "", "body": ""}, store) as again:
        print(f"2. restore: {again.form_data}")
        restored = again.form_data == {"title": "Leak", "body": "Bathroom tap"}
        again.clear_draft()
        print(f"3. clear: has_draft={again.has_draft}")
        return restored and not again.has_draft


if __name__ == "__main__":
    configure_logging("INFO")
    ok = asyncio.run(autosave(login()))
    print("Smoke test passed" if ok else "Smoke test FAILED")
    sys.exit(0 if ok else 1)
