"""Hostel portal backend: accounts, complaints, apologies, notifications and form drafts."""
