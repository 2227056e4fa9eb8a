"""Shared request helpers for the test modules."""

ADMIN_HEADERS = {"X-Admin-Password": "admin-pw"}
MODERATOR_HEADERS = {"X-Admin-Password": "moderator-pw"}
VIEWER_HEADERS = {"X-Admin-Password": "viewer-pw"}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
