# app/auth.py
"""Shared authentication dependencies."""

import os
import secrets

from fastapi import Header, HTTPException


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Validate admin API key. Fails closed if ADMIN_API_KEY is not set."""
    expected_key = os.getenv("ADMIN_API_KEY")

    if not expected_key:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: admin authentication not configured",
        )

    if not x_api_key or not secrets.compare_digest(x_api_key.encode("utf-8"), expected_key.encode("utf-8")):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key",
        )


def require_cron_secret(
    authorization: str | None = Header(default=None),
) -> None:
    """Validate the scheduler's bearer token. Fails closed if CRON_SECRET is not set."""
    expected_secret = os.getenv("CRON_SECRET")

    if not expected_secret:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: cron authentication not configured",
        )

    scheme, _, token = (authorization or "").partition(" ")
    # Header values arrive latin-1 decoded; compare bytes so non-ASCII input is a mismatch
    token_ok = bool(token) and secrets.compare_digest(token.encode("utf-8"), expected_secret.encode("utf-8"))
    if scheme.lower() != "bearer" or not token_ok:
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing cron token",
        )
