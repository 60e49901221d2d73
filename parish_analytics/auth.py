# parish_analytics/auth.py
"""
Request authentication and church (tenant) resolution.

Sessions and church memberships are owned by the sign-in service; we only
read its tables. The result is a ReportContext that every report builder
receives explicitly.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from parish_analytics.config import settings
from parish_analytics.db import get_db
from parish_analytics.models import ReportContext
from parish_analytics.utils.common import today_local

log = logging.getLogger(__name__)


def _session_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.cookies.get(settings.SESSION_COOKIE)


def _as_utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def get_report_context(request: Request, db: Session = Depends(get_db)) -> ReportContext:
    """
    FastAPI dependency:
      401 no session / expired session
      404 session user no longer exists
      400 no church on the request
      403 user is not attached to the church (super admins bypass)
    """
    token = _session_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    sess = db.execute(text("""
        SELECT user_id, expires_at FROM session WHERE token = :token
    """), {"token": token}).mappings().first()
    if not sess or (sess["expires_at"] and _as_utc(sess["expires_at"]) < datetime.now(timezone.utc)):
        raise HTTPException(status_code=401, detail="Unauthorized")

    user = db.execute(text("""
        SELECT id, role, church_id, is_super_admin FROM "user" WHERE id = :id
    """), {"id": sess["user_id"]}).mappings().first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    church_id = request.headers.get(settings.CHURCH_HEADER) or (
        str(user["church_id"]) if user["church_id"] else None
    )
    if not church_id:
        raise HTTPException(status_code=400, detail="Tenant context not found")

    role = user["role"]
    if not user["is_super_admin"]:
        link = db.execute(text("""
            SELECT role FROM user_churches
            WHERE user_id = :user_id AND church_id = :church_id
        """), {"user_id": user["id"], "church_id": church_id}).mappings().first()
        if not link:
            log.warning("[auth] user %s denied church %s", user["id"], church_id)
            raise HTTPException(status_code=403, detail="Forbidden")
        role = link["role"] or role

    return ReportContext(
        church_id=church_id,
        today=today_local(),
        user_id=str(user["id"]),
        is_admin=bool(user["is_super_admin"]) or role in ("admin", "super_admin"),
    )


def require_admin(ctx: ReportContext = Depends(get_report_context)) -> ReportContext:
    """Viewers can read reports; only admins can change data."""
    if not ctx.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return ctx
