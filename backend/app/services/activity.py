from __future__ import annotations
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from app.models.activity import ActivityLog, ActivityAction, ACTIONS, RESOURCE_TYPES
from app.metrics import activity_entries_total
from app.utils.clock import seconds_ago

log = logging.getLogger(__name__)

DEFAULT_DASHBOARD = "platform_overview"
# log_activity suppresses a repeated description inside this window
HELPER_WINDOW_SEC = 60.0

def record_activity(
    db: Session,
    user_id: str,
    action: str,
    description: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[str] = None,
    route: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ActivityLog:
    """
    Append one activity entry. No dedupe here; callers decide whether a
    recent twin already exists.
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown activity action '{action}'")
    if resource_type is not None and resource_type not in RESOURCE_TYPES:
        raise ValueError(f"Unknown resource type '{resource_type}'")
    row = ActivityLog(
        user_id=user_id,
        action=action,
        description=description,
        resource_type=resource_type,
        resource_id=resource_id,
        route=route,
        details=details or {},
        ip_address=ip_address,
        user_agent=(user_agent or "")[:512] or None,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    activity_entries_total.labels(outcome="written").inc()
    return row

def find_recent(
    db: Session,
    user_id: str,
    action: str,
    since: datetime,
    route: Optional[str] = None,
    description: Optional[str] = None,
) -> Optional[ActivityLog]:
    q = db.query(ActivityLog).filter(
        ActivityLog.user_id == user_id,
        ActivityLog.action == action,
        ActivityLog.timestamp >= since,
    )
    if route is not None:
        q = q.filter(ActivityLog.route == route)
    if description is not None:
        q = q.filter(ActivityLog.description == description)
    return q.order_by(ActivityLog.timestamp.desc()).first()

def log_activity(
    db: Session,
    user_id: str,
    action: str,
    description: str,
    details: Optional[Dict[str, Any]] = None,
    window_sec: float = HELPER_WINDOW_SEC,
    resource_type: Optional[str] = None,
) -> Optional[ActivityLog]:
    """Explicit-call logging; skips when the same description was logged inside the window."""
    try:
        if find_recent(db, user_id, action, seconds_ago(window_sec), description=description):
            activity_entries_total.labels(outcome="suppressed").inc()
            log.debug("[activity] duplicate skipped: %s - %s", action, description)
            return None
        row = record_activity(db, user_id, action, description, resource_type=resource_type, details=details)
        log.info("[activity] logged: %s - %s", action, description)
        return row
    except Exception:
        db.rollback()
        activity_entries_total.labels(outcome="failed").inc()
        log.exception("[activity] manual logging failed for action=%s", action)
        return None

def log_analytics_view(
    db: Session,
    user_id: str,
    dashboard: str = DEFAULT_DASHBOARD,
    description: Optional[str] = None,
    window_sec: float = 120.0,
    note_window_sec: Optional[float] = None,
) -> Optional[ActivityLog]:
    """
    Stricter suppression for dashboard views: one entry per dashboard type per window.
    With note_window_sec, an entry with the same description inside that shorter
    window also suppresses the write. Lookup failures are logged and dropped.
    """
    action = ActivityAction.ANALYTICS_VIEW.value
    try:
        if note_window_sec is not None and description and find_recent(
            db, user_id, action, seconds_ago(note_window_sec), description=description,
        ):
            activity_entries_total.labels(outcome="suppressed").inc()
            return None
        recent = (
            db.query(ActivityLog)
            .filter(
                ActivityLog.user_id == user_id,
                ActivityLog.action == action,
                ActivityLog.timestamp >= seconds_ago(window_sec),
            )
            .all()
        )
    except Exception:
        db.rollback()
        activity_entries_total.labels(outcome="failed").inc()
        log.exception("[activity] analytics view lookup failed")
        return None
    # JSON sub-field match done in Python so it works on every backend
    if any((r.details or {}).get("dashboard") == dashboard for r in recent):
        activity_entries_total.labels(outcome="suppressed").inc()
        return None
    return log_activity(
        db,
        user_id,
        action,
        description or f"Admin viewed {dashboard} analytics",
        details={"dashboard": dashboard},
        window_sec=window_sec,
        resource_type="analytics",
    )
