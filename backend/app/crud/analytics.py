from __future__ import annotations
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from app.models.activity import ActivityLog
from app.models.project import Project, ProjectStatus
from app.models.user import User, Role, DEPARTMENTS
from app.utils.clock import iso, local_midnight_utc, utcnow

TREND_DAYS = 30
TOP_CATEGORIES = 10

def approval_rate(approved: int, total: int) -> float:
    """approved/total as a percentage, one decimal; 0 when there is nobody to approve."""
    if not total:
        return 0
    return round(approved / total * 100, 1)

def _day(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d")

def _approved_sum():
    return func.sum(case((User.is_approved == True, 1), else_=0))  # noqa: E712

# -------------------------- students --------------------------

def student_statistics(db: Session) -> Dict[str, int]:
    total = db.query(func.count(User.id)).filter(User.role == Role.STUDENT.value).scalar() or 0
    approved = (
        db.query(func.count(User.id))
        .filter(User.role == Role.STUDENT.value, User.is_approved == True)  # noqa: E712
        .scalar() or 0
    )
    return {"totalPending": total - approved, "totalApproved": approved, "totalStudents": total}

def students_by_department(db: Session) -> List[Dict[str, Any]]:
    rows = (
        db.query(User.department, func.count(User.id), _approved_sum())
        .filter(User.role == Role.STUDENT.value)
        .group_by(User.department)
        .all()
    )
    out = [
        {"department": dept or "", "count": int(cnt), "approved": int(appr or 0), "pending": int(cnt) - int(appr or 0)}
        for dept, cnt, appr in rows
    ]
    out.sort(key=lambda r: (-r["count"], r["department"]))
    return out

def registration_trend(db: Session, days: int = TREND_DAYS, role: Optional[str] = Role.STUDENT.value) -> List[Dict[str, Any]]:
    since = utcnow() - timedelta(days=days)
    q = db.query(User.created_at).filter(User.created_at >= since)
    if role:
        q = q.filter(User.role == role)
    counts = Counter(_day(ts) for (ts,) in q.all())
    return [{"date": d, "count": counts[d]} for d in sorted(counts)]

def student_analytics(db: Session) -> Dict[str, Any]:
    return {
        "studentsByDepartment": students_by_department(db),
        "registrationTrends": registration_trend(db),
        "lastUpdated": iso(utcnow()),
    }

# -------------------------- projects --------------------------

def project_statistics(db: Session) -> Dict[str, int]:
    counts = dict(db.query(Project.status, func.count(Project.id)).group_by(Project.status).all())
    return {
        "totalPending": int(counts.get(ProjectStatus.PENDING.value, 0)),
        "totalApproved": int(counts.get(ProjectStatus.APPROVED.value, 0)),
        "totalRejected": int(counts.get(ProjectStatus.REJECTED.value, 0)),
        "totalProjects": int(sum(counts.values())),
    }

def projects_by_status(db: Session) -> Dict[str, Dict[str, int]]:
    rows = (
        db.query(Project.status, func.count(Project.id), func.coalesce(func.sum(Project.views), 0))
        .group_by(Project.status)
        .all()
    )
    return {status: {"count": int(cnt), "totalViews": int(views or 0)} for status, cnt, views in rows}

def top_categories(db: Session, limit: int = TOP_CATEGORIES) -> List[Dict[str, Any]]:
    """Approved projects per category, largest first, with average views."""
    cnt = func.count(Project.id)
    rows = (
        db.query(Project.category, cnt, func.avg(Project.views))
        .filter(Project.status == ProjectStatus.APPROVED.value)
        .group_by(Project.category)
        .order_by(cnt.desc(), Project.category.asc())
        .limit(limit)
        .all()
    )
    return [
        {"category": cat, "count": int(c), "avgViews": round(float(avg or 0), 2)}
        for cat, c, avg in rows
    ]

# -------------------------- platform --------------------------

def user_stats(db: Session) -> Dict[str, Dict[str, int]]:
    rows = db.query(User.role, func.count(User.id), _approved_sum()).group_by(User.role).all()
    return {
        role: {"count": int(c), "approved": int(a or 0), "pending": int(c) - int(a or 0)}
        for role, c, a in rows
    }

def department_stats(db: Session) -> List[Dict[str, Any]]:
    """Every known department, including those without students."""
    found = {r["department"]: r for r in students_by_department(db)}
    out = []
    for dept in list(DEPARTMENTS) + sorted(d for d in found if d not in DEPARTMENTS):
        r = found.get(dept, {"count": 0, "approved": 0})
        out.append({
            "department": dept,
            "totalStudents": r["count"],
            "approvedStudents": r["approved"],
            "approvalRate": approval_rate(r["approved"], r["count"]),
        })
    return out

def _registration_split(db: Session, since: datetime) -> List[Dict[str, Any]]:
    buckets: Dict[str, Dict[str, int]] = defaultdict(lambda: {"studentRegistrations": 0, "adminRegistrations": 0})
    for ts, role in db.query(User.created_at, User.role).filter(User.created_at >= since).all():
        key = "adminRegistrations" if role == Role.ADMIN.value else "studentRegistrations"
        buckets[_day(ts)][key] += 1
    return [{"date": d, **buckets[d]} for d in sorted(buckets)]

def _submission_trend(db: Session, since: datetime) -> List[Dict[str, Any]]:
    buckets: Dict[str, Dict[str, int]] = defaultdict(lambda: {"submissions": 0, "approved": 0, "pending": 0})
    for ts, status in db.query(Project.created_at, Project.status).filter(Project.created_at >= since).all():
        b = buckets[_day(ts)]
        b["submissions"] += 1
        if status in ("approved", "pending"):
            b[status] += 1
    return [{"date": d, **buckets[d]} for d in sorted(buckets)]

def active_today(db: Session) -> int:
    return int(
        db.query(func.count(ActivityLog.id))
        .filter(ActivityLog.timestamp >= local_midnight_utc())
        .scalar() or 0
    )

def platform_analytics(db: Session) -> Dict[str, Any]:
    """Everything the admin dashboard shows, computed on demand."""
    users = user_stats(db)
    students = users.get(Role.STUDENT.value, {"count": 0, "approved": 0})
    since = utcnow() - timedelta(days=TREND_DAYS)
    return {
        "overview": {
            "totalUsers": int(db.query(func.count(User.id)).scalar() or 0),
            "totalProjects": int(db.query(func.count(Project.id)).scalar() or 0),
            "activeToday": active_today(db),
            "approvalRate": approval_rate(students["approved"], students["count"]),
        },
        "userStats": users,
        "projectStats": projects_by_status(db),
        "departmentStats": department_stats(db),
        "trends": {
            "registrations": _registration_split(db, since),
            "projects": _submission_trend(db, since),
        },
        "categories": top_categories(db),
        "lastUpdated": iso(utcnow()),
    }

# -------------------------- activity feed --------------------------

def activity_feed(db: Session, page: int = 1, limit: int = 50) -> Dict[str, Any]:
    page = max(1, int(page))
    limit = max(1, min(int(limit), 200))
    total = int(db.query(func.count(ActivityLog.id)).scalar() or 0)
    rows = (
        db.query(ActivityLog, User)
        .outerjoin(User, User.id == ActivityLog.user_id)
        .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    activities = []
    for entry, user in rows:
        activities.append({
            "id": entry.id,
            "user": {
                "id": user.id,
                "firstName": user.first_name,
                "lastName": user.last_name,
                "email": user.email,
                "role": user.role,
            } if user else {"id": entry.user_id},
            "action": entry.action,
            "description": entry.description,
            "resourceType": entry.resource_type,
            "resourceId": entry.resource_id,
            "metadata": entry.details or {},
            "ipAddress": entry.ip_address,
            "userAgent": entry.user_agent,
            "timestamp": iso(entry.timestamp),
        })
    return {
        "activities": activities,
        "pagination": {"current": page, "pages": -(-total // limit), "total": total},
    }
