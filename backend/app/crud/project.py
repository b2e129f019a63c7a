from __future__ import annotations
import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.errors import Conflict, NotFound, ValidationFailed
from app.metrics import moderation_decisions_total
from app.models.project import Project, ProjectStatus, CATEGORIES
from app.models.user import User
from app.utils.clock import utcnow

log = logging.getLogger(__name__)

def _check_category(category: str) -> str:
    category = (category or "").strip()
    if category not in CATEGORIES:
        raise ValidationFailed(f"Invalid category '{category}'. Must be one of {list(CATEGORIES)}.")
    return category

def create_project(
    db: Session,
    student: User,
    title: str,
    description: str,
    category: str,
    images: List[Dict[str, Any]],
    materials: str = "",
    inspiration: str = "",
) -> Project:
    """Persist a pending project; callers have already relayed the images."""
    if not images:
        raise ValidationFailed("At least one image is required")
    p = Project(
        title=title.strip(),
        description=description,
        category=_check_category(category),
        materials=materials or "",
        inspiration=inspiration or "",
        images=list(images),
        student_id=student.id,
        status=ProjectStatus.PENDING.value,
    )
    db.add(p); db.commit(); db.refresh(p)
    log.info("[projects] created %s for student %s with %d image(s)", p.id, student.id, len(images))
    return p

def get_project(db: Session, project_id: str) -> Project:
    p = db.get(Project, project_id)
    if not p:
        raise NotFound("Project not found")
    return p

def get_student_project(db: Session, student_id: str, project_id: str) -> Project:
    p = (
        db.query(Project)
        .filter(Project.id == project_id, Project.student_id == student_id)
        .first()
    )
    if not p:
        raise NotFound("Project not found")
    return p

def update_project(
    db: Session,
    project: Project,
    fields: Dict[str, Optional[str]],
    new_images: Optional[List[Dict[str, Any]]] = None,
) -> Project:
    """Non-empty fields overwrite; new images are appended to the existing ones."""
    if new_images:
        project.images = list(project.images or []) + list(new_images)
    for key in ("title", "description", "materials", "inspiration"):
        val = fields.get(key)
        if val:
            setattr(project, key, val)
    if fields.get("category"):
        project.category = _check_category(fields["category"])
    project.updated_at = utcnow()
    db.commit(); db.refresh(project)
    return project

def list_student_projects(db: Session, student_id: str, status: Optional[str] = None) -> List[Project]:
    q = db.query(Project).filter(Project.student_id == student_id)
    if status:
        q = q.filter(Project.status == status)
    return q.order_by(Project.created_at.desc()).all()

def list_projects(db: Session, status: Optional[str] = None) -> List[Project]:
    q = db.query(Project)
    if status:
        q = q.filter(Project.status == status)
    return q.order_by(Project.created_at.desc()).all()

def _already_decided(p: Project, target: ProjectStatus) -> bool:
    """True when p already carries target; only pending projects may change."""
    if p.status == target.value:
        return True
    if p.status != ProjectStatus.PENDING.value:
        raise Conflict(f"Project has already been {p.status}")
    return False

def approve_project(db: Session, project_id: str) -> Project:
    p = get_project(db, project_id)
    if _already_decided(p, ProjectStatus.APPROVED):
        return p
    now = utcnow()
    p.status = ProjectStatus.APPROVED.value
    p.rejection_reason = None
    p.approved_at = now
    p.reviewed_at = now
    db.commit(); db.refresh(p)
    moderation_decisions_total.labels(kind="project", decision="approved").inc()
    return p

def reject_project(db: Session, project_id: str, reason: Optional[str]) -> Project:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("A rejection reason is required")
    p = get_project(db, project_id)
    if _already_decided(p, ProjectStatus.REJECTED):
        return p
    now = utcnow()
    p.status = ProjectStatus.REJECTED.value
    p.rejection_reason = reason
    p.rejected_at = now
    p.reviewed_at = now
    db.commit(); db.refresh(p)
    moderation_decisions_total.labels(kind="project", decision="rejected").inc()
    return p

def delete_project(db: Session, project_id: str) -> None:
    p = get_project(db, project_id)
    db.delete(p)
    db.commit()
    moderation_decisions_total.labels(kind="project", decision="deleted").inc()

def public_projects(
    db: Session,
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 5,
) -> Tuple[List[Project], Dict[str, int]]:
    """Approved projects only, newest first, with pagination info."""
    page = max(1, int(page))
    limit = max(1, int(limit))
    q = db.query(Project).filter(Project.status == ProjectStatus.APPROVED.value)
    if category and category != "all":
        q = q.filter(Project.category == category)
    if search:
        q = q.filter(or_(
            Project.title.icontains(search, autoescape=True),
            Project.description.icontains(search, autoescape=True),
            Project.materials.icontains(search, autoescape=True),
            Project.inspiration.icontains(search, autoescape=True),
        ))
    total = q.count()
    rows = (
        q.order_by(Project.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, {"current": page, "pages": math.ceil(total / limit), "total": total}

def public_categories(db: Session) -> List[str]:
    rows = (
        db.query(Project.category)
        .filter(Project.status == ProjectStatus.APPROVED.value)
        .distinct()
        .all()
    )
    return sorted(c for (c,) in rows if c)
