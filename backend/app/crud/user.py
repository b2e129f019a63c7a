from __future__ import annotations
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import Conflict, InvalidCredentials, NotFound, PendingApproval, RoleMismatch, WrongRole
from app.core.security import hash_password, verify_password
from app.metrics import logins_total, moderation_decisions_total, signups_total
from app.models.project import Project
from app.models.user import User, Role, empty_profile
from app.utils.clock import utcnow

log = logging.getLogger(__name__)

def normalize_email(email: str) -> str:
    return (email or "").strip().lower()

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()

def _save_new(db: Session, user: User, message: str) -> User:
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(message)
    db.refresh(user)
    signups_total.labels(role=user.role).inc()
    return user

def signup_student(
    db: Session,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    student_id: str,
    department: str = "",
) -> User:
    """New students always start unapproved."""
    email = normalize_email(email)
    message = "User already exists with this email or student ID"
    existing = db.query(User).filter(or_(User.email == email, User.student_id == student_id)).first()
    if existing:
        raise Conflict(message)
    user = User(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=Role.STUDENT.value,
        student_id=student_id.strip(),
        department=department or "",
        is_approved=False,
        profile=empty_profile(),
    )
    return _save_new(db, user, message)

def signup_admin(db: Session, first_name: str, last_name: str, email: str, password: str) -> User:
    """Admins are approved on creation."""
    email = normalize_email(email)
    if db.query(User).filter(User.email == email, User.role == Role.ADMIN.value).first():
        raise Conflict("Admin already exists with this email")
    # email is unique across roles at the storage level
    if get_user_by_email(db, email):
        raise Conflict("An account already exists with this email")
    user = User(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=Role.ADMIN.value,
        is_approved=True,
        profile=empty_profile(),
    )
    return _save_new(db, user, "Admin already exists with this email")

def authenticate(db: Session, email: str, password: str, role: str) -> User:
    """Checks run in a fixed order: account, role, approval, password."""
    user = get_user_by_email(db, email)
    if not user:
        logins_total.labels(role=role, outcome="failure").inc()
        raise InvalidCredentials()
    if user.role != role:
        logins_total.labels(role=role, outcome="failure").inc()
        raise RoleMismatch(user.role)
    if not user.is_approved:
        logins_total.labels(role=role, outcome="failure").inc()
        raise PendingApproval()
    if not verify_password(user.password_hash, password):
        logins_total.labels(role=role, outcome="failure").inc()
        raise InvalidCredentials()
    logins_total.labels(role=role, outcome="success").inc()
    return user

def get_student(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("Student not found")
    if user.role != Role.STUDENT.value:
        raise WrongRole("User is not a student")
    return user

def list_students(db: Session, pending_only: bool = False) -> List[User]:
    q = db.query(User).filter(User.role == Role.STUDENT.value)
    if pending_only:
        q = q.filter(User.is_approved == False)  # noqa: E712
    return q.order_by(User.created_at.desc()).all()

def approve_student(db: Session, user_id: str) -> User:
    """false -> true once; approving an approved student changes nothing."""
    user = get_student(db, user_id)
    if user.is_approved:
        return user
    user.is_approved = True
    db.commit()
    db.refresh(user)
    moderation_decisions_total.labels(kind="student", decision="approved").inc()
    return user

def approve_students(db: Session, user_ids: Optional[List[str]] = None) -> List[User]:
    """Approve the listed students, or every pending one when no list is given."""
    q = db.query(User).filter(User.role == Role.STUDENT.value, User.is_approved == False)  # noqa: E712
    if user_ids is not None:
        q = q.filter(User.id.in_(user_ids))
    rows = q.all()
    for u in rows:
        u.is_approved = True
    db.commit()
    if rows:
        moderation_decisions_total.labels(kind="student", decision="approved").inc(len(rows))
    return rows

def delete_student(db: Session, user_id: str) -> int:
    """
    Remove a student and every project they own. Projects go first, then the
    account, as two separate commits; a failure between them leaves the
    account without projects.
    """
    user = get_student(db, user_id)
    removed = db.query(Project).filter(Project.student_id == user.id).delete(synchronize_session=False)
    db.commit()
    db.delete(user)
    db.commit()
    moderation_decisions_total.labels(kind="student", decision="deleted").inc()
    log.info("[admin] deleted student %s and %d project(s)", user_id, removed)
    return removed

def save_profile(db: Session, user: User, data: dict) -> dict:
    """Replaces the whole profile sub-record."""
    links = data.get("socialLinks") or {}
    user.profile = {
        "bio": data.get("bio") or "",
        "skills": data.get("skills") or "",
        "specialization": data.get("specialization") or "",
        "contactEmail": data.get("contactEmail") or "",
        "portfolioUrl": data.get("portfolioUrl") or "",
        "socialLinks": {
            "instagram": links.get("instagram") or "",
            "linkedin": links.get("linkedin") or "",
            "behance": links.get("behance") or "",
        },
        "updatedAt": utcnow().isoformat(),
    }
    db.commit()
    db.refresh(user)
    return user.profile
