import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core.config import AuditPolicy
from app.core.database import get_db
from app.crud import analytics
from app.crud.project import approve_project, delete_project, list_projects, reject_project
from app.crud.user import approve_student, approve_students, delete_student, list_students
from app.deps.auth import CurrentUser, require_role
from app.services.activity import log_analytics_view

log = logging.getLogger(__name__)

router = APIRouter()
admin_only = require_role("admin")

ANALYTICS_VIEW_NOTE = "Admin viewed analytics dashboard"

class ProjectDecisionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    project_id: str = Field(alias="projectId", min_length=1)
    reason: Optional[str] = None

class BulkApproveIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    student_ids: Optional[List[str]] = Field(default=None, alias="studentIds")

# -------------------------- students --------------------------

@router.get("/pending-students")
def pending_students(db: Session = Depends(get_db), user: CurrentUser = Depends(admin_only)):
    rows = list_students(db, pending_only=True)
    return {"success": True, "data": {"students": [u.to_dict() for u in rows]}}

@router.get("/all-students")
def all_students(db: Session = Depends(get_db), user: CurrentUser = Depends(admin_only)):
    rows = list_students(db)
    return {"success": True, "data": {"students": [u.to_dict() for u in rows]}}

@router.patch("/approve-student/{student_id}")
def approve_student_account(student_id: str, db: Session = Depends(get_db),
                            user: CurrentUser = Depends(admin_only)):
    student = approve_student(db, student_id)
    return {
        "success": True,
        "message": "Student account approved successfully",
        "data": {"user": student.to_dict()},
    }

@router.patch("/approve-students")
def bulk_approve_students(body: BulkApproveIn, db: Session = Depends(get_db),
                          user: CurrentUser = Depends(admin_only)):
    rows = approve_students(db, body.student_ids)
    return {
        "success": True,
        "message": f"Approved {len(rows)} students",
        "data": {"approved": len(rows), "students": [u.to_dict() for u in rows]},
    }

@router.delete("/delete-student/{student_id}")
def remove_student(student_id: str, db: Session = Depends(get_db),
                   user: CurrentUser = Depends(admin_only)):
    removed = delete_student(db, student_id)
    return {
        "success": True,
        "message": "Student and their projects deleted successfully",
        "data": {"studentId": student_id, "deletedProjects": removed},
    }

# -------------------------- projects --------------------------

@router.get("/pending-projects")
def pending_projects(db: Session = Depends(get_db), user: CurrentUser = Depends(admin_only)):
    rows = list_projects(db, status="pending")
    return {
        "success": True,
        "message": "Pending projects fetched successfully",
        "data": {"projects": [p.to_dict() for p in rows]},
    }

@router.get("/all-projects")
def all_projects(status: Optional[str] = None, db: Session = Depends(get_db),
                 user: CurrentUser = Depends(admin_only)):
    rows = list_projects(db, status=status)
    return {"success": True, "data": {"projects": [p.to_dict() for p in rows]}}

@router.get("/project-stats")
def project_stats(db: Session = Depends(get_db), user: CurrentUser = Depends(admin_only)):
    return {"success": True, "data": {"statistics": analytics.project_statistics(db)}}

@router.patch("/approve-project")
def approve_project_submission(body: ProjectDecisionIn, db: Session = Depends(get_db),
                               user: CurrentUser = Depends(admin_only)):
    p = approve_project(db, body.project_id)
    return {"success": True, "message": "Project approved successfully", "data": {"project": p.to_dict()}}

@router.patch("/reject-project")
def reject_project_submission(body: ProjectDecisionIn, db: Session = Depends(get_db),
                              user: CurrentUser = Depends(admin_only)):
    p = reject_project(db, body.project_id, body.reason)
    return {"success": True, "message": "Project rejected successfully", "data": {"project": p.to_dict()}}

@router.delete("/delete-project/{project_id}")
def remove_project(project_id: str, db: Session = Depends(get_db),
                   user: CurrentUser = Depends(admin_only)):
    delete_project(db, project_id)
    return {"success": True, "message": "Project deleted successfully", "data": {"projectId": project_id}}

# -------------------------- reporting --------------------------

@router.get("/statistics/students")
def student_statistics(db: Session = Depends(get_db), user: CurrentUser = Depends(admin_only)):
    return {"success": True, "data": {"statistics": analytics.student_statistics(db)}}

@router.get("/statistics/analytics")
def student_analytics(db: Session = Depends(get_db), user: CurrentUser = Depends(admin_only)):
    return {"success": True, "data": analytics.student_analytics(db)}

@router.get("/analytics")
@router.get("/analytics/dashboard")
def platform_analytics(request: Request, db: Session = Depends(get_db),
                       user: CurrentUser = Depends(admin_only)):
    policy: AuditPolicy = request.app.state.audit_policy
    log_analytics_view(
        db, user.id,
        description=ANALYTICS_VIEW_NOTE,
        window_sec=policy.dashboard_view_window_sec,
        note_window_sec=policy.analytics_view_window_sec,
    )
    return {"success": True, "data": analytics.platform_analytics(db)}

@router.get("/activity-feed")
@router.get("/analytics/activity-feed")
def activity_feed(page: int = 1, limit: int = 50, db: Session = Depends(get_db),
                  user: CurrentUser = Depends(admin_only)):
    return {"success": True, "data": analytics.activity_feed(db, page, limit)}
