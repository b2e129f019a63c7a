from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
import enum

from app.core.database import Base
from app.utils.clock import utcnow

class ActivityAction(str, enum.Enum):
    # student
    STUDENT_LOGIN = "student_login"
    STUDENT_LOGOUT = "student_logout"
    STUDENT_SIGNUP = "student_signup"
    STUDENT_PROFILE_UPDATE = "student_profile_update"
    PROJECT_SUBMISSION = "project_submission"
    PROJECT_VIEW = "project_view"
    PROJECT_EDIT = "project_edit"
    PROJECT_DELETE = "project_delete"
    # admin
    ADMIN_LOGIN = "admin_login"
    ADMIN_LOGOUT = "admin_logout"
    STUDENT_APPROVAL = "student_approval"
    STUDENT_REJECTION = "student_rejection"
    BULK_STUDENT_APPROVAL = "bulk_student_approval"
    PROJECT_APPROVAL = "project_approval"
    PROJECT_REJECTION = "project_rejection"
    PROJECT_REVIEW = "project_review"
    ANALYTICS_VIEW = "analytics_view"
    DASHBOARD_VIEW = "dashboard_view"

ACTIONS = frozenset(a.value for a in ActivityAction)
RESOURCE_TYPES = frozenset({"user", "project", "system", "analytics"})

class ActivityLog(Base):
    """Append-only; rows are never updated or deleted by the application."""
    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("ix_activity_user_ts", "user_id", "timestamp"),
        Index("ix_activity_action_ts", "action", "timestamp"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(32), nullable=False)      # no FK: entries outlive deleted accounts
    action = Column(String(64), nullable=False)
    description = Column(String(1000), nullable=False)
    resource_type = Column(String(32), nullable=True)
    resource_id = Column(String(64), nullable=True)
    route = Column(String(512), nullable=True)
    details = Column(JSON, default=dict)              # method, route, statusCode, body, response, ...
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(512), nullable=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
