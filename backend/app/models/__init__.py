from .user import User, Role, DEPARTMENTS
from .project import Project, ProjectStatus, CATEGORIES
from .activity import ActivityLog, ActivityAction, ACTIONS
