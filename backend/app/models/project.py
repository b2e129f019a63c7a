from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.models.user import new_id
from app.utils.clock import utcnow

class ProjectStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

CATEGORIES = (
    "fashion-design",
    "textile-design",
    "accessories",
    "couture",
    "sustainable-fashion",
    "traditional-wear",
)

class Project(Base):
    __tablename__ = "projects"
    __table_args__ = (
        Index("ix_projects_status_created", "status", "created_at"),
        Index("ix_projects_status_category", "status", "category"),
        Index("ix_projects_student_status", "student_id", "status"),
    )

    id = Column(String(32), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(64), nullable=False)
    materials = Column(Text, default="")
    inspiration = Column(Text, default="")
    images = Column(JSON, default=list)          # [{"url", "publitio_id", "filename", "size", "format", ...}]
    student_id = Column(String(32), ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String(16), nullable=False, default=ProjectStatus.PENDING.value)
    rejection_reason = Column(Text, nullable=True)
    views = Column(Integer, nullable=False, default=0)
    approved_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    student = relationship("User", lazy="joined")

    def to_dict(self) -> dict:
        def _iso(dt):
            return dt.isoformat() if dt else None
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "materials": self.materials or "",
            "inspiration": self.inspiration or "",
            "images": list(self.images or []),
            "student": self.student.summary() if self.student else self.student_id,
            "status": self.status,
            "rejectionReason": self.rejection_reason,
            "views": self.views or 0,
            "approvedAt": _iso(self.approved_at),
            "rejectedAt": _iso(self.rejected_at),
            "reviewedAt": _iso(self.reviewed_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }
