from sqlalchemy import Column, String, Boolean, DateTime, JSON
from uuid import uuid4
import enum

from app.core.database import Base
from app.utils.clock import utcnow

class Role(str, enum.Enum):
    STUDENT = "student"
    ADMIN = "admin"

DEPARTMENTS = (
    "fashion-design",
    "textile-technology",
    "fashion-marketing",
    "pattern-making-garment-construction",
    "fashion-merchandising",
    "apparel-production",
    "fashion-illustration",
    "fashion-styling",
    "accessory-design",
    "footwear-design",
    "fashion-photography",
    "visual-merchandising",
    "sustainable-fashion",
    "fabric-science",
    "costume-design",
    "fashion-communication",
    "fashion-business-management",
    "fashion-technology",
    "jewelry-design",
    "fashion-entrepreneurship",
)

def new_id() -> str:
    return uuid4().hex

def empty_profile() -> dict:
    return {
        "bio": "",
        "skills": "",
        "specialization": "",
        "contactEmail": "",
        "portfolioUrl": "",
        "socialLinks": {"instagram": "", "linkedin": "", "behance": ""},
        "updatedAt": None,
    }

class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)   # stored lowercased
    password_hash = Column(String(256), nullable=False)
    role = Column(String(16), nullable=False, index=True)                  # "student" | "admin"
    student_id = Column(String(64), unique=True, nullable=True)            # NULLs don't collide
    department = Column(String(64), nullable=False, default="")
    is_approved = Column(Boolean, nullable=False, default=False)
    profile = Column(JSON, default=empty_profile)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    def to_dict(self) -> dict:
        """Public representation; never carries the password hash."""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "role": self.role,
            "studentId": self.student_id,
            "department": self.department or "",
            "isApproved": bool(self.is_approved),
            "profile": self.profile or empty_profile(),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def summary(self) -> dict:
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "studentId": self.student_id,
            "department": self.department or "",
            "profile": self.profile or empty_profile(),
        }
