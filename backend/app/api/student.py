from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from app.core.config import MAX_UPLOAD_FILES
from app.core.database import get_db
from app.core.errors import PayloadTooLarge, ValidationFailed
from app.crud.project import (
    create_project, get_student_project, list_student_projects, update_project,
)
from app.crud.user import save_profile
from app.deps.auth import get_current_student
from app.models.user import User, empty_profile
from app.services.upload import ImageHost, IncomingFile, get_image_host, relay_images, validate_files

router = APIRouter()

class SocialLinksIn(BaseModel):
    instagram: Optional[str] = ""
    linkedin: Optional[str] = ""
    behance: Optional[str] = ""

class ProfileIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    bio: Optional[str] = ""
    skills: Optional[str] = ""
    specialization: Optional[str] = ""
    contact_email: Optional[str] = Field(default="", alias="contactEmail")
    portfolio_url: Optional[str] = Field(default="", alias="portfolioUrl")
    social_links: Optional[SocialLinksIn] = Field(default=None, alias="socialLinks")

def _read_uploads(images: Optional[List[UploadFile]]) -> List[IncomingFile]:
    """Count and type/size checks happen here, before the image host sees anything."""
    uploads = [u for u in (images or []) if u is not None and u.filename]
    if len(uploads) > MAX_UPLOAD_FILES:
        raise PayloadTooLarge(f"Too many files. Maximum is {MAX_UPLOAD_FILES} images per request.")
    files = [
        IncomingFile(filename=u.filename, content_type=u.content_type or "", data=u.file.read())
        for u in uploads
    ]
    validate_files(files)
    return files

@router.post("/save-profile")
def save_student_profile(body: ProfileIn, student: User = Depends(get_current_student),
                         db: Session = Depends(get_db)):
    data = body.model_dump(by_alias=True)
    data["socialLinks"] = data.get("socialLinks") or {}
    profile = save_profile(db, student, data)
    return {"success": True, "message": "Profile saved successfully", "data": {"profile": profile}}

@router.get("/get-student-profile")
def get_student_profile(student: User = Depends(get_current_student)):
    return {
        "success": True,
        "data": {
            "profile": student.profile or empty_profile(),
            "user": {
                "firstName": student.first_name,
                "lastName": student.last_name,
                "email": student.email,
                "studentId": student.student_id,
                "department": student.department or "",
            },
        },
    }

@router.post("/create-projects", status_code=201)
def create_projects(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    materials: Optional[str] = Form(""),
    inspiration: Optional[str] = Form(""),
    images: Optional[List[UploadFile]] = File(None),
    student: User = Depends(get_current_student),
    host: ImageHost = Depends(get_image_host),
    db: Session = Depends(get_db),
):
    if not title or not description or not category:
        raise ValidationFailed("Title, description, and category are required")
    files = _read_uploads(images)
    if not files:
        raise ValidationFailed("At least one image is required")
    uploaded = relay_images(host, files)
    project = create_project(
        db, student, title, description, category, uploaded,
        materials=materials or "", inspiration=inspiration or "",
    )
    return {
        "success": True,
        "message": "Project created successfully and submitted for approval",
        "data": {"project": project.to_dict()},
    }

@router.patch("/update-project/{project_id}")
def update_student_project(
    project_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    materials: Optional[str] = Form(None),
    inspiration: Optional[str] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    student: User = Depends(get_current_student),
    host: ImageHost = Depends(get_image_host),
    db: Session = Depends(get_db),
):
    project = get_student_project(db, student.id, project_id)
    files = _read_uploads(images)
    new_images = relay_images(host, files) if files else []
    fields: Dict[str, Optional[str]] = {
        "title": title, "description": description, "category": category,
        "materials": materials, "inspiration": inspiration,
    }
    project = update_project(db, project, fields, new_images)
    return {"success": True, "message": "Project updated successfully", "data": {"project": project.to_dict()}}

@router.get("/get-student-projects")
def get_student_projects(status: Optional[str] = None, student: User = Depends(get_current_student),
                         db: Session = Depends(get_db)):
    rows = list_student_projects(db, student.id, status)
    return {"success": True, "data": {"projects": [p.to_dict() for p in rows]}}

@router.get("/get-projects/{project_id}")
def get_project(project_id: str, student: User = Depends(get_current_student),
                db: Session = Depends(get_db)):
    p = get_student_project(db, student.id, project_id)
    return {"success": True, "data": {"project": p.to_dict()}}
