from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.errors import NotFound
from app.core.security import create_access_token
from app.crud.user import authenticate, signup_admin, signup_student
from app.deps.auth import CurrentUser, get_current_user
from app.models.user import User, DEPARTMENTS

router = APIRouter()

class _In(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

class AdminSignupIn(_In):
    first_name: str = Field(alias="firstName", min_length=2)
    last_name: str = Field(alias="lastName", min_length=2)
    email: EmailStr
    password: str = Field(min_length=6)

class StudentSignupIn(AdminSignupIn):
    student_id: str = Field(alias="studentId", min_length=1)
    department: str

    @field_validator("department")
    @classmethod
    def _known_department(cls, v: str) -> str:
        if v not in DEPARTMENTS:
            raise ValueError("Please select a valid department")
        return v

class LoginIn(_In):
    email: EmailStr
    password: str = Field(min_length=1)
    role: Literal["student", "admin"]

def _session_payload(request: Request, user: User) -> dict:
    token = create_access_token(user.id, user.role)
    # lets the activity logger attribute public auth calls
    request.state.user = CurrentUser(id=user.id, role=user.role)
    return {"user": user.to_dict(), "token": token}

@router.post("/student/signup", status_code=201)
def student_signup(body: StudentSignupIn, request: Request, db: Session = Depends(get_db)):
    user = signup_student(
        db, body.first_name, body.last_name, body.email, body.password,
        body.student_id, body.department,
    )
    return {
        "success": True,
        "message": "Student account created successfully. Waiting for admin approval.",
        "data": _session_payload(request, user),
    }

@router.post("/admin/signup", status_code=201)
def admin_signup(body: AdminSignupIn, request: Request, db: Session = Depends(get_db)):
    user = signup_admin(db, body.first_name, body.last_name, body.email, body.password)
    return {
        "success": True,
        "message": "Admin account created successfully",
        "data": _session_payload(request, user),
    }

@router.post("/login")
def login(body: LoginIn, request: Request, db: Session = Depends(get_db)):
    user = authenticate(db, body.email, body.password, body.role)
    return {"success": True, "message": "Login successful", "data": _session_payload(request, user)}

@router.post("/logout")
def logout(user: CurrentUser = Depends(get_current_user)):
    # tokens are stateless; the client drops its copy
    return {"success": True, "message": "Logged out"}

@router.get("/me")
def me(user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    account: Optional[User] = db.get(User, user.id)
    if not account:
        raise NotFound("User not found")
    return {"success": True, "data": {"user": account.to_dict()}}
