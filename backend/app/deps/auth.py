from fastapi import Depends, Header, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Callable

from app.core.database import get_db
from app.core.errors import Forbidden, NotFound, PendingApproval, Unauthorized
from app.core.security import decode_token
from app.models.user import User

class CurrentUser(BaseModel):
    id: str
    role: str

def get_current_user(request: Request, authorization: str | None = Header(default=None)) -> CurrentUser:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthorized("Not authorized to access this route")
    token = authorization.split(" ", 1)[1].strip()
    try:
        data = decode_token(token, expected_type="access")
    except Exception:
        raise Unauthorized("Token is not valid")
    user = CurrentUser(id=str(data.get("sub", "")), role=data.get("role", "student"))
    # picked up by the activity logger once the response is out
    request.state.user = user
    return user

def require_role(*allowed: str) -> Callable:
    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if allowed and user.role not in allowed:
            raise Forbidden(f"User role '{user.role}' is not authorized to access this route")
        return user
    return checker

def get_current_student(
    user: CurrentUser = Depends(require_role("student")),
    db: Session = Depends(get_db),
) -> User:
    """Student routes act on the stored account, which must exist and be approved."""
    account = db.get(User, user.id)
    if not account:
        raise NotFound("Student not found")
    if not account.is_approved:
        raise PendingApproval()
    return account
