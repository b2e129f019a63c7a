import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.crud.project import public_categories, public_projects

log = logging.getLogger(__name__)

router = APIRouter()

@router.get("/projects")
def gallery_projects(
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(5, ge=1, le=100),
    db: Session = Depends(get_db),
):
    rows, pagination = public_projects(db, category=category, search=search, page=page, limit=limit)
    log.debug("[gallery] %d of %d projects (category=%s search=%s)", len(rows), pagination["total"], category, search)
    return {"success": True, "data": {"projects": [p.to_dict() for p in rows], "pagination": pagination}}

@router.get("/projects/categories")
def gallery_categories(db: Session = Depends(get_db)):
    return {"success": True, "data": {"categories": public_categories(db)}}
