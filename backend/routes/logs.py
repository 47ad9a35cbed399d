# backend/routes/logs.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional, Any
from datetime import datetime

from database import get_db
from models.log import Log
from schemas.base import ORMBase, PageMeta
from schemas.user import TokenData
from utils.query import apply_time_range, page_params, paginate
from utils.tokenJWT import role_required

router = APIRouter(prefix="/api/logs", tags=["Logs"])

# --- SCHEMAS ---
class LogResponse(ORMBase):
    id: int
    actor: Optional[str] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    ts: datetime
    meta: Optional[Any] = None

class LogPage(PageMeta):
    data: List[LogResponse]

# --- ENDPOINT ---
@router.get("", response_model=LogPage)
def get_logs(
    page: Optional[str] = Query(None),
    perpage: Optional[str] = Query(None),
    action: Optional[str] = Query(None, description="Filter by action"),
    actor: Optional[str] = Query(None, description="Filter by actor name"),
    resource: Optional[str] = Query(None, description="Filter by resource"),
    status: Optional[str] = Query(None, description="Filter by status (SUCCESS/FAIL)"),
    time: Optional[str] = Query(None, description="Time range: <from>,<to>"),
    db: Session = Depends(get_db),
    current_user: TokenData = Depends(role_required("admin")),
):
    page, perpage = page_params(page, perpage)
    query = db.query(Log)

    if action:
        query = query.filter(Log.action.ilike(f"%{action}%"))
    if actor:
        query = query.filter(Log.actor.ilike(f"%{actor}%"))
    if resource:
        query = query.filter(Log.resource.ilike(f"%{resource}%"))
    if status:
        query = query.filter(Log.status == status.upper())
    query = apply_time_range(query, Log.ts, time)

    # Newest first
    query = query.order_by(Log.ts.desc(), Log.id.desc())
    logs, total, pages = paginate(query, page, perpage)

    return {
        "total": total, "page": page, "perpage": perpage, "pages": pages,
        "sort": "ts", "order": "desc", "data": logs,
    }
