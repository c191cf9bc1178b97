from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from launchcheck.schemas import Alert, AlertListResponse
from models import AlertRecord, User
from services.users import get_caller_id, get_owned_analysis

router = APIRouter(prefix="/alerts", tags=["alerts"])

MAX_PAGE_SIZE = 100


def alert_from_record(record: AlertRecord) -> Alert:
    """Convert a stored alert row to the API model."""
    return Alert(
        id=record.id,
        user_id=record.user.external_id,
        analysis_id=str(record.analysis_id),
        category=record.category,
        severity=record.severity,
        title=record.title,
        body=record.body,
        what_changed=record.what_changed,
        next_step=record.next_step,
        created_at=record.created_at,
        read_at=record.read_at,
    )


@router.get("", response_model=AlertListResponse)
def list_alerts(
    analysis_id: int | None = None,
    limit: int = 20,
    offset: int = 0,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """List the caller's alerts, newest first, optionally for one analysis."""
    limit = max(1, min(limit, MAX_PAGE_SIZE))
    offset = max(0, offset)

    if analysis_id is not None:
        get_owned_analysis(db, analysis_id, caller_id)

    user = db.query(User).filter(User.external_id == caller_id).first()
    if not user:
        return AlertListResponse(alerts=[], total=0)

    query = db.query(AlertRecord).filter(AlertRecord.user_id == user.id)
    if analysis_id is not None:
        query = query.filter(AlertRecord.analysis_id == analysis_id)

    total = query.count()
    records = (
        query.order_by(AlertRecord.created_at.desc(), AlertRecord.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return AlertListResponse(alerts=[alert_from_record(r) for r in records], total=total)


@router.patch("/{alert_id}/read", response_model=Alert)
def mark_alert_read(
    alert_id: int,
    caller_id: str = Depends(get_caller_id),
    db: Session = Depends(get_db),
):
    """Mark an alert as read. The first read time is kept."""
    record = db.query(AlertRecord).filter(AlertRecord.id == alert_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="Alert not found")
    if record.user.external_id != caller_id:
        raise HTTPException(status_code=403, detail="You don't have access to this alert")

    alert = alert_from_record(record).mark_read(datetime.utcnow())
    if record.read_at is None:
        record.read_at = alert.read_at
        db.commit()
        db.refresh(record)

    return alert_from_record(record)
