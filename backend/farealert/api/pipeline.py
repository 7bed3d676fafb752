from datetime import timedelta
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from farealert.database import get_db, utc_now
from farealert.models import AlertEvent, Destination, PriceObservation, QueuedMessage, Subscription
from farealert.models.queued_message import STATUS_FAILED, STATUS_PENDING, STATUS_SENT
from farealert.scheduler import get_scheduler_status, run_price_check
from farealert.schemas.pipeline import PipelineOverview

router = APIRouter()


@router.post("/run")
async def trigger_price_check() -> Dict:
    """Run one price check now and return its per-destination results."""
    return await run_price_check()


@router.get("/overview", response_model=PipelineOverview)
async def pipeline_overview(db: Session = Depends(get_db)):
    """Counts behind the admin monitoring screens."""
    week_ago = utc_now() - timedelta(days=7)

    alerts_total = db.query(func.count(AlertEvent.id)).scalar() or 0
    opened = db.query(func.count(AlertEvent.id)).filter(AlertEvent.email_opened == True).scalar() or 0
    clicked = db.query(func.count(AlertEvent.id)).filter(AlertEvent.link_clicked == True).scalar() or 0

    queued_by_status = {status: 0 for status in (STATUS_PENDING, STATUS_SENT, STATUS_FAILED)}
    for status, count in db.query(QueuedMessage.status, func.count(QueuedMessage.id)).group_by(QueuedMessage.status):
        queued_by_status[status] = count

    return PipelineOverview(
        active_destinations=db.query(func.count(Destination.id)).filter(Destination.is_active == True).scalar() or 0,
        observations=db.query(func.count(PriceObservation.id)).scalar() or 0,
        active_subscriptions=db.query(func.count(Subscription.id)).filter(Subscription.is_active == True).scalar() or 0,
        alerts_total=alerts_total,
        alerts_last_7_days=db.query(func.count(AlertEvent.id)).filter(AlertEvent.created_at >= week_ago).scalar() or 0,
        queued_by_status=queued_by_status,
        enqueue_failures=db.query(func.count(AlertEvent.id)).filter(AlertEvent.enqueue_failed == True).scalar() or 0,
        open_rate=round(opened / alerts_total * 100, 1) if alerts_total else None,
        click_rate=round(clicked / alerts_total * 100, 1) if alerts_total else None,
    )


@router.get("/scheduler")
async def scheduler_status() -> Dict:
    return get_scheduler_status()
