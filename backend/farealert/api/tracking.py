"""
Delivery-tracking callbacks for price alert emails.

Both endpoints always answer with the pixel or the redirect, even when the
queue id is unknown or the update fails, so a tracking problem never breaks
the recipient's email client or link.
"""
import base64
import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from farealert.config import get_settings
from farealert.database import get_db
from farealert.services.notification_queue import NotificationQueue

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()

TRANSPARENT_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


@router.get("/open")
async def track_open(queue_id: int = Query(...), db: Session = Depends(get_db)):
    try:
        NotificationQueue(db).mark_opened(queue_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error tracking email open for message {queue_id}: {e}")

    return Response(
        content=TRANSPARENT_GIF,
        media_type="image/gif",
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


@router.get("/click")
async def track_click(queue_id: int = Query(...), url: str = Query(...), db: Session = Depends(get_db)):
    try:
        NotificationQueue(db).mark_clicked(queue_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error tracking email click for message {queue_id}: {e}")

    if not url.startswith(("http://", "https://")):
        url = settings.base_url
    return RedirectResponse(url, status_code=302)
