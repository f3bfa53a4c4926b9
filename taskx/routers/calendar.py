"""Google Calendar integration endpoints.

``GET /integrate`` is the OAuth redirect target and answers with a browser
redirect back to the web app (``?integration=success`` or
``?integration=error``) instead of a JSON error.
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from ..config import APP_URL
from ..database import get_db
from ..deps import get_calendar_connector
from ..errors import TaskXError
from ..models import User
from ..schemas.calendar import AuthorizationUrl, DeleteEventRequest, SyncCalendarRequest, SyncCalendarResponse
from ..services.calendar import CalendarConnector
from .auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/integrate/start", response_model=AuthorizationUrl)
def start_integration(
    current_user: User = Depends(get_current_user),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    """Google consent URL for the current user."""
    return AuthorizationUrl(url=connector.authorization_url(state=current_user.id))


@router.get("/integrate")
def connect_calendar(
    code: str = Query(default=""),
    state: str = Query(default=""),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    if not code or not state:
        logger.info("Integration callback without %s", "code" if not code else "state")
        return RedirectResponse(f"{APP_URL}/?integration=error", status_code=302)

    try:
        connector.connect(db, user_id=state, code=code)
    except TaskXError as exc:
        logger.error("Integration error for user %s: %s (%s)", state, exc.message, exc.details)
        return RedirectResponse(f"{APP_URL}/?integration=error", status_code=302)
    return RedirectResponse(f"{APP_URL}/?integration=success", status_code=302)


@router.post("/sync-calendar", response_model=SyncCalendarResponse)
def sync_calendar(
    payload: SyncCalendarRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    """Create or update the calendar event for a task; the caller stores the returned id."""
    event_id = connector.sync_task(
        db,
        current_user,
        todo_id=payload.todo_id,
        text=payload.text,
        deadline=payload.deadline,
        calendar_event_id=payload.calendar_event_id,
    )
    return SyncCalendarResponse(event_id=event_id)


@router.delete("/delete-calendar-event")
def delete_calendar_event(
    payload: DeleteEventRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    connector.delete_event(db, current_user, payload.event_id)
    return {"success": True}


@router.post("/disconnect-calendar")
def disconnect_calendar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    connector.disconnect(db, current_user)
    return {"success": True}
