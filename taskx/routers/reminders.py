import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..deps import get_reminder_dispatcher
from ..schemas.reminders import ReminderSummary
from ..services.reminders import ReminderDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/send-reminders", response_model=ReminderSummary)
def send_reminders(dispatcher: ReminderDispatcher = Depends(get_reminder_dispatcher)):
    """Dispatch due reminders. Unauthenticated; meant to be hit by an external scheduler."""
    logger.info("Reminder run requested")
    try:
        return dispatcher.run()
    except SQLAlchemyError as exc:
        logger.exception("Reminder run failed")
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to process reminders", "details": str(exc)},
        )
