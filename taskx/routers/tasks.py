"""Task CRUD.

Every mutation that touches a deadline is mirrored to the user's Google
Calendar when one is connected. Calendar failures are logged and reported in
the ``X-Calendar-Sync: failed`` response header; the task change itself is
never rolled back.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_calendar_connector
from ..errors import TaskXError
from ..models import Task as TaskModel, User
from ..schemas.task import Task as TaskSchema, TaskComplete, TaskCreate, TaskUpdate
from ..services.calendar import CalendarConnector
from ..services.recurrence import next_deadline
from .auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()

SYNC_HEADER = "X-Calendar-Sync"


def _get_user_task(db: Session, task_id: str, current_user: User) -> TaskModel:
    task = db.query(TaskModel).filter(TaskModel.id == task_id, TaskModel.user_id == current_user.id).first()
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _sync_calendar(db: Session, connector: CalendarConnector, user: User, task: TaskModel) -> bool:
    """Mirror the task's deadline to the calendar. Returns False if the calendar call failed."""
    if not user.calendar_connected:
        return True

    try:
        if task.deadline is not None:
            task.calendar_event_id = connector.sync_task(
                db, user, task.id, task.text, task.deadline, task.calendar_event_id
            )
        elif task.calendar_event_id:
            connector.delete_event(db, user, task.calendar_event_id)
            task.calendar_event_id = None
        else:
            return True
    except TaskXError as exc:
        logger.warning("Calendar sync failed for task %s: %s (%s)", task.id, exc.message, exc.details)
        return False

    db.add(task)
    db.commit()
    db.refresh(task)
    return True


def _mark_sync(response: Response, ok: bool) -> None:
    if not ok:
        response.headers[SYNC_HEADER] = "failed"


def _spawn_next_occurrence(db: Session, task: TaskModel) -> Optional[TaskModel]:
    deadline = next_deadline(task.deadline, task.recurrence) if task.deadline else None
    if deadline is None:
        return None

    follow_up = TaskModel(
        text=task.text,
        priority=task.priority,
        project=task.project,
        deadline=deadline,
        recurrence=task.recurrence,
        user_id=task.user_id,
    )
    db.add(follow_up)
    db.commit()
    db.refresh(follow_up)
    logger.info("Created next occurrence %s of recurring task %s", follow_up.id, task.id)
    return follow_up


@router.get("/tasks", response_model=List[TaskSchema])
def get_tasks(
    skip: int = 0,
    limit: int = 100,
    status: str = "all",
    project: Optional[str] = None,
    sort: str = "created_at",
    order: str = "desc",
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get all tasks for the current user with optional filtering and sorting."""
    query = db.query(TaskModel).filter(TaskModel.user_id == current_user.id)

    if status == "completed":
        query = query.filter(TaskModel.completed.is_(True))
    elif status == "pending":
        query = query.filter(TaskModel.completed.is_(False))
    elif status != "all":
        raise HTTPException(status_code=422, detail="Invalid status filter")

    if project is not None:
        query = query.filter(TaskModel.project == project)

    if order not in ("asc", "desc"):
        raise HTTPException(status_code=422, detail="Invalid sort order")

    sort_columns = {
        "created_at": TaskModel.created_at,
        "deadline": TaskModel.deadline,
        "priority": TaskModel.priority,
        "text": TaskModel.text,
    }
    column = sort_columns.get(sort)
    if column is None:
        raise HTTPException(status_code=422, detail="Invalid sort field")
    query = query.order_by(column.asc() if order == "asc" else column.desc())

    return query.offset(skip).limit(limit).all()


@router.post("/tasks", response_model=TaskSchema, status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    """Create a new task, mirroring its deadline to the calendar."""
    db_task = TaskModel(
        text=task.text,
        completed=task.completed,
        completed_at=datetime.utcnow() if task.completed else None,
        priority=task.priority,
        project=task.project,
        deadline=task.deadline,
        recurrence=task.recurrence,
        user_id=current_user.id,
    )
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    if db_task.deadline is not None:
        _mark_sync(response, _sync_calendar(db, connector, current_user, db_task))
    return db_task


@router.get("/tasks/{task_id}", response_model=TaskSchema)
def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get a specific task by ID."""
    return _get_user_task(db, task_id, current_user)


@router.put("/tasks/{task_id}", response_model=TaskSchema)
def update_task(
    task_id: str,
    task_update: TaskUpdate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    """Update a specific task.

    A new deadline is a new deadline instance: its reminder has not been sent.
    """
    task = _get_user_task(db, task_id, current_user)
    old_text, old_deadline = task.text, task.deadline

    update_data = task_update.model_dump(exclude_unset=True)
    for field in ("text", "completed", "priority"):
        if field in update_data and update_data[field] is None:
            raise HTTPException(status_code=422, detail=f"{field} cannot be null")
    for field, value in update_data.items():
        setattr(task, field, value)

    if "completed" in update_data:
        task.completed_at = datetime.utcnow() if task.completed else None
    deadline_changed = task.deadline != old_deadline
    if deadline_changed:
        task.reminder_sent = False
    task.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(task)

    if deadline_changed or (task.text != old_text and task.deadline is not None):
        _mark_sync(response, _sync_calendar(db, connector, current_user, task))
    return task


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    """Delete a specific task and, best effort, its calendar event."""
    task = _get_user_task(db, task_id, current_user)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)

    if task.calendar_event_id:
        try:
            connector.delete_event(db, current_user, task.calendar_event_id)
        except TaskXError as exc:
            logger.warning(
                "Could not delete calendar event %s for task %s: %s (%s)",
                task.calendar_event_id, task.id, exc.message, exc.details,
            )
            _mark_sync(response, False)

    db.delete(task)
    db.commit()
    return response


@router.patch("/tasks/{task_id}/complete", response_model=TaskSchema)
def mark_task_complete(
    task_id: str,
    response: Response,
    payload: Optional[TaskComplete] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    connector: CalendarConnector = Depends(get_calendar_connector),
):
    """Mark a task as complete; completing a recurring task schedules the next one."""
    task = _get_user_task(db, task_id, current_user)

    was_completed = task.completed
    task.completed = True if payload is None else payload.completed
    task.completed_at = datetime.utcnow() if task.completed else None
    task.updated_at = datetime.utcnow()

    db.commit()
    db.refresh(task)

    if task.completed and not was_completed:
        follow_up = _spawn_next_occurrence(db, task)
        if follow_up is not None:
            _mark_sync(response, _sync_calendar(db, connector, current_user, follow_up))
    return task
