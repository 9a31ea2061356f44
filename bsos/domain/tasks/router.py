"""Tasks router - FastAPI endpoints for cleaning tasks"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...exceptions import IntegrationNotConfiguredError, InvalidTransitionError, PlatformAPIError
from ...schemas import AssignmentResult
from ...services.orchestrator import IntegrationOrchestrator, get_orchestrator
from .schemas import TaskResponse, TaskStatusUpdate
from .service import TaskService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["Tasks"])


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    """Dependency injection for TaskService"""
    return TaskService(db)


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    property_id: Optional[str] = None,
    cleaner_id: Optional[str] = None,
    status: Optional[str] = None,
    scheduled_date: Optional[date] = Query(None, alias="date"),
    service: TaskService = Depends(get_task_service),
):
    """List cleaning tasks with optional filters"""
    return service.list_tasks(property_id, cleaner_id, status, scheduled_date)


@router.post("/auto-assign", response_model=list[AssignmentResult])
async def auto_assign_pending_tasks(
    service: TaskService = Depends(get_task_service),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """Assign every pending task to the best available cleaner"""
    try:
        return await orchestrator.auto_assign_cleaners(service.db, service.get_pending_tasks())
    except IntegrationNotConfiguredError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PlatformAPIError as e:
        logger.error(f"❌ Auto-assign failed: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: int, service: TaskService = Depends(get_task_service)):
    return service.get_task(task_id)


@router.patch("/{task_id}/status", response_model=TaskResponse)
async def update_task_status(
    task_id: int,
    body: TaskStatusUpdate,
    service: TaskService = Depends(get_task_service),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """Change a task's status and mirror it in Taskbird"""
    try:
        task = service.change_status(task_id, body.status, body.cleaner_id, body.cleaner_name)
    except InvalidTransitionError as e:
        service.db.rollback()
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        service.db.rollback()
        raise HTTPException(status_code=400, detail=str(e)) from e

    await orchestrator.sync_task_status(task)
    return task


@router.post("/{task_id}/auto-assign", response_model=AssignmentResult)
async def auto_assign_task(
    task_id: int,
    service: TaskService = Depends(get_task_service),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    """Assign one task to the best available cleaner"""
    task = service.get_task(task_id)
    try:
        results = await orchestrator.auto_assign_cleaners(service.db, [task])
    except IntegrationNotConfiguredError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except PlatformAPIError as e:
        logger.error(f"❌ Auto-assign failed: {e}")
        raise HTTPException(status_code=502, detail=str(e)) from e
    return results[0]
