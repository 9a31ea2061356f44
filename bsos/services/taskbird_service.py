import logging
from typing import Optional

from ..exceptions import PlatformAPIError
from ..models import CleaningTask
from .platform_client import PlatformApiService

logger = logging.getLogger(__name__)


class TaskbirdApiService(PlatformApiService):
    """Service for pushing cleaning tasks to Taskbird"""

    platform = "taskbird"
    base_url = "https://api.taskbird.com/v1"
    health_path = "/tasks"

    def _auth_token(self) -> Optional[str]:
        return self.credentials.api_key

    async def create_cleaning_task(self, task: CleaningTask) -> Optional[str]:
        """
        Create the task in Taskbird

        Returns:
            The external id (``taskbird-<id>``), or None when Taskbird rejected
            the task. The local task is kept either way.
        """
        body = {
            "title": f"Limpeza - {task.type}",
            "description": f"Limpeza da propriedade {task.property_id}",
            "due_date": task.scheduled_date.isoformat(),
            "priority": task.priority,
            "estimated_duration": task.estimated_duration,
            "assignee": task.assigned_cleaner_id,
        }
        try:
            response = await self._request("POST", "/tasks", json=body)
            data = response.json()
            return f"taskbird-{data['id']}"
        except (PlatformAPIError, KeyError, ValueError) as e:
            logger.error(f"❌ Failed to create Taskbird task for task {task.id}: {e}")
            return None

    async def update_task_status(self, task_id: str, status: str) -> bool:
        """Mirror a local status change in Taskbird"""
        return await self._succeeds(
            "PATCH",
            f"/tasks/{self._remote_id(task_id)}",
            f"update Taskbird task {task_id} status",
            json={"status": status},
        )

    async def assign_task(self, task_id: str, cleaner_id: str) -> bool:
        """Assign a Taskbird task to a cleaner"""
        return await self._succeeds(
            "POST",
            f"/tasks/{self._remote_id(task_id)}/assign",
            f"assign Taskbird task {task_id}",
            json={"assignee": cleaner_id},
        )

    @staticmethod
    def _remote_id(task_id: str) -> str:
        return task_id.removeprefix("taskbird-")
