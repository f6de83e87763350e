import logging

from celery import Celery, Task
from celery.signals import worker_ready

from squadron.core.config import settings

logger = logging.getLogger(__name__)


class ResourceTask(Task):
    """
    Base Celery task class for resource lifecycle tasks.

    If the task itself crashes (worker error, unexpected exception outside the
    orchestrator), the resource is demoted from ``deploying`` to ``failed`` so it
    is never left in flight.

    Usage:
        @celery_app.task(base=ResourceTask, bind=True, acks_late=True)
        def deploy_resource_task(self, resource_id: str, project_id: str, user_id: str):
            ...
    """

    fail_on_statuses = ("deploying",)

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """
        Called when the task raises an exception.

        Args:
            exc: The exception raised by the task
            task_id: The unique task ID
            args: The positional arguments passed to the task
            kwargs: The keyword arguments passed to the task
            einfo: The exception info (traceback)
        """
        # The first argument is always resource_id for resource tasks
        resource_id = args[0] if args else kwargs.get("resource_id")

        if resource_id:
            logger.error(
                f"Resource task failed for {resource_id}: {exc}",
                exc_info=einfo.exc_info if einfo else None
            )
            self._mark_resource_failed(resource_id, str(exc))
        else:
            logger.error(f"Task failed but no resource_id found: {exc}")

        super().on_failure(exc, task_id, args, kwargs, einfo)

    def _mark_resource_failed(self, resource_id: str, error: str) -> bool:
        """
        Mark a resource as failed if it is still in one of ``fail_on_statuses``.

        Returns:
            True if the row was updated, False otherwise
        """
        try:
            from uuid import UUID

            from squadron.core.async_helpers import run_async_with_db
            from squadron.repositories.resource_repository import ResourceRepository
            from squadron.services.deployment.lifecycle import sanitize_error

            async def mark_failed(db):
                repo = ResourceRepository(db)
                updated = await repo.fail_if_in(
                    UUID(resource_id),
                    self.fail_on_statuses,
                    sanitize_error(error),
                )
                await db.commit()
                if updated:
                    logger.info(f"Marked resource {resource_id} as failed due to task error")
                return updated

            return run_async_with_db(mark_failed)
        except Exception as e:
            logger.warning(f"Could not mark resource {resource_id} as failed: {e}")
            return False


celery_app = Celery(
    "squadron",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["squadron.worker"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    result_expires=86400,
    beat_schedule={
        "reconcile-stuck-resources": {
            "task": "squadron.worker.reconcile_stuck_resources_task",
            "schedule": float(settings.RECONCILE_INTERVAL_SECONDS),
        },
    },
)


@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    """Sweep resources left in ``deploying`` by a previous worker or API process."""
    logger.info("Worker ready - running startup reconciliation...")
    try:
        from squadron.core.async_helpers import run_async_with_db
        from squadron.services.resource_service import resource_service

        demoted = run_async_with_db(resource_service.reconcile_stuck_resources)
        if demoted:
            logger.info(f"Startup reconciliation: {demoted} stuck resource(s) marked as failed")
        else:
            logger.info("Startup reconciliation: no stuck resources found")
    except Exception as e:
        logger.error(f"Error during worker startup reconciliation: {e}")
