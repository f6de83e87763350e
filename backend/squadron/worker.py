"""
Celery tasks for background job execution.

Resource lifecycle tasks use the ResourceTask base class, whose on_failure hook
demotes a resource left in ``deploying`` to ``failed`` when the task itself
crashes.
"""
import logging
from uuid import UUID

from squadron.core.async_helpers import run_async_with_db
from squadron.core.celery_app import celery_app, ResourceTask
from squadron.core.config import settings
from squadron.core.exceptions import DomainException

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


# A queued deploy older than the in-flight deadline is stale
@celery_app.task(
    base=ResourceTask,
    bind=True,
    acks_late=True,
    expires=settings.DEPLOYING_TIMEOUT_MINUTES * 60,
)
def deploy_resource_task(self, resource_id: str, project_id: str, user_id: str):
    """
    Deploy a resource in the worker.

    Lifecycle failures are already recorded on the resource by the orchestrator
    and are reported in the task result rather than re-raised.

    Args:
        resource_id: UUID of the resource
        project_id: UUID of its project
        user_id: UUID of the user who requested the deploy
    """
    logger.info(f"Starting deploy task for resource {resource_id}")

    from squadron.services.resource_service import resource_service

    async def run_deploy(db):
        resource = await resource_service.deploy(db, UUID(user_id), UUID(project_id), UUID(resource_id))
        return {"status": resource.status, "container_id": resource.container_id}

    try:
        result = run_async_with_db(run_deploy)
    except DomainException as e:
        logger.warning(f"Deploy task for resource {resource_id} ended with {e.__class__.__name__}: {e.message}")
        return {"status": "failed", "error_type": e.__class__.__name__, "error": e.message}

    logger.info(f"Deploy task for resource {resource_id} completed")
    return result


@celery_app.task(name="squadron.worker.reconcile_stuck_resources_task")
def reconcile_stuck_resources_task() -> int:
    """
    Periodic task: demote resources stuck in ``deploying`` past the deadline.

    Returns:
        Number of resources marked as failed
    """
    from squadron.services.resource_service import resource_service

    demoted = run_async_with_db(resource_service.reconcile_stuck_resources)
    if demoted:
        logger.info(f"Reconciliation marked {demoted} stuck resource(s) as failed")
    return demoted
