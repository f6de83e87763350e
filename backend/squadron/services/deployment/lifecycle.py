"""
Resource lifecycle rules.

Which operation may start from which status, how long a resource may stay in
flight, and how error text is cleaned before it is stored or logged. The
orchestrator consults these; nothing here touches the database or an engine.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional

from squadron.core.config import settings
from squadron.core.exceptions import ContainerNotFoundError, InvalidStateTransitionError
from squadron.models.resource import RESOURCE_STATUSES, Resource, ResourceStatus

REDACTED = "[REDACTED]"


class StopAction(str, Enum):
    STOP = "stop"      # engine stop + remove
    NOOP = "noop"      # already stopped, nothing to do


# Statuses an operation may start from
DEPLOYABLE_FROM = frozenset({
    ResourceStatus.CREATED.value,
    ResourceStatus.STOPPED.value,
    ResourceStatus.FAILED.value,
})

# Statuses that block stop/remove regardless of container state
IN_FLIGHT = frozenset({ResourceStatus.DEPLOYING.value})

REMOVABLE_FROM = frozenset(RESOURCE_STATUSES) - IN_FLIGHT


def check_can_deploy(resource: Resource) -> None:
    """
    Raises:
        InvalidStateTransitionError: If the resource is running, deploying or in error
    """
    if resource.status not in DEPLOYABLE_FROM:
        raise InvalidStateTransitionError(str(resource.id), "deploy", resource.status)


def plan_stop(resource: Resource) -> StopAction:
    """
    Decide what stopping ``resource`` means.

    Returns:
        STOP if a container must be stopped, NOOP if the resource is already stopped

    Raises:
        InvalidStateTransitionError: If a deploy is in flight
        ContainerNotFoundError: If there is no container and the resource is not stopped
    """
    if resource.status in IN_FLIGHT:
        raise InvalidStateTransitionError(str(resource.id), "stop", resource.status)
    if resource.container_id:
        return StopAction.STOP
    if resource.status == ResourceStatus.STOPPED.value:
        return StopAction.NOOP
    raise ContainerNotFoundError(f"resource {resource.id} has no container")


def check_can_remove(resource: Resource) -> bool:
    """
    Returns:
        True if a container must be stopped before the row is deleted

    Raises:
        InvalidStateTransitionError: If a deploy is in flight
    """
    if resource.status in IN_FLIGHT:
        raise InvalidStateTransitionError(str(resource.id), "remove", resource.status)
    return bool(resource.container_id)


def deploying_deadline(now: Optional[datetime] = None) -> datetime:
    """Resources in ``deploying`` since before this instant are stuck."""
    now = now or datetime.utcnow()
    return now - timedelta(minutes=settings.DEPLOYING_TIMEOUT_MINUTES)


def is_stuck(resource: Resource, now: Optional[datetime] = None) -> bool:
    return (
        resource.status == ResourceStatus.DEPLOYING.value
        and resource.status_changed_at is not None
        and resource.status_changed_at < deploying_deadline(now)
    )


def stuck_error_message() -> str:
    return f"Deployment did not finish within {settings.DEPLOYING_TIMEOUT_MINUTES} minutes"


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of each secret value in ``text``."""
    # Longest first so a secret containing another is fully replaced
    for secret in sorted({s for s in secrets if s}, key=len, reverse=True):
        text = text.replace(secret, REDACTED)
    return text


def sanitize_error(error: object, secrets: Iterable[str] = (), max_length: Optional[int] = None) -> str:
    """
    Produce error text safe to persist: secrets redacted, length capped.

    Args:
        error: Exception or message
        secrets: Values that must not appear in the result
        max_length: Defaults to RESOURCE_ERROR_MAX_LENGTH
    """
    max_length = max_length or settings.RESOURCE_ERROR_MAX_LENGTH
    text = redact(str(error) or error.__class__.__name__, secrets).strip()
    if len(text) > max_length:
        suffix = "... (truncated)"
        text = text[: max(max_length - len(suffix), 0)] + suffix
    return text
