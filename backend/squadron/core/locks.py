"""
In-process locks that serialize lifecycle operations per resource.

A second deploy/stop/remove on a resource whose lock is held fails fast instead of
queueing behind the first. Cross-process exclusion is handled separately by the
compare-and-set status claim in the resource repository.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, Optional, Any

from squadron.core.exceptions import ResourceBusyError

logger = logging.getLogger(__name__)

# resource id -> holder info
_held: Dict[str, Dict[str, Any]] = {}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def try_acquire(resource_id: str, operation: str) -> bool:
    """Take the lock for ``resource_id``. Returns False if it is already held."""
    # No await between check and insert, so this is atomic on the event loop
    if resource_id in _held:
        return False
    _held[resource_id] = {"operation": operation, "acquired_at": _now()}
    return True


def release(resource_id: str) -> None:
    _held.pop(resource_id, None)


def get_lock_info(resource_id: str) -> Optional[Dict[str, Any]]:
    """Return the operation holding the lock and when it was taken, if any."""
    info = _held.get(resource_id)
    return dict(info) if info else None


@asynccontextmanager
async def resource_lock(resource_id: str, operation: str) -> AsyncIterator[None]:
    """
    Hold the per-resource lock for the duration of the block.

    Raises:
        ResourceBusyError: Another operation on the same resource is in progress
    """
    key = str(resource_id)
    if not try_acquire(key, operation):
        holder = _held.get(key, {}).get("operation")
        logger.warning(f"Rejected {operation} on resource {key}: {holder} in progress")
        raise ResourceBusyError(key)
    try:
        yield
    finally:
        release(key)
