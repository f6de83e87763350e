"""
Service for creating audit logs.
"""
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from squadron.models.audit_log import AuditLog


async def create_audit_log(
    db: AsyncSession,
    action: str,
    resource_type: str,
    resource_id: Optional[UUID] = None,
    user_id: Optional[UUID] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Create an audit log entry.

    Args:
        db: Database session
        action: Action performed (e.g., 'deploy_resource', 'delete_server')
        resource_type: Type of entity (e.g., 'resource', 'server', 'project')
        resource_id: ID of the entity affected
        user_id: User who performed the action
        details: Additional details; never include secret values
        ip_address: IP address of the requester

    Returns:
        Created audit log entry
    """
    audit_log = AuditLog(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        user_id=user_id,
        details_=details or {},
        ip_address=ip_address,
    )

    db.add(audit_log)
    await db.commit()
    await db.refresh(audit_log)

    return audit_log
