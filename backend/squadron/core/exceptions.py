"""
Custom exception hierarchy for domain-specific errors.

Services raise domain exceptions; the handlers registered in main.py map them to
HTTP responses. Nothing below knows about HTTP.
"""
from typing import Optional, Dict, Any


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


# =============================================================================
# Not Found Errors (404)
# =============================================================================

class NotFoundError(DomainException):
    """Base class for entity not found errors."""
    pass


class UserNotFoundError(NotFoundError):
    """User does not exist."""

    def __init__(self, identifier: str):
        super().__init__(f"User not found: {identifier}", {"identifier": identifier})


class ProjectNotFoundError(NotFoundError):
    """Project does not exist."""

    def __init__(self, identifier: str):
        super().__init__(f"Project not found: {identifier}", {"identifier": identifier})


class EnvironmentNotFoundError(NotFoundError):
    """Environment does not exist (or belongs to another project)."""

    def __init__(self, identifier: str):
        super().__init__(f"Environment not found: {identifier}", {"identifier": identifier})


class ServerNotFoundError(NotFoundError):
    """Server does not exist."""

    def __init__(self, identifier: str):
        super().__init__(f"Server not found: {identifier}", {"identifier": identifier})


class ResourceNotFoundError(NotFoundError):
    """Resource does not exist in the given project."""

    def __init__(self, identifier: str):
        super().__init__(f"Resource not found: {identifier}", {"identifier": identifier})


class ContainerNotFoundError(NotFoundError):
    """Container does not exist, or the resource has none."""

    def __init__(self, container_id: str):
        super().__init__(f"Container not found: {container_id}", {"container_id": container_id})


# =============================================================================
# Conflict Errors (409)
# =============================================================================

class AlreadyExistsError(DomainException):
    """Base class for duplicate entity errors."""
    pass


class ProjectAlreadyExistsError(AlreadyExistsError):
    """Caller already owns a project with this name."""

    def __init__(self, name: str):
        super().__init__(f"Project already exists: {name}", {"name": name})


class EnvironmentAlreadyExistsError(AlreadyExistsError):
    """Environment with this name already exists in the project."""

    def __init__(self, name: str):
        super().__init__(f"Environment already exists: {name}", {"name": name})


class ResourceAlreadyExistsError(AlreadyExistsError):
    """Resource with this name already exists in the project."""

    def __init__(self, name: str):
        super().__init__(f"Resource already exists: {name}", {"name": name})


class ServerAlreadyExistsError(AlreadyExistsError):
    """Server with this name or host already exists."""

    def __init__(self, field: str, value: str):
        super().__init__(
            f"Server with {field} '{value}' already exists",
            {"field": field, "value": value}
        )


class StateConflictError(DomainException):
    """Base class for operations that are illegal in the current state."""
    pass


class InvalidStateTransitionError(StateConflictError):
    """Lifecycle operation is not allowed from the resource's current status."""

    def __init__(self, resource_id: str, operation: str, current_status: str):
        super().__init__(
            f"Cannot {operation} resource {resource_id} with status: {current_status}",
            {"resource_id": resource_id, "operation": operation, "current_status": current_status}
        )


class ResourceBusyError(StateConflictError):
    """Another lifecycle operation on the resource is in progress."""

    def __init__(self, resource_id: str):
        super().__init__(
            f"Resource {resource_id} is busy with another operation",
            {"resource_id": resource_id}
        )


class ServerInUseError(StateConflictError):
    """Server is still referenced by resources."""

    def __init__(self, server_id: str, resource_count: int):
        super().__init__(
            f"Server {server_id} is used by {resource_count} resource(s)",
            {"server_id": server_id, "resource_count": resource_count}
        )


class ProjectNotEmptyError(StateConflictError):
    """Project or environment still has resources."""

    def __init__(self, entity: str, identifier: str, resource_count: int):
        super().__init__(
            f"{entity.capitalize()} {identifier} still has {resource_count} resource(s)",
            {"entity": entity, "identifier": identifier, "resource_count": resource_count}
        )


# =============================================================================
# Validation Errors (400)
# =============================================================================

class ValidationError(DomainException):
    """Base class for validation errors."""
    pass


class InvalidResourceConfigError(ValidationError):
    """Resource kind is unknown or its configuration is incomplete."""

    def __init__(self, kind: str, reason: str):
        super().__init__(
            f"Invalid configuration for {kind} resource: {reason}",
            {"kind": kind, "reason": reason}
        )


class InvalidServerConfigError(ValidationError):
    """Server configuration is invalid."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid server configuration for {field}: {reason}", {"field": field, "reason": reason})


class LocalServerProtectedError(ValidationError):
    """The local server cannot be deleted or re-typed."""

    def __init__(self, action: str):
        super().__init__(f"The local server cannot be {action}", {"action": action})


# =============================================================================
# Authorization Errors (403)
# =============================================================================

class AuthorizationError(DomainException):
    """Base class for authorization errors."""
    pass


class ProjectAccessDeniedError(AuthorizationError):
    """Caller does not own the project."""

    def __init__(self, project_id: str):
        super().__init__(f"Access denied to project: {project_id}", {"project_id": project_id})


# =============================================================================
# Operation Errors (500)
# =============================================================================

class OperationError(DomainException):
    """Base class for operation failures."""
    pass


class DeploymentError(OperationError):
    """Container engine rejected creating or starting a resource."""

    def __init__(self, resource_id: str, reason: str):
        super().__init__(
            f"Deployment failed ({resource_id}): {reason}",
            {"resource_id": resource_id, "reason": reason}
        )


class ContainerOperationError(OperationError):
    """Stop, remove or log retrieval failed against a live engine."""

    def __init__(self, container_id: str, operation: str, reason: str):
        super().__init__(
            f"Container {operation} failed ({container_id}): {reason}",
            {"container_id": container_id, "operation": operation, "reason": reason}
        )


# =============================================================================
# Service Unavailable (503)
# =============================================================================

class ServiceUnavailableError(DomainException):
    """External service is unavailable."""

    def __init__(self, service: str, reason: str = "Service unavailable"):
        super().__init__(f"{service}: {reason}", {"service": service, "reason": reason})


class ServerConnectionError(ServiceUnavailableError):
    """Remote server did not accept an authenticated session."""

    def __init__(self, host: str, reason: str = "Connection failed"):
        super().__init__(f"Server {host}", reason)
        self.details["host"] = host
