# Models package
from squadron.models.user import User
from squadron.models.api_key import ApiKey
from squadron.models.project import Project, ProjectStatus
from squadron.models.environment import Environment, EnvironmentType
from squadron.models.server import Server, ServerType, ServerStatus
from squadron.models.resource import Resource, ResourceStatus, ResourceKind
from squadron.models.audit_log import AuditLog
