"""Initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Tables:
  - users: Callers that own projects
  - api_keys: API key authentication
  - audit_logs: Operation audit trail
  - projects: Owner-scoped grouping of environments and resources
  - environments: Per-project variable sets
  - servers: Deployment targets (one local, any number of remote)
  - resources: Deployable units and their lifecycle state
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = 'squadron'


def upgrade() -> None:
    schema = SCHEMA

    # =========================================================================
    # 1. users
    # =========================================================================
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        schema=schema,
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True, schema=schema)

    # =========================================================================
    # 2. api_keys
    # =========================================================================
    op.create_table(
        'api_keys',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('prefix', sa.String(16), nullable=False),
        sa.Column('key_hash', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(
            ['user_id'], [f'{schema}.users.id'],
            name='fk_api_keys_user_id_users', ondelete='CASCADE',
        ),
        schema=schema,
    )
    op.create_index('ix_api_keys_user_id', 'api_keys', ['user_id'], schema=schema)
    op.create_index('ix_api_keys_prefix', 'api_keys', ['prefix'], unique=True, schema=schema)

    # =========================================================================
    # 3. audit_logs
    # =========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50), nullable=False),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), server_default='{}', nullable=False),
        sa.Column('ip_address', postgresql.INET(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], [f'{schema}.users.id'],
            name='fk_audit_logs_user_id_users', ondelete='SET NULL',
        ),
        schema=schema,
    )
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'], schema=schema)
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'], schema=schema)

    # =========================================================================
    # 4. projects
    # =========================================================================
    op.create_table(
        'projects',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('owner_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ['owner_id'], [f'{schema}.users.id'],
            name='fk_projects_owner_id_users', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('owner_id', 'name', name='uq_projects_owner_name'),
        sa.CheckConstraint(
            "status IN ('active', 'paused', 'stopped')",
            name='ck_projects_status_valid',
        ),
        schema=schema,
    )
    op.create_index('ix_projects_owner_id', 'projects', ['owner_id'], schema=schema)

    # =========================================================================
    # 5. environments
    # =========================================================================
    op.create_table(
        'environments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='dev'),
        sa.Column('variables', postgresql.JSONB(astext_type=sa.Text()), server_default='[]', nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ['project_id'], [f'{schema}.projects.id'],
            name='fk_environments_project_id_projects', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('project_id', 'name', name='uq_environments_project_name'),
        sa.CheckConstraint(
            "type IN ('dev', 'staging', 'prod', 'test')",
            name='ck_environments_type_valid',
        ),
        schema=schema,
    )
    op.create_index('ix_environments_project_id', 'environments', ['project_id'], schema=schema)

    # =========================================================================
    # 6. servers
    # =========================================================================
    op.create_table(
        'servers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(20), nullable=False, server_default='remote'),
        sa.Column('host', sa.String(255), nullable=True),
        sa.Column('ssh_port', sa.Integer(), nullable=True),
        sa.Column('ssh_username', sa.String(255), nullable=True),
        sa.Column('ssh_private_key', sa.Text(), nullable=True),
        sa.Column('is_build_server', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_swarm_manager', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_swarm_worker', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('supported_types', postgresql.JSONB(astext_type=sa.Text()), server_default='[]', nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='offline'),
        sa.Column('last_checked_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('host', name='uq_servers_host'),
        sa.CheckConstraint("type IN ('local', 'remote')", name='ck_servers_type_valid'),
        sa.CheckConstraint("status IN ('online', 'offline')", name='ck_servers_status_valid'),
        schema=schema,
    )
    op.create_index('ix_servers_name', 'servers', ['name'], unique=True, schema=schema)
    # At most one local server
    op.create_index(
        'uq_servers_single_local', 'servers', ['type'],
        unique=True, postgresql_where=sa.text("type = 'local'"), schema=schema,
    )

    # =========================================================================
    # 7. resources
    # =========================================================================
    op.create_table(
        'resources',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('environment_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('server_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='created'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('container_id', sa.String(255), nullable=True),
        sa.Column('host_port', sa.Integer(), nullable=True),
        sa.Column('config', postgresql.JSONB(astext_type=sa.Text()), server_default='{}', nullable=False),
        sa.Column('variables', postgresql.JSONB(astext_type=sa.Text()), server_default='[]', nullable=False),
        sa.Column('status_changed_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ['project_id'], [f'{schema}.projects.id'],
            name='fk_resources_project_id_projects', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['environment_id'], [f'{schema}.environments.id'],
            name='fk_resources_environment_id_environments', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['server_id'], [f'{schema}.servers.id'],
            name='fk_resources_server_id_servers', ondelete='RESTRICT',
        ),
        sa.UniqueConstraint('project_id', 'name', name='uq_resources_project_name'),
        sa.CheckConstraint(
            "status IN ('created', 'deploying', 'running', 'stopped', 'failed', 'error')",
            name='ck_resources_status_valid',
        ),
        schema=schema,
    )
    op.create_index('ix_resources_project_id', 'resources', ['project_id'], schema=schema)
    op.create_index('ix_resources_environment_id', 'resources', ['environment_id'], schema=schema)
    op.create_index('ix_resources_server_id', 'resources', ['server_id'], schema=schema)
    op.create_index('ix_resources_kind', 'resources', ['kind'], schema=schema)
    op.create_index('ix_resources_status', 'resources', ['status'], schema=schema)
    # Reconciliation scans deploying rows by age
    op.create_index(
        'ix_resources_deploying_since', 'resources', ['status_changed_at'],
        postgresql_where=sa.text("status = 'deploying'"), schema=schema,
    )


def downgrade() -> None:
    schema = SCHEMA
    op.drop_table('resources', schema=schema)
    op.drop_table('servers', schema=schema)
    op.drop_table('environments', schema=schema)
    op.drop_table('projects', schema=schema)
    op.drop_table('audit_logs', schema=schema)
    op.drop_table('api_keys', schema=schema)
    op.drop_table('users', schema=schema)
