"""
Tests for per-kind resource configuration and container spec translation.

Run with: pytest backend/tests/test_resource_config.py -v
"""
from uuid import uuid4

import pytest
from pydantic import ValidationError

from squadron.core.exceptions import InvalidResourceConfigError
from squadron.models.resource import Resource
from squadron.schemas.resource import (
    DatabaseConfig,
    GitConfig,
    ResourceResponse,
    WebsiteConfig,
    mask_config,
    parse_resource_config,
)
from squadron.schemas.variables import SECRET_MASK, EnvVar
from squadron.services.deployment.runtime_base import (
    EnvEntry,
    build_container_spec,
    merge_env,
)


class TestParseResourceConfig:

    def test_unknown_kind(self):
        with pytest.raises(InvalidResourceConfigError) as exc_info:
            parse_resource_config("ftp", {}, "files")
        assert "unknown resource kind" in exc_info.value.message

    def test_unknown_field_rejected(self):
        with pytest.raises(InvalidResourceConfigError):
            parse_resource_config("service", {"port": 3000, "replicas": 3}, "api")

    @pytest.mark.parametrize("kind", ["github", "gitlab", "bitbucket"])
    def test_git_kinds_require_repository_and_branch(self, kind):
        with pytest.raises(InvalidResourceConfigError) as exc_info:
            parse_resource_config(kind, {"repository_url": "https://example.com/a.git"}, "app")
        assert "branch" in exc_info.value.message

    def test_git_kind_parsed(self):
        config = parse_resource_config(
            "github", {"repository_url": "https://example.com/a.git", "branch": "main"}, "app"
        )
        assert isinstance(config, GitConfig)

    def test_website_defaults_to_port_80(self):
        config = parse_resource_config("website", {}, "site")
        assert isinstance(config, WebsiteConfig)
        assert config.port == 80

    def test_database_keeps_given_password(self):
        config = parse_resource_config("database", {"db_password": "given"}, "db")
        assert isinstance(config, DatabaseConfig)
        assert config.db_password == "given"
        assert config.database_type == "postgresql"

    @pytest.mark.parametrize("field", ["db_password", "database_name", "initial_database"])
    def test_database_env_fields_single_line(self, field):
        with pytest.raises(InvalidResourceConfigError) as exc_info:
            parse_resource_config("database", {field: "value\nINJECTED=1"}, "db")
        assert field in exc_info.value.message

    def test_compose_content_accepted(self):
        content = "services:\n  web:\n    image: nginx:1.25\n"
        config = parse_resource_config("service", {"port": 80, "docker_compose_content": content}, "web")
        assert config.docker_compose_content == content

    def test_blank_compose_content_dropped(self):
        config = parse_resource_config("service", {"port": 80, "docker_compose_content": "  "}, "web")
        assert config.docker_compose_content is None

    @pytest.mark.parametrize("content", [
        "services: [web",
        "- web\n- db\n",
        "version: '3'\n",
    ])
    def test_bad_compose_content_rejected(self, content):
        with pytest.raises(InvalidResourceConfigError) as exc_info:
            parse_resource_config("service", {"port": 80, "docker_compose_content": content}, "web")
        assert "docker_compose_content" in exc_info.value.message


class TestMasking:

    def test_config_password_masked(self):
        assert mask_config({"db_password": "pw", "port": 1}) == {"db_password": SECRET_MASK, "port": 1}

    def test_response_masks_secrets(self):
        from datetime import datetime

        now = datetime.utcnow()
        resource = Resource(
            id=uuid4(), project_id=uuid4(), environment_id=uuid4(), server_id=uuid4(),
            name="db", kind="database", status="created",
            config={"database_type": "postgresql", "db_password": "pw"},
            variables=[{"key": "TOKEN", "value": "t", "is_secret": True}],
            status_changed_at=now, created_at=now, updated_at=now,
        )

        response = ResourceResponse.from_resource(resource)

        assert response.config["db_password"] == SECRET_MASK
        assert response.variables[0]["value"] == SECRET_MASK
        assert resource.config["db_password"] == "pw"


class TestEnvVar:

    def test_multiline_value_rejected(self):
        with pytest.raises(ValidationError):
            EnvVar(key="A", value="line1\nline2")

    def test_invalid_key_rejected(self):
        with pytest.raises(ValidationError):
            EnvVar(key="1BAD", value="x")


class TestBuildContainerSpec:

    def _resource(self, kind, config, variables=None):
        return Resource(id=uuid4(), name="r", kind=kind, status="created",
                        config=config, variables=variables or [])

    def test_resource_overrides_environment(self):
        resource = self._resource("service", {"port": 3000}, [{"key": "A", "value": "res", "is_secret": False}])

        spec = build_container_spec(resource, [
            {"key": "A", "value": "env", "is_secret": False},
            {"key": "B", "value": "env", "is_secret": False},
        ])

        assert {e.key: e.value for e in spec.env} == {"A": "res", "B": "env"}
        assert spec.image == "node:18"
        assert spec.container_port == 3000
        assert spec.name == f"squadron-{resource.id}"

    def test_postgres_defaults(self):
        resource = self._resource("database", {
            "database_type": "postgresql", "database_name": "shop", "db_password": "pw",
        })

        spec = build_container_spec(resource)

        env = {e.key: e for e in spec.env}
        assert spec.image == "postgres:16"
        assert spec.container_port == 5432
        assert env["POSTGRES_DB"].value == "shop"
        assert env["POSTGRES_PASSWORD"].is_secret
        assert spec.secret_values == ["pw"]

    def test_mongo_root_user(self):
        resource = self._resource("database", {
            "database_type": "mongodb", "database_name": "events", "db_password": "pw",
        })

        spec = build_container_spec(resource)

        env = {e.key: e.value for e in spec.env}
        assert spec.container_port == 27017
        assert env["MONGO_INITDB_ROOT_USERNAME"] == "root"

    def test_explicit_image_wins(self):
        resource = self._resource("website", {"docker_image_url": "registry.local/site:1", "host_port": 8080})

        spec = build_container_spec(resource)

        assert spec.image == "registry.local/site:1"
        assert spec.container_port == 80
        assert spec.host_port == 8080

    def test_python_git_service(self):
        resource = self._resource("gitlab", {
            "repository_url": "https://example.com/a.git", "branch": "dev", "service_type": "python",
        })

        spec = build_container_spec(resource)

        assert spec.image == "python:3.12-slim"
        assert spec.container_port == 80
        assert spec.repository_url == "https://example.com/a.git"
        assert spec.branch == "dev"

    def test_env_file_rendering(self):
        env = merge_env([EnvEntry("A", "1")], [{"key": "B", "value": 2}])

        assert [(e.key, e.value) for e in env] == [("A", "1"), ("B", "2")]
