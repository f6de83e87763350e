"""
Tests for DockerRuntimeAdapter.

Tests cover:
- docker run command construction and env streaming over stdin
- Host port read-back and cleanup on failure
- Compose deployments
- stop/get_logs error mapping

Run with: pytest backend/tests/test_docker_adapter.py -v
"""
from uuid import uuid4

import pytest
import yaml

from squadron.core.exceptions import (
    ContainerNotFoundError,
    ContainerOperationError,
    DeploymentError,
)
from squadron.services.deployment.docker_adapter import DockerRuntimeAdapter, compose_with_environment
from squadron.services.deployment.runtime_base import ContainerSpec, EnvEntry

CONTAINER_ID = "a" * 64


def _spec(**overrides) -> ContainerSpec:
    fields = dict(
        resource_id=uuid4(),
        name="squadron-test",
        image="node:18",
        container_port=3000,
        env=[EnvEntry("PUBLIC", "1"), EnvEntry("TOKEN", "s3cret-value", is_secret=True)],
    )
    fields.update(overrides)
    return ContainerSpec(**fields)


def _engine(port_output="0.0.0.0:49153", run_result=None):
    """Gateway handler that behaves like a healthy Docker engine."""
    def handler(cmd, input):
        if cmd[1] == "run":
            return run_result or (0, f"{CONTAINER_ID}\n", "")
        if cmd[1] == "port":
            return (0, port_output, "") if port_output else (1, "", "no public port")
        return 0, "", ""
    return handler


@pytest.fixture
def adapter():
    return DockerRuntimeAdapter(docker_binary="docker", command_timeout=5, deploy_timeout=10)


class TestDeploy:

    @pytest.mark.asyncio
    async def test_env_streamed_not_in_argv(self, adapter, make_gateway):
        gateway = make_gateway(_engine())
        spec = _spec()

        result = await adapter.deploy(spec, gateway)

        run_cmd, run_input = next(call for call in gateway.calls if call[0][1] == "run")
        assert "--env-file" in run_cmd
        assert not any("s3cret-value" in part for part in run_cmd)
        assert run_input == "PUBLIC=1\nTOKEN=s3cret-value\n"
        assert result.container_id == CONTAINER_ID
        assert result.host_port == 49153

    @pytest.mark.asyncio
    async def test_stale_container_removed_first(self, adapter, make_gateway):
        gateway = make_gateway(_engine())

        await adapter.deploy(_spec(), gateway)

        assert gateway.commands()[0] == ["docker", "rm", "-f", "squadron-test"]

    @pytest.mark.asyncio
    async def test_fixed_host_port_skips_lookup(self, adapter, make_gateway):
        gateway = make_gateway(_engine())

        result = await adapter.deploy(_spec(host_port=8080), gateway)

        assert result.host_port == 8080
        assert "8080:3000" in next(cmd for cmd in gateway.commands() if cmd[1] == "run")
        assert not any(cmd[1] == "port" for cmd in gateway.commands())

    @pytest.mark.asyncio
    async def test_run_failure_redacts_and_cleans_up(self, adapter, make_gateway):
        gateway = make_gateway(_engine(run_result=(125, "", "bad env s3cret-value")))

        with pytest.raises(DeploymentError) as exc_info:
            await adapter.deploy(_spec(), gateway)

        assert "s3cret-value" not in exc_info.value.message
        assert gateway.commands()[-1] == ["docker", "rm", "-f", "squadron-test"]

    @pytest.mark.asyncio
    async def test_timeout_is_deployment_error(self, adapter, make_gateway):
        gateway = make_gateway(_engine(run_result=(-1, "", "Command timed out")))

        with pytest.raises(DeploymentError) as exc_info:
            await adapter.deploy(_spec(), gateway)

        assert "Command timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_port_cleans_up(self, adapter, make_gateway):
        gateway = make_gateway(_engine(port_output=None))

        with pytest.raises(DeploymentError):
            await adapter.deploy(_spec(), gateway)

        assert gateway.commands()[-1] == ["docker", "rm", "-f", "squadron-test"]

    @pytest.mark.asyncio
    async def test_ipv6_port_binding_parsed(self, adapter, make_gateway):
        gateway = make_gateway(_engine(port_output="[::]:49200"))

        result = await adapter.deploy(_spec(), gateway)

        assert result.host_port == 49200

    @pytest.mark.asyncio
    async def test_no_env_no_env_file(self, adapter, make_gateway):
        gateway = make_gateway(_engine())

        await adapter.deploy(_spec(env=[]), gateway)

        run_cmd, run_input = next(call for call in gateway.calls if call[0][1] == "run")
        assert "--env-file" not in run_cmd
        assert run_input is None


class TestComposeDeploy:

    @pytest.mark.asyncio
    async def test_compose_up(self, adapter, make_gateway):
        gateway = make_gateway()
        spec = _spec(compose_content="services:\n  web:\n    image: nginx\n", host_port=8081)

        result = await adapter.deploy(spec, gateway)

        write_cmd, write_input = gateway.calls[0]
        assert write_cmd[:2] == ["sh", "-c"]
        assert write_cmd[-1].endswith("squadron-test/docker-compose.yml")
        written = yaml.safe_load(write_input)
        assert written["services"]["web"]["image"] == "nginx"
        assert written["services"]["web"]["environment"] == {"PUBLIC": "${PUBLIC}", "TOKEN": "${TOKEN}"}
        assert "s3cret-value" not in write_input
        up_cmd = gateway.commands()[1]
        assert up_cmd[:4] == ["docker", "compose", "-p", "squadron-test"]
        assert up_cmd[-3:] == ["up", "-d", "--remove-orphans"]
        assert result.container_id == "compose:squadron-test"
        assert result.host_port == 8081

    @pytest.mark.asyncio
    async def test_compose_failure_tears_down(self, adapter, make_gateway):
        def handler(cmd, input):
            if "up" in cmd:
                return 1, "", "pull access denied"
            return 0, "", ""
        gateway = make_gateway(handler)

        with pytest.raises(DeploymentError):
            await adapter.deploy(_spec(compose_content="services: {}"), gateway)

        assert "down" in gateway.commands()[-1]

    @pytest.mark.asyncio
    async def test_compose_values_streamed_on_stdin(self, adapter, make_gateway):
        gateway = make_gateway()

        await adapter.deploy(_spec(compose_content="services:\n  web:\n    image: nginx\n"), gateway)

        up_cmd, up_input = gateway.calls[1]
        assert ["--env-file", "/dev/stdin"] == up_cmd[6:8]
        assert up_input == "PUBLIC=1\nTOKEN=s3cret-value\n"


class TestComposeEnvironment:

    def test_declared_entries_win(self):
        content = "services:\n  web:\n    image: nginx\n    environment:\n      PUBLIC: fixed\n"

        written = yaml.safe_load(compose_with_environment(content, ["PUBLIC", "TOKEN"]))

        assert written["services"]["web"]["environment"] == {"PUBLIC": "fixed", "TOKEN": "${TOKEN}"}

    def test_list_form_extended(self):
        content = "services:\n  web:\n    image: nginx\n    environment:\n      - PUBLIC=fixed\n      - DEBUG\n"

        written = yaml.safe_load(compose_with_environment(content, ["PUBLIC", "DEBUG", "TOKEN"]))

        assert written["services"]["web"]["environment"] == ["PUBLIC=fixed", "DEBUG", "TOKEN=${TOKEN}"]

    def test_every_service_receives_keys(self):
        content = "services:\n  web:\n    image: nginx\n  worker:\n"

        written = yaml.safe_load(compose_with_environment(content, ["TOKEN"]))

        assert written["services"]["worker"] == {"environment": {"TOKEN": "${TOKEN}"}}
        assert written["services"]["web"]["environment"] == {"TOKEN": "${TOKEN}"}

    def test_no_variables_leaves_content_untouched(self):
        content = "services:\n  web:\n    image: nginx  # pinned\n"

        assert compose_with_environment(content, []) == content


class TestStop:

    @pytest.mark.asyncio
    async def test_stop_then_remove(self, adapter, make_gateway):
        gateway = make_gateway()

        await adapter.stop(CONTAINER_ID, gateway)

        assert gateway.commands() == [
            ["docker", "stop", CONTAINER_ID],
            ["docker", "rm", CONTAINER_ID],
        ]

    @pytest.mark.asyncio
    async def test_missing_container_is_stopped(self, adapter, make_gateway):
        gateway = make_gateway(lambda cmd, input: (1, "", f"Error: No such container: {CONTAINER_ID}"))

        await adapter.stop(CONTAINER_ID, gateway)

        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_engine_failure_raises(self, adapter, make_gateway):
        gateway = make_gateway(lambda cmd, input: (1, "", "Cannot connect to the Docker daemon"))

        with pytest.raises(ContainerOperationError):
            await adapter.stop(CONTAINER_ID, gateway)

    @pytest.mark.asyncio
    async def test_compose_down(self, adapter, make_gateway):
        gateway = make_gateway()

        await adapter.stop("compose:squadron-test", gateway)

        assert gateway.commands() == [
            ["docker", "compose", "-p", "squadron-test", "down", "--remove-orphans"],
        ]


class TestLogs:

    @pytest.mark.asyncio
    async def test_streams_merged_by_timestamp(self, adapter, make_gateway):
        gateway = make_gateway(lambda cmd, input: (
            0,
            "2026-01-01T00:00:01Z out one\n2026-01-01T00:00:03Z out two",
            "2026-01-01T00:00:02Z err one",
        ))

        logs = await adapter.get_logs(CONTAINER_ID, gateway, tail=10)

        assert logs.splitlines() == [
            "2026-01-01T00:00:01Z out one",
            "2026-01-01T00:00:02Z err one",
            "2026-01-01T00:00:03Z out two",
        ]

    @pytest.mark.asyncio
    async def test_tail_clamped(self, adapter, make_gateway):
        from squadron.core.config import settings

        gateway = make_gateway()

        await adapter.get_logs(CONTAINER_ID, gateway, tail=10 ** 9)

        assert gateway.commands()[0][3] == str(settings.CONTAINER_LOG_TAIL_MAX)

    @pytest.mark.asyncio
    async def test_missing_container(self, adapter, make_gateway):
        gateway = make_gateway(lambda cmd, input: (1, "", "Error: No such container: x"))

        with pytest.raises(ContainerNotFoundError):
            await adapter.get_logs(CONTAINER_ID, gateway)

    @pytest.mark.asyncio
    async def test_engine_failure(self, adapter, make_gateway):
        gateway = make_gateway(lambda cmd, input: (-1, "", "Command timed out"))

        with pytest.raises(ContainerOperationError):
            await adapter.get_logs(CONTAINER_ID, gateway)
