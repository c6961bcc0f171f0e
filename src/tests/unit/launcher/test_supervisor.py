"""Tests for LaunchSupervisor."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ycworkers.adapters.registry import NodeRegistry
from ycworkers.app.logging import get_log_context
from ycworkers.control.launcher import OFFLINE_REASON, LaunchSupervisor
from ycworkers.core.domain.instance import LaunchState
from ycworkers.core.errors import LaunchFailure, TransientGatewayError
from ycworkers.core.interfaces.launch import Launchable
from ycworkers.core.models.worker import WorkerNode


@pytest.fixture
def launcher() -> MagicMock:
    launcher = MagicMock(spec=Launchable)
    launcher.attempt_connect = AsyncMock()
    return launcher


@pytest.fixture
def node(make_node, launcher: MagicMock) -> WorkerNode:
    node = make_node("fhm-1")
    node.launcher = launcher
    return node


@pytest.fixture
def supervisor(mock_gateway: AsyncMock, registry: NodeRegistry) -> LaunchSupervisor:
    return LaunchSupervisor(mock_gateway, registry, registry, timeout_s=1.0)


class TestLaunchSuccess:
    async def test_connects(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
        mock_gateway: AsyncMock,
        registry: NodeRegistry,
    ) -> None:
        state = await supervisor.launch(node)

        assert state == LaunchState.CONNECTED
        assert node.launch_state == LaunchState.CONNECTED
        launcher.attempt_connect.assert_awaited_once_with(node)
        mock_gateway.delete_instance.assert_not_awaited()
        assert registry.get_worker(node.name) is node
        assert node.accepting_tasks


class TestLaunchFailure:
    async def test_failure_terminates_instance(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
        mock_gateway: AsyncMock,
        registry: NodeRegistry,
    ) -> None:
        launcher.attempt_connect.side_effect = LaunchFailure("agent.jar exited with 1")

        state = await supervisor.launch(node)

        assert state == LaunchState.TERMINATED
        mock_gateway.delete_instance.assert_awaited_once_with("fhm-1")
        assert not node.accepting_tasks
        assert node.temporarily_offline
        assert node.offline_reason == OFFLINE_REASON
        assert registry.get_worker(node.name) is None

    async def test_any_exception_counts_as_failure(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
        mock_gateway: AsyncMock,
    ) -> None:
        launcher.attempt_connect.side_effect = OSError("Connection reset by peer")

        assert await supervisor.launch(node) == LaunchState.TERMINATED
        mock_gateway.delete_instance.assert_awaited_once_with("fhm-1")

    async def test_timeout_counts_as_failure(
        self,
        mock_gateway: AsyncMock,
        registry: NodeRegistry,
        node: WorkerNode,
        launcher: MagicMock,
    ) -> None:
        async def hang(_node):
            await asyncio.sleep(10)

        launcher.attempt_connect.side_effect = hang
        supervisor = LaunchSupervisor(mock_gateway, registry, registry, timeout_s=0.01)

        assert await supervisor.launch(node) == LaunchState.TERMINATED
        mock_gateway.delete_instance.assert_awaited_once_with("fhm-1")

    async def test_missing_launcher(
        self,
        supervisor: LaunchSupervisor,
        make_node,
        mock_gateway: AsyncMock,
    ) -> None:
        node = make_node("fhm-2")

        assert await supervisor.launch(node) == LaunchState.TERMINATED
        mock_gateway.delete_instance.assert_awaited_once_with("fhm-2")

    async def test_offline_step_error_still_terminates(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
        mock_gateway: AsyncMock,
    ) -> None:
        launcher.attempt_connect.side_effect = LaunchFailure()
        node.set_accepting_tasks = MagicMock(side_effect=RuntimeError("node detached"))

        assert await supervisor.launch(node) == LaunchState.TERMINATED
        mock_gateway.delete_instance.assert_awaited_once_with("fhm-1")

    async def test_delete_error_is_not_raised(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
        mock_gateway: AsyncMock,
        registry: NodeRegistry,
    ) -> None:
        launcher.attempt_connect.side_effect = LaunchFailure()
        mock_gateway.delete_instance.side_effect = TransientGatewayError()

        assert await supervisor.launch(node) == LaunchState.TERMINATED
        assert registry.get_worker(node.name) is None

    async def test_unregistered_node_is_still_terminated(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
        mock_gateway: AsyncMock,
        registry: NodeRegistry,
    ) -> None:
        registry.deregister(node)
        launcher.attempt_connect.side_effect = LaunchFailure()

        assert await supervisor.launch(node) == LaunchState.TERMINATED
        assert not node.accepting_tasks
        assert not node.temporarily_offline
        mock_gateway.delete_instance.assert_awaited_once_with("fhm-1")

    async def test_replacement_node_is_left_alone(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
        registry: NodeRegistry,
        template,
        make_instance,
    ) -> None:
        launcher.attempt_connect.side_effect = LaunchFailure()
        replacement = registry.register(make_instance("fhm-1"), template)

        assert await supervisor.launch(node) == LaunchState.TERMINATED

        assert registry.get_worker(node.name) is replacement
        assert not replacement.temporarily_offline
        assert replacement.accepting_tasks
        assert not node.temporarily_offline

    async def test_log_lines_carry_node_context(
        self,
        supervisor: LaunchSupervisor,
        node: WorkerNode,
        launcher: MagicMock,
    ) -> None:
        seen: list[dict[str, str]] = []
        launcher.attempt_connect.side_effect = lambda _node: seen.append(get_log_context())

        await supervisor.launch(node)

        assert seen == [{"node": "yc-workers", "instance_id": "fhm-1", "template": "linux"}]
        assert get_log_context() == {}


async def test_cancellation_propagates(
    supervisor: LaunchSupervisor,
    node: WorkerNode,
    launcher: MagicMock,
    mock_gateway: AsyncMock,
) -> None:
    started = asyncio.Event()

    async def hang(_node):
        started.set()
        await asyncio.sleep(10)

    launcher.attempt_connect.side_effect = hang
    task = asyncio.create_task(supervisor.launch(node))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    mock_gateway.delete_instance.assert_not_awaited()
