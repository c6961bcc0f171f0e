"""Tests for NodeRegistry."""

from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest

from ycworkers.adapters.registry import NodeRegistry
from ycworkers.core.domain.instance import InstanceStatus, LaunchState
from ycworkers.core.errors import WorkerConflictError
from ycworkers.core.interfaces.launch import Launchable
from ycworkers.core.models.template import Template


class TestRegister:
    def test_copies_template_fields(self, registry: NodeRegistry, template: Template, make_instance) -> None:
        before = datetime.now(UTC)
        node = registry.register(make_instance("fhm-1", name="builder-1"), template)

        assert node.name == "builder-1"
        assert node.instance_id == "fhm-1"
        assert node.template_name == "linux"
        assert node.config.cloud_name == "yc-workers"
        assert node.config.label_string == "linux docker"
        assert node.config.admin_user == "alice"
        assert node.launch_state == LaunchState.PENDING_LAUNCH
        assert node.config.launch_timeout_at >= before + timedelta(seconds=300)
        assert registry.get_worker("builder-1") is node

    def test_attaches_launcher(self, template: Template, make_instance) -> None:
        launcher = MagicMock(spec=Launchable)
        registry = NodeRegistry("yc-workers", 60.0, launcher)

        node = registry.register(make_instance("fhm-1"), template)

        assert node.launcher is launcher

    def test_same_instance_replaces_node(self, registry: NodeRegistry, template: Template, make_instance) -> None:
        first = registry.register(make_instance("fhm-1"), template)
        second = registry.register(make_instance("fhm-1", InstanceStatus.STOPPED), template)

        assert second is not first
        assert registry.live_workers() == [second]

    def test_same_name_other_instance_conflicts(
        self, registry: NodeRegistry, template: Template, make_instance
    ) -> None:
        registry.register(make_instance("fhm-1"), template)

        with pytest.raises(WorkerConflictError, match="fhm-1"):
            registry.register(make_instance("fhm-2"), template)
        assert [n.instance_id for n in registry.live_workers()] == ["fhm-1"]


class TestLookup:
    def test_live_workers_in_registration_order(self, make_node, registry: NodeRegistry) -> None:
        make_node("fhm-1", name="a")
        make_node("fhm-2", name="b")

        assert [n.name for n in registry.live_workers()] == ["a", "b"]

    def test_get_unknown(self, registry: NodeRegistry) -> None:
        assert registry.get_worker("ghost") is None

    def test_deregister(self, make_node, registry: NodeRegistry) -> None:
        node = make_node("fhm-1", name="a")

        assert registry.deregister(node)

        assert registry.get_worker("a") is None
        assert registry.live_workers() == []

    def test_deregister_twice(self, make_node, registry: NodeRegistry) -> None:
        node = make_node("fhm-1", name="a")
        registry.deregister(node)

        assert not registry.deregister(node)

    def test_deregister_keeps_replacement(
        self, make_node, registry: NodeRegistry, template: Template, make_instance
    ) -> None:
        stale = make_node("fhm-1", name="a")
        current = registry.register(make_instance("fhm-1", name="a"), template)

        assert not registry.deregister(stale)
        assert registry.get_worker("a") is current
