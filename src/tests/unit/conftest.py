"""Shared fixtures for unit tests."""

from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from ycworkers.adapters.registry import NodeRegistry
from ycworkers.app.config import CloudConfig
from ycworkers.core.circuit_breaker import reset_all_circuit_breakers
from ycworkers.core.domain.instance import InstanceStatus
from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.interfaces.keys import KeyProvider, SigningKey
from ycworkers.core.models.instance import CloudInstance, NetworkInterface
from ycworkers.core.models.template import Template, build_template
from ycworkers.core.models.worker import WorkerNode

CLOUD_NAME = "yc-workers"

BASE_VM_TEMPLATE = """\
platformId: standard-v3
resourcesSpec:
  memory: "4294967296"
  cores: "2"
bootDiskSpec:
  diskSpec:
    size: "21474836480"
    imageId: fd8ingbofbh3j5h7i8ll
metadata:
  serial-port-enable: "1"
"""


@pytest.fixture(autouse=True)
def _reset_circuit_breakers() -> None:
    reset_all_circuit_breakers()


@pytest.fixture
def cloud() -> CloudConfig:
    return CloudConfig(
        name=CLOUD_NAME,
        folder_id="b1gfolder",
        zone_id="ru-central1-b",
        init_vm_template=BASE_VM_TEMPLATE,
    )


@pytest.fixture
def template() -> Template:
    return build_template(
        "linux",
        description="Linux builders",
        label_string="linux docker",
        init_script="apt-get install -y openjdk-17-jre-headless",
        remote_admin="alice",
    )


@pytest.fixture
def make_instance() -> Callable[..., CloudInstance]:
    """Factory for CloudInstance snapshots."""

    def _make(
        instance_id: str,
        status: InstanceStatus = InstanceStatus.RUNNING,
        name: str = CLOUD_NAME,
        ip: str | None = "10.128.0.5",
    ) -> CloudInstance:
        return CloudInstance(
            id=instance_id,
            name=name,
            status=status,
            network_interfaces=(NetworkInterface(index="0", primary_v4_address=ip),),
        )

    return _make


@pytest.fixture
def signing_key() -> SigningKey:
    return SigningKey(
        private_key_path="/home/ci/.ssh/id_rsa",
        public_fingerprint="ssh-rsa AAAAB3NzaC1yc2EAAAADAQABAAABAQC",
    )


@pytest.fixture
def mock_gateway() -> AsyncMock:
    """CloudGateway mock with an empty folder."""
    gateway = AsyncMock(spec=CloudGateway)
    gateway.list_instances = AsyncMock(return_value=[])
    gateway.get_instance = AsyncMock(return_value=None)
    gateway.start_instance = AsyncMock()
    gateway.create_instance = AsyncMock()
    gateway.delete_instance = AsyncMock()
    return gateway


@pytest.fixture
def mock_keys(signing_key: SigningKey) -> MagicMock:
    keys = MagicMock(spec=KeyProvider)
    keys.resolve_signing_key.return_value = signing_key
    return keys


@pytest.fixture
def registry() -> NodeRegistry:
    return NodeRegistry(cloud_name=CLOUD_NAME, launch_timeout_s=300.0)


@pytest.fixture
def make_node(
    registry: NodeRegistry,
    template: Template,
    make_instance: Callable[..., CloudInstance],
) -> Callable[..., WorkerNode]:
    """Register a worker node for a fresh instance."""

    def _make(instance_id: str = "fhm-1", name: str = CLOUD_NAME) -> WorkerNode:
        return registry.register(make_instance(instance_id, name=name), template)

    return _make
