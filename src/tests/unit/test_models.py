"""Tests for cloud instance and worker models."""

from datetime import UTC, datetime, timedelta

from ycworkers.core.domain.instance import InstanceStatus, NodeMode
from ycworkers.core.models.instance import UNKNOWN_ADDRESS, CloudInstance, OperationResult
from ycworkers.core.models.template import build_template
from ycworkers.core.models.worker import WorkerConfig, WorkerNode


class TestCloudInstance:
    def test_from_api(self) -> None:
        instance = CloudInstance.from_api(
            {
                "id": "fhm0b28lgfp4tkoa3jl6",
                "folderId": "b1gfolder",
                "name": "yc-workers",
                "status": "STOPPED",
                "networkInterfaces": [
                    {
                        "index": "0",
                        "primaryV4Address": {
                            "address": "10.128.0.5",
                            "oneToOneNat": {"address": "51.250.1.2"},
                        },
                    }
                ],
            }
        )

        assert instance.id == "fhm0b28lgfp4tkoa3jl6"
        assert instance.status == InstanceStatus.STOPPED
        assert instance.is_stopped is True
        assert instance.primary_ipv4 == "10.128.0.5"

    def test_unknown_status_is_opaque(self) -> None:
        instance = CloudInstance.from_api({"id": "i-1", "status": "HIBERNATING"})

        assert instance.status == InstanceStatus.UNKNOWN
        assert instance.is_stopped is False

    def test_address_defaults_when_no_interface(self) -> None:
        assert CloudInstance(id="i-1").primary_ipv4 == UNKNOWN_ADDRESS

    def test_address_defaults_when_interface_has_no_address(self) -> None:
        instance = CloudInstance.from_api({"id": "i-1", "networkInterfaces": [{"index": "0"}]})

        assert instance.primary_ipv4 == "0.0.0.0"


class TestOperationResult:
    def test_error_message(self) -> None:
        operation = OperationResult.from_api(
            {
                "id": "fhmop1",
                "done": True,
                "error": {"code": 8, "message": "Quota limit compute.instances.count exceeded"},
            }
        )

        assert operation.error_message == "Quota limit compute.instances.count exceeded"

    def test_success_carries_instance_id(self) -> None:
        operation = OperationResult.from_api(
            {"id": "fhmop2", "done": False, "metadata": {"instanceId": "fhm-new"}}
        )

        assert operation.error_message == ""
        assert operation.resource_id == "fhm-new"


class TestWorkerConfig:
    def test_copies_template_fields(self) -> None:
        template = build_template(
            "linux",
            description="Linux builders",
            mode="EXCLUSIVE",
            label_string="linux",
            init_script="echo hi",
            remote_admin="alice",
            idle_termination_minutes=30,
            node_properties={"JAVA_HOME": "/opt/jdk"},
        )
        instance = CloudInstance(id="fhm-1", name="yc-workers")
        before = datetime.now(UTC)

        config = WorkerConfig.from_template(instance, template, "yc-workers", 300.0)

        assert config.name == "yc-workers"
        assert config.instance_id == "fhm-1"
        assert config.template_name == "linux"
        assert config.mode == NodeMode.EXCLUSIVE
        assert config.label_string == "linux"
        assert config.admin_user == "alice"
        assert config.idle_termination_minutes == 30
        assert config.node_properties == {"JAVA_HOME": "/opt/jdk"}
        assert config.launch_timeout_at >= before + timedelta(seconds=299)

    def test_unnamed_instance_uses_id(self) -> None:
        config = WorkerConfig.from_template(
            CloudInstance(id="fhm-2"), build_template("linux"), "yc-workers", 60.0
        )

        assert config.name == "fhm-2"
        assert config.admin_user == "root"


class TestWorkerNode:
    def test_offline_reason_cleared_when_back_online(self) -> None:
        config = WorkerConfig.from_template(
            CloudInstance(id="fhm-1", name="w"), build_template("linux"), "yc-workers", 60.0
        )
        node = WorkerNode(config=config)

        node.set_temporarily_offline(True, "Agent failed to connect")
        assert node.offline_reason == "Agent failed to connect"

        node.set_temporarily_offline(False)
        assert node.temporarily_offline is False
        assert node.offline_reason is None
