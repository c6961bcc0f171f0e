"""SSH agent launcher.

paramiko is blocking, so every SSH step runs in a worker thread via
asyncio.to_thread.

Launch sequence:
1. Resolve the instance's primary IPv4 address through the gateway
2. Connect as the node's admin user, retrying until the launch deadline
   (a fresh instance may still be booting or running cloud-init)
3. Run the node's init script
4. Upload the agent jar over SFTP (if configured)
5. Start the agent command
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

import paramiko

from ycworkers.app.config import LaunchConfig
from ycworkers.core.errors import LaunchFailure
from ycworkers.core.interfaces.gateway import CloudGateway
from ycworkers.core.interfaces.keys import KeyProvider, SigningKey
from ycworkers.core.interfaces.launch import Launchable
from ycworkers.core.logging_schema import Component, LogEvent
from ycworkers.core.models.instance import UNKNOWN_ADDRESS
from ycworkers.core.models.worker import WorkerNode

logger = logging.getLogger(__name__)

# Output kept in the failure message
_OUTPUT_TAIL = 500
# Bytes of each stream kept while draining
_KEEP_BYTES = 64 * 1024
_RECV_CHUNK = 32 * 1024
_POLL_INTERVAL = 0.1


def _exec(client: paramiko.SSHClient, command: str) -> tuple[int, str, str]:
    """Run command, draining both streams until it exits.

    The remote side blocks once the channel window is full, so output is
    read while waiting rather than after the exit status.
    """
    _, stdout, _ = client.exec_command(command)
    channel = stdout.channel
    out = bytearray()
    err = bytearray()
    while True:
        idle = True
        if channel.recv_ready():
            out += channel.recv(_RECV_CHUNK)
            del out[:-_KEEP_BYTES]
            idle = False
        if channel.recv_stderr_ready():
            err += channel.recv_stderr(_RECV_CHUNK)
            del err[:-_KEEP_BYTES]
            idle = False
        if idle:
            if channel.exit_status_ready():
                break
            time.sleep(_POLL_INTERVAL)
    status = channel.recv_exit_status()
    return status, out.decode(errors="replace"), err.decode(errors="replace")


def _upload(client: paramiko.SSHClient, local_path: str, remote_path: str) -> None:
    sftp = client.open_sftp()
    try:
        sftp.put(local_path, remote_path)
    finally:
        sftp.close()


class SshLauncher(Launchable):
    """Launchable that starts the agent over SSH."""

    def __init__(
        self,
        gateway: CloudGateway,
        keys: KeyProvider,
        config: LaunchConfig,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
    ) -> None:
        self._gateway = gateway
        self._keys = keys
        self._config = config
        self._client_factory = client_factory

    def _deadline(self, node: WorkerNode) -> float:
        """Monotonic deadline: the node's launch timeout or our own budget, whichever is sooner."""
        remaining = (node.config.launch_timeout_at - datetime.now(UTC)).total_seconds()
        return time.monotonic() + max(0.0, min(remaining, self._config.timeout_s))

    async def attempt_connect(self, node: WorkerNode) -> None:
        key = self._keys.resolve_signing_key()
        if key is None:
            raise LaunchFailure("Failed to resolve SSH signing key")

        client = await self._connect(node, key, self._deadline(node))
        try:
            if node.config.init_script:
                await self._run(node, client, node.config.init_script, "init script")

            remote_fs = self._config.remote_fs
            if self._config.agent_jar_path:
                try:
                    await asyncio.to_thread(
                        _upload, client, self._config.agent_jar_path, f"{remote_fs}/agent.jar"
                    )
                except (paramiko.SSHException, OSError) as exc:
                    raise LaunchFailure(f"Agent upload failed: {exc}") from exc

            command = self._config.agent_command.format(remote_fs=remote_fs)
            await self._run(node, client, command, "agent command")
        finally:
            await asyncio.to_thread(client.close)

    async def _resolve_host(self, node: WorkerNode) -> str:
        instance = await self._gateway.get_instance(node.instance_id)
        if instance is None:
            raise LaunchFailure(f"Instance {node.instance_id} no longer exists")
        return instance.primary_ipv4

    async def _connect(
        self,
        node: WorkerNode,
        key: SigningKey,
        deadline: float,
    ) -> paramiko.SSHClient:
        attempt = 0
        while True:
            attempt += 1
            host = await self._resolve_host(node)
            if host != UNKNOWN_ADDRESS:
                client = self._client_factory()
                client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
                try:
                    await asyncio.to_thread(
                        client.connect,
                        hostname=host,
                        port=self._config.ssh_port,
                        username=node.config.admin_user,
                        key_filename=key.private_key_path,
                        passphrase=key.passphrase,
                        timeout=self._config.connect_timeout,
                        allow_agent=False,
                        look_for_keys=False,
                    )
                except (paramiko.SSHException, OSError) as exc:
                    client.close()
                    error = f"{host}: {exc}"
                else:
                    logger.info(
                        "SSH connected to %s",
                        host,
                        extra={
                            "event": LogEvent.LAUNCH_CONNECTED,
                            "component": Component.LAUNCHER,
                            "node": node.name,
                            "attempt": attempt,
                        },
                    )
                    return client
            else:
                error = "no IPv4 address assigned yet"

            if time.monotonic() + self._config.connect_retry_interval > deadline:
                raise LaunchFailure(f"SSH connect gave up after {attempt} attempt(s): {error}")
            logger.debug(
                "SSH not ready (%s), retrying in %.0fs",
                error,
                self._config.connect_retry_interval,
                extra={"node": node.name, "attempt": attempt},
            )
            await asyncio.sleep(self._config.connect_retry_interval)

    async def _run(
        self,
        node: WorkerNode,
        client: paramiko.SSHClient,
        command: str,
        label: str,
    ) -> None:
        try:
            status, _, err = await asyncio.to_thread(_exec, client, command)
        except (paramiko.SSHException, OSError) as exc:
            raise LaunchFailure(f"{label} failed: {exc}") from exc
        if status != 0:
            raise LaunchFailure(f"{label} exited with {status}: {err.strip()[-_OUTPUT_TAIL:]}")
        logger.debug("%s finished", label, extra={"node": node.name})
