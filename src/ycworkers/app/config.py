"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CloudConfig(BaseSettings):
    """Cloud account the workers are provisioned in.

    init_vm_template is the base CreateInstanceRequest (YAML or JSON text)
    that every create call starts from. name, zoneId, folderId and the
    user-data metadata key are always overridden.
    """

    model_config = SettingsConfigDict(env_prefix="CLOUD_")

    name: str = Field(default="yc-workers")
    folder_id: str = Field(default="")
    zone_id: str = Field(default="ru-central1-b")
    init_vm_template: str = Field(default="")


class GatewayConfig(BaseSettings):
    """Compute API transport configuration."""

    model_config = SettingsConfigDict(env_prefix="GATEWAY_")

    endpoint: str = Field(default="https://compute.api.cloud.yandex.net/compute/v1")
    iam_token: str = Field(default="")
    timeout: float = Field(default=30.0)  # seconds

    # Transport-level retry (reconciler never retries)
    max_retries: int = Field(default=3)
    base_delay: float = Field(default=1.0)  # seconds
    max_delay: float = Field(default=30.0)  # seconds

    # Circuit breaker
    failure_threshold: int = Field(default=5)
    recovery_timeout: float = Field(default=60.0)  # seconds
    page_size: int = Field(default=100)


class SshKeyConfig(BaseSettings):
    """Signing key used for bootstrap metadata and SSH launch."""

    model_config = SettingsConfigDict(env_prefix="SSH_KEY_")

    private_key_path: str = Field(default="~/.ssh/id_rsa")
    passphrase: str | None = Field(default=None)


class LaunchConfig(BaseSettings):
    """Agent launch configuration."""

    model_config = SettingsConfigDict(env_prefix="LAUNCH_")

    timeout_s: float = Field(default=300.0)  # whole handshake budget
    connect_retry_interval: float = Field(default=5.0)  # seconds between SSH attempts
    connect_timeout: float = Field(default=10.0)  # seconds per SSH attempt
    ssh_port: int = Field(default=22)
    remote_fs: str = Field(default="/tmp")
    agent_jar_path: str | None = Field(default=None)  # local file uploaded over SFTP
    # Started detached; a zero exit means the agent process was spawned
    agent_command: str = Field(
        default="nohup java -jar {remote_fs}/agent.jar > {remote_fs}/agent.log 2>&1 &"
    )


class ProvisionerConfig(BaseSettings):
    """Provisioning loop configuration."""

    model_config = SettingsConfigDict(env_prefix="PROVISIONER_")

    templates_file: str | None = Field(default=None)
    queue_maxsize: int = Field(default=100)
    launch_on_provision: bool = Field(default=True)


class MetricsConfig(BaseSettings):
    """Prometheus metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = Field(default=True)


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Standard fields added to all logs:
    - schema_version: Log schema version for backwards compatibility
    - service: Service name (yc-workers)

    Rate limiting:
    - Prevents log storms from repeated messages
    - ERROR logs bypass rate limiting (always logged)
    """

    model_config = SettingsConfigDict(env_prefix="LOGGING_")

    level: str = Field(default="INFO")
    schema_version: str = Field(default="1.0")
    slow_threshold_ms: float = Field(default=5000.0)
    rate_limit_per_minute: int = Field(default=100)
    service_name: str = Field(default="yc-workers")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="YCW_",
        env_nested_delimiter="__",
    )

    cloud: CloudConfig = Field(default_factory=CloudConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    ssh_key: SshKeyConfig = Field(default_factory=SshKeyConfig)
    launch: LaunchConfig = Field(default_factory=LaunchConfig)
    provisioner: ProvisionerConfig = Field(default_factory=ProvisionerConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_settings() -> Settings:
    return Settings()
