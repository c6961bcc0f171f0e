"""Cloud bootstrap payload and create-request assembly."""

from typing import Any

import yaml

from ycworkers.app.config import CloudConfig
from ycworkers.core.errors import ConfigurationError

USER_DATA_KEY = "user-data"

# Existing worker images expect this document byte for byte.
USER_DATA_TEMPLATE = (
    "#cloud-config\n"
    "users:\n"
    "  - name: {user}\n"
    "    sudo: ['ALL=(ALL) NOPASSWD:ALL']\n"
    "    ssh-authorized-keys:\n"
    "      - {fingerprint}= {user}"
)


def render_user_data(remote_admin: str | None, fingerprint: str) -> str:
    """Render the cloud-init document granting remote_admin (or root) sudo."""
    user = remote_admin or "root"
    return USER_DATA_TEMPLATE.format(user=user, fingerprint=fingerprint)


def parse_base_request(text: str) -> dict[str, Any]:
    """Parse the per-cloud base CreateInstanceRequest (YAML or JSON)."""
    if not text or not text.strip():
        return {}
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid base instance template: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError("Base instance template must be a mapping")
    return data


def build_create_request(base_text: str, cloud: CloudConfig, user_data: str) -> dict[str, Any]:
    """Merge the base template with the fixed overrides.

    name, zoneId and folderId always come from the cloud config; existing
    metadata keys are kept and user-data is replaced.
    """
    request = parse_base_request(base_text)
    metadata = dict(request.get("metadata") or {})
    metadata[USER_DATA_KEY] = user_data
    request.update(
        name=cloud.name,
        zoneId=cloud.zone_id,
        folderId=cloud.folder_id,
        metadata=metadata,
    )
    return request
