"""Instance template model.

A Template is only ever built through build_template(), which parses the
label expression and normalizes the instance cap eagerly so that every
Template value in the process is already valid.
"""

import shlex
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from ycworkers.core.domain.instance import NodeMode
from ycworkers.core.errors import ConfigurationError


class Tag(BaseModel):
    """Cloud label attached to instances of a template."""

    name: str
    value: str = ""

    model_config = {"frozen": True}


class Template(BaseModel):
    """Immutable instance template.

    instance_cap is None when unbounded.
    """

    name: str
    description: str = ""
    mode: NodeMode = NodeMode.NORMAL
    label_string: str = ""
    labels: frozenset[str] = frozenset()
    init_script: str = ""
    remote_admin: str = ""
    idle_termination_minutes: int | None = None
    stop_on_terminate: bool = False
    tags: tuple[Tag, ...] = ()
    node_properties: dict[str, str] = Field(default_factory=dict)
    instance_cap: int | None = None

    model_config = {"frozen": True}

    @property
    def is_capped(self) -> bool:
        return self.instance_cap is not None

    @property
    def instance_cap_str(self) -> str:
        return "" if self.instance_cap is None else str(self.instance_cap)

    @property
    def admin_user(self) -> str:
        """Remote admin, falling back to root when unset."""
        return self.remote_admin or "root"


def parse_labels(label_string: str | None) -> frozenset[str]:
    """Split a label expression into atoms (whitespace separated, quotes allowed)."""
    if not label_string:
        return frozenset()
    try:
        return frozenset(shlex.split(label_string))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid label expression {label_string!r}: {exc}") from exc


def parse_instance_cap(value: int | str | None) -> int | None:
    """Normalize the configured cap: empty, missing or 0 mean unbounded."""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = int(value)
        except ValueError as exc:
            raise ConfigurationError(f"Instance cap must be a number, got {value!r}") from exc
    if value < 0:
        raise ConfigurationError(f"Instance cap must not be negative, got {value}")
    return value or None


def build_template(
    name: str,
    *,
    description: str = "",
    mode: NodeMode | str = NodeMode.NORMAL,
    label_string: str | None = None,
    init_script: str | None = None,
    remote_admin: str | None = None,
    idle_termination_minutes: int | str | None = None,
    stop_on_terminate: bool = False,
    tags: list[Tag | dict[str, str]] | None = None,
    node_properties: dict[str, str] | None = None,
    instance_cap: int | str | None = None,
) -> Template:
    """Validate user configuration and return a Template.

    Raises:
        ConfigurationError: if any field is invalid
    """
    if not name:
        raise ConfigurationError("Template name is required")

    label_string = label_string or ""
    if idle_termination_minutes in ("", None):
        idle_termination_minutes = None

    try:
        return Template(
            name=name,
            description=description or "",
            mode=NodeMode(mode),
            label_string=label_string,
            labels=parse_labels(label_string),
            init_script=init_script or "",
            remote_admin=remote_admin or "",
            idle_termination_minutes=idle_termination_minutes,
            stop_on_terminate=stop_on_terminate,
            tags=tuple(t if isinstance(t, Tag) else Tag(**t) for t in tags or ()),
            node_properties=dict(node_properties or {}),
            instance_cap=parse_instance_cap(instance_cap),
        )
    except (ValidationError, ValueError, TypeError) as exc:
        raise ConfigurationError(f"Invalid template {name!r}: {exc}") from exc


def load_templates(path: str | Path) -> list[Template]:
    """Load and validate templates from a YAML file.

    Expected format:

        templates:
          - name: linux-small
            label_string: linux docker
            instance_cap: 3
    """
    try:
        data: Any = yaml.safe_load(Path(path).expanduser().read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read templates from {path}: {exc}") from exc

    entries = data.get("templates", []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ConfigurationError(f"{path}: 'templates' must be a list")

    templates: list[Template] = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"{path}: template entries must be mappings")
        entry = dict(entry)
        try:
            templates.append(build_template(entry.pop("name", ""), **entry))
        except TypeError as exc:
            raise ConfigurationError(f"{path}: {exc}") from exc

    names = [t.name for t in templates]
    duplicates = {n for n in names if names.count(n) > 1}
    if duplicates:
        raise ConfigurationError(f"Duplicate template names: {', '.join(sorted(duplicates))}")
    return templates
