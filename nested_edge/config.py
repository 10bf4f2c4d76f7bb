"""Config loader — reads the hub name and device tree from YAML or TOML.

Example (YAML)::

    iothub:
      iot_hub_name: my-hub
    root_device:
      device_id: top-layer
      children:
        - device_id: mid-layer
          children:
            - device_id: bottom-layer
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from nested_edge.core.errors import ConfigError
from nested_edge.core.models import DeviceNode

DEFAULT_CONFIG_PATH = Path("./templates/test1.yaml")


@dataclass(frozen=True)
class Config:
    hub_name: str
    root_device: DeviceNode


def _parse_device(obj: Any, seen: set[str], where: str) -> DeviceNode:
    if not isinstance(obj, dict):
        raise ConfigError(f"{where}: expected a mapping, got {type(obj).__name__}")

    device_id = obj.get("device_id")
    if not isinstance(device_id, str) or not device_id.strip():
        raise ConfigError(f"{where}: device_id must be a non-empty string")
    if "/" in device_id or "\\" in device_id:
        raise ConfigError(f"{where}: device_id {device_id!r} may not contain path separators")
    if device_id.strip() in (".", ".."):
        raise ConfigError(f"{where}: device_id {device_id!r} is not a valid folder name")
    if device_id in seen:
        raise ConfigError(f"Duplicate device_id: {device_id!r}")
    seen.add(device_id)

    children = obj.get("children") or []
    if not isinstance(children, list):
        raise ConfigError(f"{device_id}: children must be a list")

    return DeviceNode(
        device_id=device_id,
        children=tuple(
            _parse_device(child, seen, f"{device_id}.children[{i}]")
            for i, child in enumerate(children)
        ),
    )


def config_from_dict(data: Any) -> Config:
    """Build a Config from already-deserialized data. Raises ConfigError."""
    if not isinstance(data, dict):
        raise ConfigError("Config must be a mapping")

    iothub = data.get("iothub")
    if not isinstance(iothub, dict):
        raise ConfigError("Missing 'iothub' section")
    hub_name = iothub.get("iot_hub_name")
    if not isinstance(hub_name, str) or not hub_name.strip():
        raise ConfigError("iothub.iot_hub_name must be a non-empty string")

    if "root_device" not in data:
        raise ConfigError("Missing 'root_device' section")
    root = _parse_device(data["root_device"], set(), "root_device")

    return Config(hub_name=hub_name, root_device=root)


def load_config(path: Optional[str | Path] = None) -> Config:
    """Read a ``.toml`` or YAML config file."""
    file_path = Path(path) if path else DEFAULT_CONFIG_PATH

    try:
        raw = file_path.read_bytes()
    except OSError as e:
        raise ConfigError(f"Error reading {file_path}: {e}") from e

    try:
        if file_path.suffix == ".toml":
            data = tomllib.loads(raw.decode("utf-8"))
        else:
            data = yaml.safe_load(raw)
    except (tomllib.TOMLDecodeError, yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigError(f"Error parsing {file_path}: {e}") from e

    return config_from_dict(data)
