"""Query the Dynamic Device Personalization profile of a device via ddptool."""

from __future__ import annotations

import json
import subprocess
from dataclasses import dataclass, field
from typing import Any, Mapping


class DdpError(Exception):
    """Raised when a DDP profile cannot be determined."""


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    folded = key.lower()
    for name, value in data.items():
        if name.lower() == folded:
            return value
    return None


def _string(data: Mapping[str, Any], key: str) -> str:
    value = _lookup(data, key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DdpError(f"field {key!r} must be a string")
    return value


def _object(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = _lookup(data, key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise DdpError(f"field {key!r} must be an object")
    return value


@dataclass
class DdpPackage:
    """A loaded DDP package."""

    track_id: str = ""
    version: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DdpPackage":
        return cls(
            track_id=_string(data, "track_id"),
            version=_string(data, "version"),
            name=_string(data, "name"),
        )


@dataclass
class DdpInventory:
    """DDP information of one device."""

    device: str = ""
    address: str = ""
    name: str = ""
    display: str = ""
    package: DdpPackage = field(default_factory=DdpPackage)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DdpInventory":
        return cls(
            device=_string(data, "device"),
            address=_string(data, "address"),
            name=_string(data, "name"),
            display=_string(data, "display"),
            package=DdpPackage.from_dict(_object(data, "DDPpackage")),
        )


@dataclass
class DdpInfo:
    """Top-level ddptool JSON document."""

    inventory: DdpInventory = field(default_factory=DdpInventory)

    @classmethod
    def from_dict(cls, data: Any) -> "DdpInfo":
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise DdpError("ddptool output is not a JSON object")
        return cls(inventory=DdpInventory.from_dict(_object(data, "DDPInventory")))


def ddp_name_from_output(data: str | bytes) -> str:
    """Extract the DDP profile name from ddptool's JSON output."""
    try:
        document = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DdpError(f"invalid ddptool output: {exc}") from exc
    name = DdpInfo.from_dict(document).inventory.package.name
    if not name:
        raise DdpError("DDP profile name not found")
    return name


def get_ddp_profiles(dev: str) -> str:
    """Return the name of the DDP profile running on ``dev``."""
    try:
        result = subprocess.run(
            ["ddptool", "-l", "-a", "-j", "-s", dev],
            stdout=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        raise DdpError(f"failed to run ddptool: {exc}") from exc
    if result.returncode != 0:
        raise DdpError(f"ddptool exited with status {result.returncode}")
    return ddp_name_from_output(result.stdout)