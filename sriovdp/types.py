"""Core data types and interfaces shared across the device plugin."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

SOCK_DIR = "/var/lib/kubelet/plugins_registry"
"""Default kubelet plugin registry socket directory."""

DEPRECATED_SOCK_DIR = "/var/lib/kubelet/device-plugins"
"""Deprecated kubelet device plugin socket directory."""

KUBE_ENDPOINT = "kubelet.sock"
"""Kubelet socket name."""

HEALTHY = "Healthy"
UNHEALTHY = "Unhealthy"

_MISSING = object()


class DeviceType(str, Enum):
    """Supported device types."""

    NET_DEVICE = "netDevice"
    ACCELERATOR = "accelerator"

    @property
    def pci_class(self) -> int:
        """PCI device class code handled by this device type."""
        return SUPPORTED_DEVICES[self]


# 0x02: network controller, 0x12: processing accelerator.
SUPPORTED_DEVICES: dict[DeviceType, int] = {
    DeviceType.NET_DEVICE: 0x02,
    DeviceType.ACCELERATOR: 0x12,
}


@dataclass(frozen=True, kw_only=True)
class DeviceSpec:
    """A device file to be exposed inside a container."""

    container_path: str = ""
    host_path: str = ""
    permissions: str = ""


@dataclass(frozen=True, kw_only=True)
class Mount:
    """A host path to be mounted inside a container."""

    container_path: str = ""
    host_path: str = ""
    read_only: bool = False


@dataclass(frozen=True)
class NumaNode:
    """A NUMA node a device is attached to."""

    id: int


@dataclass
class TopologyInfo:
    """Topology hints for a device."""

    nodes: list[NumaNode] = field(default_factory=list)


@dataclass
class Device:
    """A device as advertised to the kubelet."""

    id: str
    health: str = HEALTHY
    topology: TopologyInfo | None = None


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    """Find ``key`` exactly, else case-insensitively; ``_MISSING`` if absent."""
    if key in data:
        return data[key]
    folded = key.lower()
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == folded:
            return value
    return _MISSING


def _string(data: Mapping[str, Any], key: str) -> str:
    value = _lookup(data, key)
    if value is _MISSING or value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string, got {type(value).__name__}")
    return value


def _list_field(key: str) -> Any:
    return field(default_factory=list, metadata={"json": key, "kind": "list"})


def _bool_field(key: str) -> Any:
    return field(default=False, metadata={"json": key, "kind": "bool"})


@dataclass
class DeviceSelectors:
    """Selector fields common to every device type."""

    vendors: list[str] = _list_field("vendors")
    devices: list[str] = _list_field("devices")
    drivers: list[str] = _list_field("drivers")
    pci_addresses: list[str] = _list_field("pciAddresses")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        """Build selectors from a decoded JSON object."""
        if not isinstance(data, Mapping):
            raise ValueError("selectors must be a JSON object")
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            key = f.metadata.get("json")
            if key is None:
                continue
            value = _lookup(data, key)
            if value is _MISSING or value is None:
                continue
            if f.metadata["kind"] == "list":
                if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                    raise ValueError(f"selector {key!r} must be a list of strings")
                kwargs[f.name] = list(value)
            else:
                if not isinstance(value, bool):
                    raise ValueError(f"selector {key!r} must be a boolean")
                kwargs[f.name] = value
        return cls(**kwargs)


@dataclass
class NetDeviceSelectors(DeviceSelectors):
    """Selector fields for network devices."""

    pf_names: list[str] = _list_field("pfNames")
    root_devices: list[str] = _list_field("rootDevices")
    link_types: list[str] = _list_field("linkTypes")
    ddp_profiles: list[str] = _list_field("ddpProfiles")
    is_rdma: bool = _bool_field("IsRdma")
    need_vhost_net: bool = _bool_field("NeedVhostNet")


@dataclass
class AccelDeviceSelectors(DeviceSelectors):
    """Selector fields for accelerator devices."""


@dataclass
class ResourceConfig:
    """Configuration of one resource pool."""

    resource_name: str = ""
    resource_prefix: str = ""
    device_type: DeviceType | None = None
    selectors: Any = None
    selector_obj: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceConfig":
        """Build a resource config from a decoded JSON object."""
        if not isinstance(data, Mapping):
            raise ValueError("resource config must be a JSON object")
        raw_type = _lookup(data, "deviceType")
        device_type = None
        if raw_type is not _MISSING and raw_type not in (None, ""):
            try:
                device_type = DeviceType(raw_type)
            except ValueError:
                raise ValueError(f"unsupported device type {raw_type!r}") from None
        selectors = _lookup(data, "selectors")
        return cls(
            resource_name=_string(data, "resourceName"),
            resource_prefix=_string(data, "resourcePrefix"),
            device_type=device_type,
            selectors=None if selectors is _MISSING else selectors,
        )


def parse_resource_config_list(data: str | bytes | Mapping[str, Any]) -> list[ResourceConfig]:
    """Parse a ``{"resourceList": [...]}`` document into resource configs."""
    if isinstance(data, (str, bytes, bytearray)):
        document = json.loads(data)
    else:
        document = data
    if not isinstance(document, Mapping):
        raise ValueError("resource config list must be a JSON object")
    entries = _lookup(document, "resourceList")
    if entries is _MISSING or entries is None:
        return []
    if not isinstance(entries, list):
        raise ValueError("resourceList must be a list")
    return [ResourceConfig.from_dict(entry) for entry in entries]


@runtime_checkable
class DeviceInfoProvider(Protocol):
    """Supplies the plugin-API view of a device."""

    def get_device_specs(self) -> list[DeviceSpec]: ...

    def get_env_val(self) -> str: ...

    def get_mounts(self) -> list[Mount]: ...


@runtime_checkable
class PciDevice(Protocol):
    """Generic PCI device information."""

    vendor: str
    driver: str
    device_code: str
    pci_addr: str
    pf_pci_addr: str
    is_sriov_pf: bool
    subclass: str
    api_device: Device
    vf_id: int
    numa_info: str

    def get_device_specs(self) -> list[DeviceSpec]: ...

    def get_env_val(self) -> str: ...

    def get_mounts(self) -> list[Mount]: ...


@runtime_checkable
class PciNetDevice(PciDevice, Protocol):
    """PCI network device information."""

    pf_name: str
    net_name: str
    link_speed: str
    link_type: str
    rdma_spec: Any
    ddp_profiles: str


@runtime_checkable
class DeviceSelector(Protocol):
    """Filters a list of devices."""

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]: ...


@runtime_checkable
class ResourcePool(Protocol):
    """A named pool of devices served to the kubelet."""

    resource_name: str
    resource_prefix: str
    devices: Mapping[str, Device]

    def probe(self) -> bool: ...

    def get_device_specs(self, device_ids: Sequence[str]) -> list[DeviceSpec]: ...

    def get_envs(self, device_ids: Sequence[str]) -> list[str]: ...

    def get_mounts(self, device_ids: Sequence[str]) -> list[Mount]: ...

    def store_device_info_file(self, resource_name_prefix: str) -> None: ...

    def clean_device_info_file(self, resource_name_prefix: str) -> None: ...