"""A PCI device as discovered in sysfs, with its plugin-API view."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from .sysfs import get_dev_node, get_driver_name, get_pf_addr, get_vf_id
from .types import (
    HEALTHY,
    Device,
    DeviceInfoProvider,
    DeviceSpec,
    Mount,
    NumaNode,
    TopologyInfo,
)


class _InfoProviderFactory(Protocol):
    def get_default_info_provider(self, pci_addr: str, driver: str) -> DeviceInfoProvider: ...


@dataclass(frozen=True)
class PciDeviceInfo:
    """Identity of a PCI device as enumerated on the bus."""

    address: str
    vendor_id: str = ""
    product_id: str = ""
    subclass_id: str = ""


def node_to_str(node_num: int) -> str:
    """Convert a NUMA node number to text; a negative node (unknown) becomes ""."""
    return str(node_num) if node_num >= 0 else ""


@dataclass(eq=False)
class BasePciDevice:
    """A PCI device with its driver, PF, VF index, NUMA node and info providers."""

    info: PciDeviceInfo
    pf_pci_addr: str
    driver: str
    vf_id: int
    numa_info: str
    api_device: Device
    info_providers: list[DeviceInfoProvider] = field(default_factory=list)

    @property
    def vendor(self) -> str:
        return self.info.vendor_id

    @property
    def device_code(self) -> str:
        return self.info.product_id

    @property
    def pci_addr(self) -> str:
        return self.info.address

    @property
    def subclass(self) -> str:
        return self.info.subclass_id

    @property
    def is_sriov_pf(self) -> bool:
        return False

    def get_device_specs(self) -> list[DeviceSpec]:
        """Return the device specs of all info providers, in order."""
        return [spec for provider in self.info_providers for spec in provider.get_device_specs()]

    def get_env_val(self) -> str:
        """Return the environment value of the first info provider."""
        return self.info_providers[0].get_env_val()

    def get_mounts(self) -> list[Mount]:
        """Return the mounts of all info providers, in order."""
        return [mount for provider in self.info_providers for mount in provider.get_mounts()]


def create_pci_device(
    info: PciDeviceInfo,
    factory: _InfoProviderFactory | None,
    info_providers: Sequence[DeviceInfoProvider] | None = None,
) -> BasePciDevice:
    """Build a device from sysfs; without info providers the factory supplies the default one.

    Raises SysfsError when the PF address, driver or VF index cannot be read.
    """
    pci_addr = info.address
    pf_addr = get_pf_addr(pci_addr)
    driver = get_driver_name(pci_addr)
    vf_id = get_vf_id(pci_addr)

    providers = list(info_providers or [])
    if not providers:
        if factory is None:
            raise ValueError(f"no info provider and no factory for device {pci_addr}")
        providers.append(factory.get_default_info_provider(pci_addr, driver))

    node = get_dev_node(pci_addr)
    api_device = Device(id=pci_addr, health=HEALTHY)
    if node >= 0:
        api_device.topology = TopologyInfo(nodes=[NumaNode(node)])

    return BasePciDevice(
        info=info,
        pf_pci_addr=pf_addr,
        driver=driver,
        vf_id=vf_id,
        numa_info=node_to_str(node),
        api_device=api_device,
        info_providers=providers,
    )