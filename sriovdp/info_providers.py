"""Providers of the plugin-API view of a device for each driver family."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .sysfs import SysfsError, get_uio_device_file, get_vfio_device_file
from .types import DeviceSpec, Mount

log = logging.getLogger(__name__)

VFIO_MOUNT = "/dev/vfio/vfio"


@dataclass(frozen=True)
class GenericInfoProvider:
    """A device with no device files: only its PCI address is exposed."""

    pci_addr: str

    def get_device_specs(self) -> list[DeviceSpec]:
        """Return no device specs."""
        return []

    def get_env_val(self) -> str:
        """Return the device's PCI address."""
        return self.pci_addr

    def get_mounts(self) -> list[Mount]:
        """Return no mounts."""
        return []


@dataclass(frozen=True)
class UioInfoProvider:
    """A device bound to a UIO driver."""

    pci_addr: str

    def get_device_specs(self) -> list[DeviceSpec]:
        """Return the device's UIO device file, if it can be found."""
        try:
            uio_dev = get_uio_device_file(self.pci_addr)
        except SysfsError:
            log.error(
                "GetDeviceSpecs(): error getting uio device file for device: %s", self.pci_addr
            )
            return []
        return [DeviceSpec(host_path=uio_dev, container_path=uio_dev, permissions="mrw")]

    def get_env_val(self) -> str:
        """Return the device's PCI address."""
        return self.pci_addr

    def get_mounts(self) -> list[Mount]:
        """Return no mounts."""
        return []


@dataclass(frozen=True)
class VfioInfoProvider:
    """A device bound to vfio-pci."""

    pci_addr: str
    vfio_mount: str = VFIO_MOUNT

    def get_device_specs(self) -> list[DeviceSpec]:
        """Return the common VFIO device file and the device's IOMMU group file."""
        specs = [
            DeviceSpec(
                host_path=self.vfio_mount, container_path=self.vfio_mount, permissions="mrw"
            )
        ]
        try:
            host_file, container_file = get_vfio_device_file(self.pci_addr)
        except SysfsError as exc:
            log.error(
                "GetDeviceSpecs(): error getting vfio device file for device: %s, %s",
                self.pci_addr,
                exc,
            )
        else:
            specs.append(
                DeviceSpec(host_path=host_file, container_path=container_file, permissions="mrw")
            )
        return specs

    def get_env_val(self) -> str:
        """Return the device's PCI address."""
        return self.pci_addr

    def get_mounts(self) -> list[Mount]:
        """Return no mounts."""
        return []