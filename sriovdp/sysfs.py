"""Queries about PCI devices and their SR-IOV state, read from sysfs."""

from __future__ import annotations

import logging
import os
import re
import stat
from pathlib import Path

from .providers import get_netlink_provider, get_sriovnet_provider

log = logging.getLogger(__name__)

DEV_DIR = "/dev"

_TOTAL_VF_FILE = "sriov_totalvfs"
_CONFIGURED_VF_FILE = "sriov_numvfs"
_ESWITCH_MODE_SWITCHDEV = "switchdev"

_VALID_LONG_ID = re.compile(r"0{4}:[0-9a-f]{2}:[0-9a-f]{2}.[0-7]")
_VALID_SHORT_ID = re.compile(r"[0-9a-f]{2}:[0-9a-f]{2}.[0-7]")
_VALID_RESOURCE_NAME = re.compile(r"[a-zA-Z0-9_]+")
_INTEGER = re.compile(r"[+-]?[0-9]+")

_sys_bus_pci = "/sys/bus/pci/devices"


class SysfsError(Exception):
    """Raised when device information cannot be read from sysfs."""


def set_sys_bus_pci(path: str | os.PathLike[str]) -> None:
    """Set the directory that holds the PCI devices."""
    global _sys_bus_pci
    _sys_bus_pci = os.fspath(path)


def get_sys_bus_pci() -> str:
    """Return the directory that holds the PCI devices."""
    return _sys_bus_pci


def _device_path(*parts: str) -> Path:
    return Path(_sys_bus_pci, *parts)


def _is_symlink(path: Path) -> bool:
    """lstat ``path`` and report whether it is a symlink; raise OSError if absent."""
    return stat.S_ISLNK(os.lstat(path).st_mode)


def _read_int(path: Path, default: int) -> int:
    try:
        text = path.read_bytes().strip().decode("ascii")
    except (OSError, UnicodeDecodeError):
        return default
    if not _INTEGER.fullmatch(text):
        return default
    return int(text)


def _sorted_names(path: Path) -> list[str]:
    return sorted(entry.name for entry in os.scandir(path))


def detect_plugin_watch_mode(sock_dir: str | os.PathLike[str]) -> bool:
    """Return True if the plugin registry directory exists."""
    try:
        os.stat(sock_dir)
    except OSError:
        return False
    return True


def get_pf_addr(pci_addr: str) -> str:
    """Return the PF PCI address of a VF, or the device's own address if it is no VF."""
    try:
        target = os.readlink(_device_path(pci_addr, "physfn"))
    except FileNotFoundError:
        return pci_addr
    except OSError as exc:
        raise SysfsError(f"error getting PF for PCI device {pci_addr} {exc}") from exc
    return os.path.basename(target)


def get_pf_eswitch_mode(pci_addr: str) -> str:
    """Return the e-switch mode of the PF owning ``pci_addr``."""
    try:
        pf_addr = get_pf_addr(pci_addr)
    except SysfsError as exc:
        raise SysfsError(f"error getting PF PCI address for device {pci_addr} {exc}") from exc
    try:
        attrs = get_netlink_provider().get_devlink_eswitch_attrs(pf_addr)
    except Exception as exc:
        raise SysfsError(str(exc)) from exc
    return attrs.mode


def get_pf_name(pci_addr: str) -> str:
    """Return the PF interface name of a VF, or the device's own interface name."""
    error: SysfsError | None = None
    try:
        mode = get_pf_eswitch_mode(pci_addr)
    except SysfsError as exc:
        mode, error = "", exc
    if mode == "":
        if error is None or "no such device" in str(error).lower():
            log.info(
                "Devlink query for eswitch mode is not supported for device %s. %s",
                pci_addr,
                error,
            )
        else:
            raise error
    elif mode == _ESWITCH_MODE_SWITCHDEV:
        try:
            return get_sriovnet_provider().get_uplink_representor(pci_addr)
        except Exception as exc:
            raise SysfsError(str(exc)) from exc

    try:
        names = _sorted_names(_device_path(pci_addr, "physfn", "net"))
    except FileNotFoundError:
        try:
            names = _sorted_names(_device_path(pci_addr, "net"))
        except OSError as exc:
            raise SysfsError(str(exc)) from exc
        if not names:
            raise SysfsError(f"no interface name found for device {pci_addr}")
        return names[0]
    except OSError as exc:
        raise SysfsError(str(exc)) from exc
    if names:
        return names[0]
    raise SysfsError(f"the PF name is not found for device {pci_addr}")


def is_sriov_pf(pci_addr: str) -> bool:
    """Return True if the device is SR-IOV capable."""
    return _device_path(pci_addr, _TOTAL_VF_FILE).exists()


def is_sriov_vf(pci_addr: str) -> bool:
    """Return True if the device links to a PF."""
    return _device_path(pci_addr, "physfn").exists()


def get_vf_configured(pf: str) -> int:
    """Return the number of VFs configured on a PF, 0 if unknown."""
    return _read_int(_device_path(pf, _CONFIGURED_VF_FILE), 0)


def get_vf_list(pf: str) -> list[str]:
    """Return the PCI addresses of all VFs of a PF."""
    pf_dir = _device_path(pf)
    try:
        os.lstat(pf_dir)
    except OSError as exc:
        raise SysfsError(
            f"error. Could not get PF directory information for device: {pf}, Err: {exc}"
        ) from exc
    vf_list = []
    for vf_dir in sorted(pf_dir.glob("virtfn*")):
        try:
            if not _is_symlink(vf_dir):
                continue
            target = os.path.realpath(vf_dir, strict=True)
        except OSError:
            continue
        vf_list.append(os.path.basename(target))
    return vf_list


def get_pci_addr_from_vf_id(pf: str, vf: int) -> str:
    """Return the PCI address of VF number ``vf`` of a PF."""
    vf_dir = f"{_sys_bus_pci}/{pf}/virtfn{vf}"
    try:
        is_link = _is_symlink(Path(vf_dir))
    except OSError as exc:
        raise SysfsError(
            f"could not get directory information for device: {pf}, VF: {vf}. Err: {exc}"
        ) from exc
    if not is_link:
        raise SysfsError(
            f"no symbolic link between virtual function and PCI - Device: {pf}, VF: {vf}"
        )
    try:
        target = os.readlink(vf_dir)
    except OSError as exc:
        raise SysfsError(
            "cannot read symbolic link between virtual function and PCI - "
            f"Device: {pf}, VF: {vf}. Err: {exc}"
        ) from exc
    return target[len("../"):]


def get_sriov_vf_capacity(pf: str) -> int:
    """Return the total number of VFs a PF supports, 0 if unknown."""
    return _read_int(_device_path(pf, _TOTAL_VF_FILE), 0)


def get_dev_node(pci_addr: str) -> int:
    """Return the NUMA node of a device, -1 if unspecified or unreadable."""
    return _read_int(_device_path(pci_addr, "numa_node"), -1)


def is_netlink_status_up(dev: str) -> bool:
    """Return False only if some readable operstate of the device is not "up"."""
    for operstate in sorted(_device_path(dev, "net").glob("*/operstate")):
        try:
            text = operstate.read_text()
        except (OSError, UnicodeDecodeError):
            return False
        if text.strip() != "up":
            return False
    return True


def _device_exists(addr: str) -> None:
    dev_path = _device_path(addr)
    try:
        os.lstat(dev_path)
    except OSError as exc:
        raise SysfsError(f"error: unable to read device directory {dev_path}") from exc


def valid_pci_addr(addr: str) -> str:
    """Validate a PCI address, normalise it to long form and check the device exists."""
    if _VALID_LONG_ID.fullmatch(addr):
        _device_exists(addr)
        return addr
    if _VALID_SHORT_ID.fullmatch(addr):
        addr = "0000:" + addr
        _device_exists(addr)
        return addr
    raise SysfsError(f"invalid pci address {addr}")


def sriov_configured(addr: str) -> bool:
    """Return True if the device has VFs configured."""
    return get_vf_configured(addr) > 0


def valid_resource_name(name: str) -> bool:
    """Return True if the name holds only letters, digits and underscores."""
    return _VALID_RESOURCE_NAME.fullmatch(name) is not None


def get_vfio_device_file(dev: str) -> tuple[str, str]:
    """Return the (host, container) VFIO device files of a vfio-pci bound device."""
    dev_path = _device_path(dev)
    try:
        os.lstat(dev_path)
    except OSError as exc:
        raise SysfsError(
            f"GetVFIODeviceFile(): Could not get directory information for device: {dev}, Err: {exc}"
        ) from exc
    iommu_dir = dev_path / "iommu_group"
    try:
        is_link = _is_symlink(iommu_dir)
    except OSError as exc:
        raise SysfsError(f"GetVFIODeviceFile(): unable to find iommu_group {exc}") from exc
    if not is_link:
        raise SysfsError("GetVFIODeviceFile(): invalid symlink to iommu_group")
    try:
        link_name = os.path.realpath(iommu_dir, strict=True)
    except OSError as exc:
        raise SysfsError(
            f"GetVFIODeviceFile(): error reading symlink to iommu_group {exc}"
        ) from exc
    container_file = os.path.join(DEV_DIR, "vfio", os.path.basename(link_name))
    host_file = container_file
    try:
        group_name = Path(link_name, "name").read_text().strip()
    except (OSError, UnicodeDecodeError):
        group_name = None
    if group_name == "vfio-noiommu":
        host_file = os.path.join(DEV_DIR, "vfio", "noiommu-" + os.path.basename(link_name))
    return host_file, container_file


def get_uio_device_file(dev: str) -> str:
    """Return the UIO device file of a uio bound device."""
    uio_dir = _device_path(dev, "uio")
    try:
        os.lstat(uio_dir)
    except OSError as exc:
        raise SysfsError(
            f"GetUIODeviceFile(): could not get directory information for device: {uio_dir} Err: {exc}"
        ) from exc
    try:
        names = _sorted_names(uio_dir)
    except OSError as exc:
        raise SysfsError(str(exc)) from exc
    if not names:
        raise SysfsError(f"GetUIODeviceFile(): no uio device found in {uio_dir}")
    return os.path.join(DEV_DIR, names[0])


def get_net_names(pci_addr: str) -> list[str]:
    """Return the host interface names of a PCI device."""
    net_dir = _device_path(pci_addr, "net")
    try:
        os.lstat(net_dir)
    except OSError as exc:
        raise SysfsError(
            f"GetNetName(): no net directory under pci device {pci_addr}: {exc}"
        ) from exc
    try:
        return _sorted_names(net_dir)
    except OSError as exc:
        raise SysfsError(f"GetNetName(): failed to read net directory {net_dir}: {exc}") from exc


def get_driver_name(pci_addr: str) -> str:
    """Return the driver bound to a PCI device."""
    try:
        target = os.readlink(_device_path(pci_addr, "driver"))
    except OSError as exc:
        raise SysfsError(f"error getting driver info for device {pci_addr} {exc}") from exc
    return os.path.basename(target)


def get_vf_id(pci_addr: str) -> int:
    """Return the index of a VF within its PF, -1 if it is no VF or was not found."""
    pf_dir = _device_path(pci_addr, "physfn")
    try:
        os.lstat(pf_dir)
    except FileNotFoundError:
        return -1
    except OSError as exc:
        raise SysfsError(
            f"could not get PF directory information for VF device: {pci_addr}, Err: {exc}"
        ) from exc
    count = len(list(pf_dir.glob("virtfn*")))
    for vf_id in range(count):
        vf_dir = Path(f"{pf_dir}/virtfn{vf_id}")
        try:
            if not _is_symlink(vf_dir):
                continue
            target = os.path.realpath(vf_dir, strict=True)
        except OSError:
            continue
        if pci_addr in target:
            return vf_id
    return -1