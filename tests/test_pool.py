import os

import pytest

from sriovdp.info_providers import VfioInfoProvider
from sriovdp.pci_device import PciDeviceInfo, create_pci_device
from sriovdp.pool import BasicResourcePool
from sriovdp.sysfs import get_sys_bus_pci, set_sys_bus_pci
from sriovdp.types import DeviceSpec, NetDeviceSelectors, ResourceConfig


class _Factory:
    def get_default_info_provider(self, pci_addr, driver):
        assert driver == "vfio-pci"
        return VfioInfoProvider(pci_addr)


@pytest.fixture
def sysroot(tmp_path):
    previous = get_sys_bus_pci()
    root = tmp_path
    for d in (
        "sys/bus/pci/devices/0000:00:00.1/net/enp2s0f0v0",
        "sys/bus/pci/devices/0000:01:00.0/net/enp2s0f0",
        "sys/bus/pci/devices/0000:00:00.2/net/enp2s0f1v0",
        "sys/kernel/iommu_groups/0",
        "sys/kernel/iommu_groups/1",
        "sys/bus/pci/drivers/vfio-pci",
    ):
        (root / d).mkdir(parents=True)
    links = {
        "sys/bus/pci/devices/0000:00:00.1/iommu_group": "../../../../kernel/iommu_groups/0",
        "sys/bus/pci/devices/0000:00:00.2/iommu_group": "../../../../kernel/iommu_groups/1",
        "sys/bus/pci/devices/0000:00:00.1/driver": "../../../../bus/pci/drivers/vfio-pci",
        "sys/bus/pci/devices/0000:00:00.2/driver": "../../../../bus/pci/drivers/vfio-pci",
        "sys/bus/pci/devices/0000:00:00.1/physfn": "../0000:01:00.0",
    }
    for link, target in links.items():
        os.symlink(target, root / link)
    set_sys_bus_pci(root / "sys/bus/pci/devices")
    yield root
    set_sys_bus_pci(previous)


DEVS = ["0000:00:00.1", "0000:00:00.2"]


@pytest.fixture
def pool(sysroot):
    rc = ResourceConfig(selector_obj=NetDeviceSelectors())
    factory = _Factory()
    d1 = create_pci_device(PciDeviceInfo("0000:00:00.1"), factory)
    d2 = create_pci_device(PciDeviceInfo("0000:00:00.2"), factory)
    return BasicResourcePool(rc, {}, {"0000:00:00.1": d1, "0000:00:00.2": d2})


def test_get_device_specs(pool):
    specs = pool.get_device_specs(DEVS)
    expected = [
        DeviceSpec(container_path="/dev/vfio/vfio", host_path="/dev/vfio/vfio", permissions="mrw"),
        DeviceSpec(container_path="/dev/vfio/0", host_path="/dev/vfio/0", permissions="mrw"),
        DeviceSpec(container_path="/dev/vfio/1", host_path="/dev/vfio/1", permissions="mrw"),
    ]
    assert len(specs) == 3
    assert sorted(specs, key=lambda s: s.host_path) == sorted(expected, key=lambda s: s.host_path)


def test_get_envs(pool):
    envs = pool.get_envs(DEVS)
    assert len(envs) == 2
    assert sorted(envs) == sorted(["0000:00:00.1", "0000:00:00.2"])


def test_get_mounts(pool):
    assert pool.get_mounts(DEVS) == []


def test_unknown_ids_are_ignored(pool):
    assert pool.get_envs(["0000:09:00.0"]) == []
    assert pool.get_device_specs(["0000:09:00.0"]) == []


def test_device_spec_exists_by_host_path(pool):
    spec = DeviceSpec(host_path="/dev/x", container_path="/a", permissions="r")
    same_host = DeviceSpec(host_path="/dev/x", container_path="/b", permissions="mrw")
    other = DeviceSpec(host_path="/dev/y", container_path="/a", permissions="r")
    assert pool.device_spec_exists([spec], same_host) is True
    assert pool.device_spec_exists([spec], other) is False
    assert pool.device_spec_exists([], spec) is False


def test_name_prefix_and_stubs():
    rc = ResourceConfig(resource_name="intel_sriov", resource_prefix="intel.com")
    devices = {}
    p = BasicResourcePool(rc, devices, {})
    assert p.resource_name == "intel_sriov"
    assert p.resource_prefix == "intel.com"
    assert p.devices is devices
    assert p.probe() is False
    assert p.init_device() is None
    assert p.store_device_info_file("intel.com") is None
    assert p.clean_device_info_file("intel.com") is None