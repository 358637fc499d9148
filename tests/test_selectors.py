from dataclasses import dataclass

import pytest

from sriovdp.selectors import (
    DdpSelector,
    DeviceCodeSelector,
    DriverSelector,
    LinkTypeSelector,
    PciAddressSelector,
    PfNameSelector,
    RootDeviceSelector,
    VendorSelector,
    is_selected,
)


@dataclass(eq=False)
class FakeDevice:
    vendor: str = ""
    driver: str = ""
    device_code: str = ""
    pci_addr: str = ""
    pf_pci_addr: str = ""
    pf_name: str = ""
    link_type: str = ""
    ddp_profiles: str = ""
    vf_id: int = -1


def test_ddp_selector_filters_by_profile():
    sel = DdpSelector(["GTP"])
    dev0 = FakeDevice(pci_addr="0000:01:10.0", ddp_profiles="GTP")
    dev1 = FakeDevice(pci_addr="0000:01:10.1", ddp_profiles="PPPoE")
    dev2 = FakeDevice(pci_addr="0000:01:10.2", ddp_profiles="")
    assert sel.filter([dev0, dev1, dev2]) == [dev0]


def test_ddp_selector_ignores_empty_profile_even_if_listed():
    sel = DdpSelector(["", "GTP"])
    dev = FakeDevice(ddp_profiles="")
    assert sel.filter([dev]) == []


def test_ddp_selector_keeps_profiles():
    sel = DdpSelector(["GTPv1-C", "PPPoE"])
    assert sel.values == ("GTPv1-C", "PPPoE")


def test_vendor_selector():
    sel = VendorSelector(["8086"])
    dev0 = FakeDevice(vendor="8086")
    dev1 = FakeDevice(vendor="15b3")
    assert sel.filter([dev0, dev1]) == [dev0]


def test_device_code_selector():
    sel = DeviceCodeSelector(["10ed"])
    dev0 = FakeDevice(device_code="10ed")
    dev1 = FakeDevice(device_code="154c")
    assert sel.filter([dev0, dev1]) == [dev0]


def test_driver_selector():
    sel = DriverSelector(["vfio-pci"])
    dev0 = FakeDevice(driver="vfio-pci")
    dev1 = FakeDevice(driver="i40evf")
    assert sel.filter([dev0, dev1]) == [dev0]


def test_pci_address_selector():
    sel = PciAddressSelector(["0000:03:02.0", "0000:03:02.1"])
    devs = [FakeDevice(pci_addr=f"0000:03:02.{i}") for i in range(4)]
    assert sel.filter(devs) == [devs[0], devs[1]]


def test_selector_preserves_order():
    sel = VendorSelector(["8086", "15b3"])
    devs = [FakeDevice(vendor=v) for v in ("15b3", "1234", "8086", "15b3")]
    assert sel.filter(devs) == [devs[0], devs[2], devs[3]]


def test_pf_name_selector():
    sel = PfNameSelector(["ens0", "ens2f0#1", "ens2f1#0,3-5,7"])
    dev0 = FakeDevice(pf_name="ens0")
    dev1 = FakeDevice(pf_name="eth0")
    dev2 = FakeDevice(pf_name="ens2f0", vf_id=1)
    rest = [FakeDevice(pf_name="ens2f1", vf_id=i) for i in range(8)]
    filtered = sel.filter([dev0, dev1, dev2, *rest])
    assert filtered == [dev0, dev2, rest[0], rest[3], rest[4], rest[5], rest[7]]


def test_pf_name_selector_is_case_insensitive_and_skips_empty():
    sel = PfNameSelector(["ENS0", ""])
    dev0 = FakeDevice(pf_name="ens0")
    dev1 = FakeDevice(pf_name="")
    assert sel.filter([dev0, dev1]) == [dev0]


def test_root_device_selector():
    sel = RootDeviceSelector(["0000:86:00.0", "0000:86:00.1#1", "0000:86:00.2#0-2,5,7"])
    dev0 = FakeDevice(pf_pci_addr="0000:86:00.0")
    dev1 = FakeDevice(pf_pci_addr="0000:a0:00.0")
    dev2 = FakeDevice(pf_pci_addr="0000:86:00.1", vf_id=1)
    rest = [FakeDevice(pf_pci_addr="0000:86:00.2", vf_id=i) for i in range(8)]
    filtered = sel.filter([dev0, dev1, dev2, *rest])
    assert filtered == [dev0, dev2, rest[0], rest[1], rest[2], rest[5], rest[7]]


def test_link_type_selector():
    sel = LinkTypeSelector(["ether"])
    dev0 = FakeDevice(link_type="ether")
    dev1 = FakeDevice(link_type="infiniband")
    assert sel.filter([dev0, dev1]) == [dev0]


@pytest.mark.parametrize(
    "selector, vf_id, expected",
    [
        ("ens0", 9, True),
        ("ens0#3", 3, True),
        ("ens0#3", 4, False),
        ("ens0#1-3", 2, True),
        ("ens0#1-3", 3, True),
        ("ens0#1-3", 4, False),
        ("ens0#1#2", 1, False),
        ("ens0#1-2-3", 2, False),
        ("ens0#a-3", 2, False),
        ("ens0#1-b", 2, False),
        ("ens0#x", 2, False),
        ("ens0#x,2", 2, False),
        ("ens0#2,x", 2, True),
    ],
)
def test_is_selected(selector, vf_id, expected):
    assert is_selected(FakeDevice(vf_id=vf_id), selector) is expected