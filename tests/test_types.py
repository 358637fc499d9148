import json

import pytest

from sriovdp.types import (
    HEALTHY,
    AccelDeviceSelectors,
    Device,
    DeviceSpec,
    DeviceType,
    NetDeviceSelectors,
    ResourceConfig,
    parse_resource_config_list,
)


def test_device_type_values_and_classes():
    assert DeviceType("netDevice") is DeviceType.NET_DEVICE
    assert DeviceType("accelerator") is DeviceType.ACCELERATOR
    assert DeviceType.NET_DEVICE.pci_class == 0x02
    assert DeviceType.ACCELERATOR.pci_class == 0x12


def test_parse_resource_config_list():
    document = {
        "resourceList": [
            {
                "resourceName": "intel_sriov_netdevice",
                "resourcePrefix": "intel.com",
                "deviceType": "netDevice",
                "selectors": {"vendors": ["8086"], "pfNames": ["ens0"]},
            },
            {"resourceName": "accel", "deviceType": "accelerator"},
            {"resourceName": "plain"},
        ]
    }
    configs = parse_resource_config_list(json.dumps(document))
    assert [c.resource_name for c in configs] == ["intel_sriov_netdevice", "accel", "plain"]
    assert configs[0].resource_prefix == "intel.com"
    assert configs[0].device_type is DeviceType.NET_DEVICE
    assert configs[0].selectors == {"vendors": ["8086"], "pfNames": ["ens0"]}
    assert configs[1].device_type is DeviceType.ACCELERATOR
    assert configs[2].device_type is None
    assert configs[2].resource_prefix == ""
    assert configs[2].selectors is None


def test_parse_accepts_bytes_and_mapping_alike():
    document = {"resourceList": [{"resourceName": "x"}]}
    from_bytes = parse_resource_config_list(json.dumps(document).encode())
    from_mapping = parse_resource_config_list(document)
    assert from_bytes == from_mapping
    assert from_bytes[0].resource_name == "x"


def test_parse_without_resource_list_is_empty():
    assert parse_resource_config_list("{}") == []


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        '{"resourceList": {"resourceName": "x"}}',
        '{"resourceList": [{"resourceName": 3}]}',
        '{"resourceList": [{"resourceName": "x", "deviceType": "gpu"}]}',
        '{"resourceList": ["x"]}',
    ],
)
def test_parse_rejects_invalid_documents(text):
    with pytest.raises(ValueError):
        parse_resource_config_list(text)


def test_net_device_selectors_from_dict():
    sel = NetDeviceSelectors.from_dict(
        {
            "vendors": ["8086"],
            "devices": ["154c"],
            "drivers": ["vfio-pci"],
            "pciAddresses": ["0000:03:02.0"],
            "pfNames": ["ens2f0#1"],
            "rootDevices": ["0000:86:00.0"],
            "linkTypes": ["ether"],
            "ddpProfiles": ["GTP"],
            "isRdma": True,
        }
    )
    assert sel.vendors == ["8086"]
    assert sel.devices == ["154c"]
    assert sel.drivers == ["vfio-pci"]
    assert sel.pci_addresses == ["0000:03:02.0"]
    assert sel.pf_names == ["ens2f0#1"]
    assert sel.root_devices == ["0000:86:00.0"]
    assert sel.link_types == ["ether"]
    assert sel.ddp_profiles == ["GTP"]
    assert sel.is_rdma is True
    assert sel.need_vhost_net is False


def test_accel_selectors_ignore_net_fields():
    sel = AccelDeviceSelectors.from_dict({"vendors": ["8086"], "pfNames": ["ens0"]})
    assert sel == AccelDeviceSelectors(vendors=["8086"])


@pytest.mark.parametrize("data", [{"vendors": "8086"}, {"vendors": [1]}, {"IsRdma": "yes"}, ["x"]])
def test_selectors_reject_bad_types(data):
    with pytest.raises(ValueError):
        NetDeviceSelectors.from_dict(data)


def test_device_defaults_to_healthy():
    dev = Device(id="0000:00:00.1")
    assert dev.health == HEALTHY
    assert dev.topology is None


def test_device_specs_compare_by_value():
    a = DeviceSpec(host_path="/dev/vfio/vfio", container_path="/dev/vfio/vfio", permissions="mrw")
    b = DeviceSpec(host_path="/dev/vfio/vfio", container_path="/dev/vfio/vfio", permissions="mrw")
    assert a == b
    assert len({a, b}) == 1


def test_resource_config_from_dict_keeps_selectors_raw():
    raw = [{"devices": ["fakeid"]}]
    config = ResourceConfig.from_dict({"resourceName": "fake", "selectors": raw})
    assert config.selectors == raw
    assert config.selector_obj is None