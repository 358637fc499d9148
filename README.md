# sriovdp

Discovery, filtering and allocation of SR-IOV network devices and
accelerators for container device plugins on Linux.

The package reads PCI device information from sysfs, selects devices
according to a resource configuration, and answers the allocation and
device-listing requests a device plugin receives from the kubelet.

## Installation

    pip install sriovdp

The package has no runtime dependencies. Tests need the `test` extra:

    pip install "sriovdp[test]"
    pytest

## Modules

- `sriovdp.types`: the shared data types. These are `DeviceType` (with
  its PCI class code in `pci_class`), `DeviceSpec`, `Mount`, `NumaNode`,
  `TopologyInfo`, `Device`, `ResourceConfig` and the selector
  configurations `DeviceSelectors`, `NetDeviceSelectors` and
  `AccelDeviceSelectors`, which each have a `from_dict` method.
  `parse_resource_config_list` reads a `{"resourceList": [...]}` document
  from a string, bytes or a decoded mapping. The module also defines the
  protocols `PciDevice`, `PciNetDevice`, `DeviceInfoProvider`,
  `DeviceSelector` and `ResourcePool`.
- `sriovdp.sysfs`: helpers over `/sys/bus/pci/devices`.
  - PF and VF lookup: `get_pf_addr`, `get_pf_name`, `get_vf_list`,
    `get_vf_id` and `get_pci_addr_from_vf_id`.
  - SR-IOV state: `is_sriov_pf`, `is_sriov_vf`, `get_vf_configured`,
    `get_sriov_vf_capacity` and `sriov_configured`.
  - Device details: `get_dev_node` (NUMA node, -1 if unknown),
    `get_driver_name`, `get_net_names`, `is_netlink_status_up` and
    `get_pf_eswitch_mode`.
  - Device files: `get_vfio_device_file` returns a (host, container)
    pair and `get_uio_device_file` returns one path.
  - Validation: `valid_pci_addr` normalises a short address to long form
    and checks that the device exists. `valid_resource_name` checks a
    resource name.

  `set_sys_bus_pci` and `get_sys_bus_pci` change and report the directory
  the helpers read. Failures raise `SysfsError`.
- `sriovdp.ddp`: `get_ddp_profiles(dev)` runs `ddptool -l -a -j -s <dev>`
  and returns the name of the running Dynamic Device Personalization
  profile. `ddp_name_from_output` parses that tool's JSON output. Failures
  raise `DdpError`.
- `sriovdp.providers`: lookups of link and e-switch attributes.
  `DevlinkNetlinkProvider` reads link attributes from `/sys/class/net` and
  e-switch attributes over generic netlink devlink. `SysfsSriovnetProvider`
  finds the uplink representor of a switchdev PF. The providers in use can
  be swapped with `set_netlink_provider` and `set_sriovnet_provider`; each
  returns the provider it replaced.
- `sriovdp.selectors`: device filters.
  - `VendorSelector`, `DeviceCodeSelector`, `DriverSelector`,
    `PciAddressSelector`, `LinkTypeSelector` and `DdpSelector` match one
    device attribute against a list of values.
  - `PfNameSelector` and `RootDeviceSelector` also accept VF indices and
    inclusive ranges such as `ens2f1#0,3-5,7`. The name or address before
    `#` is compared without regard to case.
  - `is_selected` checks a single device against such a selector.
- `sriovdp.info_providers`: what a container receives for a device.
  - `GenericInfoProvider` gives no device files.
  - `UioInfoProvider` gives the device's `/dev/uioN` file.
  - `VfioInfoProvider` gives `/dev/vfio/vfio` plus the device's IOMMU
    group file.

  All three return the PCI address as the environment value.
- `sriovdp.pci_device`: `create_pci_device(info, factory, info_providers)`
  builds a `BasePciDevice` from a `PciDeviceInfo` using sysfs. It reads
  the PF address, driver, VF index and NUMA node. When no info providers
  are given, it asks `factory.get_default_info_provider(pci_addr, driver)`
  for one.
- `sriovdp.pool`: `BasicResourcePool` answers device-spec, environment and
  mount queries for a fixed set of devices. Device specs with the same
  host path are returned once.
- `sriovdp.server`: `ResourceServer` serves one pool.
  - `allocate` builds a per-container response of device specs, a
    `PCIDEVICE_<PREFIX>_<NAME>` environment variable and mounts.
  - `list_and_watch(send)` sends the device list and sends it again after
    every `signal_update()` until `terminate()` is called.
  - It also provides `get_info`, `notify_registration_status`,
    `get_device_plugin_options`, `pre_start_container`, `init` and
    `clean_up`.

## Example

    from sriovdp.info_providers import VfioInfoProvider
    from sriovdp.pci_device import PciDeviceInfo, create_pci_device
    from sriovdp.selectors import DriverSelector

    device = create_pci_device(
        PciDeviceInfo("0000:02:00.0"),
        None,
        [VfioInfoProvider("0000:02:00.0")],
    )
    selected = DriverSelector(["vfio-pci"]).filter([device])
    for spec in device.get_device_specs():
        print(spec.host_path, spec.container_path, spec.permissions)

## What it does not do

- The package has no command and no daemon.
- `ResourceServer` handles requests as plain method calls. It does not
  listen on a socket, speak gRPC, register itself with the kubelet or
  watch for the kubelet restarting.
- `BasicResourcePool` does no health probing and writes no device
  information files.
- There is no factory that chooses an info provider from a driver name.
  There is also no network-device type that fills in PF name, link type or
  DDP profile. Callers supply those, for example as their own objects
  that have the attributes the selectors read.