"""Selectors that filter PCI devices by their properties."""

from __future__ import annotations

import logging
import re
from typing import ClassVar, Iterable, Sequence

from .types import PciDevice

log = logging.getLogger(__name__)

_INTEGER = re.compile(r"[+-]?[0-9]+")


def _parse_int(text: str) -> int | None:
    return int(text) if _INTEGER.fullmatch(text) else None


def _find_selector(items: Sequence[str], needle: str) -> str:
    """Return the first item whose part before ``#`` equals ``needle`` ignoring case."""
    folded = needle.casefold()
    for item in items:
        if item.split("#")[0].casefold() == folded:
            return item
    return ""


def is_selected(dev: PciDevice, selector: str) -> bool:
    """Check a device against a ``<name>[#<index>|<start>-<end>,...]`` selector.

    Without ``#`` every device of the PF is selected. Ranges include both ends.
    A malformed selector selects nothing.
    """
    if "#" not in selector:
        return True
    fields = selector.split("#")
    if len(fields) != 2:
        log.warning(
            "Failed to parse %s PF (name|address) selector, "
            "probably incorrect separator character usage",
            selector,
        )
        return False
    for entry in fields[1].split(","):
        if "-" in entry:
            bounds = entry.split("-")
            if len(bounds) != 2:
                log.warning(
                    "Failed to parse %s PF (name|address) selector, "
                    "probably incorrect range character usage",
                    selector,
                )
                return False
            start = _parse_int(bounds[0])
            if start is None:
                log.warning(
                    "Failed to parse %s PF (name|address) selector, start range is incorrect",
                    selector,
                )
                return False
            end = _parse_int(bounds[1])
            if end is None:
                log.warning(
                    "Failed to parse %s PF (name|address) selector, end range is incorrect",
                    selector,
                )
                return False
            if start <= dev.vf_id <= end:
                return True
        else:
            index = _parse_int(entry)
            if index is None:
                log.warning(
                    "Failed to parse %s PF (name|address) selector, index is incorrect",
                    selector,
                )
                return False
            if dev.vf_id == index:
                return True
    return False


class _AttributeSelector:
    """Selects devices whose attribute value is one of the given values."""

    _attribute: ClassVar[str] = ""

    def __init__(self, values: Iterable[str]) -> None:
        self.values: tuple[str, ...] = tuple(values)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.values)!r})"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices whose attribute matches one of the values."""
        return [dev for dev in devices if getattr(dev, self._attribute) in self.values]


class VendorSelector(_AttributeSelector):
    """Selects devices by vendor ID."""

    _attribute = "vendor"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices made by one of the vendors."""
        return super().filter(devices)


class DeviceCodeSelector(_AttributeSelector):
    """Selects devices by device (product) code."""

    _attribute = "device_code"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices with one of the device codes."""
        return super().filter(devices)


class DriverSelector(_AttributeSelector):
    """Selects devices by bound driver."""

    _attribute = "driver"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices bound to one of the drivers."""
        return super().filter(devices)


class PciAddressSelector(_AttributeSelector):
    """Selects devices by PCI address."""

    _attribute = "pci_addr"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices at one of the PCI addresses."""
        return super().filter(devices)


class LinkTypeSelector(_AttributeSelector):
    """Selects network devices by link type."""

    _attribute = "link_type"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices with one of the link types."""
        return super().filter(devices)


class DdpSelector(_AttributeSelector):
    """Selects network devices by running DDP profile."""

    _attribute = "ddp_profiles"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices running one of the DDP profiles."""
        return [
            dev
            for dev in devices
            if dev.ddp_profiles != "" and dev.ddp_profiles in self.values
        ]


class _PfSelector(_AttributeSelector):
    """Selects devices by a PF property, optionally restricted to VF indices."""

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        selected = []
        for dev in devices:
            key = getattr(dev, self._attribute)
            if key == "":
                continue
            selector = _find_selector(self.values, key)
            if selector and is_selected(dev, selector):
                selected.append(dev)
        return selected


class PfNameSelector(_PfSelector):
    """Selects network devices by PF interface name, e.g. ``"ens1#0,3-5"``."""

    _attribute = "pf_name"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices whose PF name and VF index match a selector."""
        return super().filter(devices)


class RootDeviceSelector(_PfSelector):
    """Selects network devices by PF PCI address, e.g. ``"0000:86:00.0#1"``."""

    _attribute = "pf_pci_addr"

    def filter(self, devices: Sequence[PciDevice]) -> list[PciDevice]:
        """Return the devices whose PF address and VF index match a selector."""
        return super().filter(devices)