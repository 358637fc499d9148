"""A basic resource pool over a fixed set of devices."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from .types import Device, DeviceSpec, Mount, PciDevice, ResourceConfig

log = logging.getLogger(__name__)


class BasicResourcePool:
    """A resource pool that serves the devices it was given."""

    def __init__(
        self,
        config: ResourceConfig,
        devices: Mapping[str, Device],
        device_pool: Mapping[str, PciDevice],
    ) -> None:
        self.config = config
        self.devices = devices
        self.device_pool = device_pool
        self.initialised = False
        self.info_prefixes: set[str] = set()

    @property
    def resource_name(self) -> str:
        return self.config.resource_name

    @property
    def resource_prefix(self) -> str:
        return self.config.resource_prefix

    def init_device(self) -> None:
        """Mark the pool as initialised; a basic pool needs no device setup."""
        self.initialised = True

    def probe(self) -> bool:
        """Health check; a basic pool never reports a change."""
        return False

    def get_device_specs(self, device_ids: Sequence[str]) -> list[DeviceSpec]:
        """Return the device specs of the known devices, without repeated host paths."""
        log.info("GetDeviceSpecs(): for devices: %s", list(device_ids))
        specs: list[DeviceSpec] = []
        for device_id in device_ids:
            dev = self.device_pool.get(device_id)
            if dev is None:
                continue
            for spec in dev.get_device_specs():
                if not self.device_spec_exists(specs, spec):
                    specs.append(spec)
        return specs

    def get_envs(self, device_ids: Sequence[str]) -> list[str]:
        """Return the environment values of the known devices."""
        log.info("GetEnvs(): for devices: %s", list(device_ids))
        return [
            self.device_pool[device_id].get_env_val()
            for device_id in device_ids
            if device_id in self.device_pool
        ]

    def get_mounts(self, device_ids: Sequence[str]) -> list[Mount]:
        """Return the mounts of the known devices."""
        log.info("GetMounts(): for devices: %s", list(device_ids))
        return [
            mount
            for device_id in device_ids
            if device_id in self.device_pool
            for mount in self.device_pool[device_id].get_mounts()
        ]

    def device_spec_exists(self, specs: Sequence[DeviceSpec], new_spec: DeviceSpec) -> bool:
        """Return True if a spec with the same host path is already in ``specs``."""
        return any(spec.host_path == new_spec.host_path for spec in specs)

    def store_device_info_file(self, resource_name_prefix: str) -> None:
        """Record the prefix as published; a basic pool writes no file."""
        self.info_prefixes.add(resource_name_prefix)

    def clean_device_info_file(self, resource_name_prefix: str) -> None:
        """Forget the prefix as published; a basic pool has no file to remove."""
        self.info_prefixes.discard(resource_name_prefix)