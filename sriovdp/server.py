"""The device plugin service: allocation, device listing and plugin registration."""

from __future__ import annotations

import logging
import os
import queue
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from .types import (
    DEPRECATED_SOCK_DIR,
    SOCK_DIR,
    Device,
    DeviceSpec,
    Mount,
    ResourcePool,
)

log = logging.getLogger(__name__)

DEVICE_PLUGIN_TYPE = "DevicePlugin"
SUPPORTED_VERSIONS = ("v1alpha1", "v1beta1")


@dataclass
class ContainerAllocateRequest:
    """The devices requested for one container."""

    devices_ids: list[str] = field(default_factory=list)


@dataclass
class AllocateRequest:
    """An allocation request covering several containers."""

    container_requests: list[ContainerAllocateRequest] = field(default_factory=list)


@dataclass
class ContainerAllocateResponse:
    """What one container receives for its allocated devices."""

    envs: dict[str, str] = field(default_factory=dict)
    mounts: list[Mount] = field(default_factory=list)
    devices: list[DeviceSpec] = field(default_factory=list)


@dataclass
class AllocateResponse:
    """The answer to an allocation request, one entry per container."""

    container_responses: list[ContainerAllocateResponse] = field(default_factory=list)


@dataclass
class ListAndWatchResponse:
    """The current list of devices of a resource."""

    devices: list[Device] = field(default_factory=list)


@dataclass
class PluginInfo:
    """Plugin information reported to the kubelet plugin watcher."""

    type: str
    name: str
    endpoint: str
    supported_versions: list[str] = field(default_factory=list)


@dataclass
class RegistrationStatus:
    """Registration outcome reported by the kubelet."""

    plugin_registered: bool
    error: str = ""


@dataclass
class DevicePluginOptions:
    """Options of the device plugin."""

    pre_start_required: bool = False


@dataclass(frozen=True)
class _PreStartContainerResponse:
    """The (empty) answer to a pre-start request."""


class _Signal(Enum):
    UPDATE = "update"
    TERMINATE = "terminate"


class ResourceServer:
    """Serves one resource pool to the kubelet."""

    def __init__(
        self,
        prefix: str,
        suffix: str,
        plugin_watch: bool,
        resource_pool: ResourcePool,
        *,
        sock_dir: str | os.PathLike[str] = SOCK_DIR,
        deprecated_sock_dir: str | os.PathLike[str] = DEPRECATED_SOCK_DIR,
    ) -> None:
        self.resource_pool = resource_pool
        self.plugin_watch = plugin_watch
        self.resource_name_prefix = prefix
        self.sock_dir = os.fspath(sock_dir)
        self.endpoint = f"{prefix}_{resource_pool.resource_name}.{suffix}"
        base_dir = self.sock_dir if plugin_watch else os.fspath(deprecated_sock_dir)
        self.sock_path = os.path.join(base_dir, self.endpoint)
        self.check_interval = 20
        self.stopped = False
        self._signals: queue.Queue[_Signal] = queue.Queue()

    @property
    def _qualified_name(self) -> str:
        return f"{self.resource_name_prefix}/{self.resource_pool.resource_name}"

    def get_info(self) -> PluginInfo:
        """Describe this plugin to the kubelet plugin watcher."""
        return PluginInfo(
            type=DEVICE_PLUGIN_TYPE,
            name=self._qualified_name,
            endpoint=os.path.join(self.sock_dir, self.endpoint),
            supported_versions=list(SUPPORTED_VERSIONS),
        )

    def notify_registration_status(self, status: RegistrationStatus) -> None:
        """Record the kubelet's registration outcome; stop serving if it failed."""
        if status.plugin_registered:
            log.info("Plugin: %s gets registered successfully at Kubelet", self.endpoint)
        else:
            log.info(
                "Plugin: %s failed to be registered at Kubelet: %s; restarting.",
                self.endpoint,
                status.error,
            )
            self.stopped = True

    def allocate(self, request: AllocateRequest) -> AllocateResponse:
        """Return device specs, environment and mounts for each requested container."""
        log.info("Allocate() called with %s", request)
        response = AllocateResponse(
            container_responses=[
                ContainerAllocateResponse(
                    devices=self.resource_pool.get_device_specs(container.devices_ids),
                    envs=self.get_envs(container.devices_ids),
                    mounts=self.resource_pool.get_mounts(container.devices_ids),
                )
                for container in request.container_requests
            ]
        )
        log.info("AllocateResponse send: %s", response)
        return response

    def _current_devices(self) -> ListAndWatchResponse:
        return ListAndWatchResponse(devices=list(self.resource_pool.devices.values()))

    def list_and_watch(self, send: Callable[[ListAndWatchResponse], None]) -> None:
        """Send the device list, then resend it on every update until terminated.

        An exception raised by ``send`` propagates; if the first send fails the
        server is also marked as stopped.
        """
        method_id = f"ListAndWatch({self.resource_pool.resource_name})"
        log.info("%s invoked", method_id)
        response = self._current_devices()
        log.info("%s: send devices %s", method_id, response)
        try:
            send(response)
        except Exception as exc:
            log.error("%s: error: cannot update device states: %s", method_id, exc)
            self.stopped = True
            raise

        while True:
            signal = self._signals.get()
            if signal is _Signal.TERMINATE:
                log.info("%s: terminate signal received", method_id)
                return
            log.info("%s: device health changed!", method_id)
            response = self._current_devices()
            log.info("%s: send updated devices %s", method_id, response)
            try:
                send(response)
            except Exception as exc:
                log.error("%s: error: cannot update device states: %s", method_id, exc)
                raise

    def signal_update(self) -> None:
        """Ask ``list_and_watch`` to send the device list again."""
        self._signals.put(_Signal.UPDATE)

    def terminate(self) -> None:
        """Ask ``list_and_watch`` to return."""
        self._signals.put(_Signal.TERMINATE)

    def pre_start_container(self, request: object) -> _PreStartContainerResponse:
        """Answer a pre-start request; no preparation is needed."""
        return _PreStartContainerResponse()

    def get_device_plugin_options(self) -> DevicePluginOptions:
        """Return the plugin options: no pre-start hook is required."""
        return DevicePluginOptions(pre_start_required=False)

    def init(self) -> None:
        """Prepare the server for a fresh run: clear the stop flag and pending signals."""
        self.stopped = False
        self._signals = queue.Queue()

    def get_envs(self, device_ids: list[str]) -> dict[str, str]:
        """Return the environment variable listing the allocated devices."""
        key = f"PCIDEVICE_{self.resource_name_prefix}_{self.resource_pool.resource_name}"
        key = key.replace(".", "_").upper()
        return {key: ",".join(self.resource_pool.get_envs(device_ids))}

    def clean_up(self) -> None:
        """Remove the socket file and the pool's device info file."""
        errors: list[str] = []
        try:
            os.remove(self.sock_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            errors.append(str(exc))
        try:
            self.resource_pool.clean_device_info_file(self.resource_name_prefix)
        except Exception as exc:
            errors.append(str(exc))
        if errors:
            raise RuntimeError(",".join(errors))