"""Access to link and devlink attributes and to uplink representors."""

from __future__ import annotations

import errno
import os
import re
import socket
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

_ENCAP_TYPES = {
    1: "ether",
    32: "infiniband",
    512: "ppp",
    768: "ipip",
    769: "tunnel6",
    772: "loopback",
    776: "sit",
    778: "gre",
    823: "ip6gre",
    65534: "none",
    65535: "void",
}

_ESWITCH_MODES = {0: "legacy", 1: "switchdev"}
_INLINE_MODES = {0: "none", 1: "link", 2: "network", 3: "transport"}
_ENCAP_MODES = {0: "disable", 1: "enable"}

_NETLINK_GENERIC = 16
_NLM_F_REQUEST = 0x1
_NLM_F_ACK = 0x4
_NLMSG_ERROR = 2
_NLMSG_DONE = 3
_NLMSG_HDR = struct.Struct("=IHHII")
_GENL_ID_CTRL = 0x10
_CTRL_CMD_GETFAMILY = 3
_CTRL_ATTR_FAMILY_ID = 1
_CTRL_ATTR_FAMILY_NAME = 2
_DEVLINK_CMD_GET = 1
_DEVLINK_CMD_ESWITCH_GET = 29
_DEVLINK_ATTR_BUS_NAME = 1
_DEVLINK_ATTR_DEV_NAME = 2
_DEVLINK_ATTR_ESWITCH_MODE = 25
_DEVLINK_ATTR_ESWITCH_INLINE_MODE = 26
_DEVLINK_ATTR_ESWITCH_ENCAP_MODE = 62

_PHYS_PORT_RE = re.compile(r"^p(\d+)$")


@dataclass
class LinkAttrs:
    """Attributes of a network link."""

    name: str = ""
    index: int = 0
    mtu: int = 0
    hardware_addr: str = ""
    encap_type: str = ""
    oper_state: str = ""


@dataclass
class EswitchAttrs:
    """E-switch attributes of a devlink device."""

    mode: str = ""
    inline_mode: str = ""
    encap_mode: str = ""


@runtime_checkable
class NetlinkProvider(Protocol):
    """Source of link and devlink attributes."""

    def get_link_attrs(self, if_name: str) -> LinkAttrs: ...

    def get_devlink_eswitch_attrs(self, pf_addr: str) -> EswitchAttrs: ...


@runtime_checkable
class SriovnetProvider(Protocol):
    """Source of switchdev uplink representors."""

    def get_uplink_representor(self, vf_pci_address: str) -> str: ...


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text().strip()
    except (OSError, UnicodeDecodeError):
        return None


def _to_int(text: str | None) -> int:
    try:
        return int(text) if text is not None else 0
    except ValueError:
        return 0


def _align(length: int) -> int:
    return (length + 3) & ~3


def _pack_attr(attr_type: int, value: bytes) -> bytes:
    length = 4 + len(value)
    return struct.pack("=HH", length, attr_type) + value + b"\0" * (_align(length) - length)


def _parse_attrs(buf: bytes) -> dict[int, bytes]:
    attrs: dict[int, bytes] = {}
    offset = 0
    while offset + 4 <= len(buf):
        length, attr_type = struct.unpack_from("=HH", buf, offset)
        if length < 4:
            break
        attrs[attr_type & 0x3FFF] = buf[offset + 4 : offset + length]
        offset += _align(length)
    return attrs


class _GenlSocket:
    """A minimal generic netlink request/response channel."""

    def __init__(self, timeout: float = 5.0) -> None:
        family = getattr(socket, "AF_NETLINK", None)
        if family is None:
            raise OSError(errno.EAFNOSUPPORT, "netlink sockets are not available")
        self._sock = socket.socket(family, socket.SOCK_RAW, _NETLINK_GENERIC)
        try:
            self._sock.bind((0, 0))
            self._sock.settimeout(timeout)
        except OSError:
            self._sock.close()
            raise
        self._seq = 0

    def __enter__(self) -> "_GenlSocket":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self._sock.close()

    def request(
        self, family_id: int, cmd: int, attrs: list[tuple[int, bytes]], version: int = 1
    ) -> list[dict[int, bytes]]:
        self._seq += 1
        payload = struct.pack("=BBH", cmd, version, 0) + b"".join(
            _pack_attr(t, v) for t, v in attrs
        )
        header = _NLMSG_HDR.pack(
            _NLMSG_HDR.size + len(payload), family_id, _NLM_F_REQUEST | _NLM_F_ACK, self._seq, 0
        )
        self._sock.send(header + payload)
        replies: list[dict[int, bytes]] = []
        while True:
            data = self._sock.recv(65536)
            offset = 0
            while offset + _NLMSG_HDR.size <= len(data):
                length, msg_type, _flags, seq, _pid = _NLMSG_HDR.unpack_from(data, offset)
                if length < _NLMSG_HDR.size:
                    raise OSError(errno.EPROTO, "malformed netlink message")
                body = data[offset + _NLMSG_HDR.size : offset + length]
                offset += _align(length)
                if seq != self._seq:
                    continue
                if msg_type == _NLMSG_ERROR:
                    (code,) = struct.unpack_from("=i", body)
                    if code:
                        raise OSError(-code, os.strerror(-code))
                    return replies
                if msg_type == _NLMSG_DONE:
                    return replies
                replies.append(_parse_attrs(body[4:]))

    def resolve_family(self, name: str) -> int:
        replies = self.request(
            _GENL_ID_CTRL, _CTRL_CMD_GETFAMILY, [(_CTRL_ATTR_FAMILY_NAME, name.encode() + b"\0")]
        )
        for reply in replies:
            raw = reply.get(_CTRL_ATTR_FAMILY_ID)
            if raw is not None and len(raw) >= 2:
                return struct.unpack_from("=H", raw)[0]
        raise OSError(errno.ENOENT, f"generic netlink family {name} not found")


def _eswitch_from_reply(reply: dict[int, bytes]) -> EswitchAttrs:
    attrs = EswitchAttrs()
    raw = reply.get(_DEVLINK_ATTR_ESWITCH_MODE)
    if raw is not None and len(raw) >= 2:
        attrs.mode = _ESWITCH_MODES.get(struct.unpack_from("=H", raw)[0], "")
    raw = reply.get(_DEVLINK_ATTR_ESWITCH_INLINE_MODE)
    if raw:
        attrs.inline_mode = _INLINE_MODES.get(raw[0], "")
    raw = reply.get(_DEVLINK_ATTR_ESWITCH_ENCAP_MODE)
    if raw:
        attrs.encap_mode = _ENCAP_MODES.get(raw[0], "")
    return attrs


class DevlinkNetlinkProvider:
    """Reads link attributes from sysfs and e-switch attributes over devlink."""

    def __init__(self, sys_class_net: str | os.PathLike[str] = "/sys/class/net") -> None:
        self.sys_class_net = Path(sys_class_net)

    def get_link_attrs(self, if_name: str) -> LinkAttrs:
        """Return a net device's link attributes."""
        base = self.sys_class_net / if_name
        if not base.exists():
            raise OSError(
                errno.ENODEV,
                f"error getting link attributes for net device {if_name} {os.strerror(errno.ENODEV)}",
            )
        type_text = _read_text(base / "type")
        encap = _ENCAP_TYPES.get(_to_int(type_text), "unknown") if type_text else "unknown"
        return LinkAttrs(
            name=if_name,
            index=_to_int(_read_text(base / "ifindex")),
            mtu=_to_int(_read_text(base / "mtu")),
            hardware_addr=_read_text(base / "address") or "",
            encap_type=encap,
            oper_state=_read_text(base / "operstate") or "",
        )

    def get_devlink_eswitch_attrs(self, pf_addr: str) -> EswitchAttrs:
        """Return the e-switch attributes of the devlink device at ``pci/<pf_addr>``."""
        handle = [
            (_DEVLINK_ATTR_BUS_NAME, b"pci\0"),
            (_DEVLINK_ATTR_DEV_NAME, pf_addr.encode() + b"\0"),
        ]
        try:
            with _GenlSocket() as sock:
                family_id = sock.resolve_family("devlink")
                sock.request(family_id, _DEVLINK_CMD_GET, handle)
                try:
                    replies = sock.request(family_id, _DEVLINK_CMD_ESWITCH_GET, handle)
                except OSError:
                    # The device exists but exposes no e-switch; report empty attributes.
                    return EswitchAttrs()
        except OSError as exc:
            reason = exc.strerror or str(exc)
            raise OSError(
                exc.errno,
                f"error getting devlink device attributes for net device {pf_addr} {reason}",
            ) from exc
        return _eswitch_from_reply(replies[0]) if replies else EswitchAttrs()


class SysfsSriovnetProvider:
    """Finds the uplink representor of a switchdev PF through sysfs."""

    def __init__(
        self,
        sys_bus_pci: str | os.PathLike[str] = "/sys/bus/pci/devices",
        sys_class_net: str | os.PathLike[str] = "/sys/class/net",
    ) -> None:
        self.sys_bus_pci = Path(sys_bus_pci)
        self.sys_class_net = Path(sys_class_net)

    def _is_switchdev(self, netdev: str) -> bool:
        return bool(_read_text(self.sys_class_net / netdev / "phys_switch_id"))

    def get_uplink_representor(self, vf_pci_address: str) -> str:
        """Return the uplink representor name for a VF (or PF) PCI address."""
        device_path = self.sys_bus_pci / vf_pci_address / "physfn" / "net"
        if not device_path.exists():
            device_path = self.sys_bus_pci / vf_pci_address / "net"
        try:
            names = sorted(entry.name for entry in os.scandir(device_path))
        except OSError as exc:
            raise OSError(exc.errno, f"failed to lookup {vf_pci_address}: {exc.strerror}") from exc
        for name in names:
            if not self._is_switchdev(name):
                continue
            port_name = _read_text(self.sys_class_net / name / "phys_port_name")
            if port_name is not None and not _PHYS_PORT_RE.match(port_name):
                continue
            return name
        raise LookupError(f"uplink for {vf_pci_address} not found")


_NETLINK = "netlink"
_SRIOVNET = "sriovnet"

_providers: dict[str, object] = {
    _NETLINK: DevlinkNetlinkProvider(),
    _SRIOVNET: SysfsSriovnetProvider(),
}


def get_netlink_provider() -> NetlinkProvider:
    """Return the netlink provider in use."""
    return _providers[_NETLINK]  # type: ignore[return-value]


def set_netlink_provider(provider: NetlinkProvider) -> NetlinkProvider:
    """Replace the netlink provider in use and return the one it replaced."""
    previous = _providers[_NETLINK]
    _providers[_NETLINK] = provider
    return previous  # type: ignore[return-value]


def get_sriovnet_provider() -> SriovnetProvider:
    """Return the sriovnet provider in use."""
    return _providers[_SRIOVNET]  # type: ignore[return-value]


def set_sriovnet_provider(provider: SriovnetProvider) -> SriovnetProvider:
    """Replace the sriovnet provider in use and return the one it replaced."""
    previous = _providers[_SRIOVNET]
    _providers[_SRIOVNET] = provider
    return previous  # type: ignore[return-value]