"""Network addresses written as ``"<network>:<address>"``.

:class:`Addr` keeps any network tag verbatim. :class:`TCPAddr`,
:class:`UDPAddr` and :class:`UnixAddr` restrict the tag to their family and
resolve the remainder into a concrete socket address::

    tcp:1.2.3.4:80
    udp6:[fe80::1%eth0]:53
    unix:/run/app.sock

No socket is created; resolution only validates and looks up the address.
"""
from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import ClassVar

from .errors import AddressResolutionError, ConfigFormatError, ConfigValidationError
from .values import SettableValue

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

TCP_NETWORKS = ("tcp", "tcp4", "tcp6")
UDP_NETWORKS = ("udp", "udp4", "udp6")
UNIX_NETWORKS = ("unix", "unixpacket", "unixgram")


def split_network(text: str) -> tuple[str, str]:
    """Split *text* on its first colon into ``(network, address)``."""
    network, sep, address = text.partition(":")
    if not sep:
        raise ConfigFormatError(
            f"Invalid address format '{text}': should be net:addr."
        )
    return network, address


def render_addr(network: str, address: str) -> str:
    """Return the ``network:address`` text form."""
    return f"{network}:{address}"


def split_host_port(hostport: str) -> tuple[str, str]:
    """Split ``host:port``, ``[host]:port`` or ``[host%zone]:port``."""
    colon = hostport.rfind(":")
    if colon < 0:
        raise ConfigFormatError(f"Missing port in address '{hostport}'.")

    start, end_of_host = 0, 0
    if hostport.startswith("["):
        close = hostport.find("]")
        if close < 0:
            raise ConfigFormatError(f"Missing ']' in address '{hostport}'.")
        if close + 1 == len(hostport):
            raise ConfigFormatError(f"Missing port in address '{hostport}'.")
        if close + 1 != colon:
            if hostport[close + 1] == ":":
                raise ConfigFormatError(f"Too many colons in address '{hostport}'.")
            raise ConfigFormatError(f"Missing port in address '{hostport}'.")
        host = hostport[1:close]
        start, end_of_host = 1, close + 1
    else:
        host = hostport[:colon]
        if ":" in host:
            raise ConfigFormatError(f"Too many colons in address '{hostport}'.")

    if "[" in hostport[start:]:
        raise ConfigFormatError(f"Unexpected '[' in address '{hostport}'.")
    if "]" in hostport[end_of_host:]:
        raise ConfigFormatError(f"Unexpected ']' in address '{hostport}'.")
    return host, hostport[colon + 1 :]


def join_host_port(host: str, port: int | str) -> str:
    """Combine *host* and *port*, bracketing hosts that contain a colon."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass(frozen=True, slots=True)
class InetAddress:
    """A resolved IP endpoint. ``ip`` is ``None`` for the unspecified host."""

    ip: IPAddress | None
    port: int
    zone: str = ""

    @property
    def host(self) -> str:
        """Return the textual host, including any IPv6 zone."""
        if self.ip is None:
            return ""
        if self.zone:
            return f"{self.ip}%{self.zone}"
        return str(self.ip)

    def __str__(self) -> str:
        return join_host_port(self.host, self.port)


def _socket_family(network: str) -> socket.AddressFamily:
    if network.endswith("4"):
        return socket.AF_INET
    if network.endswith("6"):
        return socket.AF_INET6
    return socket.AF_UNSPEC


def _parse_port(text: str, network: str, proto: str) -> int:
    if not text:
        return 0
    if text.isascii() and text.isdigit():
        port = int(text)
        if port > 65535:
            raise ConfigFormatError(f"Invalid port '{text}' for network {network}.")
        return port
    try:
        return socket.getservbyname(text, proto)
    except OSError as exc:
        raise ConfigFormatError(f"Unknown port '{text}' for network {network}.") from exc


def resolve_inet_address(
    network: str,
    address: str,
    *,
    socktype: socket.SocketKind,
    proto: str,
) -> InetAddress:
    """Resolve ``host:port`` within *network* (``tcp``, ``udp6``, ...)."""
    host, port_text = split_host_port(address)
    port = _parse_port(port_text, network, proto)
    if not host:
        return InetAddress(ip=None, port=port)

    family = _socket_family(network)
    literal, _, zone = host.partition("%")
    try:
        ip = ipaddress.ip_address(literal)
    except ValueError:
        ip = None

    if ip is not None:
        if zone and ip.version != 6:
            raise ConfigFormatError(f"Zone is only valid for IPv6 addresses: '{host}'.")
        if family == socket.AF_INET and ip.version != 4:
            raise ConfigValidationError(
                f"Address '{host}' is not an IPv4 address for network {network}."
            )
        if family == socket.AF_INET6 and ip.version != 6:
            raise ConfigValidationError(
                f"Address '{host}' is not an IPv6 address for network {network}."
            )
        return InetAddress(ip=ip, port=port, zone=zone)

    try:
        infos = socket.getaddrinfo(host, port, family, socktype)
    except (socket.gaierror, UnicodeError) as exc:
        raise AddressResolutionError(f"Cannot resolve host '{host}': {exc}") from exc
    if not infos:
        raise AddressResolutionError(f"No suitable address found for host '{host}'.")

    preferred = infos[0]
    if family == socket.AF_UNSPEC:
        preferred = next((info for info in infos if info[0] == socket.AF_INET), infos[0])
    resolved = str(preferred[4][0])
    literal, _, zone = resolved.partition("%")
    return InetAddress(ip=ipaddress.ip_address(literal), port=port, zone=zone)


class _AddressValue(SettableValue):
    """Addresses render as ``""`` when unset, and a ``""`` document node unsets them."""

    def decode(self, node: object, *, yaml_scalars: bool = False) -> None:
        if node == "":
            self.reset()
            return
        super().decode(node, yaml_scalars=yaml_scalars)

    def reset(self) -> None:
        """Return to the unset state."""
        raise NotImplementedError


@dataclass(eq=True)
class Addr(_AddressValue):
    """Generic ``network:address`` pair; neither part is validated."""

    network: str = ""
    address: str = ""

    def set(self, text: str) -> None:
        """Split *text* on its first colon."""
        self.network, self.address = split_network(text)

    def to_text(self) -> str:
        """Return ``network:address`` (empty when unset)."""
        if not self.network and not self.address:
            return ""
        return render_addr(self.network, self.address)

    def reset(self) -> None:
        self.network, self.address = "", ""


@dataclass(eq=True)
class _InetAddr(_AddressValue):
    """Shared behaviour for the TCP and UDP address types."""

    NETWORKS: ClassVar[tuple[str, ...]] = ()
    KIND: ClassVar[str] = ""
    SOCKET_TYPE: ClassVar[socket.SocketKind] = socket.SOCK_STREAM
    PROTO: ClassVar[str] = ""

    network: str = ""
    resolved: InetAddress | None = None

    def set(self, text: str) -> None:
        """Validate the network tag then resolve the address."""
        network, address = split_network(text)
        if network not in self.NETWORKS:
            raise ConfigValidationError(f"Invalid {self.KIND} network '{network}'.")
        resolved = resolve_inet_address(
            network,
            address,
            socktype=self.SOCKET_TYPE,
            proto=self.PROTO,
        )
        self.network, self.resolved = network, resolved

    def to_text(self) -> str:
        """Return ``network:host:port`` using the resolved address."""
        if self.resolved is None:
            return ""
        return render_addr(self.network, str(self.resolved))

    def reset(self) -> None:
        self.network, self.resolved = "", None

    @property
    def ip(self) -> IPAddress | None:
        """Return the resolved IP address (``None`` when unset or unspecified)."""
        return self.resolved.ip if self.resolved is not None else None

    @property
    def port(self) -> int:
        """Return the resolved port (0 when unset)."""
        return self.resolved.port if self.resolved is not None else 0

    @property
    def zone(self) -> str:
        """Return the IPv6 zone, if any."""
        return self.resolved.zone if self.resolved is not None else ""

    @property
    def host(self) -> str:
        """Return the textual host portion."""
        return self.resolved.host if self.resolved is not None else ""

    @property
    def family(self) -> socket.AddressFamily:
        """Return the socket family to use for this address."""
        if self.ip is not None:
            return socket.AF_INET6 if self.ip.version == 6 else socket.AF_INET
        if self.network.endswith("6"):
            return socket.AF_INET6
        return socket.AF_INET

    def sockaddr(self) -> tuple[str, int] | tuple[str, int, int, int]:
        """Return an address tuple for ``socket.bind``/``socket.connect``."""
        if self.resolved is None:
            raise ConfigValidationError(f"{self.KIND} address is not set.")
        if self.family == socket.AF_INET6:
            scope = socket.if_nametoindex(self.zone) if self.zone else 0
            return (str(self.ip or "::"), self.port, 0, scope)
        return (str(self.ip or "0.0.0.0"), self.port)


class TCPAddr(_InetAddr):
    """Address restricted to the ``tcp``, ``tcp4`` and ``tcp6`` networks."""

    NETWORKS = TCP_NETWORKS
    KIND = "TCP"
    SOCKET_TYPE = socket.SOCK_STREAM
    PROTO = "tcp"


class UDPAddr(_InetAddr):
    """Address restricted to the ``udp``, ``udp4`` and ``udp6`` networks."""

    NETWORKS = UDP_NETWORKS
    KIND = "UDP"
    SOCKET_TYPE = socket.SOCK_DGRAM
    PROTO = "udp"


@dataclass(eq=True)
class UnixAddr(_AddressValue):
    """Unix-domain socket address in the ``unix``, ``unixpacket`` or ``unixgram`` network."""

    network: str = ""
    path: str | None = None

    def set(self, text: str) -> None:
        """Validate the network tag and keep the socket path."""
        network, path = split_network(text)
        if network not in UNIX_NETWORKS:
            raise ConfigValidationError(f"Invalid Unix network '{network}'.")
        if "\x00" in path:
            raise ConfigFormatError(f"Unix socket path must not contain NUL: '{text}'.")
        self.network, self.path = network, path

    def to_text(self) -> str:
        """Return ``network:path``."""
        if self.path is None:
            return ""
        return render_addr(self.network, self.path)

    def reset(self) -> None:
        self.network, self.path = "", None

    @property
    def socket_type(self) -> socket.SocketKind:
        """Return the socket type matching the network tag."""
        if self.network == "unixgram":
            return socket.SOCK_DGRAM
        if self.network == "unixpacket":
            return socket.SOCK_SEQPACKET
        return socket.SOCK_STREAM

    def sockaddr(self) -> str:
        """Return the path for ``socket.bind``/``socket.connect``."""
        if self.path is None:
            raise ConfigValidationError("Unix address is not set.")
        return self.path


__all__ = [
    "TCP_NETWORKS",
    "UDP_NETWORKS",
    "UNIX_NETWORKS",
    "Addr",
    "InetAddress",
    "TCPAddr",
    "UDPAddr",
    "UnixAddr",
    "join_host_port",
    "render_addr",
    "resolve_inet_address",
    "split_host_port",
    "split_network",
]
