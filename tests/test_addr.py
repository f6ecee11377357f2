"""Network address value tests."""
from __future__ import annotations

import ipaddress
import socket

import pytest

from typedconf.addr import (
    Addr,
    TCPAddr,
    UDPAddr,
    UnixAddr,
    join_host_port,
    split_host_port,
    split_network,
)
from typedconf.errors import AddressResolutionError, ConfigFormatError, ConfigValidationError


def test_split_network_requires_a_colon() -> None:
    """Text without a network tag is rejected with the offending input."""
    assert split_network("tcp:1.2.3.4:80") == ("tcp", "1.2.3.4:80")
    with pytest.raises(ConfigFormatError, match="'localhost': should be net:addr"):
        split_network("localhost")


@pytest.mark.parametrize(
    ("hostport", "expected"),
    [
        ("1.2.3.4:80", ("1.2.3.4", "80")),
        ("[::1]:443", ("::1", "443")),
        ("[fe80::1%eth0]:53", ("fe80::1%eth0", "53")),
        (":8080", ("", "8080")),
        ("example.com:", ("example.com", "")),
    ],
)
def test_split_host_port(hostport: str, expected: tuple[str, str]) -> None:
    """Host and port split on the last colon, honouring brackets."""
    assert split_host_port(hostport) == expected


@pytest.mark.parametrize(
    ("hostport", "message"),
    [
        ("1.2.3.4", "Missing port"),
        ("::1:80", "Too many colons"),
        ("[::1]80", "Missing port"),
        ("[::1]::80", "Too many colons"),
        ("[::1:80", "Missing ']'"),
        ("a[b:80", "Unexpected '\\['"),
        ("a]b:80", "Unexpected '\\]'"),
    ],
)
def test_split_host_port_errors(hostport: str, message: str) -> None:
    """Malformed host/port pairs raise format errors."""
    with pytest.raises(ConfigFormatError, match=message):
        split_host_port(hostport)


def test_join_host_port_brackets_ipv6() -> None:
    """IPv6 hosts are bracketed when joined with a port."""
    assert join_host_port("::1", 80) == "[::1]:80"
    assert join_host_port("localhost", "http") == "localhost:http"


def test_generic_addr_keeps_both_parts_verbatim() -> None:
    """``Addr`` performs no validation beyond the separator."""
    value = Addr()
    assert value.to_text() == ""

    value.set("tcp:1.2.3.4:80")
    assert (value.network, value.address) == ("tcp", "1.2.3.4:80")
    assert value.to_text() == "tcp:1.2.3.4:80"

    value.set("anything:goes")
    assert value.to_text() == "anything:goes"


def test_generic_addr_failed_set_keeps_state() -> None:
    """A missing separator leaves the previous address."""
    value = Addr("unix", "/run/app.sock")
    with pytest.raises(ConfigFormatError):
        value.set("no-separator")
    assert value == Addr("unix", "/run/app.sock")


def test_tcp_addr_resolves_ip_literal() -> None:
    """A TCP address renders back through its resolved endpoint."""
    value = TCPAddr()
    value.set("tcp:1.2.3.4:80")

    assert value.network == "tcp"
    assert value.ip == ipaddress.IPv4Address("1.2.3.4")
    assert value.port == 80
    assert value.to_text() == "tcp:1.2.3.4:80"
    assert value.sockaddr() == ("1.2.3.4", 80)
    assert value.family == socket.AF_INET


def test_tcp_addr_rejects_other_networks() -> None:
    """The error names the rejected network tag."""
    value = TCPAddr()
    with pytest.raises(ConfigValidationError, match="Invalid TCP network 'udp'"):
        value.set("udp:1.2.3.4:80")
    assert value.to_text() == ""


def test_tcp_addr_without_colon_names_the_input() -> None:
    """Missing network separators surface the raw text."""
    with pytest.raises(ConfigFormatError, match="'1.2.3.4'"):
        TCPAddr().set("1.2.3.4")


def test_family_restricted_networks_check_literals() -> None:
    """``tcp4``/``tcp6`` only accept their own address family."""
    with pytest.raises(ConfigValidationError, match="not an IPv4 address"):
        TCPAddr().set("tcp4:[::1]:80")
    with pytest.raises(ConfigValidationError, match="not an IPv6 address"):
        TCPAddr().set("tcp6:127.0.0.1:80")

    value = TCPAddr()
    value.set("tcp6:[::1]:8443")
    assert value.to_text() == "tcp6:[::1]:8443"
    assert value.family == socket.AF_INET6


def test_network_tag_is_rendered_as_given() -> None:
    """``tcp4`` is not normalized to ``tcp`` on output."""
    value = TCPAddr()
    value.set("tcp4:10.0.0.1:22")
    assert value.to_text() == "tcp4:10.0.0.1:22"


def test_empty_host_means_unspecified_address() -> None:
    """An empty host keeps only the port."""
    value = TCPAddr()
    value.set("tcp::8080")

    assert value.ip is None
    assert value.port == 8080
    assert value.to_text() == "tcp::8080"
    assert value.sockaddr() == ("0.0.0.0", 8080)


def test_udp_addr_keeps_ipv6_zone() -> None:
    """Zones on link-local addresses survive the round trip."""
    value = UDPAddr()
    value.set("udp6:[fe80::1%eth0]:53")

    assert value.zone == "eth0"
    assert value.host == "fe80::1%eth0"
    assert value.to_text() == "udp6:[fe80::1%eth0]:53"


def test_zone_requires_ipv6() -> None:
    """A zone on an IPv4 literal is malformed."""
    with pytest.raises(ConfigFormatError, match="Zone is only valid"):
        UDPAddr().set("udp:[1.2.3.4%eth0]:53")


def test_udp_addr_rejects_tcp() -> None:
    """UDP addresses reject TCP networks."""
    with pytest.raises(ConfigValidationError, match="Invalid UDP network 'tcp'"):
        UDPAddr().set("tcp:1.2.3.4:53")


def test_port_range_is_checked() -> None:
    """Ports above 65535 are rejected."""
    with pytest.raises(ConfigFormatError, match="Invalid port '70000'"):
        TCPAddr().set("tcp:1.2.3.4:70000")


def test_hostnames_resolve_preferring_ipv4(monkeypatch: pytest.MonkeyPatch) -> None:
    """Host names go through ``getaddrinfo`` and IPv4 wins for plain ``tcp``."""
    calls: list[tuple[object, ...]] = []

    def fake_getaddrinfo(host: str, port: int, family: int, socktype: int) -> list[tuple]:
        calls.append((host, port, family, socktype))
        return [
            (socket.AF_INET6, socktype, 6, "", ("2001:db8::5", port, 0, 0)),
            (socket.AF_INET, socktype, 6, "", ("192.0.2.5", port)),
        ]

    monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo)

    value = TCPAddr()
    value.set("tcp:service.internal:9000")

    assert calls == [("service.internal", 9000, socket.AF_UNSPEC, socket.SOCK_STREAM)]
    assert value.to_text() == "tcp:192.0.2.5:9000"

    value.set("tcp6:service.internal:9000")
    assert value.to_text() == "tcp6:[2001:db8::5]:9000"


def test_resolution_failure_keeps_previous_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Lookup errors raise and leave the value untouched."""

    def failing_getaddrinfo(*args: object) -> list[tuple]:
        raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

    monkeypatch.setattr(socket, "getaddrinfo", failing_getaddrinfo)

    value = TCPAddr()
    value.set("tcp:127.0.0.1:80")
    with pytest.raises(AddressResolutionError, match="no-such-host.invalid"):
        value.set("tcp:no-such-host.invalid:80")
    assert value.to_text() == "tcp:127.0.0.1:80"


def test_unix_addr() -> None:
    """Unix addresses keep the path and pick the socket type from the tag."""
    value = UnixAddr()
    assert value.to_text() == ""

    value.set("unix:/run/app.sock")
    assert value.path == "/run/app.sock"
    assert value.to_text() == "unix:/run/app.sock"
    assert value.socket_type == socket.SOCK_STREAM
    assert value.sockaddr() == "/run/app.sock"

    value.set("unixgram:/run/log.sock")
    assert value.socket_type == socket.SOCK_DGRAM


def test_unix_addr_rejects_other_networks() -> None:
    """Only the Unix network tags are accepted."""
    value = UnixAddr()
    with pytest.raises(ConfigValidationError, match="Invalid Unix network 'tcp'"):
        value.set("tcp:/run/app.sock")
    with pytest.raises(ValueError):
        value.sockaddr()


def test_address_values_decode_from_documents() -> None:
    """Addresses load from JSON strings and emit their text."""
    value = TCPAddr()
    value.from_json('"tcp:127.0.0.1:8080"')
    assert value.to_json() == '"tcp:127.0.0.1:8080"'


def test_empty_document_node_unsets_addresses() -> None:
    """The empty rendering of an unset address decodes back to unset."""
    for value in (Addr(), TCPAddr(), UDPAddr(), UnixAddr()):
        value.decode("")
        assert value.to_text() == ""

    listen = TCPAddr()
    listen.set("tcp:127.0.0.1:80")
    listen.from_json('""')
    assert listen == TCPAddr()

    sock = UnixAddr()
    sock.set("unix:/run/app.sock")
    sock.from_yaml("''")
    assert sock == UnixAddr()


def test_empty_text_is_still_rejected_by_set() -> None:
    """Direct assignment keeps requiring ``network:address``."""
    with pytest.raises(ConfigFormatError, match="should be net:addr"):
        TCPAddr().set("")
