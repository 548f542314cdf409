"""IPv4 and IPv6 socket endpoints."""

from __future__ import annotations

import socket
from typing import Any, Tuple

from flute import logger


def _check_port(port: int) -> int:
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return port


def _canonical(family: int, ip: str) -> str:
    try:
        packed = socket.inet_pton(family, ip)
    except (OSError, ValueError) as exc:
        logger.error(f"invalid IP address {ip!r}")
        raise ValueError(f"invalid IP address {ip!r}") from exc
    return socket.inet_ntop(family, packed)


class InetAddress:
    """An IP address, port and (for IPv6) flow info and scope id."""

    __slots__ = ("_family", "_host", "_port", "_flowinfo", "_scope_id")

    def __init__(self, port: int = 0, loopback_only: bool = False, ipv6: bool = False) -> None:
        """Build the wildcard or loopback address on ``port``."""
        if ipv6:
            family = socket.AF_INET6
            host = "::1" if loopback_only else "::"
        else:
            family = socket.AF_INET
            host = "127.0.0.1" if loopback_only else "0.0.0.0"
        self._family = family
        self._host = host
        self._port = _check_port(port)
        self._flowinfo = 0
        self._scope_id = 0

    @classmethod
    def _make(cls, family: int, host: str, port: int, flowinfo: int = 0, scope_id: int = 0) -> "InetAddress":
        address = cls.__new__(cls)
        address._family = family
        address._host = _canonical(family, host)
        address._port = _check_port(port)
        address._flowinfo = flowinfo
        address._scope_id = scope_id
        return address

    @classmethod
    def from_ip(cls, ip: str, port: int, ipv6: bool = False) -> "InetAddress":
        """Build an address from a textual IP; raise ValueError if it does not parse."""
        return cls._make(socket.AF_INET6 if ipv6 else socket.AF_INET, ip, port)

    @classmethod
    def from_sockaddr(cls, family: int, sockaddr: Tuple[Any, ...]) -> "InetAddress":
        """Build an address from a socket-module address tuple."""
        if family == socket.AF_INET:
            host, port = sockaddr[0], sockaddr[1]
            return cls._make(family, host, port)
        if family == socket.AF_INET6:
            host, port = sockaddr[0], sockaddr[1]
            flowinfo = sockaddr[2] if len(sockaddr) > 2 else 0
            scope_id = sockaddr[3] if len(sockaddr) > 3 else 0
            return cls._make(family, host.split("%", 1)[0], port, flowinfo, scope_id)
        raise ValueError(f"unsupported address family: {family}")

    @classmethod
    def resolve(cls, host: str, port: int = 0) -> "InetAddress":
        """Look up ``host`` and return its first address; raise socket.gaierror on failure."""
        try:
            infos = socket.getaddrinfo(host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
        except socket.gaierror as exc:
            logger.error(f"host {host} getaddrinfo error {exc.errno}:{exc.strerror}.")
            raise
        family, _, _, _, sockaddr = infos[0]
        return cls.from_sockaddr(family, sockaddr)

    def family(self) -> int:
        return self._family

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def scope_id(self) -> int:
        return self._scope_id

    def sockaddr(self) -> Tuple[Any, ...]:
        """Return the address tuple the socket module expects for this family."""
        if self._family == socket.AF_INET6:
            return (self._host, self._port, self._flowinfo, self._scope_id)
        return (self._host, self._port)

    def set_scope_id(self, scope_id: int) -> None:
        """Set the IPv6 scope id; ignored for IPv4."""
        if self._family == socket.AF_INET6:
            self._scope_id = scope_id

    def to_string(self) -> str:
        """Return ``ip:port``."""
        return f"{self._host}:{self._port}"

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"InetAddress({self.to_string()!r})"

    def _key(self) -> Tuple[Any, ...]:
        return (self._family, self._host, self._port, self._flowinfo, self._scope_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, InetAddress):
            return NotImplemented
        return self._key() == other._key()