"""
Server address parsing.

Operators write DNS servers the short way ("8.8.8.8", "dns.google:5353") or as
URLs ("tcp://dns.google:53"). Both forms end up as the same Endpoint so that jobs
can dial the structured fields and tag results with the canonical URL.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

DEFAULT_PORT = 53


class Protocol(str, Enum):
    UDP = "udp"  # plain, connectionless
    TCP = "tcp"  # reliable, connection-oriented; the only scheme that may carry TLS

    def __str__(self) -> str:
        return self.value


class EndpointError(ValueError):
    """Raised when a server address cannot be turned into an Endpoint."""


@dataclass(frozen=True)
class Endpoint:
    protocol: Protocol
    host: str
    port: int
    url: str

    @property
    def address(self) -> str:
        """host:port, with IPv6 literals bracketed."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.url


def parse_endpoint(raw: str) -> Endpoint:
    """
    Parse a server address string into an Endpoint.

    Addresses without a scheme get "udp://" prepended and are parsed again, so
    feeding Endpoint.url back in gives the same Endpoint.

    Raises:
        EndpointError: unknown scheme, missing host, bad port.
    """
    addr = (raw or "").strip().lower()
    if not addr:
        raise EndpointError("dns server address is mandatory")

    u = _split(addr)

    # "8.8.8.8" parses as a bare path and "dns.google:53" as scheme "dns.google";
    # neither has a network location, so re-parse with the default scheme.
    if not u.netloc:
        addr = f"{Protocol.UDP.value}://{addr}"
        u = _split(addr)

    try:
        protocol = Protocol(u.scheme)
    except ValueError:
        raise EndpointError(f"invalid protocol specified {u.scheme}") from None

    if u.username is not None or u.password is not None:
        raise EndpointError("user info is not allowed in a dns server address")
    if addr != f"{u.scheme}://{u.netloc}":
        raise EndpointError("only scheme, host and port are allowed in a dns server address")

    host = u.hostname
    if not host:
        raise EndpointError("dns server address is mandatory")

    try:
        port = u.port
    except ValueError as e:
        raise EndpointError(f"invalid port: {e}") from e

    if port is None:
        port = DEFAULT_PORT
    elif not 1 <= port <= 65535:
        raise EndpointError(f"invalid port: {port} out of range")

    return Endpoint(protocol=protocol, host=host, port=port, url=addr)


def _split(addr: str):
    try:
        return urlsplit(addr)
    except ValueError as e:
        # unbalanced brackets and the like
        raise EndpointError(f"invalid dns server address '{addr}': {e}") from e
