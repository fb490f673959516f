"""
One DNS query against one server.

The wire format is dnspython's job; this module picks the transport, keeps the
whole exchange under a single deadline, records timing milestones as they are
observed and projects the answer section onto the record types probes understand.
"""

from __future__ import annotations

import ipaddress
import socket
import ssl
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype
import dns.resolver
import structlog

from .endpoint import Endpoint, Protocol
from .errors import ConnectivityError, DecodeError
from .models import Answer, ExchangeResult, TimingTrace
from .tls import session_fields

log = structlog.get_logger(__name__)

_RECORD_TYPES = {
    dns.rdatatype.A: "a",
    dns.rdatatype.AAAA: "aaaa",
    dns.rdatatype.CNAME: "cname",
    dns.rdatatype.TXT: "txt",
}


class Transport(str, Enum):
    UDP = "udp"
    TCP = "tcp"
    TLS = "tcp-tls"


@dataclass
class RawResponse:
    message: dns.message.Message
    timing: TimingTrace
    tls: Dict[str, Any] = field(default_factory=dict)


def select_transport(endpoint: Endpoint, tls_context: Optional[ssl.SSLContext]) -> Transport:
    """TLS only ever rides on the tcp scheme; udp endpoints stay plain."""
    if endpoint.protocol is Protocol.TCP:
        return Transport.TLS if tls_context is not None else Transport.TCP
    return Transport.UDP


def make_query(target: str, query_type: str = "ANY") -> dns.message.Message:
    qname = dns.name.from_text(target.strip().rstrip(".") + ".")
    m = dns.message.make_query(qname, dns.rdatatype.from_text(query_type))
    m.flags |= dns.flags.RD
    return m


# ----------------------------
# Querying
# ----------------------------

def send_query(
    endpoint: Endpoint,
    target: str,
    timeout: float,
    *,
    query_type: str = "ANY",
    tls_context: Optional[ssl.SSLContext] = None,
    server_name: Optional[str] = None,
    ipv4: bool = True,
    ipv6: bool = True,
    deadline: Optional[float] = None,
) -> RawResponse:
    """
    Send one query and wait for the answer, all before `timeout` (and `deadline`,
    an absolute time.time() value, when given) runs out.

    The socket is closed on every path.

    Raises:
        ConnectivityError: name lookup, connect, TLS handshake, send/receive or timeout.
        DecodeError: the reply is not a DNS message answering our query.
    """
    timing = TimingTrace(start=time.time())
    expiration = timing.start + timeout
    if deadline is not None:
        expiration = min(expiration, deadline)

    transport = select_transport(endpoint, tls_context)
    query = make_query(target, query_type)
    socktype = socket.SOCK_DGRAM if transport is Transport.UDP else socket.SOCK_STREAM

    def fail(cause: BaseException) -> ConnectivityError:
        return ConnectivityError.could_not_connect(endpoint.host, endpoint.port, cause)

    try:
        family, sockaddr = _resolve(endpoint, expiration, ipv4=ipv4, ipv6=ipv6)
    except (OSError, LookupError, dns.exception.DNSException) as e:
        raise fail(e) from e
    if time.time() >= expiration:
        raise fail(dns.exception.Timeout())

    log.debug("dns_query_start", url=endpoint.url, address=sockaddr[0], transport=transport.value)

    tls: Dict[str, Any] = {}
    try:
        with socket.socket(family, socktype) as raw_sock:
            sock: socket.socket = raw_sock
            try:
                if transport is not Transport.UDP:
                    raw_sock.settimeout(_remaining(expiration))
                    raw_sock.connect(sockaddr)
                if transport is Transport.TLS:
                    # an IP literal here is matched against IP SANs and sent without SNI
                    hostname = server_name or endpoint.host
                    sock = tls_context.wrap_socket(
                        raw_sock, server_hostname=hostname, do_handshake_on_connect=False
                    )
                    sock.settimeout(_remaining(expiration))
                    sock.do_handshake()
                    tls = session_fields(sock, hostname)
                sock.setblocking(False)

                timing.write_start = time.time()
                if transport is Transport.UDP:
                    dns.query.send_udp(sock, query, sockaddr, expiration)
                    timing.write_end = time.time()
                    response, timing.read_end = dns.query.receive_udp(
                        sock, sockaddr, expiration, ignore_unexpected=True
                    )
                else:
                    dns.query.send_tcp(sock, query, expiration)
                    timing.write_end = time.time()
                    response, timing.read_end = dns.query.receive_tcp(sock, expiration)
            finally:
                # the TLS wrapper owns the file descriptor once created
                if sock is not raw_sock:
                    sock.close()
    except dns.exception.Timeout as e:
        raise fail(e) from e
    except dns.exception.DNSException as e:
        raise DecodeError(
            f"malformed response from {endpoint.address}: {type(e).__name__}: {e}",
            cause=e,
            host=endpoint.host,
            port=endpoint.port,
        ) from e
    except (OSError, EOFError) as e:
        # socket.timeout and ssl.SSLError are OSErrors too
        raise fail(e) from e

    if not query.is_response(response):
        raise DecodeError(
            f"response from {endpoint.address} does not answer the query",
            host=endpoint.host,
            port=endpoint.port,
        )

    return RawResponse(message=response, timing=timing, tls=tls)


def _remaining(expiration: float) -> float:
    left = expiration - time.time()
    if left <= 0:
        raise dns.exception.Timeout()
    return left


def _resolve(endpoint: Endpoint, expiration: float, *, ipv4: bool, ipv6: bool) -> Tuple[int, tuple]:
    """
    Pick the socket family and address to dial, honoring the ipv4/ipv6 switches.

    IP literals are used as is. Host names are looked up with dnspython, each
    lookup limited to what is left before `expiration`; ipv4 is tried first.
    """
    allowed: List[int] = []
    if ipv4:
        allowed.append(socket.AF_INET)
    if ipv6:
        allowed.append(socket.AF_INET6)

    try:
        literal = ipaddress.ip_address(endpoint.host)
    except ValueError:
        literal = None

    if literal is not None:
        family = socket.AF_INET if literal.version == 4 else socket.AF_INET6
        if family in allowed:
            return family, _sockaddr(family, str(literal), endpoint.port)
    else:
        for family in allowed:
            rdtype = dns.rdatatype.A if family == socket.AF_INET else dns.rdatatype.AAAA
            answer = dns.resolver.resolve(
                endpoint.host,
                rdtype,
                lifetime=_remaining(expiration),
                raise_on_no_answer=False,
            )
            if answer.rrset:
                return family, _sockaddr(family, answer.rrset[0].address, endpoint.port)

    wanted = "/".join("ipv4" if f == socket.AF_INET else "ipv6" for f in allowed)
    raise LookupError(f"no {wanted} address for {endpoint.host}")


def _sockaddr(family: int, address: str, port: int) -> tuple:
    if family == socket.AF_INET6:
        return (address, port, 0, 0)
    return (address, port)


# ----------------------------
# Decoding
# ----------------------------

def decode_response(
    message: dns.message.Message,
    endpoint: Endpoint,
    tls: Optional[Dict[str, Any]] = None,
) -> ExchangeResult:
    """
    Project a response onto the supported record types.

    Unsupported types are dropped on purpose; values and names are lower-cased
    so comparisons against expectations are deterministic. The responding server
    is always reported as the endpoint's canonical URL.
    """
    answers: List[Answer] = []
    for rrset in message.answer:
        record_type = _RECORD_TYPES.get(rrset.rdtype)
        if record_type is None:
            continue
        name = rrset.name.to_text().lower()
        for rdata in rrset:
            answers.append(
                Answer(
                    name=name,
                    record_type=record_type,
                    value=_rdata_value(record_type, rdata).lower(),
                    ttl=int(rrset.ttl),
                )
            )

    return ExchangeResult(
        server=endpoint.url,
        answers=answers,
        rcode=dns.rcode.to_text(message.rcode()),
        tls=dict(tls or {}),
    )


def _rdata_value(record_type: str, rdata: Any) -> str:
    if record_type in ("a", "aaaa"):
        return str(rdata.address)
    if record_type == "cname":
        return rdata.target.to_text()
    # txt: character-strings joined with a space
    return " ".join(s.decode("utf-8", errors="replace") for s in rdata.strings)


def exchange(
    endpoint: Endpoint,
    target: str,
    timeout: float,
    **kwargs: Any,
) -> Tuple[TimingTrace, ExchangeResult]:
    """
    Query + decode in one call. Returns the timing trace (end stamped after
    decoding) and the decoded result; raises ProbeError subclasses on failure.
    """
    raw = send_query(endpoint, target, timeout, **kwargs)
    result = decode_response(raw.message, endpoint, raw.tls)
    raw.timing.end = time.time()
    return raw.timing, result
