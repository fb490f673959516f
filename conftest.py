from __future__ import annotations

import socket
import ssl
import struct
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import dns.message
import dns.rrset
import pytest


# ----------------------------
# Local DNS responder
# ----------------------------
class FakeDNSServer:
    """
    Answers every query on 127.0.0.1 with a fixed answer section.

    records: (name, ttl, rdtype, value) tuples, e.g. ("example.com.", 300, "A", "8.8.8.8")
    delay:   seconds to sleep before answering (slow responder)
    garbage: reply with bytes that are not a DNS message
    tls:     server SSLContext; wraps every tcp connection (DNS over TLS)
    """

    def __init__(
        self,
        records: List[Tuple[str, int, str, str]],
        *,
        proto: str = "udp",
        delay: float = 0.0,
        garbage: bool = False,
        tls: Optional[ssl.SSLContext] = None,
    ) -> None:
        self.records = records
        self.proto = proto
        self.delay = delay
        self.garbage = garbage
        self.tls = tls
        self.queries = 0
        self._stop = threading.Event()
        kind = socket.SOCK_DGRAM if proto == "udp" else socket.SOCK_STREAM
        self._sock = socket.socket(socket.AF_INET, kind)
        self._sock.bind(("127.0.0.1", 0))
        if proto == "tcp":
            self._sock.listen(16)
        self._sock.settimeout(0.05)
        self.port = self._sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def url(self) -> str:
        return f"{self.proto}://127.0.0.1:{self.port}"

    def start(self) -> "FakeDNSServer":
        self._thread.start()
        return self

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=2)
        self._sock.close()

    def answer(self, wire: bytes) -> bytes:
        self.queries += 1
        if self.delay:
            time.sleep(self.delay)
        if self.garbage:
            return b"\x00\x01not-dns"
        q = dns.message.from_wire(wire)
        r = dns.message.make_response(q)
        for name, ttl, rdtype, value in self.records:
            r.answer.append(dns.rrset.from_text(name, ttl, "IN", rdtype, value))
        return r.to_wire()

    def _serve(self) -> None:
        while not self._stop.is_set():
            try:
                if self.proto == "udp":
                    wire, addr = self._sock.recvfrom(65535)
                    self._sock.sendto(self.answer(wire), addr)
                else:
                    conn, _ = self._sock.accept()
                    threading.Thread(target=self._serve_tcp, args=(conn,), daemon=True).start()
            except socket.timeout:
                continue
            except OSError:
                return

    def _serve_tcp(self, conn: socket.socket) -> None:
        conn.settimeout(2)
        try:
            if self.tls is not None:
                conn = self.tls.wrap_socket(conn, server_side=True)
            (length,) = struct.unpack("!H", _read_exactly(conn, 2))
            out = self.answer(_read_exactly(conn, length))
            conn.sendall(struct.pack("!H", len(out)) + out)
        except (OSError, EOFError):
            pass
        finally:
            conn.close()


def _read_exactly(conn: socket.socket, n: int) -> bytes:
    buf = b""
    while len(buf) < n:
        chunk = conn.recv(n - len(buf))
        if not chunk:
            raise EOFError("client closed")
        buf += chunk
    return buf


@pytest.fixture
def dns_server() -> Callable[..., FakeDNSServer]:
    """Factory fixture: dns_server(records, proto="udp", delay=0, garbage=False)."""
    started: List[FakeDNSServer] = []

    def make(records: Optional[List[Tuple[str, int, str, str]]] = None, **kwargs) -> FakeDNSServer:
        srv = FakeDNSServer(records or [], **kwargs).start()
        started.append(srv)
        return srv

    yield make

    for srv in started:
        srv.stop()


@pytest.fixture
def closed_port() -> int:
    """A loopback TCP port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# ----------------------------
# TLS material
# ----------------------------
TESTDATA = Path(__file__).parent / "testdata"


@pytest.fixture
def tls_certs() -> dict:
    """
    Paths of the test PKI: ca.pem signs server.pem (CN/SAN localhost, 127.0.0.1),
    other-ca.pem is an unrelated CA.
    """
    return {
        "ca": str(TESTDATA / "ca.pem"),
        "other_ca": str(TESTDATA / "other-ca.pem"),
        "cert": str(TESTDATA / "server.pem"),
        "key": str(TESTDATA / "server.key"),
    }


@pytest.fixture
def server_tls_context(tls_certs) -> ssl.SSLContext:
    ctx = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    ctx.load_cert_chain(tls_certs["cert"], keyfile=tls_certs["key"])
    return ctx
