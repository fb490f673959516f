"""Error taxonomy for probe configuration and per-tick failures."""

from __future__ import annotations

import socket
import ssl
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import dns.exception


class ErrorKind(str, Enum):
    CONNECTIVITY = "connectivity"
    DECODE = "decode"
    VALIDATION = "validation"


class ConfigError(ValueError):
    """
    Every problem found while validating a probe configuration.

    Problems are collected rather than raised one by one so an operator sees the
    whole list in a single pass.
    """

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "invalid configuration")


class ProbeError(Exception):
    """Base class for failures that end up on a single tick's result."""

    kind: ErrorKind = ErrorKind.CONNECTIVITY

    def __init__(
        self,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.host = host
        self.port = port

    @property
    def is_connectivity(self) -> bool:
        return self.kind in (ErrorKind.CONNECTIVITY, ErrorKind.DECODE)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind": self.kind.value,
            "type": type(self).__name__,
            "message": self.message,
        }
        if self.host is not None:
            out["host"] = self.host
        if self.port is not None:
            out["port"] = self.port
        return out


class ConnectivityError(ProbeError):
    """Could not reach the server: dial, timeout, name lookup or TLS handshake."""

    kind = ErrorKind.CONNECTIVITY

    @property
    def timed_out(self) -> bool:
        return is_timeout(self.cause)

    @classmethod
    def could_not_connect(cls, host: str, port: int, cause: BaseException) -> "ConnectivityError":
        return cls(
            f"could not connect to {host}:{port}: {describe_cause(cause)}",
            cause=cause,
            host=host,
            port=port,
        )


class DecodeError(ConnectivityError):
    """The server answered with bytes that are not a usable DNS message."""

    kind = ErrorKind.DECODE


class ValidationError(ProbeError):
    """The answer does not satisfy the configured expectation."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, actual: str, expected: str) -> None:
        super().__init__(message)
        self.actual = actual
        self.expected = expected


class ValueMismatchError(ValidationError):
    def __init__(self, actual: str, expected: str) -> None:
        super().__init__(
            f"record value of '{actual}' does not match expected value '{expected}'",
            actual=actual,
            expected=expected,
        )


class TypeMismatchError(ValidationError):
    def __init__(self, actual: str, expected: str) -> None:
        super().__init__(
            f"record type of '{actual}' does not match expected type '{expected}'",
            actual=actual,
            expected=expected,
        )


def is_timeout(exc: Optional[BaseException]) -> bool:
    return isinstance(exc, (TimeoutError, socket.timeout, dns.exception.Timeout))


def describe_cause(exc: BaseException) -> str:
    """Short reason string for the underlying exception."""
    if is_timeout(exc):
        return "timeout"
    # CertificateError is an SSLError subclass, check it first
    if isinstance(exc, ssl.CertificateError):
        return f"certificate error: {exc}"
    if isinstance(exc, ssl.SSLError):
        return f"tls handshake failed: {exc.reason or exc}"
    if isinstance(exc, socket.gaierror):
        return f"name resolution failed: {exc.strerror or exc}"
    if isinstance(exc, dns.exception.DNSException):
        return f"name resolution failed: {exc}"
    if isinstance(exc, ConnectionRefusedError):
        return "connection refused"
    return f"{type(exc).__name__}: {exc}"
