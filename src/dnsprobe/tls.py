from __future__ import annotations

import ssl
from typing import Any, Dict, Optional

from .config import TLSSettings
from .errors import ConfigError


def load_tls_context(settings: TLSSettings) -> Optional[ssl.SSLContext]:
    """
    Build the client SSLContext once, up front.

    The context is shared read-only by every tick of every job, so nothing
    touches it after this returns. Returns None when TLS is disabled.

    Raises:
        ConfigError: unreadable CA bundle / certificate / key.
    """
    if not settings.enabled:
        return None

    ctx = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    try:
        for ca in settings.certificate_authorities:
            ctx.load_verify_locations(cafile=ca)
        if settings.certificate:
            ctx.load_cert_chain(settings.certificate, keyfile=settings.key)
    except (OSError, ssl.SSLError) as e:
        raise ConfigError([f"could not load TLS material: {e}"]) from e

    if settings.verification_mode == "certificate":
        # chain is verified, host name is not
        ctx.check_hostname = False
    elif settings.verification_mode == "none":
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE

    return ctx


def session_fields(sock: ssl.SSLSocket, server_name: Optional[str]) -> Dict[str, Any]:
    """TLS session metadata of an established connection."""
    out: Dict[str, Any] = {}
    if server_name:
        out["server_name"] = server_name
    version = sock.version()
    if version:
        out["version"] = version
    cipher = sock.cipher()
    if cipher:
        out["cipher"] = cipher[0]
    return out
