from __future__ import annotations

import ssl

import pytest

from dnsprobe.config import ProbeConfig, TLSSettings
from dnsprobe.errors import ConnectivityError
from dnsprobe.factory import create_dns_probe
from reporting.assembler import Assemble, issue_for


def _tls_job(url: str, **tls):
    cfg = ProbeConfig(
        dns_servers=(url,),
        target="example.com",
        query_type="A",
        timeout=2.0,
        tls=TLSSettings(enabled=True, **tls),
    )
    return create_dns_probe(cfg).jobs[0]


@pytest.fixture
def tls_server(dns_server, server_tls_context):
    return dns_server([("example.com.", 300, "A", "8.8.8.8")], proto="tcp", tls=server_tls_context)


def test_tick_over_tls_reports_session(tls_server, tls_certs):
    job = _tls_job(tls_server.url, certificate_authorities=(tls_certs["ca"],), server_name="localhost")

    record = job.run()

    assert record.status == "up", record.error
    assert [a.value for a in record.answers] == ["8.8.8.8"]
    assert record.tls["server_name"] == "localhost"
    assert record.tls["version"].startswith("TLSv1")
    assert record.tls["cipher"]
    assert record.to_dict()["tls"] == record.tls
    assert set(record.rtt) == {"total", "write_request", "response", "content"}


def test_ip_literal_host_matches_ip_san(tls_server, tls_certs):
    record = _tls_job(tls_server.url, certificate_authorities=(tls_certs["ca"],)).run()
    assert record.status == "up", record.error
    assert record.tls["server_name"] == "127.0.0.1"


def test_untrusted_certificate_is_handshake_failure(tls_server, tls_certs):
    record = _tls_job(
        tls_server.url, certificate_authorities=(tls_certs["other_ca"],), server_name="localhost"
    ).run()

    assert record.status == "down"
    err = record.error
    assert isinstance(err, ConnectivityError)
    assert err.is_connectivity
    assert not err.timed_out
    assert isinstance(err.cause, ssl.SSLError)
    assert record.tls == {}
    assert record.rtt == {}
    assert issue_for(err) == "TLS_HANDSHAKE_FAILED"

    finding = Assemble().build([record])["findings"][0]
    assert finding["issue"] == "TLS_HANDSHAKE_FAILED"
    assert finding["severity"] == "high"


def test_wrong_name_fails_full_verification(tls_server, tls_certs):
    record = _tls_job(
        tls_server.url, certificate_authorities=(tls_certs["ca"],), server_name="dns.example.net"
    ).run()
    assert record.status == "down"
    assert issue_for(record.error) == "TLS_HANDSHAKE_FAILED"


def test_certificate_mode_skips_name_check(tls_server, tls_certs):
    record = _tls_job(
        tls_server.url,
        certificate_authorities=(tls_certs["ca"],),
        server_name="dns.example.net",
        verification_mode="certificate",
    ).run()
    assert record.status == "up", record.error


def test_none_mode_accepts_untrusted_server(tls_server, tls_certs):
    record = _tls_job(tls_server.url, certificate_authorities=(tls_certs["other_ca"],), verification_mode="none").run()
    assert record.status == "up", record.error
