from __future__ import annotations

import ssl

import pytest

import dnsprobe.factory as factory_mod
from dnsprobe.config import ProbeConfig, TLSSettings
from dnsprobe.errors import ConfigError
from dnsprobe.factory import create_dns_probe
from dnsprobe.registry import Registry, default_registry


def test_one_job_per_server():
    cfg = ProbeConfig(dns_servers=("8.8.8.8", "tcp://1.1.1.1:5353", "udp://[::1]"), target="example.com")
    probe = create_dns_probe(cfg)

    assert probe.endpoints == 3
    assert [j.url for j in probe.jobs] == ["udp://8.8.8.8", "tcp://1.1.1.1:5353", "udp://[::1]"]
    assert all(j.tls_context is None for j in probe.jobs)
    assert probe.config is cfg


def test_accepts_raw_mapping():
    probe = create_dns_probe(
        {
            "id": "resolver",
            "dns_servers": "9.9.9.9",
            "target": "example.org",
            "timeout": "2s",
            "check": {"response": {"record_type": "A"}},
        }
    )
    assert probe.config.monitor_id == "resolver"
    assert probe.config.timeout == 2.0
    assert probe.config.expected.record_type == "a"
    assert [j.url for j in probe.jobs] == ["udp://9.9.9.9"]


def test_invalid_config_lists_every_problem():
    cfg = ProbeConfig(dns_servers=("ftp://8.8.8.8",), target="", query_type="NOPE")
    with pytest.raises(ConfigError) as exc:
        create_dns_probe(cfg)
    errors = exc.value.errors
    assert len(errors) == 3
    assert any("invalid protocol specified ftp" in e for e in errors)
    assert any("`target` is required" in e for e in errors)
    assert any("NOPE" in e for e in errors)


def test_tls_context_is_built_once_and_shared(monkeypatch):
    calls = []
    real = factory_mod.load_tls_context

    def counting(settings):
        calls.append(settings)
        return real(settings)

    monkeypatch.setattr(factory_mod, "load_tls_context", counting)
    cfg = ProbeConfig(
        dns_servers=("tcp://1.1.1.1:853", "tcp://9.9.9.9:853"),
        target="example.com",
        tls=TLSSettings(enabled=True, verification_mode="none"),
    )
    probe = create_dns_probe(cfg)

    assert len(calls) == 1
    ctx = probe.jobs[0].tls_context
    assert isinstance(ctx, ssl.SSLContext)
    assert ctx.verify_mode == ssl.CERT_NONE
    assert all(j.tls_context is ctx for j in probe.jobs)


def test_unreadable_ca_is_config_error(tmp_path):
    cfg = ProbeConfig(
        dns_servers=("tcp://1.1.1.1:853",),
        target="example.com",
        tls=TLSSettings(enabled=True, certificate_authorities=(str(tmp_path / "missing.pem"),)),
    )
    with pytest.raises(ConfigError) as exc:
        create_dns_probe(cfg)
    assert "could not load TLS material" in str(exc.value)


# ----------------------------
# Registry
# ----------------------------
def test_default_registry():
    assert default_registry().names() == ["dns"]


def test_duplicate_registration():
    r = Registry()
    r.register("dns", create_dns_probe)
    with pytest.raises(ValueError):
        r.register("DNS", create_dns_probe)


def test_unknown_type():
    with pytest.raises(KeyError) as exc:
        default_registry().get("icmp")
    assert "unknown probe type 'icmp'" in exc.value.args[0]
    assert "dns" in exc.value.args[0]


def test_create_dispatches_on_type():
    probe = default_registry().create({"dns_servers": ["8.8.8.8"], "target": "example.com"})
    assert probe.endpoints == 1


def test_create_all_aggregates_across_monitors():
    configs = [
        {"id": "good", "type": "dns", "dns_servers": ["8.8.8.8"], "target": "example.com"},
        {"id": "bad", "type": "dns", "dns_servers": [], "target": "example.com"},
        {"type": "http", "urls": ["http://example.com"]},
    ]
    with pytest.raises(ConfigError) as exc:
        default_registry().create_all(configs)
    assert exc.value.errors[0] == "bad: at least one entry in `dns_servers` is required"
    assert exc.value.errors[1].startswith("monitors[2]: unknown probe type 'http'")
    assert len(exc.value.errors) == 2


def test_create_all_publishes_to_shared_callback():
    seen = []
    probes = default_registry().create_all(
        [{"dns_servers": ["8.8.8.8", "8.8.4.4"], "target": "example.com"}],
        publish=seen.append,
    )
    assert [j.publish for j in probes[0].jobs] == [seen.append, seen.append]


def test_numeric_target_builds_instead_of_crashing():
    probe = create_dns_probe({"dns_servers": ["8.8.8.8"], "target": 123})
    assert probe.config.target == "123"
    assert probe.endpoints == 1
