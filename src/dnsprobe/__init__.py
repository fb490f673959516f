"""
Active DNS health probes.

Each configured DNS server becomes one ProbeJob. A tick sends a single query,
times it, checks the answer against the configured expectation and hands back a
ResultRecord. Scheduling and shipping the records are left to the caller.

Public entrypoints: create_dns_probe, default_registry, ProbeJob
"""

from .config import ExpectedAnswer, ProbeConfig, TLSSettings, load_config, validate_config
from .endpoint import Endpoint, Protocol, parse_endpoint
from .errors import (
    ConfigError,
    ConnectivityError,
    DecodeError,
    ProbeError,
    TypeMismatchError,
    ValidationError,
    ValueMismatchError,
)
from .factory import ProbeSet, create_dns_probe
from .job import ProbeJob
from .models import Answer, ExchangeResult, ResultRecord, TimingTrace
from .registry import Registry, default_registry

__all__ = [
    "Answer",
    "ConfigError",
    "ConnectivityError",
    "DecodeError",
    "Endpoint",
    "ExchangeResult",
    "ExpectedAnswer",
    "ProbeConfig",
    "ProbeError",
    "ProbeJob",
    "ProbeSet",
    "Protocol",
    "Registry",
    "ResultRecord",
    "TLSSettings",
    "TimingTrace",
    "TypeMismatchError",
    "ValidationError",
    "ValueMismatchError",
    "create_dns_probe",
    "default_registry",
    "load_config",
    "parse_endpoint",
    "validate_config",
]
