"""
Probe configuration: dataclasses, validation and the YAML / env loader.

Environment variables override the YAML file, which overrides the defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields as dataclass_fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import dns.rdatatype
import structlog
import yaml

from .endpoint import EndpointError, Protocol, parse_endpoint
from .errors import ConfigError
from .models import SUPPORTED_RECORD_TYPES
from .targets import InvalidDomain, is_valid_server_address, normalize_target, require_target

log = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 16.0
VERIFICATION_MODES = ("full", "certificate", "none")


def _norm(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(v).strip().lower() or None


@dataclass(frozen=True)
class ExpectedAnswer:
    """Assertion on the answer. Both fields empty means "no assertion"."""

    value: Optional[str] = None
    record_type: Optional[str] = None

    def __post_init__(self) -> None:
        # Answers are compared lower-cased, so normalize the expectation the same way.
        object.__setattr__(self, "value", _norm(self.value))
        object.__setattr__(self, "record_type", _norm(self.record_type))

    @property
    def is_empty(self) -> bool:
        return self.value is None and self.record_type is None


@dataclass(frozen=True)
class TLSSettings:
    enabled: bool = False
    certificate_authorities: tuple = ()
    certificate: Optional[str] = None
    key: Optional[str] = None
    verification_mode: str = "full"
    server_name: Optional[str] = None


@dataclass(frozen=True)
class ProbeConfig:
    dns_servers: tuple = ()
    target: str = ""
    timeout: float = DEFAULT_TIMEOUT
    query_type: str = "ANY"
    ipv4: bool = True
    ipv6: bool = True
    id: str = ""
    expected: ExpectedAnswer = field(default_factory=ExpectedAnswer)
    tls: TLSSettings = field(default_factory=TLSSettings)

    @property
    def monitor_id(self) -> str:
        return self.id or f"dns-{normalize_target(self.target)}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], section: str = "monitor") -> "ProbeConfig":
        """Build from one `monitors:` entry, using the nested check/ssl layout."""
        data = dict(data or {})
        data.pop("type", None)

        check = data.pop("check", None) or {}
        response = (check.get("response") or {}) if isinstance(check, dict) else {}
        expected = _build_dataclass(ExpectedAnswer, response, f"{section}.check.response")

        ssl_data = dict(data.pop("ssl", None) or {})
        if "certificate_authorities" in ssl_data:
            cas = ssl_data["certificate_authorities"] or []
            ssl_data["certificate_authorities"] = tuple([cas] if isinstance(cas, str) else cas)
        tls = _build_dataclass(TLSSettings, ssl_data, f"{section}.ssl")

        servers = data.pop("dns_servers", None) or []
        if isinstance(servers, str):
            servers = [servers]

        top = _build_dataclass(cls, data, section, skip=("expected", "tls", "dns_servers"))
        return cls(
            dns_servers=tuple(str(s) for s in servers),
            target=str(top.target or ""),
            timeout=parse_duration(top.timeout),
            query_type=str(top.query_type),
            ipv4=bool(top.ipv4),
            ipv6=bool(top.ipv6),
            id=str(top.id or ""),
            expected=expected,
            tls=tls,
        )


def validate_config(cfg: ProbeConfig) -> List[str]:
    """
    Check a probe configuration and return every problem found (empty list = ok).

    Nothing here touches the network; host names are checked for syntax only.
    """
    errors: List[str] = []

    if not cfg.dns_servers:
        errors.append("at least one entry in `dns_servers` is required")

    for raw in cfg.dns_servers:
        try:
            ep = parse_endpoint(raw)
        except EndpointError as e:
            errors.append(f"invalid DNS server '{raw}': {e}")
            continue
        if not is_valid_server_address(ep.host):
            errors.append(f"invalid DNS server: {ep.host}")
        if cfg.tls.enabled and ep.protocol is Protocol.UDP:
            errors.append(f"DNS server '{raw}': TLS requires the tcp:// scheme")

    if not normalize_target(cfg.target):
        errors.append("`target` is required")
    else:
        try:
            require_target(cfg.target)
        except InvalidDomain as e:
            errors.append(str(e))

    if not cfg.timeout or cfg.timeout <= 0:
        errors.append(f"`timeout` must be positive, got {cfg.timeout}")

    try:
        dns.rdatatype.from_text(cfg.query_type)
    except (dns.rdatatype.UnknownRdatatype, ValueError):
        errors.append(f"unknown `query_type`: '{cfg.query_type}'")

    rt = cfg.expected.record_type
    if rt is not None and rt not in SUPPORTED_RECORD_TYPES:
        errors.append(
            f"unknown record type for `record_type`: '{rt}', "
            f"please use one of {', '.join(repr(t) for t in SUPPORTED_RECORD_TYPES)}"
        )

    if not (cfg.ipv4 or cfg.ipv6):
        errors.append("at least one of `ipv4` / `ipv6` must be enabled")

    if cfg.tls.verification_mode not in VERIFICATION_MODES:
        errors.append(
            f"unknown ssl `verification_mode`: '{cfg.tls.verification_mode}', "
            f"please use one of {', '.join(VERIFICATION_MODES)}"
        )
    if cfg.tls.key and not cfg.tls.certificate:
        errors.append("ssl `key` is set without `certificate`")

    return errors


def require_valid(cfg: ProbeConfig) -> ProbeConfig:
    errors = validate_config(cfg)
    if errors:
        raise ConfigError(errors)
    return cfg


# ----------------------------
# Application config (YAML + env)
# ----------------------------

@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "console"


@dataclass
class AppConfig:
    monitors: List[Dict[str, Any]] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def probe_configs(self) -> List[Dict[str, Any]]:
        """Raw monitor entries; each carries its own `type` (defaults to dns)."""
        return [dict(m, type=(m.get("type") or "dns")) for m in self.monitors]


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load configuration from a YAML file, then override with environment variables.

    Priority: env vars > YAML > defaults

    A path passed in explicitly must exist. The CONFIG_PATH / dnsprobe.yaml
    default is optional and a missing file there gives the defaults.

    Raises:
        ConfigError: missing explicit file, unparsable YAML or a bad env override.
    """
    config = AppConfig()

    required = config_path is not None
    if config_path is None:
        config_path = os.getenv("CONFIG_PATH", "dnsprobe.yaml")

    path = Path(config_path)
    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError([f"could not parse {path}: {e}"]) from e
        if not isinstance(data, dict):
            raise ConfigError([f"{path}: top level must be a mapping"])

        monitors = data.get("monitors") or []
        if not isinstance(monitors, list):
            raise ConfigError(["`monitors` must be a list"])
        config.monitors = [m for m in monitors if isinstance(m, dict)]
        config.logging = _build_dataclass(LoggingConfig, data.get("logging") or {}, "logging")
    elif required:
        raise ConfigError([f"config file not found: {path}"])
    else:
        log.debug("config_file_missing", path=str(path))

    _apply_env_overrides(config)
    return config


def _build_dataclass(cls, data: dict, section_name: str, skip=()):
    """Build a dataclass instance, warning on unknown keys."""
    valid_keys = {f.name for f in dataclass_fields(cls)} - set(skip)
    filtered = {}
    for k, v in data.items():
        if k not in valid_keys:
            log.warning(
                "unknown_config_key",
                key=k,
                section=section_name,
                valid_keys=sorted(valid_keys),
            )
        elif v is not None:
            filtered[k] = v
    return cls(**filtered)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values with environment variables when set."""
    env_map = {
        "LOG_LEVEL": (config.logging, "level", str),
        "LOG_FORMAT": (config.logging, "format", str),
    }

    for env_key, (obj, attr, cast) in env_map.items():
        value = os.getenv(env_key)
        if value is not None and value != "":
            setattr(obj, attr, cast(value))

    # DNSPROBE_TIMEOUT applies to every monitor that does not pin its own timeout
    timeout = os.getenv("DNSPROBE_TIMEOUT")
    if timeout:
        for m in config.monitors:
            m.setdefault("timeout", parse_duration(timeout))


_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Any) -> float:
    """Seconds from a number or a "500ms" / "5s" / "1m" string."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip().lower()
    for unit in sorted(_DURATION_UNITS, key=len, reverse=True):
        if text.endswith(unit):
            number = text[: -len(unit)].strip()
            try:
                return float(number) * _DURATION_UNITS[unit]
            except ValueError:
                break
    try:
        return float(text)
    except ValueError:
        raise ConfigError([f"invalid duration: '{value}'"]) from None
