from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from .errors import ConfigError
from .factory import ProbeSet, create_dns_probe
from .job import Publisher

ProbeFactory = Callable[..., ProbeSet]


class Registry:
    """Probe type name -> factory. Filled explicitly at startup, no import side effects."""

    def __init__(self) -> None:
        self._factories: Dict[str, ProbeFactory] = {}

    def register(self, name: str, factory: ProbeFactory) -> None:
        key = name.strip().lower()
        if key in self._factories:
            raise ValueError(f"probe type '{key}' is already registered")
        self._factories[key] = factory

    def get(self, name: str) -> ProbeFactory:
        key = (name or "").strip().lower()
        try:
            return self._factories[key]
        except KeyError:
            raise KeyError(
                f"unknown probe type '{name}', registered: {', '.join(sorted(self._factories))}"
            ) from None

    def names(self) -> List[str]:
        return sorted(self._factories)

    def create(self, config: Dict[str, Any], publish: Optional[Publisher] = None) -> ProbeSet:
        """Build the probe for one raw monitor entry, dispatching on its `type`."""
        return self.get(config.get("type") or "dns")(config, publish=publish)

    def create_all(self, configs: List[Dict[str, Any]], publish: Optional[Publisher] = None) -> List[ProbeSet]:
        """
        Build every monitor. Problems from all entries are reported together and
        nothing is returned unless every entry is valid.
        """
        probes: List[ProbeSet] = []
        errors: List[str] = []
        for i, cfg in enumerate(configs):
            label = cfg.get("id") or f"monitors[{i}]"
            try:
                probes.append(self.create(cfg, publish=publish))
            except ConfigError as e:
                errors.extend(f"{label}: {msg}" for msg in e.errors)
            except KeyError as e:
                errors.append(f"{label}: {e.args[0]}")
        if errors:
            raise ConfigError(errors)
        return probes


def default_registry() -> Registry:
    r = Registry()
    r.register("dns", create_dns_probe)
    return r
