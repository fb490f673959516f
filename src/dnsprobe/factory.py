from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import structlog

from .config import ProbeConfig, require_valid
from .endpoint import parse_endpoint
from .job import ProbeJob, Publisher
from .tls import load_tls_context

log = structlog.get_logger(__name__)


@dataclass
class ProbeSet:
    """Jobs built for one configured monitor, one per DNS server."""

    config: ProbeConfig
    jobs: List[ProbeJob] = field(default_factory=list)

    @property
    def endpoints(self) -> int:
        return len(self.jobs)


def create_dns_probe(
    config: Union[ProbeConfig, Dict[str, Any]],
    publish: Optional[Publisher] = None,
) -> ProbeSet:
    """
    Validate a DNS monitor configuration and build its jobs.

    TLS material is loaded here, once, and the resulting context is shared by
    every job.

    Raises:
        ConfigError: with every configuration problem found.
    """
    if not isinstance(config, ProbeConfig):
        config = ProbeConfig.from_dict(config)
    require_valid(config)

    tls_context = load_tls_context(config.tls)

    jobs = [
        ProbeJob(config, parse_endpoint(raw), tls_context=tls_context, publish=publish)
        for raw in config.dns_servers
    ]
    log.info(
        "probe_created",
        monitor=config.monitor_id,
        endpoints=[j.url for j in jobs],
        tls=tls_context is not None,
    )
    return ProbeSet(config=config, jobs=jobs)
