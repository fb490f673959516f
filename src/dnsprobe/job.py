"""
Per-endpoint probe job.

One ProbeJob exists per configured DNS server. The scheduler calls run() once per
tick and never overlaps two ticks of the same job; jobs for different servers run
concurrently. Everything a tick produces (timings, answers, errors) lives in
locals of that call, so concurrent jobs share nothing mutable.
"""

from __future__ import annotations

import ssl
import time
from enum import Enum
from typing import Callable, Optional

import structlog

from .check import check_answers
from .config import ProbeConfig
from .endpoint import Endpoint
from .errors import ProbeError
from .exchange import decode_response, send_query
from .models import ResultRecord

log = structlog.get_logger(__name__)

Publisher = Callable[[ResultRecord], None]


class Phase(str, Enum):
    IDLE = "idle"
    QUERYING = "querying"
    DECODING = "decoding"
    VALIDATING = "validating"
    REPORTING = "reporting"


class ProbeJob:
    def __init__(
        self,
        config: ProbeConfig,
        endpoint: Endpoint,
        tls_context: Optional[ssl.SSLContext] = None,
        publish: Optional[Publisher] = None,
    ) -> None:
        self.config = config
        self.endpoint = endpoint
        self.tls_context = tls_context
        self.publish = publish
        self.phase = Phase.IDLE
        self._log = log.bind(monitor=config.monitor_id, url=endpoint.url)

    @property
    def url(self) -> str:
        return self.endpoint.url

    def _enter(self, phase: Phase) -> None:
        self.phase = phase
        self._log.debug("probe_phase", phase=phase.value)

    def run(self, deadline: Optional[float] = None) -> ResultRecord:
        """
        Run one tick and return its result record.

        `deadline` is an absolute time.time() value from the caller; the exchange
        stops at whichever comes first, the deadline or the configured timeout.
        Per-tick failures are attached to the record, never raised.
        """
        cfg = self.config
        record = ResultRecord(
            monitor_id=cfg.monitor_id,
            url=self.endpoint.url,
            target=cfg.target,
            timestamp=time.time(),
        )

        try:
            self._enter(Phase.QUERYING)
            raw = send_query(
                self.endpoint,
                cfg.target,
                cfg.timeout,
                query_type=cfg.query_type,
                tls_context=self.tls_context,
                server_name=cfg.tls.server_name,
                ipv4=cfg.ipv4,
                ipv6=cfg.ipv6,
                deadline=deadline,
            )
            record.timestamp = raw.timing.start

            self._enter(Phase.DECODING)
            result = decode_response(raw.message, self.endpoint, raw.tls)
            raw.timing.end = time.time()
            record.server = result.server
            record.rcode = result.rcode
            record.answers = result.answers
            record.tls = result.tls
            record.rtt = raw.timing.rtt()

            self._enter(Phase.VALIDATING)
            check_answers(result.answers, cfg.expected)
        except ProbeError as e:
            record.error = e
            self._log.info("probe_failed", kind=e.kind.value, error=e.message)

        self._enter(Phase.REPORTING)
        if self.publish is not None:
            self.publish(record)
        self._log.debug("probe_done", status=record.status, answers=len(record.answers))

        self._enter(Phase.IDLE)
        return record

    __call__ = run
