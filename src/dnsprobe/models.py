from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ProbeError

# Record types a probe decodes. Anything else in the answer section is dropped.
SUPPORTED_RECORD_TYPES = ("a", "aaaa", "cname", "txt")


@dataclass(frozen=True)
class Answer:
    name: str
    record_type: str  # one of SUPPORTED_RECORD_TYPES
    value: str
    ttl: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TimingTrace:
    """
    Wall clock milestones (time.time() seconds) of one exchange.

    Only start is always known. The rest stay None until actually observed and
    RTT fields derived from a missing milestone are left out, never reported as 0.
    """

    start: float
    write_start: Optional[float] = None
    write_end: Optional[float] = None
    read_end: Optional[float] = None
    end: Optional[float] = None

    # name -> (from, to)
    _RTT_SPANS = {
        "total": ("start", "end"),
        "write_request": ("write_start", "write_end"),
        "response": ("write_end", "read_end"),
        "content": ("read_end", "end"),
    }

    def rtt(self) -> Dict[str, Dict[str, int]]:
        out: Dict[str, Dict[str, int]] = {}
        for name, (a, b) in self._RTT_SPANS.items():
            t0, t1 = getattr(self, a), getattr(self, b)
            if t0 is None or t1 is None:
                continue
            out[name] = {"us": int(max(0.0, t1 - t0) * 1_000_000)}
        return out


@dataclass
class ExchangeResult:
    """
    Decoded outcome of one query.

    answers is the filtered projection of the answer section onto the supported
    record types, in the order received. An empty list means "no matching record",
    which is not an error.
    """

    server: str
    answers: List[Answer] = field(default_factory=list)
    rcode: Optional[str] = None
    tls: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResultRecord:
    monitor_id: str
    url: str
    target: str
    timestamp: float
    server: Optional[str] = None
    rcode: Optional[str] = None
    answers: List[Answer] = field(default_factory=list)
    rtt: Dict[str, Dict[str, int]] = field(default_factory=dict)
    tls: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ProbeError] = None

    @property
    def status(self) -> str:
        return "down" if self.error is not None else "up"

    def to_dict(self) -> Dict[str, Any]:
        dns_fields: Dict[str, Any] = {}
        if self.server is not None:
            dns_fields["response"] = {
                "server": self.server,
                "rcode": self.rcode,
                "answers": [a.to_dict() for a in self.answers],
            }
        if self.rtt:
            dns_fields["rtt"] = self.rtt

        out: Dict[str, Any] = {
            "monitor": {"id": self.monitor_id, "status": self.status, "type": "dns"},
            "url": self.url,
            "target": self.target,
            "timestamp": self.timestamp,
            "dns": dns_fields,
        }
        if self.tls:
            out["tls"] = self.tls
        if self.error is not None:
            out["error"] = self.error.to_dict()
        return out
