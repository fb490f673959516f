import socket
import ssl
from typing import Any, Dict, List, Optional

import dns.exception
from fastapi.encoders import jsonable_encoder

from dnsprobe.errors import (
    ConnectivityError,
    DecodeError,
    ProbeError,
    TypeMismatchError,
    ValueMismatchError,
)
from dnsprobe.models import ResultRecord

from .recommendations import Recommendations

_SEVERITY = {
    "connectivity": "high",
    "decode": "medium",
    "validation": "medium",
}


def issue_for(error: ProbeError) -> str:
    """Stable issue code for a per-tick error."""
    if isinstance(error, DecodeError):
        return "RESPONSE_MALFORMED"
    if isinstance(error, ValueMismatchError):
        return "VALUE_MISMATCH"
    if isinstance(error, TypeMismatchError):
        return "TYPE_MISMATCH"
    if isinstance(error, ConnectivityError):
        if error.timed_out:
            return "SERVER_TIMEOUT"
        if isinstance(error.cause, (socket.gaierror, LookupError, dns.exception.DNSException)):
            return "SERVER_NAME_UNRESOLVED"
        if isinstance(error.cause, ssl.SSLError):
            return "TLS_HANDSHAKE_FAILED"
        return "SERVER_UNREACHABLE"
    return "PROBE_FAILED"


class Assemble:
    """
    Combines the records of one round of probe ticks into one response.

    Design intent:
      - Jobs only produce ResultRecords
      - The assembler shapes them for people and APIs:
          - JSON-safe output
          - one finding per failed check, with a recommendation
          - summary counts
    """

    def build(
        self,
        records: List[ResultRecord],
        meta: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Build a unified response.

        Args:
            records: Result records, in the order they should be shown.
            meta: Optional metadata (version, source, etc.).

        Returns:
            A dict containing only JSON-safe values.
        """
        results = [r.to_dict() for r in records]
        findings = self._collect_findings(records)

        response: Dict[str, Any] = {
            "results": results,
            "findings": findings,
            "summary": self._summarize(records),
            "meta": meta or {},
        }
        return jsonable_encoder(response)

    def _collect_findings(self, records: List[ResultRecord]) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for r in records:
            if r.error is None:
                continue
            issue = issue_for(r.error)
            out.append(
                {
                    "monitor": r.monitor_id,
                    "url": r.url,
                    "issue": issue,
                    "severity": _SEVERITY.get(r.error.kind.value, "unknown"),
                    "message": r.error.message,
                    "recommendation": Recommendations.recommend(issue),
                }
            )
        return out

    def _summarize(self, records: List[ResultRecord]) -> Dict[str, Any]:
        """Counts by status and by error kind; keys are always present."""
        counts = {"checks": len(records), "up": 0, "down": 0, "connectivity": 0, "decode": 0, "validation": 0}
        for r in records:
            if r.error is None:
                counts["up"] += 1
                continue
            counts["down"] += 1
            counts[r.error.kind.value] += 1
        return counts
