class Recommendations:
    _MAP = {
        # Connectivity
        "SERVER_TIMEOUT": "The DNS server did not answer before the timeout. Check that it is running, that the port is reachable through firewalls, and that the timeout is not set too low for the path.",
        "SERVER_UNREACHABLE": "Could not connect to the DNS server. Check the address and port, that the service listens on the configured transport (udp/tcp), and network routing.",
        "SERVER_NAME_UNRESOLVED": "The DNS server's own hostname did not resolve. Use an IP literal or fix resolution for the server name on the probing host.",
        "TLS_HANDSHAKE_FAILED": "The DNS-over-TLS handshake failed. Check that the server speaks TLS on this port, the CA bundle, and that `server_name` matches the certificate.",

        # Decoding
        "RESPONSE_MALFORMED": "The server replied with something that is not a valid DNS answer to the query. Check for middleboxes rewriting DNS or a non-DNS service on the port.",

        # Validation
        "VALUE_MISMATCH": "The record value differs from the expected value. Update the record at the DNS provider or the `check.response.value` expectation.",
        "TYPE_MISMATCH": "The record type differs from the expected type (e.g. a CNAME where an A record is expected). Check the zone data or `check.response.record_type`.",
    }

    @classmethod
    def recommend(cls, issue: str) -> str:
        return cls._MAP.get(issue, "Inspect the error detail and the server logs.")
