import ipaddress
import re

# Invalid user input base error
class InvalidTarget(ValueError):
    """Base error for invalid names handed to a probe."""

# Invalid query name
class InvalidDomain(InvalidTarget):
    """Raised when a query target is not a valid domain name."""

# Normalize a name by trimming white space and the trailing dot and turning it into lower case.
def normalize_target(raw: str) -> str:
    return str(raw or "").strip().rstrip(".").lower()

# Query targets may carry service labels (_sip._tcp.example.com), server hostnames may not.
_LABEL = re.compile(r"^_?[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")
_HOST_LABEL = re.compile(r"^[a-z0-9-]{1,63}$", re.IGNORECASE)


def is_domain(s: str) -> bool:
    if not s or len(s) > 253 or any(c.isspace() for c in s):
        return False

    labels = s.split(".")
    if any(label == "" or len(label) > 63 for label in labels):
        return False

    return all(_LABEL.match(label) for label in labels)


def is_ip_literal(s: str) -> bool:
    try:
        ipaddress.ip_address(s)
    except ValueError:
        return False
    return True


def is_hostname(s: str) -> bool:
    """
    RFC 1123 style hostname check. Format only, nothing is resolved.

    Labels are 1-63 characters of letters, digits and hyphens and the whole name
    is at most 255 characters. A name whose last label is all digits
    ("256.256.256.256") is rejected, since it can only be a broken IP literal.
    """
    if not s or len(s) > 255:
        return False

    labels = s.split(".")
    if not all(_HOST_LABEL.match(label) for label in labels):
        return False

    return not labels[-1].isdigit()


def is_valid_server_address(s: str) -> bool:
    return is_ip_literal(s) or is_hostname(s)


# normalizes text and checks to see if it is a domain
def require_target(raw: str) -> str:
    s = normalize_target(raw)
    if not is_domain(s):
        raise InvalidDomain(f"invalid query target: '{raw}'")
    return s
