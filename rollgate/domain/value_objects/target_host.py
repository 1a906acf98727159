"""
Target Host Value Object

Architectural Intent:
- Immutable value object naming the machine a rollout is shipped to
- The host identifier is the unit of mutual exclusion for rollouts
- Validates hostname format (DNS, IPv4, IPv6), port bounds, non-empty user
- Supports IPv6 bracket notation in parse() (e.g., deploy@[::1]:22)
"""

import re
from dataclasses import dataclass

# RFC 1123 hostname: labels of alnum/hyphens, dot-separated
_HOSTNAME_RE = re.compile(
    r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$"
)

_IPV4_RE = re.compile(
    r"^(\d{1,3})\.(\d{1,3})\.(\d{1,3})\.(\d{1,3})$"
)

# Simplified IPv6 (accepts ::1, fe80::1, ...)
_IPV6_RE = re.compile(r"^[0-9a-fA-F:]+$")

LOCAL_HOST_NAMES = frozenset({"localhost", "local", "127.0.0.1", "::1"})


def _is_valid_hostname(host: str) -> bool:
    """Validate hostname as DNS name, IPv4, or IPv6."""
    if not host:
        return False

    m = _IPV4_RE.match(host)
    if m:
        return all(0 <= int(g) <= 255 for g in m.groups())

    if _IPV6_RE.match(host) and ":" in host:
        return True

    if _HOSTNAME_RE.match(host) and len(host) <= 253:
        return True

    return False


@dataclass(frozen=True)
class TargetHost:
    """
    Value Object representing a deploy target reachable over SSH.

    An empty user means "use the configured SSH user".
    """
    host: str
    user: str = ""
    port: int = 22

    def __post_init__(self) -> None:
        if not (1 <= self.port <= 65535):
            raise ValueError(f"Port must be 1-65535, got {self.port}")
        if not _is_valid_hostname(self.host):
            raise ValueError(f"Invalid hostname: {self.host!r}")

    @property
    def identifier(self) -> str:
        """Stable name used to serialize rollouts against this host."""
        return self.host.lower()

    @property
    def is_local(self) -> bool:
        """True when commands should run on this machine instead of over SSH."""
        return self.identifier in LOCAL_HOST_NAMES

    def __str__(self) -> str:
        prefix = f"{self.user}@" if self.user else ""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{prefix}{host}:{self.port}"

    @staticmethod
    def parse(connection_string: str) -> "TargetHost":
        """
        Parses 'user@host:port', 'host', or 'user@[::1]:port' into a TargetHost.
        """
        user = ""
        port = 22
        host = connection_string.strip()

        if "@" in host:
            user, host = host.split("@", 1)
            if not user:
                raise ValueError(f"Empty user in: {connection_string!r}")

        if host.startswith("["):
            bracket_end = host.find("]")
            if bracket_end == -1:
                raise ValueError(f"Unterminated IPv6 bracket in: {connection_string}")
            remainder = host[bracket_end + 1:]
            if remainder.startswith(":"):
                port = int(remainder[1:])
            host = host[1:bracket_end]
        elif host.count(":") == 1:
            name, _, port_str = host.partition(":")
            try:
                port = int(port_str)
            except ValueError:
                raise ValueError(f"Invalid port in: {connection_string!r}") from None
            host = name

        return TargetHost(host=host, user=user, port=port)
