"""
URL helpers - canonicalization, article identity and SSRF validation.

Canonical URLs are the dedup key for fetch runs and the input of article ids:
- scheme and host lowercased, default ports dropped
- query string and fragment removed
- trailing slash removed (the bare root path stays "/")

validate_url blocks requests that would reach internal network services
(localhost, private ranges, cloud metadata endpoints).
"""

import hashlib
import ipaddress
import socket
from urllib.parse import urljoin, urlsplit, urlunsplit

from .exceptions import SSRFError

DEFAULT_PORTS = {"http": 80, "https": 443}

# Blocked IP ranges (private, loopback, link-local, metadata)
BLOCKED_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("255.255.255.255/32"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "metadata",
    "metadata.google.internal",
    "kubernetes.default",
    "kubernetes.default.svc",
}

BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")

ALLOWED_SCHEMES = {"http", "https"}


def canonical_url(url: str, base: str | None = None) -> str:
    """Normalize a URL into its dedup key. Relative URLs are resolved against base."""
    if base:
        url = urljoin(base, url)
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    netloc = host
    if parts.port and parts.port != DEFAULT_PORTS.get(scheme):
        netloc = f"{host}:{parts.port}"
    path = parts.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return urlunsplit((scheme, netloc, path, "", ""))


def article_id(source_id: str, url: str) -> str:
    """Stable article id derived from the owning source and the canonical URL."""
    digest = hashlib.sha256(canonical_url(url).encode("utf-8")).hexdigest()[:16]
    return f"{source_id}:{digest}"


def host_of(url: str) -> str:
    """Host (with non-default port) used as the per-host rate-limit key."""
    return urlsplit(canonical_url(url)).netloc


def is_ip_blocked(ip_str: str) -> bool:
    """Check if an IP address is in a blocked range."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(ip in network for network in BLOCKED_IP_RANGES)


def validate_url(url: str, resolve_dns: bool = True) -> str:
    """
    Validate a URL for SSRF attacks.

    Args:
        url: The URL to validate
        resolve_dns: Whether to resolve DNS and check the IP address

    Returns:
        The validated URL

    Raises:
        SSRFError: If the URL fails validation
    """
    try:
        parsed = urlsplit(url)
    except ValueError as e:
        raise SSRFError(f"Invalid URL format: {e}", url=url)

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise SSRFError(f"URL scheme '{parsed.scheme}' is not allowed. Use http or https.", url=url)

    if not parsed.hostname:
        raise SSRFError("URL must include a hostname", url=url)

    hostname = parsed.hostname.lower()

    if hostname in BLOCKED_HOSTNAMES:
        raise SSRFError(f"Access to '{hostname}' is not allowed", url=url)

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        if hostname.endswith(BLOCKED_SUFFIXES):
            raise SSRFError(f"Access to '{hostname}' is not allowed", url=url)
    else:
        if is_ip_blocked(str(ip)):
            raise SSRFError(f"Access to IP address '{ip}' is not allowed", url=url)
        return url

    if resolve_dns:
        try:
            addrinfo = socket.getaddrinfo(hostname, parsed.port or 80, proto=socket.IPPROTO_TCP)
        except (socket.gaierror, UnicodeError):
            # Resolution failures surface at fetch time as transport errors
            return url
        for _, _, _, _, sockaddr in addrinfo:
            if is_ip_blocked(sockaddr[0]):
                raise SSRFError(
                    f"Hostname '{hostname}' resolves to blocked IP address '{sockaddr[0]}'",
                    url=url,
                )

    return url
