"""URL helpers shared by the collector and the composer.

``normalize_url`` produces the uniqueness key for stored articles, so it must
stay pure and idempotent.
"""

from typing import Optional
from urllib.parse import SplitResult, parse_qsl, urlencode, urlsplit, urlunsplit

TRACKING_PARAMS = frozenset([
    "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
    "ns_mchannel", "ns_source", "ns_campaign", "ns_linkname",
    "ocid", "at_medium", "at_campaign",
])

# Hosts that serve the same stories under two domains
DOMAIN_ALIASES = {
    "bbc.com": "bbc.co.uk",
}

DEFAULT_PORTS = {"http": 80, "https": 443}


def _split(raw: str) -> Optional[SplitResult]:
    """Split an absolute URL, or return None when it is not one."""
    try:
        parts = urlsplit(raw.strip())
        # .port raises ValueError on garbage such as "host:abc"
        parts.port
    except ValueError:
        return None
    if not parts.scheme or not parts.hostname:
        return None
    return parts


def _canonical_host(hostname: str) -> str:
    host = hostname.lower()
    while host.startswith("www."):
        host = host[4:]
    for alias, canonical in DOMAIN_ALIASES.items():
        if host == alias:
            return canonical
        if host.endswith("." + alias):
            return host[: -len(alias)] + canonical
    return host


def _netloc(parts: SplitResult, host: str) -> str:
    if ":" in host:
        host = f"[{host}]"
    port = parts.port
    if port is not None and DEFAULT_PORTS.get(parts.scheme.lower()) != port:
        return f"{host}:{port}"
    return host


def normalize_url(raw: Optional[str]) -> str:
    """Canonical form of an article URL.

    Drops the fragment and known tracking parameters, lower-cases the host and
    strips ``www.``, and folds known duplicate domains together. Input that
    does not parse as an absolute URL is returned with only the fragment cut.
    """
    raw = str(raw or "")
    parts = _split(raw)
    if parts is None:
        return raw.split("#")[0]

    scheme = parts.scheme.lower()
    host = _canonical_host(parts.hostname)
    query = urlencode(
        [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in TRACKING_PARAMS]
    )
    return urlunsplit((scheme, _netloc(parts, host), parts.path or "/", query, ""))


def url_key(raw: Optional[str]) -> Optional[str]:
    """Case-insensitive origin+path key used to dedupe feed results.

    Returns None for input that is not an absolute URL.
    """
    parts = _split(str(raw or ""))
    if parts is None:
        return None
    host = _canonical_host(parts.hostname)
    return f"{parts.scheme}://{_netloc(parts, host)}{parts.path or '/'}".lower()


def host_of(raw: Optional[str]) -> str:
    """Lower-case host without ``www.``; empty when unparsable."""
    parts = _split(str(raw or ""))
    if parts is None:
        return ""
    host = parts.hostname.lower()
    return host[4:] if host.startswith("www.") else host
