"""
Domain resolution for navigation nodes.

Turns a page URL into the key used to cluster pages (``github.com``,
``chrome``, ``unknown``...) and gives every key a stable color.
"""

import logging
import math
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlsplit

from ..config import ResolverConfig

logger = logging.getLogger(__name__)

UNKNOWN_DOMAIN = "unknown"
UNKNOWN_COLOR = "#999999"

# Only these last labels are collapsed by group_subdomains. This is a
# heuristic, not a public suffix list: "bbc.co.uk" stays as is.
COMMON_TLDS = frozenset({"com", "org", "net", "edu", "gov", "io", "co"})

_DEFAULT_RESOLVER = ResolverConfig()


def resolve_domain(url, config: Optional[ResolverConfig] = None) -> str:
    """
    Normalize a URL into a domain key.

    Args:
        url: Page URL. Anything that is not a non-empty string resolves to
             the fallback.
        config: Resolver options (default: ResolverConfig())

    Returns:
        Lowercase hostname, an internal scheme name such as ``chrome``, or
        ``config.fallback`` when the URL cannot be resolved. Never raises.
    """
    config = config or _DEFAULT_RESOLVER

    if not isinstance(url, str) or not url.strip():
        return config.fallback

    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        parts.port  # raises for out-of-range ports
    except ValueError as e:
        logger.debug("Failed to extract domain from URL %r: %s", url, e)
        return config.fallback

    scheme = parts.scheme.lower()
    if not scheme:
        return config.fallback

    # Internal pages cluster under their scheme, apart from "unknown"
    if scheme in config.internal_schemes:
        return scheme

    if not hostname or any(ch.isspace() for ch in hostname):
        return config.fallback

    hostname = hostname.lower().rstrip(".")

    if config.remove_www and hostname.startswith("www."):
        hostname = hostname[4:]

    if config.group_subdomains:
        labels = hostname.split(".")
        if len(labels) > 2 and labels[-1] in COMMON_TLDS:
            hostname = f"{labels[-2]}.{labels[-1]}"

    return hostname or config.fallback


def _rolling_hash(text: str) -> int:
    """Signed 32-bit ``h * 31 + c`` hash over UTF-16 code units"""
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        code = int.from_bytes(data[i:i + 2], "little")
        h = (h << 5) - h + code
        h = (h + 2 ** 31) % 2 ** 32 - 2 ** 31
    return h


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def hsl_to_hex(h: float, s: float, l: float) -> str:
    """
    Convert an HSL color to a hex string.

    Args:
        h: Hue in degrees (0-360)
        s: Saturation in percent (0-100)
        l: Lightness in percent (0-100)
    """
    l /= 100.0
    a = s * min(l, 1 - l) / 100.0

    def channel(n):
        k = (n + h / 30.0) % 12
        color = l - a * max(min(k - 3, 9 - k, 1), -1)
        return _round_half_up(255 * color)

    return "#{:02x}{:02x}{:02x}".format(channel(0), channel(8), channel(4))


def generate_domain_color(domain: str) -> str:
    """
    Deterministic color for a domain key.

    The same domain always gets the same color. Distinct domains usually,
    but not necessarily, get distinct colors. ``unknown`` is always gray.
    """
    if not domain or domain == UNKNOWN_DOMAIN:
        return UNKNOWN_COLOR

    h = abs(_rolling_hash(domain))
    hue = h % 360
    saturation = 65 + (h % 20)  # 65-85%
    lightness = 45 + (h % 20)   # 45-65%
    return hsl_to_hex(hue, saturation, lightness)


def calculate_domain_stats(domain_groups: Mapping) -> Dict:
    """
    Summarize how nodes are spread across domains.

    Args:
        domain_groups: Mapping of domain -> DomainGroup

    Returns:
        Dict with total_domains, total_nodes, average_nodes_per_domain,
        largest_domain, smallest_domain and a domain_distribution list
        sorted by node count (descending)
    """
    stats = {
        "total_domains": len(domain_groups),
        "total_nodes": 0,
        "average_nodes_per_domain": 0.0,
        "largest_domain": None,
        "smallest_domain": None,
        "domain_distribution": [],
    }

    for domain, group in domain_groups.items():
        count = len(group.nodes)
        stats["total_nodes"] += count
        if stats["largest_domain"] is None or count > stats["largest_domain"]["node_count"]:
            stats["largest_domain"] = {"domain": domain, "node_count": count}
        if stats["smallest_domain"] is None or count < stats["smallest_domain"]["node_count"]:
            stats["smallest_domain"] = {"domain": domain, "node_count": count}
        stats["domain_distribution"].append({"domain": domain, "node_count": count})

    if domain_groups:
        stats["average_nodes_per_domain"] = stats["total_nodes"] / len(domain_groups)

    for item in stats["domain_distribution"]:
        total = stats["total_nodes"]
        item["percentage"] = (item["node_count"] / total) * 100 if total else 0.0

    stats["domain_distribution"].sort(key=lambda item: item["node_count"], reverse=True)
    return stats


def get_domain_hierarchy(domain: str) -> List[Dict]:
    """Domain levels from the TLD up to the full hostname"""
    if not domain or domain == UNKNOWN_DOMAIN:
        return []

    labels = domain.split(".")
    hierarchy = []
    for level in range(len(labels)):
        hierarchy.append({
            "level": level,
            "domain": ".".join(labels[len(labels) - level - 1:]),
            "is_top_level": level == 0,
            "is_subdomain": level > 1,
        })
    return hierarchy


def validate_domain_extraction(url, domain: str) -> bool:
    """Check that a resolved domain is consistent with its URL"""
    if not url or not domain:
        return False
    if domain == UNKNOWN_DOMAIN:
        return True

    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return False
    if not hostname:
        return False
    return domain in hostname or hostname in domain
