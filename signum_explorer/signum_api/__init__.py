"""
Signum API acquisition layer.

HTTP transport to a single node, a health-ranked fail-over pool of nodes,
TTL caches over per-account queries, and the typed SignumClient on top.
"""

from signum_explorer.signum_api.cache import CacheEntry, TTLCache
from signum_explorer.signum_api.client import SignumClient
from signum_explorer.signum_api.pool import Upstream, UpstreamPool, rank_upstreams
from signum_explorer.signum_api.transport import HttpTransport

__all__ = [
    "CacheEntry",
    "HttpTransport",
    "SignumClient",
    "TTLCache",
    "Upstream",
    "UpstreamPool",
    "rank_upstreams",
]
