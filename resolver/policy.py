from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .config import Config
from .utils import hostname_from_pattern, hostname_of

logger = logging.getLogger(__name__)


def observable_hosts(patterns: Iterable[str]) -> frozenset[str]:
    hosts = (hostname_from_pattern(p, wildcard="example") for p in patterns)
    return frozenset(h for h in hosts if h)


def contactable_hosts(patterns: Iterable[str]) -> frozenset[str]:
    hosts = (hostname_from_pattern(p) for p in patterns)
    return frozenset(h for h in hosts if h)


def embedder_url(observable: Iterable[str], contactable: Iterable[str]) -> Optional[str]:
    """
    Address of the host application: the first observable pattern that
    mentions none of the contactable entries, with the wildcard removed.
    """
    connects = [c for c in contactable if c]
    for match in observable:
        if not any(c in match for c in connects):
            return match.replace("*", "", 1)
    return None


@dataclass(frozen=True)
class OriginPolicy:
    """
    Read-only allow-list. A host is permitted only when it is both a page
    the engine is deployed against and a host it may send requests to.
    """
    observable: frozenset[str]
    contactable: frozenset[str]
    embedder: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: Config) -> "OriginPolicy":
        policy = cls(
            observable=observable_hosts(cfg.observable_patterns),
            contactable=contactable_hosts(cfg.contactable_patterns),
            embedder=embedder_url(cfg.observable_patterns, cfg.contactable_patterns),
        )
        logger.info(
            "Origin policy: permitted=%s embedder=%s",
            sorted(policy.permitted_hosts), policy.embedder,
        )
        return policy

    @property
    def permitted_hosts(self) -> frozenset[str]:
        return self.observable & self.contactable

    def is_permitted(self, hostname: str) -> bool:
        host = (hostname or "").strip().lower()
        return bool(host) and host in self.observable and host in self.contactable

    def permits_url(self, url: str) -> bool:
        return self.is_permitted(hostname_of(url))
