from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional, Tuple
from .utils import getenv_bool, getenv_int, getenv_str, getenv_csv

# ---------- Project Paths ----------
PROJECT_ROOT: Path = Path(__file__).resolve().parents[1]
LOG_DIR: Path = PROJECT_ROOT / "logs"
LOG_FILE: Path = LOG_DIR / "resolver.log"

# Hosts the engine is deployed against (host app + tracker detail pages).
DEFAULT_OBSERVABLE_PATTERNS = (
    "http://radarr.intra/*,"
    "https://thepiratebay.org/*,"
    "www.torrentleech.org/*,"
    "uindex.org/*"
)
# Hosts the network layer may address.
DEFAULT_CONTACTABLE_HOSTS = "thepiratebay.org,www.torrentleech.org,uindex.org"


# ---------- Config dataclass ----------
@dataclass(frozen=True)
class Config:
    # Queue & timing
    max_concurrent: int
    page_load_timeout_ms: int                   # isolated-render channel budget
    request_timeout_ms: int                     # direct-fetch budget
    inter_attempt_delay_ms: int                 # pause after every attempt

    # Origin allow-list sources (read once by OriginPolicy)
    observable_patterns: Tuple[str, ...]
    contactable_patterns: Tuple[str, ...]

    # HTTP / browser
    user_agent: str
    block_heavy_resources: bool
    proxy_server: Optional[str]
    browser_args_extra: Tuple[str, ...]
    navigation_wait_until: Literal["load", "domcontentloaded", "networkidle", "commit"]
    page_close_timeout_ms: int

    # Paths
    project_root: Path
    log_file: Path


# ---------- Loader ----------
def load_config() -> Config:

    cfg = Config(
        max_concurrent=getenv_int("RESOLVER_MAX_CONCURRENT", 5, 1, 64),
        page_load_timeout_ms=getenv_int("PAGE_LOAD_TIMEOUT_MS", 5000, 500, 120000),
        request_timeout_ms=getenv_int("REQUEST_TIMEOUT_MS", 10000, 500, 120000),
        # Spacing requests to the same tracker matters more than raw throughput.
        inter_attempt_delay_ms=getenv_int("INTER_ATTEMPT_DELAY_MS", 1000, 0, 60000),

        observable_patterns=getenv_csv("OBSERVABLE_PATTERNS", DEFAULT_OBSERVABLE_PATTERNS),
        contactable_patterns=getenv_csv("CONTACTABLE_HOSTS", DEFAULT_CONTACTABLE_HOSTS),

        user_agent=getenv_str(
            "RESOLVER_USER_AGENT",
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0.0.0 Safari/537.36"
        ),
        block_heavy_resources=getenv_bool("BLOCK_HEAVY_RESOURCES", True),
        proxy_server=getenv_str("PROXY_SERVER", "") or None,
        browser_args_extra=getenv_csv("BROWSER_ARGS_EXTRA", ""),
        navigation_wait_until=getenv_str("NAV_WAIT_UNTIL", "domcontentloaded"),
        page_close_timeout_ms=getenv_int("PAGE_CLOSE_TIMEOUT_MS", 1500, 100, 10000),

        project_root=PROJECT_ROOT,
        log_file=LOG_FILE,
    )
    return cfg
