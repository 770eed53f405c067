"""
Proxy rotation service.

Holds an ordered, non-empty list of egress endpoints and hands out the
current one to browser sessions. Failed endpoints stay in rotation since
failures are often transient; they are only flagged for reporting.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime

from ..database.models import ProxyEndpoint

logger = logging.getLogger(__name__)

DIRECT = ProxyEndpoint(host="", port=0, label="Direct")


@dataclass
class ProxyStats:
    requests: int = 0
    failures: int = 0
    last_used: datetime | None = None
    last_error: str | None = None
    failed: bool = False


class ProxyService:
    """Round-robin proxy rotation with per-endpoint usage statistics."""

    def __init__(self, proxies: list[ProxyEndpoint] | None = None):
        self.proxies: list[ProxyEndpoint] = list(proxies) if proxies else [DIRECT]
        self._index = 0
        self._stats: dict[str, ProxyStats] = {p.key: ProxyStats() for p in self.proxies}
        self._lock = threading.Lock()
        logger.info(f"Loaded {len(self.proxies)} proxies")

    @classmethod
    def from_env(cls, default: str = "", proxy_list: str = "") -> "ProxyService":
        """
        Build the service from configuration strings.

        Args:
            default: Primary proxy as "host:port[:user:pass]"
            proxy_list: Additional proxies, one per line or comma separated
        """
        proxies: list[ProxyEndpoint] = []
        if default.strip():
            proxies.append(ProxyEndpoint.parse(default, label="Primary"))

        lines = [line.strip() for line in proxy_list.replace(",", "\n").splitlines()]
        for line in lines:
            if not line:
                continue
            try:
                proxies.append(ProxyEndpoint.parse(line, label=f"Proxy {len(proxies) + 1}"))
            except ValueError as e:
                logger.warning(f"Skipping proxy entry: {e}")

        return cls(proxies=proxies)

    @property
    def current(self) -> ProxyEndpoint:
        """Current endpoint, without recording usage."""
        return self.proxies[self._index]

    def get_current(self) -> ProxyEndpoint:
        """Return the current endpoint and record a request against it."""
        with self._lock:
            proxy = self.proxies[self._index]
            stats = self._stats[proxy.key]
            stats.requests += 1
            stats.last_used = datetime.now()
            requests = stats.requests

        logger.debug(f"Using proxy: {proxy.label} ({proxy.key}), requests={requests}")
        return proxy

    def rotate(self, reason: str = "rotation") -> ProxyEndpoint:
        """Advance to the next endpoint. A single-endpoint list stays put."""
        with self._lock:
            if len(self.proxies) <= 1:
                logger.warning("Cannot rotate: only one proxy available")
                return self.proxies[self._index]

            old = self.proxies[self._index]
            self._index = (self._index + 1) % len(self.proxies)
            new = self.proxies[self._index]

        logger.warning(f"Switching proxy ({reason}): {old.label} ({old.key}) -> {new.label} ({new.key})")
        return new

    def mark_failed(self, proxy: ProxyEndpoint, error: Exception | str) -> ProxyEndpoint:
        """
        Record a failure against an endpoint.

        Rotates away only when the failed endpoint is the current one, so
        several workers reporting the same outage rotate once.
        """
        with self._lock:
            stats = self._stats.setdefault(proxy.key, ProxyStats())
            stats.failures += 1
            stats.failed = True
            stats.last_error = str(error)
            is_current = self.proxies[self._index].key == proxy.key

        logger.error(f"Proxy failed: {proxy.label} ({proxy.key}), failures={stats.failures}: {error}")

        if is_current:
            return self.rotate("proxy_failed")
        return self.current

    def reset_failed(self) -> None:
        """Clear all failure flags. Counters are kept for reporting."""
        with self._lock:
            for stats in self._stats.values():
                stats.failed = False
                stats.last_error = None
        logger.info("Reset all failed proxy flags")

    def get_stats(self) -> list[dict]:
        """Per-endpoint usage statistics in list order."""
        with self._lock:
            current_key = self.proxies[self._index].key
            result = []
            for proxy in self.proxies:
                stats = self._stats[proxy.key]
                if stats.requests > 0:
                    success_rate = f"{max(stats.requests - stats.failures, 0) / stats.requests * 100:.2f}%"
                else:
                    success_rate = "0%"
                result.append({
                    "label": proxy.label,
                    "host": proxy.host,
                    "port": proxy.port,
                    "requests": stats.requests,
                    "failures": stats.failures,
                    "success_rate": success_rate,
                    "last_used": stats.last_used.isoformat() if stats.last_used else None,
                    "is_failed": stats.failed,
                    "is_current": proxy.key == current_key,
                })
            return result
