"""HTTP client for the spreadsheet-backed item store.

The store is a small web app in front of three sheets:

* ``FAQ``       (``q`` / ``a`` / ``k`` / ``enabled``): the catalog
* ``KNOWLEDGE`` (``doc_title`` / ``chunk_id`` / ``text``): the corpus
* ``LOGS``     : append-only audit log, written with a shared token

Reads go through a ``TTLCache`` and are best-effort: any failure is logged,
recorded as a metric and degraded to an empty result.  Failures are never
cached, so the next request tries again.  Log writes use their own short
timeout and never raise.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

import httpx

from src.config import (
    CACHE_TTL_SECONDS,
    LOG_TIMEOUT_SECONDS,
    STORE_FAQ_URL,
    STORE_KNOWLEDGE_URL,
    STORE_LOG_URL,
    STORE_TIMEOUT_SECONDS,
    STORE_TOKEN,
)
from src.core.models import CatalogEntry, KnowledgeChunk
from src.services.cache import TTLCache
from src.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Cache keys ──────────────────────────────────────────────────────
_CK_CATALOG = "catalog"
_CK_CORPUS = "knowledge_cache_v1"


class StoreAPIError(Exception):
    """Raised when the item store answers with an error or an unusable body."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class StoreClient:
    """Reads the catalog and corpus, writes audit-log rows.

    URLs left empty disable the corresponding feature: no catalog means no
    FAQ tier, no corpus means no knowledge tier, no log URL (or token)
    means log entries are discarded.
    """

    def __init__(
        self,
        faq_url: str | None = None,
        knowledge_url: str | None = None,
        log_url: str | None = None,
        token: str | None = None,
        *,
        cache: TTLCache | None = None,
        timeout: float = STORE_TIMEOUT_SECONDS,
        log_timeout: float = LOG_TIMEOUT_SECONDS,
    ):
        self._faq_url = STORE_FAQ_URL if faq_url is None else faq_url
        self._knowledge_url = STORE_KNOWLEDGE_URL if knowledge_url is None else knowledge_url
        self._log_url = STORE_LOG_URL if log_url is None else log_url
        self._token = STORE_TOKEN if token is None else token
        self._log_timeout = log_timeout
        self._client = httpx.Client(timeout=timeout, follow_redirects=True)
        self._cache = cache or TTLCache(ttl_seconds=CACHE_TTL_SECONDS)

    # ── Internal helpers ─────────────────────────────────────────────

    def _get_items(self, url: str) -> list[dict[str, Any]]:
        """GET *url* and return its ``items`` rows."""
        t0 = time.perf_counter()
        try:
            response = self._client.get(url)
            if response.status_code >= 400:
                raise StoreAPIError(
                    f"Store error {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                )
            data = response.json()
        except (httpx.HTTPError, StoreAPIError, ValueError) as exc:
            metrics.record_failure(
                "store", "GET items",
                error_type=type(exc).__name__,
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            raise

        metrics.record_success("store", "GET items", latency_ms=(time.perf_counter() - t0) * 1000)
        if isinstance(data, Mapping):
            data = data.get("items", [])
        if not isinstance(data, list):
            raise StoreAPIError("Store response has no item list")
        return [row for row in data if isinstance(row, Mapping)]

    def _cached_rows(self, key: str, url: str) -> list[dict[str, Any]]:
        if not url:
            return []
        try:
            return self._cache.get_or_load(key, lambda: self._get_items(url))
        except (httpx.HTTPError, StoreAPIError, ValueError) as exc:
            logger.warning("Store fetch for %s failed, using empty result: %s", key, exc)
            return []

    # ── Public API ───────────────────────────────────────────────────

    def fetch_catalog(self) -> list[CatalogEntry]:
        """Enabled catalog entries with both a question and an answer."""
        entries = [CatalogEntry.from_row(row) for row in self._cached_rows(_CK_CATALOG, self._faq_url)]
        return [e for e in entries if e.enabled and e.question and e.answer]

    def fetch_corpus(self) -> list[KnowledgeChunk]:
        chunks = [KnowledgeChunk.from_row(row) for row in self._cached_rows(_CK_CORPUS, self._knowledge_url)]
        return [c for c in chunks if c.text]

    def record_log(self, entry: Mapping[str, Any]) -> None:
        """Append one audit row.  Failures and timeouts are dropped."""
        if not self._log_url or not self._token:
            return
        try:
            self._client.post(
                self._log_url,
                params={"token": self._token},
                json=dict(entry),
                timeout=self._log_timeout,
            )
        except Exception as exc:
            logger.debug("Audit log write dropped: %s", exc)

    def close(self) -> None:
        self._client.close()
