"""CloudWatch custom metrics emitter with background batching.

Two families of metrics:

* ``ExternalAPI/*``: count, latency and errors for every call to an
  external collaborator (``anthropic`` completions, the ``store``).
* ``Inquiry/AnswerCount``: one datum per answered turn, dimensioned by
  the ``source`` tier that produced the reply.

Metrics are buffered in memory and flushed by a daemon thread every
``FLUSH_INTERVAL_SECONDS`` when ``METRICS_ENABLED=true``; otherwise they
are only logged at DEBUG level.

Usage
-----
>>> from src.services.metrics import metrics
>>> metrics.record_success("store", "GET items", latency_ms=84.2)
>>> metrics.record_answer("faq_flow_start")
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "ClinicInquiry"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


def _datum(
    name: str, dimensions: dict[str, str], value: float, unit: str,
) -> dict[str, Any]:
    return {
        "MetricName": name,
        "Dimensions": [{"Name": k, "Value": v} for k, v in dimensions.items()],
        "Timestamp": datetime.now(UTC),
        "Value": value,
        "Unit": unit,
    }


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record a successful external call."""
        self._append(_datum(
            "ExternalAPI/RequestCount", {"Service": service, "Status": "success"}, 1, "Count",
        ))
        self._append(_datum(
            "ExternalAPI/Latency", {"Service": service, "Operation": operation},
            latency_ms, "Milliseconds",
        ))
        logger.debug("Metric: %s %s success latency=%.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed external call."""
        self._append(_datum(
            "ExternalAPI/RequestCount", {"Service": service, "Status": "failure"}, 1, "Count",
        ))
        self._append(_datum(
            "ExternalAPI/ErrorCount", {"Service": service, "ErrorType": error_type}, 1, "Count",
        ))
        if latency_ms > 0:
            self._append(_datum(
                "ExternalAPI/Latency", {"Service": service, "Operation": operation},
                latency_ms, "Milliseconds",
            ))
        logger.debug(
            "Metric: %s %s failure error=%s latency=%.1fms",
            service, operation, error_type, latency_ms,
        )

    def record_answer(self, source: str) -> None:
        """Count one answered inquiry under the tier that produced it."""
        self._append(_datum("Inquiry/AnswerCount", {"Source": source}, 1, "Count"))
        logger.debug("Metric: answer source=%s", source)

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            if not self._buffer:
                return 0
            batch = self._buffer[:]
            self._buffer.clear()

        if not self._enabled:
            logger.debug("Metrics flush skipped (not enabled): %d items", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for i in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[i : i + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _append(self, metric_data: dict[str, Any]) -> None:
        with self._lock:
            self._buffer.append(metric_data)

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        t = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        t.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


metrics = MetricsClient()
