"""
Grafana OTLP Metrics Exporter
==============================

Pushes embedding job metrics to Grafana Cloud via OTLP.

Metrics exported:
- embedding_job_latency_ms: Wall time of one embedding job attempt
- embedding_jobs_total: One data point per finished job, tagged with status
"""

import base64
import time
from typing import Optional, Dict, Any, List

import httpx

from ticket_routing.config import settings
from ticket_routing.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class GrafanaOTLPExporter:
    """
    Export embedding metrics to Grafana Cloud via OTLP HTTP endpoint.

    Uses OpenTelemetry Protocol (OTLP) JSON format for metrics.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        instance_id: Optional[str] = None
    ):
        self._host = host or settings.grafana_host
        self._api_key = api_key or settings.grafana_api_key
        self._instance_id = instance_id or settings.grafana_instance_id
        self._enabled = bool(self._host and self._api_key and self._instance_id)

        if self._enabled:
            auth_pair = f"{self._instance_id}:{self._api_key}"
            self._auth_encoded = base64.b64encode(auth_pair.encode()).decode()
            # Don't double-append the path if host already includes it
            if "/otlp/v1/metrics" not in self._host:
                self._url = f"{self._host}/otlp/v1/metrics"
            else:
                self._url = self._host
            logger.info(
                "Grafana OTLP exporter initialized",
                extra={"host": self._host, "instance_id": self._instance_id}
            )
        else:
            logger.debug("Grafana OTLP exporter not configured - metrics will not be exported")

    def is_enabled(self) -> bool:
        """Check if exporter is properly configured."""
        return self._enabled

    def _gauge(self, name: str, unit: str, value: int, timestamp_ns: int,
               attributes: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "name": name,
            "unit": unit,
            "gauge": {
                "dataPoints": [
                    {
                        "asInt": value,
                        "timeUnixNano": timestamp_ns,
                        "attributes": attributes
                    }
                ]
            }
        }

    async def export_embedding_metrics(
        self,
        kind: str,
        status: str,
        latency_ms: int,
        attempts: int = 1,
        attributes: Optional[Dict[str, str]] = None
    ) -> bool:
        """
        Export the outcome of one embedding job.

        Args:
            kind: Entity kind (document, ticket)
            status: done or failed
            latency_ms: Latency of the final attempt in milliseconds
            attempts: Number of attempts the job took
            attributes: Additional attributes to attach to metrics

        Returns:
            True if export succeeded, False otherwise
        """
        if not self._enabled:
            return False

        timestamp_ns = int(time.time() * 1_000_000_000)

        metric_attributes = [
            {"key": "kind", "value": {"stringValue": kind}},
            {"key": "status", "value": {"stringValue": status}},
            {"key": "model", "value": {"stringValue": settings.embedding_model}},
            {"key": "service", "value": {"stringValue": settings.app_name}},
        ]
        if attributes:
            for key, value in attributes.items():
                metric_attributes.append({
                    "key": key,
                    "value": {"stringValue": str(value)}
                })

        payload = {
            "resourceMetrics": [
                {
                    "resource": {
                        "attributes": [
                            {"key": "service.name", "value": {"stringValue": settings.app_name}},
                            {"key": "service.version", "value": {"stringValue": settings.app_version}},
                            {"key": "deployment.environment", "value": {"stringValue": settings.environment}},
                        ]
                    },
                    "scopeMetrics": [
                        {
                            "metrics": [
                                self._gauge("embedding_job_latency_ms", "ms", latency_ms,
                                            timestamp_ns, metric_attributes),
                                self._gauge("embedding_jobs_total", "1", 1,
                                            timestamp_ns, metric_attributes),
                                self._gauge("embedding_job_attempts", "1", attempts,
                                            timestamp_ns, metric_attributes),
                            ]
                        }
                    ]
                }
            ]
        }

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._auth_encoded}",
            "X-Grafana-Org-Id": str(self._instance_id)
        }

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(self._url, headers=headers, json=payload)

            if response.status_code in (200, 202):
                return True

            logger.warning(
                "Failed to export metrics to Grafana",
                extra={
                    "status_code": response.status_code,
                    "response": response.text[:500],
                    "url": self._url
                }
            )
            return False

        except Exception as e:
            logger.error(
                "Error exporting metrics to Grafana",
                extra={"error": str(e)}
            )
            return False


# Global exporter instance
_grafana_exporter: Optional[GrafanaOTLPExporter] = None


def init_grafana_exporter(
    host: str,
    api_key: str,
    instance_id: str
) -> GrafanaOTLPExporter:
    """Initialize Grafana exporter with credentials."""
    global _grafana_exporter
    _grafana_exporter = GrafanaOTLPExporter(
        host=host,
        api_key=api_key,
        instance_id=instance_id
    )
    return _grafana_exporter
