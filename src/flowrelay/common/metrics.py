"""Prometheus metrics for FlowRelay.

Provides pre-defined metrics for monitoring packet reception, decoding,
enrichment and output.
"""

from prometheus_client import Counter, Gauge, Info, start_http_server

from flowrelay.common.config import MetricsSettings
from flowrelay.common.logging import get_logger

logger = get_logger(__name__)

# Application info
APP_INFO = Info(
    "flowrelay",
    "FlowRelay application information",
)

# Ingestion metrics
PACKETS_RECEIVED = Counter(
    "flowrelay_packets_received_total",
    "Total number of NetFlow datagrams received",
    ["exporter"],
)

PACKET_ERRORS = Counter(
    "flowrelay_packet_errors_total",
    "Total number of malformed or truncated datagrams",
    ["error_type"],
)

RECORDS_DECODED = Counter(
    "flowrelay_records_decoded_total",
    "Total number of flow records decoded and enriched",
)

CHANNEL_SIZE = Gauge(
    "flowrelay_channel_size",
    "Current number of records waiting in the output channel",
)

# Enrichment metrics
DNS_LOOKUPS = Counter(
    "flowrelay_dns_lookups_total",
    "Total number of reverse DNS lookups performed",
    ["status"],
)

DNS_CACHE_HITS = Counter(
    "flowrelay_dns_cache_hits_total",
    "Total number of DNS cache hits",
)

DNS_CACHE_SIZE = Gauge(
    "flowrelay_dns_cache_size",
    "Current size of DNS cache",
)

# Output metrics
RECORDS_EMITTED = Counter(
    "flowrelay_records_emitted_total",
    "Total number of records written by the active sink",
    ["sink"],
)

SINK_ERRORS = Counter(
    "flowrelay_sink_errors_total",
    "Total number of sink errors",
    ["sink", "error_type"],
)


def set_app_info(version: str, environment: str) -> None:
    """Set application info metric.

    Args:
        version: Application version.
        environment: Deployment environment.
    """
    APP_INFO.info({
        "version": version,
        "environment": environment,
    })


def start_metrics_server(settings: MetricsSettings) -> None:
    """Expose metrics over HTTP when enabled.

    Args:
        settings: Metrics settings.
    """
    if not settings.enabled:
        return

    start_http_server(settings.port, addr=settings.address)
    logger.info(
        "Metrics exporter started",
        address=settings.address,
        port=settings.port,
    )
