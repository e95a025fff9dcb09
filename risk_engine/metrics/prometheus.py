"""
Prometheus Metrics

Defines all metrics exposed by the risk engine.
Metrics are critical for:
- Latency monitoring of the analysis pipeline
- Risk distribution (how many payments land in each level)
- Operational health (collaborator failures, gate rejections)
"""

import logging

from prometheus_client import Counter, Histogram, Gauge

logger = logging.getLogger("risk_engine.metrics")


class RiskMetrics:
    """
    Container for all Prometheus metrics.

    Organized by category:
    - Assessment metrics
    - Validation and tokenization metrics
    - Dependency and security gate metrics
    - Configuration metrics
    """

    def __init__(self):
        """Initialize all metrics."""

        # =====================================================================
        # Assessment Metrics
        # =====================================================================
        self.assessments_total = Counter(
            "risk_assessments_total",
            "Total number of fraud risk assessments by level",
            labelnames=["level"],
        )

        self.analysis_latency = Histogram(
            "risk_analysis_latency_ms",
            "Fraud analysis latency in milliseconds",
            buckets=[1, 2, 5, 10, 25, 50, 100, 250, 500, 1000],
        )

        self.risk_score_distribution = Histogram(
            "risk_score",
            "Distribution of fraud risk scores",
            buckets=[10, 20, 30, 40, 50, 60, 70, 80, 90, 100],
        )

        self.factor_triggers = Counter(
            "risk_factor_triggers_total",
            "Number of times each factor type fired",
            labelnames=["factor_type"],
        )

        # =====================================================================
        # Validation / Tokenization Metrics
        # =====================================================================
        self.card_validation_failures = Counter(
            "risk_card_validation_failures_total",
            "Card validation failures by reason",
            labelnames=["reason"],
        )

        self.tokenizations_total = Counter(
            "risk_tokenizations_total",
            "Number of cards tokenized",
        )

        self.crypto_failures = Counter(
            "risk_crypto_failures_total",
            "Encryption/decryption failures",
            labelnames=["operation"],
        )

        # =====================================================================
        # Dependency / Gate Metrics
        # =====================================================================
        self.dependency_failures = Counter(
            "risk_dependency_failures_total",
            "Collaborator failures and timeouts",
            labelnames=["dependency"],
        )

        self.request_rejections = Counter(
            "risk_request_rejections_total",
            "Requests rejected by the security gate",
            labelnames=["reason"],
        )

        # =====================================================================
        # Configuration Metrics
        # =====================================================================
        self.config_version = Gauge(
            "risk_config_version",
            "Version number of the active detection configuration",
        )

        self.config_updates = Counter(
            "risk_config_updates_total",
            "Configuration update attempts by outcome",
            labelnames=["outcome"],
        )


# Global metrics instance
metrics = RiskMetrics()
