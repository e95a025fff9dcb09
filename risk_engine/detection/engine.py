"""
Detection Engine

Runs the enabled analyzers in parallel and joins their factors.

Design goals:
- Only analyzers whose rule is enabled in the snapshot run
- Factor order is stable: analyzer registration order, then the
  analyzer's own order
- Any analyzer failure fails the whole analysis; no partial results
"""

import asyncio
import logging

from ..policy import DetectionSnapshot
from ..schemas import FraudFactor, PaymentContext
from .base import BaseAnalyzer

logger = logging.getLogger("risk_engine.detection")


class DetectionEngine:
    """Orchestrates all analyzers."""

    def __init__(self, analyzers: list[BaseAnalyzer]):
        """
        Initialize detection engine.

        Args:
            analyzers: Analyzer instances in reporting order
        """
        self.analyzers = analyzers

    def active_analyzers(self, snapshot: DetectionSnapshot) -> list[BaseAnalyzer]:
        return [a for a in self.analyzers if snapshot.rule_enabled(a.rule)]

    async def run_detection(
        self,
        context: PaymentContext,
        snapshot: DetectionSnapshot,
    ) -> list[FraudFactor]:
        """
        Run enabled analyzers and collect their factors.

        Raises:
            DependencyUnavailable: an analyzer's collaborator failed
        """
        active = self.active_analyzers(snapshot)
        if not active:
            return []

        # Wait for every analyzer so none is left running after a failure
        results = await asyncio.gather(
            *(analyzer.analyze(context, snapshot.policy) for analyzer in active),
            return_exceptions=True,
        )

        factors: list[FraudFactor] = []
        for analyzer, result in zip(active, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Analyzer %s failed for payment %s: %s",
                    analyzer.__class__.__name__,
                    context.payment_id,
                    result,
                )
                raise result
            factors.extend(result)

        return factors
