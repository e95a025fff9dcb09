"""
Analyzer Base

Each analyzer turns a PaymentContext into zero or more FraudFactors:
- VelocityAnalyzer: transaction count/amount in a recent window
- GeolocationAnalyzer: impossible travel, high-risk countries
- DeviceAnalyzer: device reputation and deny-listed devices
- BehavioralAnalyzer: customer behaviour profile
- CardPatternAnalyzer: deny-listed cards, suspicious digit sequences
- AmountPatternAnalyzer: unusual and round amounts

Analyzers read only their arguments and injected collaborators. A
collaborator that fails or exceeds the timeout raises
DependencyUnavailable; missing data is never treated as "no risk" on
error.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Optional, TypeVar

from ..errors import DependencyUnavailable
from ..metrics import metrics
from ..policy import FraudRule, RiskPolicy
from ..schemas import FraudFactor, PaymentContext

logger = logging.getLogger("risk_engine.detection")

T = TypeVar("T")


class BaseAnalyzer(ABC):
    """Base class for all risk factor analyzers."""

    rule: FraudRule

    def __init__(self, timeout: Optional[float] = None):
        """
        Args:
            timeout: Per-collaborator-call timeout in seconds (None = no limit)
        """
        self.timeout = timeout

    @abstractmethod
    async def analyze(
        self,
        context: PaymentContext,
        policy: RiskPolicy,
    ) -> list[FraudFactor]:
        """
        Run analysis.

        Args:
            context: Payment being analyzed
            policy: Policy from the snapshot used for this request

        Returns:
            Factors in a fixed order (possibly empty)

        Raises:
            DependencyUnavailable: a collaborator failed or timed out
        """

    async def _fetch(self, call: Awaitable[T], dependency: str) -> T:
        """Await a collaborator call with the timeout applied."""
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except DependencyUnavailable:
            raise
        except asyncio.TimeoutError as e:
            metrics.dependency_failures.labels(dependency=dependency).inc()
            logger.warning("%s: %s timed out after %ss", self.__class__.__name__, dependency, self.timeout)
            raise DependencyUnavailable(dependency, f"{dependency} timed out") from e
        except Exception as e:
            metrics.dependency_failures.labels(dependency=dependency).inc()
            logger.warning("%s: %s failed: %s", self.__class__.__name__, dependency, e)
            raise DependencyUnavailable(dependency, f"{dependency} failed: {type(e).__name__}") from e
