# Scoring Module
from .risk_scorer import RiskScorer

__all__ = ["RiskScorer"]
