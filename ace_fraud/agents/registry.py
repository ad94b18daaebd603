"""Analyzer registry - the fixed set of analyzers run for every transaction."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ace_fraud.database.models import AgentAnalysis, Bullet, Recommendation, Transaction
from .base import BaseAnalyzer
from .pattern_detector import PatternDetector
from .behavioral_analyzer import BehavioralAnalyzer
from .velocity_checker import VelocityChecker
from .merchant_risk_analyzer import MerchantRiskAnalyzer
from .geographic_analyzer import GeographicAnalyzer

logger = logging.getLogger(__name__)

ANALYZER_CLASSES = (
    PatternDetector,
    BehavioralAnalyzer,
    VelocityChecker,
    MerchantRiskAnalyzer,
    GeographicAnalyzer,
)


def degraded_analysis(name: str, error: str) -> AgentAnalysis:
    """Neutral, zero-confidence stand-in for an analyzer that failed."""
    return AgentAnalysis(
        name=name,
        risk_score=50.0,
        findings=["Analyzer unavailable"],
        recommendation=Recommendation.APPROVE,
        confidence=0.0,
        reasoning=f"{name} failed: {error}. Contribution excluded from aggregation.",
        error=error,
    )


class AnalyzerRegistry:
    """Ordered collection of the five analyzers."""

    def __init__(
        self,
        analyzers: Optional[Sequence[BaseAnalyzer]] = None,
        threshold: float = 50.0,
        max_bullets: int = 10,
    ):
        if analyzers is None:
            analyzers = [cls(threshold=threshold, max_bullets=max_bullets) for cls in ANALYZER_CLASSES]
        self.analyzers: List[BaseAnalyzer] = list(analyzers)

    @property
    def names(self) -> List[str]:
        return [a.AGENT_NAME for a in self.analyzers]

    def get(self, name: str) -> BaseAnalyzer:
        for analyzer in self.analyzers:
            if analyzer.AGENT_NAME == name:
                return analyzer
        raise KeyError(f"Unknown analyzer: {name}")

    def run_one(
        self,
        analyzer: BaseAnalyzer,
        transaction: Transaction,
        bullets: Sequence[Bullet] = (),
    ) -> Tuple[AgentAnalysis, Optional[str]]:
        """Run a single analyzer, degrading instead of raising on failure."""
        try:
            return analyzer.analyze(transaction, bullets), None
        except Exception as e:
            message = f"{analyzer.AGENT_NAME} error: {e}"
            logger.warning("Analyzer degraded: %s", message)
            return degraded_analysis(analyzer.AGENT_NAME, str(e)), message

    def run_all(
        self,
        transaction: Transaction,
        bullets: Sequence[Bullet] = (),
    ) -> Tuple[Dict[str, AgentAnalysis], List[str]]:
        """
        Run every analyzer over one transaction.

        Returns:
            Mapping of analyzer name to AgentAnalysis (every key present)
            and the list of analyzer-level errors.
        """
        results: Dict[str, AgentAnalysis] = {}
        errors: List[str] = []
        for analyzer in self.analyzers:
            analysis, error = self.run_one(analyzer, transaction, bullets)
            results[analyzer.AGENT_NAME] = analysis
            if error:
                errors.append(error)
        return results, errors
