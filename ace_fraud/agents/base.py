"""Base class shared by the five transaction analyzers."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Tuple

from ace_fraud.database.models import AgentAnalysis, Bullet, Recommendation, Transaction

logger = logging.getLogger(__name__)


class BaseAnalyzer(ABC):
    """
    A single-purpose scoring component over one transaction.

    Subclasses implement ``_score_signals`` for their facet. ``analyze``
    layers the playbook bullets on top and derives recommendation and
    confidence. Analyzers hold no state between calls.
    """

    AGENT_NAME = ""
    DESCRIPTION = ""
    BASE_CONFIDENCE = 0.6
    BASE_SCORE = 5.0

    # Feature -> direction in which it is riskier ("higher", "lower" or "true").
    RISK_SIGNALS: Dict[str, str] = {}

    BULLET_CONFIDENCE_BONUS = 0.04
    MAX_BULLET_BONUS = 0.15

    def __init__(self, threshold: float = 50.0, max_bullets: int = 10):
        self.threshold = threshold
        self.max_bullets = max_bullets

    def analyze(self, transaction: Transaction, bullets: Sequence[Bullet] = ()) -> AgentAnalysis:
        """
        Score a transaction on this analyzer's facet.

        Args:
            transaction: Transaction to score
            bullets: Playbook bullets available to this call (any node)

        Returns:
            AgentAnalysis for this analyzer
        """
        score, findings = self._score_signals(transaction)

        applied: List[Bullet] = []
        for bullet in self.select_bullets(bullets):
            if bullet.matches(transaction):
                score += bullet.risk_delta * bullet.reliability
                findings.append(f"Playbook: {bullet.content}")
                applied.append(bullet)

        score = round(min(100.0, max(0.0, score)), 2)
        recommendation = Recommendation.DECLINE if score > self.threshold else Recommendation.APPROVE
        confidence = self._confidence(score, applied)

        logger.debug(
            "%s scored %s: %.2f (%d bullets applied)",
            self.AGENT_NAME, transaction.user_id, score, len(applied),
        )

        return AgentAnalysis(
            name=self.AGENT_NAME,
            risk_score=score,
            findings=findings,
            recommendation=recommendation,
            confidence=confidence,
            reasoning=self._generate_reasoning(score, recommendation, applied),
            applied_bullets=[b.id for b in applied],
        )

    def select_bullets(self, bullets: Sequence[Bullet]) -> List[Bullet]:
        """Active bullets owned by this analyzer, most reliable first."""
        owned = [
            (index, b) for index, b in enumerate(bullets)
            if b.node == self.AGENT_NAME and b.active
        ]
        owned.sort(key=lambda pair: (-pair[1].reliability, pair[0]))
        return [b for _, b in owned[: self.max_bullets]]

    @abstractmethod
    def _score_signals(self, transaction: Transaction) -> Tuple[float, List[str]]:
        """Return the heuristic base score and ordered findings."""

    def _confidence(self, score: float, applied: List[Bullet]) -> float:
        margin = abs(score - 50.0) / 50.0
        bonus = min(
            self.MAX_BULLET_BONUS,
            sum(self.BULLET_CONFIDENCE_BONUS * b.reliability for b in applied),
        )
        return round(min(0.99, self.BASE_CONFIDENCE + 0.25 * margin + bonus), 4)

    def _generate_reasoning(
        self,
        score: float,
        recommendation: Recommendation,
        applied: List[Bullet],
    ) -> str:
        reasoning = f"{self.DESCRIPTION} complete: risk {score:.1f}/100, recommend {recommendation.value}."
        if applied:
            reasoning += f" {len(applied)} playbook heuristic(s) applied."
        return reasoning
