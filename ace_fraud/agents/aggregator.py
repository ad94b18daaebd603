"""Risk Aggregator - Combines analyzer outputs into one decision."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from ace_fraud.config import DEFAULT_ANALYZER_WEIGHTS
from ace_fraud.database.models import (
    AgentAnalysis,
    FraudAnalysisResult,
    Recommendation,
    RiskBreakdownEntry,
)
from ace_fraud.graph.state import FraudDetectionState


class RiskAggregator:
    """
    Aggregates the five analyzer results into a final decision.

    Each analyzer's contribution is its base weight scaled by its confidence,
    normalized so contributions sum to 1. The overall risk score is the
    contribution-weighted mean of analyzer scores; the decision is DECLINE
    iff that score exceeds the threshold.
    """

    AGENT_NAME = "risk_aggregator"

    DEFAULT_WEIGHTS = DEFAULT_ANALYZER_WEIGHTS

    MARGIN_CONFIDENCE = 0.1
    TOP_SIGNALS = 3

    def __init__(self, weights: Optional[Dict[str, float]] = None, threshold: float = 50.0):
        self.weights = weights or self.DEFAULT_WEIGHTS
        self.threshold = threshold

    def aggregate(self, state: FraudDetectionState) -> Dict[str, Any]:
        """
        Aggregate all analyzer results into a final decision.

        Args:
            state: Workflow state with analyzer_results populated

        Returns:
            State update with decision, risk score, confidence and breakdown
        """
        results = self._ordered(state.get("analyzer_results", {}), state.get("analyzer_order"))

        if not results:
            return self._no_results()

        contributions = self._calculate_contributions(results)
        risk_score = round(
            sum(contributions[name] * analysis.risk_score for name, analysis in results.items()),
            2,
        )
        risk_score = min(100.0, max(0.0, risk_score))
        decision = self._determine_decision(risk_score)
        confidence = self._determine_confidence(results, risk_score)

        risk_breakdown = {
            name: RiskBreakdownEntry(
                score=analysis.risk_score,
                contribution=contributions[name],
                findings_count=len(analysis.findings),
            )
            for name, analysis in results.items()
        }

        return {
            "risk_score": risk_score,
            "decision": decision,
            "confidence": confidence,
            "risk_breakdown": risk_breakdown,
            "reasoning": self._generate_reasoning(results, contributions, risk_score, decision),
            "current_step": "aggregation_complete",
        }

    def _weight(self, name: str, count: int) -> float:
        return self.weights.get(name, 1.0 / max(count, 1))

    def _calculate_contributions(self, results: Dict[str, AgentAnalysis]) -> Dict[str, float]:
        """Confidence-adjusted weights normalized to sum to 1."""
        count = len(results)
        adjusted = {
            name: self._weight(name, count) * analysis.confidence
            for name, analysis in results.items()
        }
        total = sum(adjusted.values())

        if total <= 0:
            # Every analyzer degraded; fall back to base weights.
            base = {name: self._weight(name, count) for name in results}
            base_total = sum(base.values()) or 1.0
            return {name: w / base_total for name, w in base.items()}

        return {name: w / total for name, w in adjusted.items()}

    def _determine_decision(self, risk_score: float) -> Recommendation:
        if risk_score > self.threshold:
            return Recommendation.DECLINE
        return Recommendation.APPROVE

    def _determine_confidence(self, results: Dict[str, AgentAnalysis], risk_score: float) -> float:
        """Base-weighted mean analyzer confidence plus a decision-margin term."""
        count = len(results)
        healthy = {name: a for name, a in results.items() if not a.degraded}
        if not healthy:
            return 0.0

        total_weight = sum(self._weight(name, count) for name in healthy)
        mean_confidence = sum(
            self._weight(name, count) * a.confidence for name, a in healthy.items()
        ) / total_weight

        span = max(self.threshold, 100.0 - self.threshold) or 1.0
        margin = abs(risk_score - self.threshold) / span
        return round(min(0.99, mean_confidence + self.MARGIN_CONFIDENCE * margin), 4)

    def _generate_reasoning(
        self,
        results: Dict[str, AgentAnalysis],
        contributions: Dict[str, float],
        risk_score: float,
        decision: Recommendation,
    ) -> str:
        """Summarize the decision from the highest-contributing findings."""
        agreeing = sum(1 for a in results.values() if a.recommendation == decision and not a.degraded)
        comparison = "exceeds" if decision == Recommendation.DECLINE else "is within"

        parts = [
            f"{decision.value}: risk score {risk_score:.1f}/100 {comparison} threshold {self.threshold:g}.",
            f"{agreeing}/{len(results)} analyzers agree.",
        ]

        healthy = [name for name, a in results.items() if not a.degraded]
        if decision == Recommendation.DECLINE:
            ranked = sorted(healthy, key=lambda n: contributions[n] * results[n].risk_score, reverse=True)
        else:
            ranked = sorted(healthy, key=lambda n: contributions[n], reverse=True)

        signals = [
            f"{name}: {results[name].findings[0]}"
            for name in ranked[: self.TOP_SIGNALS]
            if results[name].findings
        ]
        if signals:
            parts.append("Key signals: " + "; ".join(signals) + ".")

        degraded = [name for name, a in results.items() if a.degraded]
        if degraded:
            parts.append(f"Degraded analyzers excluded: {', '.join(degraded)}.")

        return " ".join(parts)

    def _no_results(self) -> Dict[str, Any]:
        """Handle case with no analyzer results."""
        return {
            "risk_score": 0.0,
            "decision": Recommendation.APPROVE,
            "confidence": 0.0,
            "risk_breakdown": {},
            "reasoning": "No analyzer results available - manual review required",
            "current_step": "aggregation_complete_no_results",
        }

    def create_analysis_result(self, state: FraudDetectionState) -> FraudAnalysisResult:
        """Create final FraudAnalysisResult from state."""
        transaction = state["transaction"]
        now = datetime.now()
        processing_time = (now - state["processing_start_time"]).total_seconds()

        return FraudAnalysisResult(
            analysis_id=f"ANALYSIS_{transaction.user_id}_{now.strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:6]}",
            mode=state["mode"],
            transaction=transaction,
            decision=state.get("decision") or Recommendation.APPROVE,
            confidence=state.get("confidence", 0.0),
            risk_score=state.get("risk_score", 0.0),
            reasoning=state.get("reasoning", ""),
            analyzer_results=self._ordered(state.get("analyzer_results", {}), state.get("analyzer_order")),
            risk_breakdown=self._ordered(state.get("risk_breakdown", {}), state.get("analyzer_order")),
            playbook_version=state.get("playbook_version"),
            processing_errors=list(state.get("processing_errors", [])),
            processing_time_seconds=processing_time,
            timestamp=now,
        )

    @staticmethod
    def _ordered(mapping: Dict[str, Any], order: Optional[List[str]]) -> Dict[str, Any]:
        """Re-key a mapping in registry order; parallel nodes finish in any order."""
        if not order:
            return dict(mapping)
        ordered = {name: mapping[name] for name in order if name in mapping}
        ordered.update({k: v for k, v in mapping.items() if k not in ordered})
        return ordered
