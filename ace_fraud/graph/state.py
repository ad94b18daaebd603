"""State definition for the fraud detection workflow."""

from typing import TypedDict, List, Optional, Dict, Annotated, Tuple
from datetime import datetime
import operator

from ace_fraud.database.models import (
    AgentAnalysis,
    AnalysisMode,
    Bullet,
    Recommendation,
    RiskBreakdownEntry,
    Transaction,
)


def merge_analyzer_results(
    existing: Dict[str, AgentAnalysis],
    new: Dict[str, AgentAnalysis],
) -> Dict[str, AgentAnalysis]:
    """Merge per-analyzer results written by parallel nodes."""
    merged = dict(existing or {})
    merged.update(new or {})
    return merged


class FraudDetectionState(TypedDict):
    """
    State for the fraud detection workflow.

    The five analyzer nodes run in parallel and each contributes one entry
    to ``analyzer_results``; the aggregate node then reads the full mapping.
    ``bullets`` is the playbook snapshot shared by every analyzer for this
    transaction.
    """
    transaction: Transaction
    mode: AnalysisMode
    bullets: Tuple[Bullet, ...]
    playbook_version: Optional[int]
    analyzer_order: List[str]

    analyzer_results: Annotated[Dict[str, AgentAnalysis], merge_analyzer_results]

    risk_score: float
    decision: Optional[Recommendation]
    confidence: float
    risk_breakdown: Dict[str, RiskBreakdownEntry]
    reasoning: str

    processing_start_time: datetime
    processing_errors: Annotated[List[str], operator.add]
    current_step: str


def create_initial_state(
    transaction: Transaction,
    mode: AnalysisMode = AnalysisMode.VANILLA,
    bullets: Tuple[Bullet, ...] = (),
    playbook_version: Optional[int] = None,
    analyzer_order: Optional[List[str]] = None,
) -> FraudDetectionState:
    """Create initial state for fraud detection workflow."""
    return FraudDetectionState(
        transaction=transaction,
        mode=mode,
        bullets=tuple(bullets),
        playbook_version=playbook_version,
        analyzer_order=list(analyzer_order or []),
        analyzer_results={},
        risk_score=0.0,
        decision=None,
        confidence=0.0,
        risk_breakdown={},
        reasoning="",
        processing_start_time=datetime.now(),
        processing_errors=[],
        current_step="initialized",
    )
