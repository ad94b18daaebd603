"""LangGraph workflow for multi-agent fraud detection."""

import logging
from typing import Dict, Any, Optional

from langgraph.graph import StateGraph, START, END

from ace_fraud.config import get_engine_config
from ace_fraud.database.models import AnalysisMode, FraudAnalysisResult, Transaction
from ace_fraud.database.playbook_store import PlaybookSnapshot, PlaybookStore
from ace_fraud.agents.base import BaseAnalyzer
from ace_fraud.agents.registry import AnalyzerRegistry
from ace_fraud.agents.aggregator import RiskAggregator
from ace_fraud.graph.state import FraudDetectionState, create_initial_state

logger = logging.getLogger(__name__)


def _default_components(
    registry: Optional[AnalyzerRegistry],
    aggregator: Optional[RiskAggregator],
):
    config = get_engine_config()
    registry = registry or AnalyzerRegistry(
        threshold=config.decision_threshold,
        max_bullets=config.max_bullets_per_analyzer,
    )
    aggregator = aggregator or RiskAggregator(
        weights=config.analyzer_weights,
        threshold=config.decision_threshold,
    )
    return registry, aggregator


def resolve_snapshot(mode: AnalysisMode, store: Optional[PlaybookStore]) -> PlaybookSnapshot:
    """Playbook view for a mode; vanilla never sees bullets."""
    if mode == AnalysisMode.VANILLA or store is None:
        return PlaybookSnapshot(version=store.version if store else 0)
    return store.snapshot()


def create_fraud_detection_workflow(
    registry: Optional[AnalyzerRegistry] = None,
    aggregator: Optional[RiskAggregator] = None,
):
    """
    Create the LangGraph workflow for fraud detection.

    The five analyzers fan out from START in parallel, all reading the same
    playbook snapshot from state, then join at the aggregate node.

    Args:
        registry: Analyzer registry (defaults from engine config)
        aggregator: Risk aggregator (defaults from engine config)

    Returns:
        Compiled StateGraph workflow
    """
    registry, aggregator = _default_components(registry, aggregator)

    def make_analyzer_node(analyzer: BaseAnalyzer):
        def analyzer_node(state: FraudDetectionState) -> Dict[str, Any]:
            analysis, error = registry.run_one(analyzer, state["transaction"], state["bullets"])
            update: Dict[str, Any] = {"analyzer_results": {analyzer.AGENT_NAME: analysis}}
            if error:
                update["processing_errors"] = [error]
            return update
        return analyzer_node

    def aggregate_node(state: FraudDetectionState) -> Dict[str, Any]:
        """Node for aggregating analyzer results into a final decision."""
        return aggregator.aggregate(state)

    workflow = StateGraph(FraudDetectionState)

    for analyzer in registry.analyzers:
        workflow.add_node(analyzer.AGENT_NAME, make_analyzer_node(analyzer))
        workflow.add_edge(START, analyzer.AGENT_NAME)

    workflow.add_node("aggregate", aggregate_node)
    workflow.add_edge(registry.names, "aggregate")
    workflow.add_edge("aggregate", END)

    return workflow.compile()


def run_fraud_detection(
    transaction: Transaction,
    mode: AnalysisMode = AnalysisMode.VANILLA,
    store: Optional[PlaybookStore] = None,
    registry: Optional[AnalyzerRegistry] = None,
    aggregator: Optional[RiskAggregator] = None,
    snapshot: Optional[PlaybookSnapshot] = None,
) -> FraudAnalysisResult:
    """
    Run the complete fraud detection workflow on a transaction.

    Args:
        transaction: Transaction to analyze
        mode: Analysis mode
        store: Playbook store for ACE modes
        registry: Analyzer registry
        aggregator: Risk aggregator
        snapshot: Pre-taken playbook snapshot (overrides store)

    Returns:
        FraudAnalysisResult with complete analysis
    """
    registry, aggregator = _default_components(registry, aggregator)
    workflow = create_fraud_detection_workflow(registry, aggregator)

    snapshot = snapshot or resolve_snapshot(mode, store)
    initial_state = create_initial_state(
        transaction,
        mode=mode,
        bullets=snapshot.bullets,
        playbook_version=snapshot.version,
        analyzer_order=registry.names,
    )

    final_state = workflow.invoke(initial_state)
    result = aggregator.create_analysis_result(final_state)

    logger.debug(
        "%s [%s] -> %s (risk %.2f, confidence %.2f)",
        transaction.user_id, mode.value, result.decision.value, result.risk_score, result.confidence,
    )
    return result


def run_fraud_detection_sequential(
    transaction: Transaction,
    mode: AnalysisMode = AnalysisMode.VANILLA,
    store: Optional[PlaybookStore] = None,
    registry: Optional[AnalyzerRegistry] = None,
    aggregator: Optional[RiskAggregator] = None,
    snapshot: Optional[PlaybookSnapshot] = None,
) -> FraudAnalysisResult:
    """
    Run fraud detection without LangGraph.

    Same scoring as run_fraud_detection; analyzers run one after another.
    Used for batch experiments.
    """
    registry, aggregator = _default_components(registry, aggregator)

    snapshot = snapshot or resolve_snapshot(mode, store)
    state = create_initial_state(
        transaction,
        mode=mode,
        bullets=snapshot.bullets,
        playbook_version=snapshot.version,
        analyzer_order=registry.names,
    )

    results, errors = registry.run_all(transaction, snapshot.bullets)
    state["analyzer_results"] = results
    state["processing_errors"] = errors

    state.update(aggregator.aggregate(state))

    return aggregator.create_analysis_result(state)
