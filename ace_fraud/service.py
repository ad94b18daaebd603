"""Service facade exposing the engine's backend operations."""

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from ace_fraud.config import EngineConfig, get_engine_config
from ace_fraud.database.models import (
    AgentAnalysis,
    AnalysisMode,
    Bullet,
    ExperimentResult,
    FraudAnalysisResult,
    Transaction,
    parse_transaction,
)
from ace_fraud.database.playbook_store import PlaybookSnapshot, PlaybookStore
from ace_fraud.database.sample_data import create_labeled_dataset, create_offline_playbook
from ace_fraud.database.analysis_db import AnalysisRepository
from ace_fraud.agents.registry import AnalyzerRegistry
from ace_fraud.agents.aggregator import RiskAggregator
from ace_fraud.agents.reflector import LLMReflector, RuleBasedReflector
from ace_fraud.graph.workflow import run_fraud_detection
from ace_fraud.experiment import ExperimentRunner, parse_dataset
from ace_fraud.errors import ExperimentConfigError, FeedbackError

logger = logging.getLogger(__name__)


def parse_mode(mode: Union[AnalysisMode, str]) -> AnalysisMode:
    try:
        return AnalysisMode(mode)
    except ValueError:
        valid = ", ".join(m.value for m in AnalysisMode)
        raise ExperimentConfigError(f"Unknown analysis mode {mode!r}; expected one of: {valid}") from None


class FraudDetectionService:
    """
    Owns the engine's components and playbooks for one session.

    The offline playbook is frozen at construction. The online playbook
    starts as a copy of it and learns from labeled feedback; online
    analyses and their updates are serialized so each transaction reads
    the playbook only after the previous update has landed.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        offline_playbook: Optional[Iterable[Bullet]] = None,
        reflector: Optional[RuleBasedReflector] = None,
        repository: Optional[AnalysisRepository] = None,
    ):
        self.config = config or get_engine_config()

        self.registry = AnalyzerRegistry(
            threshold=self.config.decision_threshold,
            max_bullets=self.config.max_bullets_per_analyzer,
        )
        self.aggregator = RiskAggregator(
            weights=self.config.analyzer_weights,
            threshold=self.config.decision_threshold,
        )

        self.offline_store = self._create_offline_store(offline_playbook)
        self.online_store = self.offline_store.copy(frozen=False)

        self.reflector = reflector or self._create_reflector()
        self.repository = repository or AnalysisRepository()
        self.experiment_runner = ExperimentRunner(
            self.offline_store, self.registry, self.aggregator, self.reflector
        )

        self._online_lock = threading.Lock()

    def _create_offline_store(self, bullets: Optional[Iterable[Bullet]]) -> PlaybookStore:
        store_kwargs = {
            "prune_min_evaluations": self.config.prune_min_evaluations,
            "prune_success_threshold": self.config.prune_success_threshold,
            "max_bullets_per_node": self.config.max_bullets_per_node,
        }
        if bullets is not None:
            return PlaybookStore(bullets, frozen=True, **store_kwargs)
        if self.config.offline_playbook_path:
            return PlaybookStore.load(self.config.offline_playbook_path, frozen=True, **store_kwargs)
        return PlaybookStore(create_offline_playbook(), frozen=True, **store_kwargs)

    def _create_reflector(self) -> RuleBasedReflector:
        if self.config.reflector == "llm":
            return LLMReflector(
                llm_config=self.config.llm_config,
                registry=self.registry,
                risk_delta=self.config.new_bullet_risk_delta,
            )
        return RuleBasedReflector(self.registry, risk_delta=self.config.new_bullet_risk_delta)

    def store_for(self, mode: Union[AnalysisMode, str]) -> Optional[PlaybookStore]:
        mode = parse_mode(mode)
        if mode == AnalysisMode.OFFLINE_ACE:
            return self.offline_store
        if mode == AnalysisMode.ONLINE_ACE:
            return self.online_store
        return None

    def analyze_transaction(
        self,
        transaction: Union[Transaction, Dict[str, Any]],
        mode: Union[AnalysisMode, str] = AnalysisMode.ONLINE_ACE,
        is_fraud: Optional[bool] = None,
    ) -> FraudAnalysisResult:
        """
        Score a single transaction.

        Args:
            transaction: Transaction or raw dict (validated before analysis)
            mode: Analysis mode
            is_fraud: Ground truth, if known; only online ACE learns from it

        Returns:
            FraudAnalysisResult, also stored for later retrieval
        """
        transaction = parse_transaction(transaction)
        mode = parse_mode(mode)

        if mode == AnalysisMode.ONLINE_ACE:
            with self._online_lock:
                snapshot = self.online_store.snapshot()
                result = self._run(transaction, mode, snapshot)
                self.repository.save(result)
                if is_fraud is not None:
                    self._learn(snapshot, result, is_fraud)
        else:
            result = self._run(transaction, mode, None)
            self.repository.save(result)

        return result

    def _run(
        self,
        transaction: Transaction,
        mode: AnalysisMode,
        snapshot: Optional[PlaybookSnapshot],
    ) -> FraudAnalysisResult:
        return run_fraud_detection(
            transaction,
            mode=mode,
            store=self.store_for(mode),
            registry=self.registry,
            aggregator=self.aggregator,
            snapshot=snapshot,
        )

    def _learn(self, snapshot: PlaybookSnapshot, result: FraudAnalysisResult, is_fraud: bool) -> PlaybookSnapshot:
        update = self.reflector.reflect(snapshot, result.transaction, result.analyzer_results, is_fraud)
        self.repository.mark_feedback(result.analysis_id)
        if update.is_empty:
            return snapshot
        return self.online_store.apply(update)

    def record_feedback(self, analysis_id: str, is_fraud: bool) -> PlaybookSnapshot:
        """
        Apply ground truth that arrived after an online analysis.

        Raises:
            AnalysisNotFoundError: unknown (or evicted) analysis id
            FeedbackError: not an online analysis, or feedback already applied
        """
        result = self.repository.get(analysis_id)
        if result.mode != AnalysisMode.ONLINE_ACE:
            raise FeedbackError(f"Feedback only applies to online_ace analyses (got {result.mode.value})")

        with self._online_lock:
            if self.repository.has_feedback(analysis_id):
                raise FeedbackError(f"Feedback already recorded for {analysis_id}")
            # Bullets are matched by id, so the current snapshot is used as base.
            snapshot = self.online_store.snapshot()
            logger.info("Applying deferred feedback for %s (fraud=%s)", analysis_id, is_fraud)
            return self._learn(snapshot, result, is_fraud)

    def compare_modes(
        self,
        transaction: Union[Transaction, Dict[str, Any]],
        modes: Sequence[Union[AnalysisMode, str]],
    ) -> Dict[AnalysisMode, FraudAnalysisResult]:
        """Score one transaction under several modes (live test)."""
        if not modes:
            raise ExperimentConfigError("Select at least one analysis mode")
        transaction = parse_transaction(transaction)
        return {parse_mode(m): self.analyze_transaction(transaction, m) for m in modes}

    def run_experiment(
        self,
        modes: Sequence[Union[AnalysisMode, str]],
        dataset: Optional[Sequence[Any]] = None,
        sample_size: int = 60,
        seed: int = 42,
    ) -> List[ExperimentResult]:
        """
        Replay a labeled dataset under each mode.

        Args:
            modes: Modes to evaluate
            dataset: Labeled records; defaults to a generated sample
            sample_size: Size of the generated sample when no dataset is given
            seed: Seed for the generated sample

        Returns:
            One ExperimentResult per mode, in the order given
        """
        if not modes:
            raise ExperimentConfigError("Select at least one analysis mode")
        parsed_modes = [parse_mode(m) for m in modes]

        if dataset is None:
            labeled = create_labeled_dataset(size=sample_size, seed=seed)
        else:
            labeled = parse_dataset(dataset)

        return self.experiment_runner.compare(parsed_modes, labeled)

    def get_playbook(
        self,
        mode: Union[AnalysisMode, str] = AnalysisMode.ONLINE_ACE,
        include_retired: bool = False,
    ) -> Dict[str, List[Bullet]]:
        """Bullets grouped by analyzer; vanilla has none."""
        store = self.store_for(mode)
        if store is None:
            return {name: [] for name in self.registry.names}
        return store.bullets_by_node(include_retired=include_retired)

    def get_analysis(self, analysis_id: str) -> FraudAnalysisResult:
        return self.repository.get(analysis_id)

    def get_agent_analysis(self, analysis_id: str, analyzer_name: str) -> AgentAnalysis:
        return self.repository.get_agent_analysis(analysis_id, analyzer_name)
