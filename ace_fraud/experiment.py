"""Experiment runner - replays labeled transactions to compare ACE modes."""

import json
import logging
import time
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

from ace_fraud.database.models import (
    AnalysisMode,
    ExperimentResult,
    IterationMetric,
    LabeledTransaction,
    Recommendation,
    parse_transaction,
)
from ace_fraud.database.playbook_store import PlaybookStore
from ace_fraud.agents.registry import AnalyzerRegistry
from ace_fraud.agents.aggregator import RiskAggregator
from ace_fraud.agents.reflector import RuleBasedReflector
from ace_fraud.graph.workflow import resolve_snapshot, run_fraud_detection_sequential
from ace_fraud.errors import ExperimentConfigError, TransactionValidationError

logger = logging.getLogger(__name__)

FRAUD_LABELS = {"fraud", "fraudulent", "decline", "1", "true", "yes"}
LEGIT_LABELS = {"legit", "legitimate", "approve", "not_fraud", "0", "false", "no"}


def _parse_label(value: Any, index: int) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    text = str(value).strip().lower()
    if text in FRAUD_LABELS:
        return True
    if text in LEGIT_LABELS:
        return False
    raise ExperimentConfigError(f"Record {index}: unrecognised label {value!r}")


def parse_dataset(records: Iterable[Any]) -> List[LabeledTransaction]:
    """
    Validate labeled records.

    Accepts ``{"transaction": {...}, "is_fraud": true}`` records or flat
    transaction objects carrying an ``is_fraud`` or ``label`` key.
    """
    dataset = []
    for index, record in enumerate(records):
        if isinstance(record, LabeledTransaction):
            dataset.append(record)
            continue
        if not isinstance(record, dict):
            raise ExperimentConfigError(f"Record {index}: expected an object")

        if "transaction" in record:
            raw = record["transaction"]
            label = record.get("is_fraud", record.get("label"))
        else:
            raw = {k: v for k, v in record.items() if k not in ("is_fraud", "label")}
            label = record.get("is_fraud", record.get("label"))

        if label is None:
            raise ExperimentConfigError(f"Record {index}: missing is_fraud label")

        try:
            transaction = parse_transaction(raw)
        except TransactionValidationError as e:
            raise ExperimentConfigError(f"Record {index}: {e}") from e

        dataset.append(LabeledTransaction(transaction=transaction, is_fraud=_parse_label(label, index)))
    return dataset


def load_dataset(path: Union[str, Path]) -> List[LabeledTransaction]:
    """Load a labeled dataset from a JSON file."""
    try:
        records = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise ExperimentConfigError(f"Dataset {path} is not valid JSON: {e}") from e
    if isinstance(records, dict):
        records = records.get("transactions", records.get("data", []))
    return parse_dataset(records)


class ExperimentRunner:
    """
    Replays a labeled dataset through the pipeline one item at a time.

    Items are processed strictly in input order. In online ACE each
    playbook update is applied before the next item is scored, on a fresh
    copy of the seed playbook so that replays are reproducible.
    """

    def __init__(
        self,
        seed_store: PlaybookStore,
        registry: Optional[AnalyzerRegistry] = None,
        aggregator: Optional[RiskAggregator] = None,
        reflector: Optional[RuleBasedReflector] = None,
    ):
        self.seed_store = seed_store
        self.registry = registry or AnalyzerRegistry()
        self.aggregator = aggregator or RiskAggregator()
        self.reflector = reflector or RuleBasedReflector(self.registry)

    def _store_for(self, mode: AnalysisMode) -> Optional[PlaybookStore]:
        if mode == AnalysisMode.VANILLA:
            return None
        if mode == AnalysisMode.OFFLINE_ACE:
            return self.seed_store.copy(frozen=True)
        return self.seed_store.copy(frozen=False)

    def run(self, mode: Union[AnalysisMode, str], dataset: Sequence[LabeledTransaction]) -> ExperimentResult:
        """
        Run one mode over the dataset.

        Args:
            mode: Analysis mode
            dataset: Labeled transactions, in replay order

        Returns:
            ExperimentResult with per-iteration metrics
        """
        if not dataset:
            raise ExperimentConfigError("Dataset is empty - provide at least one labeled transaction")
        try:
            mode = AnalysisMode(mode)
        except ValueError:
            raise ExperimentConfigError(f"Unknown analysis mode: {mode!r}") from None

        store = self._store_for(mode)
        started = time.perf_counter()
        correct = 0
        metrics: List[IterationMetric] = []

        for iteration, item in enumerate(dataset, start=1):
            snapshot = resolve_snapshot(mode, store)
            result = run_fraud_detection_sequential(
                item.transaction,
                mode=mode,
                registry=self.registry,
                aggregator=self.aggregator,
                snapshot=snapshot,
            )

            is_correct = (result.decision == Recommendation.DECLINE) == item.is_fraud
            correct += int(is_correct)

            if mode == AnalysisMode.ONLINE_ACE:
                update = self.reflector.reflect(
                    snapshot, item.transaction, result.analyzer_results, item.is_fraud
                )
                if not update.is_empty:
                    store.apply(update)

            metrics.append(IterationMetric(
                iteration=iteration,
                accuracy=round(correct / iteration, 4),
                playbook_size=store.size if store else 0,
                is_correct=is_correct,
            ))

        execution_time = time.perf_counter() - started
        final_accuracy = round(correct / len(dataset), 4)

        logger.info(
            "Experiment %s: %d problems, accuracy %.1f%%, playbook %d bullets, %.2fs",
            mode.value, len(dataset), final_accuracy * 100,
            store.size if store else 0, execution_time,
        )

        return ExperimentResult(
            mode=mode,
            problems_processed=len(dataset),
            final_accuracy=final_accuracy,
            iteration_metrics=metrics,
            playbook_size=store.size if store else 0,
            execution_time=execution_time,
        )

    def compare(
        self,
        modes: Sequence[Union[AnalysisMode, str]],
        dataset: Sequence[LabeledTransaction],
    ) -> List[ExperimentResult]:
        """Run several modes over the same dataset."""
        if not modes:
            raise ExperimentConfigError("Select at least one analysis mode")
        if not dataset:
            raise ExperimentConfigError("Dataset is empty - provide at least one labeled transaction")
        return [self.run(mode, dataset) for mode in modes]
