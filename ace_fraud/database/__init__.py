from .models import (
    AnalysisMode,
    Recommendation,
    Transaction,
    AgentAnalysis,
    FraudAnalysisResult,
    Bullet,
    BulletCondition,
    LabeledTransaction,
    ExperimentResult,
    IterationMetric,
)
from .playbook_store import PlaybookStore, PlaybookSnapshot, PlaybookUpdate
from .sample_data import initialize_sample_data, create_offline_playbook, create_labeled_dataset
from .analysis_db import AnalysisRepository

__all__ = [
    "AnalysisMode",
    "Recommendation",
    "Transaction",
    "AgentAnalysis",
    "FraudAnalysisResult",
    "Bullet",
    "BulletCondition",
    "LabeledTransaction",
    "ExperimentResult",
    "IterationMetric",
    "PlaybookStore",
    "PlaybookSnapshot",
    "PlaybookUpdate",
    "initialize_sample_data",
    "create_offline_playbook",
    "create_labeled_dataset",
    "AnalysisRepository",
]
