"""
ACE Fraud Detection Engine

A LangGraph-based multi-agent system that scores card transactions with
five specialized analyzers and a weighted risk aggregator. Analyzers can
consult a playbook of learned heuristics (Agentic Context Engineering).

Agents:
- PatternDetector: Amount and transaction-pattern anomalies
- BehavioralAnalyzer: Account age and user history
- VelocityChecker: Transaction and spend velocity
- MerchantRiskAnalyzer: Merchant rating and fraud reports
- GeographicAnalyzer: Location changes and time of day
- RiskAggregator: Weighted risk score and final decision

Modes:
- vanilla: analyzers only, no playbook
- offline_ace: frozen pre-trained playbook
- online_ace: playbook that keeps learning from labeled feedback

Usage:
    from ace_fraud import FraudDetectionService
    from ace_fraud.database import initialize_sample_data

    data = initialize_sample_data()
    txn = data["transactions"]["TXN101"]

    service = FraudDetectionService()
    result = service.analyze_transaction(txn, mode="offline_ace")
    print(f"Decision: {result.decision.value} ({result.risk_score}/100)")

    # Compare modes over a labeled dataset
    results = service.run_experiment(["vanilla", "offline_ace", "online_ace"])
"""

# graph.workflow first: the aggregator imports graph.state
from ace_fraud.graph.workflow import (
    run_fraud_detection,
    run_fraud_detection_sequential,
    create_fraud_detection_workflow,
)
from ace_fraud.service import FraudDetectionService
from ace_fraud.experiment import ExperimentRunner, load_dataset, parse_dataset
from ace_fraud.database.sample_data import initialize_sample_data
from ace_fraud.database.models import (
    Transaction,
    AgentAnalysis,
    AnalysisMode,
    Recommendation,
    Bullet,
    FraudAnalysisResult,
    ExperimentResult,
)
from ace_fraud.errors import (
    FraudDetectionError,
    TransactionValidationError,
    ExperimentConfigError,
    PlaybookConflictError,
    FeedbackError,
)

__version__ = "1.0.0"
__all__ = [
    "run_fraud_detection",
    "run_fraud_detection_sequential",
    "create_fraud_detection_workflow",
    "FraudDetectionService",
    "ExperimentRunner",
    "load_dataset",
    "parse_dataset",
    "initialize_sample_data",
    "Transaction",
    "AgentAnalysis",
    "AnalysisMode",
    "Recommendation",
    "Bullet",
    "FraudAnalysisResult",
    "ExperimentResult",
    "FraudDetectionError",
    "TransactionValidationError",
    "ExperimentConfigError",
    "PlaybookConflictError",
    "FeedbackError",
]
