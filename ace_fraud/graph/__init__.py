from .state import FraudDetectionState
from .workflow import (
    create_fraud_detection_workflow,
    run_fraud_detection,
    run_fraud_detection_sequential,
)

__all__ = [
    "FraudDetectionState",
    "create_fraud_detection_workflow",
    "run_fraud_detection",
    "run_fraud_detection_sequential",
]
