"""Data models for the ACE fraud detection engine."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator

from ace_fraud.errors import TransactionValidationError


ANALYZER_NAMES = (
    "PatternDetector",
    "BehavioralAnalyzer",
    "VelocityChecker",
    "MerchantRiskAnalyzer",
    "GeographicAnalyzer",
)

# Transaction attributes a playbook condition may refer to.
CONDITION_FEATURES = {
    "user_age_days",
    "total_transactions",
    "amount",
    "merchant",
    "merchant_rating",
    "merchant_fraud_reports",
    "location",
    "previous_location",
    "hour",
    "is_night",
    "location_changed",
    "daily_velocity",
    "spend_rate",
}


class Recommendation(str, Enum):
    """Binary decision produced by analyzers and the aggregator."""
    APPROVE = "APPROVE"
    DECLINE = "DECLINE"


class AnalysisMode(str, Enum):
    """How analyzers use the playbook."""
    VANILLA = "vanilla"
    OFFLINE_ACE = "offline_ace"
    ONLINE_ACE = "online_ace"


def _parse_hour(value: str) -> int:
    """Extract the hour from HH:MM, HH:MM:SS or an ISO-8601 datetime."""
    text = value.strip()
    if "T" in text or " " in text or text.count("-") >= 2:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).hour
    parts = text.split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"unrecognised time format: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"time out of range: {value!r}")
    return hour


class Transaction(BaseModel):
    """A single card transaction submitted for scoring."""
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1)
    user_age_days: int = Field(ge=0)
    total_transactions: int = Field(ge=0)
    amount: float = Field(ge=0)
    time: str
    merchant: str = Field(min_length=1)
    merchant_rating: float = Field(ge=0.0, le=5.0)
    merchant_fraud_reports: int = Field(ge=0)
    location: str = Field(min_length=1)
    previous_location: Optional[str] = None

    @field_validator("time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        _parse_hour(value)
        return value

    @property
    def hour(self) -> int:
        return _parse_hour(self.time)

    @property
    def is_night(self) -> bool:
        return self.hour < 6

    @property
    def location_changed(self) -> bool:
        if not self.previous_location:
            return False
        return self.previous_location.strip().lower() != self.location.strip().lower()

    @property
    def daily_velocity(self) -> float:
        """Historical transactions per day of account age."""
        return self.total_transactions / max(self.user_age_days, 1)

    @property
    def spend_rate(self) -> float:
        """Amount of this transaction per day of account age."""
        return self.amount / max(self.user_age_days, 1)


def parse_transaction(data: Union[Transaction, dict]) -> Transaction:
    """Validate raw input into a Transaction, rejecting malformed records."""
    if isinstance(data, Transaction):
        return data
    if not isinstance(data, dict):
        raise TransactionValidationError(
            f"Transaction must be a JSON object, got {type(data).__name__}"
        )
    try:
        return Transaction.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise TransactionValidationError(f"Invalid transaction: {details}", fields=fields) from e


class AgentAnalysis(BaseModel):
    """One analyzer's assessment of a transaction."""
    model_config = ConfigDict(frozen=True)

    name: str
    risk_score: float = Field(ge=0.0, le=100.0)
    findings: List[str] = Field(default_factory=list)
    recommendation: Recommendation
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    applied_bullets: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


class RiskBreakdownEntry(BaseModel):
    """Per-analyzer share of the overall risk score."""
    score: float
    contribution: float
    findings_count: int


class FraudAnalysisResult(BaseModel):
    """Complete multi-agent result for one transaction."""
    analysis_id: str
    mode: AnalysisMode
    transaction: Transaction
    decision: Recommendation
    confidence: float = Field(ge=0.0, le=1.0)
    risk_score: float = Field(ge=0.0, le=100.0)
    reasoning: str
    analyzer_results: Dict[str, AgentAnalysis]
    risk_breakdown: Dict[str, RiskBreakdownEntry]
    playbook_version: Optional[int] = None
    processing_errors: List[str] = Field(default_factory=list)
    processing_time_seconds: float = 0.0
    timestamp: datetime = Field(default_factory=datetime.now)


ConditionValue = Union[bool, int, float, str]


class BulletCondition(BaseModel):
    """A single machine-checkable clause of a playbook heuristic."""
    model_config = ConfigDict(frozen=True)

    feature: str
    operator: str
    value: ConditionValue

    @field_validator("feature")
    @classmethod
    def _validate_feature(cls, value: str) -> str:
        if value not in CONDITION_FEATURES:
            raise ValueError(f"unknown transaction feature: {value}")
        return value

    @field_validator("operator")
    @classmethod
    def _validate_operator(cls, value: str) -> str:
        if value not in ("eq", "ne", "gt", "gte", "lt", "lte"):
            raise ValueError(f"unsupported operator: {value}")
        return value

    def matches(self, transaction: Transaction) -> bool:
        actual = getattr(transaction, self.feature)
        if self.operator == "eq":
            return actual == self.value
        if self.operator == "ne":
            return actual != self.value
        if actual is None or isinstance(self.value, str) or isinstance(actual, str):
            return False
        if self.operator == "gt":
            return actual > self.value
        if self.operator == "gte":
            return actual >= self.value
        if self.operator == "lt":
            return actual < self.value
        return actual <= self.value

    def describe(self) -> str:
        symbols = {"eq": "is", "ne": "is not", "gt": ">", "gte": ">=", "lt": "<", "lte": "<="}
        return f"{self.feature} {symbols[self.operator]} {self.value}"


class Bullet(BaseModel):
    """One heuristic entry in a playbook."""
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    node: str
    conditions: List[BulletCondition] = Field(default_factory=list)
    risk_delta: float = 0.0
    source: str = "offline"
    helpful_count: int = Field(default=0, ge=0)
    harmful_count: int = Field(default=0, ge=0)
    times_selected: int = Field(default=0, ge=0)
    active: bool = True
    created_at: datetime = Field(default_factory=datetime.now)

    @computed_field
    @property
    def success_rate(self) -> float:
        evaluated = self.helpful_count + self.harmful_count
        if evaluated == 0:
            return 0.0
        return self.helpful_count / evaluated

    @property
    def evaluations(self) -> int:
        return self.helpful_count + self.harmful_count

    @property
    def reliability(self) -> float:
        """Laplace-smoothed success rate; 0.5 for an unevaluated bullet."""
        return (self.helpful_count + 1) / (self.helpful_count + self.harmful_count + 2)

    def matches(self, transaction: Transaction) -> bool:
        return bool(self.conditions) and all(c.matches(transaction) for c in self.conditions)

    def signature(self) -> tuple:
        """Identity used to detect duplicate heuristics."""
        clauses = tuple(sorted((c.feature, c.operator, str(c.value)) for c in self.conditions))
        return (self.node, clauses, self.risk_delta > 0)


class LabeledTransaction(BaseModel):
    """A transaction with its ground-truth label."""
    transaction: Transaction
    is_fraud: bool


class IterationMetric(BaseModel):
    """Running metrics after one experiment item."""
    iteration: int
    accuracy: float
    playbook_size: int
    is_correct: bool


class ExperimentResult(BaseModel):
    """Outcome of replaying a labeled dataset in one mode."""
    mode: AnalysisMode
    problems_processed: int
    final_accuracy: float
    iteration_metrics: List[IterationMetric] = Field(default_factory=list)
    playbook_size: int
    execution_time: float
