"""Analysis database for stored fraud analysis results."""

import threading
from typing import Dict, Optional, Set

from .models import AgentAnalysis, FraudAnalysisResult
from ace_fraud.errors import AnalysisNotFoundError


class AnalysisRepository:
    """In-memory store of analysis results, keyed by analysis id."""

    def __init__(self, max_entries: Optional[int] = 1000):
        self.max_entries = max_entries
        self._results: Dict[str, FraudAnalysisResult] = {}
        self._feedback: Set[str] = set()
        self._lock = threading.Lock()

    def save(self, result: FraudAnalysisResult) -> str:
        """Store a result, evicting the oldest when full."""
        with self._lock:
            self._results[result.analysis_id] = result
            if self.max_entries and len(self._results) > self.max_entries:
                oldest = next(iter(self._results))
                del self._results[oldest]
                self._feedback.discard(oldest)
        return result.analysis_id

    def get(self, analysis_id: str) -> FraudAnalysisResult:
        """Get a stored result by ID."""
        with self._lock:
            result = self._results.get(analysis_id)
        if result is None:
            raise AnalysisNotFoundError(f"Analysis '{analysis_id}' not found")
        return result

    def get_agent_analysis(self, analysis_id: str, analyzer_name: str) -> AgentAnalysis:
        """Get one analyzer's result from a stored analysis."""
        result = self.get(analysis_id)
        analysis = result.analyzer_results.get(analyzer_name)
        if analysis is None:
            raise AnalysisNotFoundError(
                f"Analyzer '{analyzer_name}' not found in analysis '{analysis_id}'"
            )
        return analysis

    def mark_feedback(self, analysis_id: str) -> None:
        """Record that ground truth was applied for a stored analysis."""
        with self._lock:
            if analysis_id in self._results:
                self._feedback.add(analysis_id)

    def has_feedback(self, analysis_id: str) -> bool:
        with self._lock:
            return analysis_id in self._feedback

    @property
    def feedback_count(self) -> int:
        with self._lock:
            return len(self._feedback)

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)
