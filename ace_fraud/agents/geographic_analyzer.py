"""Geographic Analyzer - Detects location-based anomalies."""

from typing import List, Tuple

from ace_fraud.database.models import Transaction
from .base import BaseAnalyzer


class GeographicAnalyzer(BaseAnalyzer):
    """Detects location-based anomalies and suspicious transaction times."""

    AGENT_NAME = "GeographicAnalyzer"
    DESCRIPTION = "Geographic analysis"
    BASE_CONFIDENCE = 0.62
    RISK_SIGNALS = {
        "location_changed": "true",
        "is_night": "true",
    }

    def _score_signals(self, transaction: Transaction) -> Tuple[float, List[str]]:
        score = self.BASE_SCORE
        findings = []

        if transaction.location_changed:
            score += 35
            findings.append(
                f"Drastic location change ({transaction.previous_location} -> {transaction.location})"
            )
            if transaction.user_age_days < 30:
                score += 15
                findings.append("Location change on new account")
        elif transaction.previous_location is None:
            score += 5
            findings.append("No previous location on record")

        if transaction.is_night:
            score += 15
            findings.append(f"Suspicious transaction time ({transaction.time})")

        if not findings:
            findings = [
                "Location consistent",
                "Appropriate transaction time",
                "No geographic anomalies",
            ]

        return score, findings
