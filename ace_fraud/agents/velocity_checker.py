"""Velocity Checker - Monitors transaction frequency and spend velocity."""

from typing import List, Tuple

from ace_fraud.database.models import Transaction
from .base import BaseAnalyzer


class VelocityChecker(BaseAnalyzer):
    """Monitors transaction frequency and velocity patterns."""

    AGENT_NAME = "VelocityChecker"
    DESCRIPTION = "Velocity check"
    BASE_CONFIDENCE = 0.55
    BASE_SCORE = 10.0
    RISK_SIGNALS = {
        "daily_velocity": "higher",
        "spend_rate": "higher",
    }

    def _score_signals(self, transaction: Transaction) -> Tuple[float, List[str]]:
        score = self.BASE_SCORE
        findings = []
        velocity = transaction.daily_velocity
        spend_rate = transaction.spend_rate

        if transaction.total_transactions == 0:
            score += 20
            findings.append("First transaction with no velocity data")
        elif velocity > 5:
            score += 30
            findings.append(f"High transaction velocity ({velocity:.1f} per day)")
        elif velocity > 2:
            score += 15
            findings.append(f"Elevated transaction velocity ({velocity:.1f} per day)")

        if spend_rate > 500:
            score += 25
            findings.append("Amount significantly higher than typical")
        elif spend_rate > 100:
            score += 10
            findings.append(f"Elevated spend relative to account age (${spend_rate:,.2f} per day)")

        if not findings:
            findings = [
                "Transaction velocity within normal parameters",
                "Amount consistent with history",
            ]

        return score, findings
