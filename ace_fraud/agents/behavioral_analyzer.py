"""Behavioral Analyzer - Checks a transaction against the account's history."""

from typing import List, Tuple

from ace_fraud.database.models import Transaction
from .base import BaseAnalyzer


class BehavioralAnalyzer(BaseAnalyzer):
    """
    Analyzes user behavior and detects unusual activity.

    Analyzes:
    - Account age
    - Depth of transaction history
    - High-value activity on thin history
    """

    AGENT_NAME = "BehavioralAnalyzer"
    DESCRIPTION = "Behavioral analysis"
    BASE_CONFIDENCE = 0.65
    RISK_SIGNALS = {
        "user_age_days": "lower",
        "total_transactions": "lower",
    }

    def _score_signals(self, transaction: Transaction) -> Tuple[float, List[str]]:
        score = self.BASE_SCORE
        findings = []
        age = transaction.user_age_days
        history = transaction.total_transactions

        if age < 30:
            score += 35
            findings.append(f"Very new account ({age} days)")
        elif age < 90:
            score += 18
            findings.append(f"Young account ({age} days)")

        if history == 0:
            score += 25
            findings.append("No transaction history")
        elif history < 5:
            score += 12
            findings.append(f"Limited transaction history ({history} transactions)")

        if transaction.amount >= 1000 and history < 5:
            score += 20
            findings.append("Sudden high-value anomaly")

        if not findings:
            if age >= 365 and history >= 50:
                findings = [
                    "Well-established account",
                    "Strong transaction history",
                    "Consistent behavior",
                ]
            else:
                findings = ["Account behavior within expected range"]

        return score, findings
