"""Pattern Detector - Matches transactions against known fraud signatures."""

from typing import List, Tuple

from ace_fraud.database.models import Transaction
from .base import BaseAnalyzer


class PatternDetector(BaseAnalyzer):
    """
    Identifies suspicious transaction patterns.

    Analyzes:
    - Unusually high amounts
    - High-value first purchases on fresh accounts
    - Round-number amounts
    - Late-night high-value purchases
    - New accounts buying from frequently reported merchants
    """

    AGENT_NAME = "PatternDetector"
    DESCRIPTION = "Pattern analysis"
    BASE_CONFIDENCE = 0.60
    RISK_SIGNALS = {
        "amount": "higher",
        "total_transactions": "lower",
    }

    def _score_signals(self, transaction: Transaction) -> Tuple[float, List[str]]:
        score = self.BASE_SCORE
        findings = []
        amount = transaction.amount

        if transaction.total_transactions <= 1 and amount >= 1000:
            score += 25
            findings.append("First transaction on new account is high-value")

        if amount >= 5000:
            score += 25
            findings.append(f"Unusually high transaction amount (${amount:,.2f})")
        elif amount >= 2000:
            score += 12
            findings.append(f"Elevated transaction amount (${amount:,.2f})")

        if amount >= 1000 and amount % 100 == 0:
            score += 8
            findings.append("Round-number amount")

        if transaction.is_night and amount >= 1000:
            score += 15
            findings.append(f"Late-night high-value purchase at {transaction.time}")

        if transaction.merchant_fraud_reports >= 10 and transaction.user_age_days < 30:
            score += 15
            findings.append("Pattern matches fraud signatures: new account at frequently reported merchant")

        if not findings:
            findings = [
                "Consistent transaction pattern",
                "Amount within normal range",
                "No suspicious patterns",
            ]

        return score, findings
