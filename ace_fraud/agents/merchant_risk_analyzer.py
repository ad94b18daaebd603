"""Merchant Risk Analyzer - Evaluates merchant reputation."""

from typing import List, Tuple

from ace_fraud.database.models import Transaction
from .base import BaseAnalyzer


class MerchantRiskAnalyzer(BaseAnalyzer):
    """Evaluates merchant reputation and risk profiles."""

    AGENT_NAME = "MerchantRiskAnalyzer"
    DESCRIPTION = "Merchant risk analysis"
    BASE_CONFIDENCE = 0.68
    RISK_SIGNALS = {
        "merchant_rating": "lower",
        "merchant_fraud_reports": "higher",
    }

    def _score_signals(self, transaction: Transaction) -> Tuple[float, List[str]]:
        score = self.BASE_SCORE
        findings = []
        rating = transaction.merchant_rating
        reports = transaction.merchant_fraud_reports

        if rating < 2.5:
            score += 35
            findings.append(f"Merchant rating very low ({rating:.1f}/5.0)")
        elif rating < 3.5:
            score += 18
            findings.append(f"Below-average merchant rating ({rating:.1f}/5.0)")
        elif rating < 4.0:
            score += 5
            findings.append(f"Average merchant rating ({rating:.1f}/5.0)")
        elif rating >= 4.5:
            findings.append(f"Excellent merchant rating ({rating:.1f}/5.0)")

        if reports >= 20:
            score += 40
            findings.append(f"{reports} fraud reports")
        elif reports >= 5:
            score += 20
            findings.append(f"{reports} fraud reports")
        elif reports >= 1:
            score += 6
            findings.append(f"{reports} fraud report(s) on file")
        else:
            findings.append("No fraud reports")

        if rating < 3.0 and reports >= 5:
            score += 10
            findings.append("High-risk merchant profile")

        if reports == 0 and rating >= 4.0:
            findings.append(f"Reputable merchant ({transaction.merchant})")

        return score, findings
