"""Sample data for the ACE fraud detection engine."""

from datetime import datetime
from typing import Any, Dict, List
import random

from .models import (
    Bullet,
    BulletCondition,
    LabeledTransaction,
    Transaction,
)


def create_sample_transactions() -> Dict[str, Dict[str, Transaction]]:
    """Create sample transactions, split into legitimate and fraudulent."""
    legitimate = {
        "TXN001": Transaction(
            user_id="trusted_bob",
            user_age_days=1200,
            total_transactions=340,
            amount=85.50,
            time="14:30",
            merchant="Amazon",
            merchant_rating=4.8,
            merchant_fraud_reports=0,
            location="Seattle, WA",
            previous_location="Seattle, WA",
        ),
        "TXN002": Transaction(
            user_id="regular_carol",
            user_age_days=730,
            total_transactions=150,
            amount=249.99,
            time="10:15",
            merchant="Best Buy",
            merchant_rating=4.5,
            merchant_fraud_reports=1,
            location="Austin, TX",
            previous_location="Austin, TX",
        ),
        "TXN003": Transaction(
            user_id="commuter_dave",
            user_age_days=400,
            total_transactions=90,
            amount=42.00,
            time="08:05",
            merchant="Shell",
            merchant_rating=4.1,
            merchant_fraud_reports=0,
            location="Portland, OR",
            previous_location="Vancouver, WA",
        ),
        "TXN004": Transaction(
            user_id="traveler_erin",
            user_age_days=2000,
            total_transactions=800,
            amount=1350.00,
            time="19:45",
            merchant="Delta Air Lines",
            merchant_rating=4.6,
            merchant_fraud_reports=2,
            location="Paris, France",
            previous_location="New York, NY",
        ),
    }

    fraudulent = {
        "TXN101": Transaction(
            user_id="sketchy_alice",
            user_age_days=8,
            total_transactions=0,
            amount=7500.00,
            time="03:12",
            merchant="QuickCash Electronics",
            merchant_rating=2.1,
            merchant_fraud_reports=23,
            location="Lagos, Nigeria",
            previous_location="Chicago, IL",
        ),
        # Card-testing burst: fast, mid-sized, at a reported merchant
        "TXN102": Transaction(
            user_id="burst_frank",
            user_age_days=20,
            total_transactions=180,
            amount=2400.00,
            time="01:40",
            merchant="GiftCardHub",
            merchant_rating=2.8,
            merchant_fraud_reports=12,
            location="Miami, FL",
            previous_location="Miami, FL",
        ),
        # Account takeover on an otherwise healthy account
        "TXN103": Transaction(
            user_id="takeover_gina",
            user_age_days=900,
            total_transactions=420,
            amount=4200.00,
            time="02:55",
            merchant="LuxWatch Outlet",
            merchant_rating=3.2,
            merchant_fraud_reports=6,
            location="Bucharest, Romania",
            previous_location="Denver, CO",
        ),
    }

    return {"legitimate": legitimate, "fraudulent": fraudulent}


def _offline_bullet(
    bullet_id: str,
    node: str,
    content: str,
    conditions: List[tuple],
    risk_delta: float,
    helpful: int = 8,
    harmful: int = 1,
) -> Bullet:
    return Bullet(
        id=bullet_id,
        content=content,
        node=node,
        conditions=[BulletCondition(feature=f, operator=op, value=v) for f, op, v in conditions],
        risk_delta=risk_delta,
        source="offline",
        helpful_count=helpful,
        harmful_count=harmful,
        created_at=datetime(2024, 1, 1),
    )


def create_offline_playbook() -> List[Bullet]:
    """Create the pre-trained playbook used by offline ACE."""
    return [
        _offline_bullet(
            "pattern_detector_offline_01", "PatternDetector",
            "High-value purchases at night are a strong fraud signature",
            [("amount", "gte", 2000), ("is_night", "eq", True)],
            20,
        ),
        _offline_bullet(
            "pattern_detector_offline_02", "PatternDetector",
            "Small purchases from accounts with 50+ transactions are routine",
            [("amount", "lte", 200), ("total_transactions", "gte", 50)],
            -10,
        ),
        _offline_bullet(
            "behavioral_analyzer_offline_01", "BehavioralAnalyzer",
            "Accounts younger than 30 days spending over $1,000 are high risk",
            [("user_age_days", "lt", 30), ("amount", "gte", 1000)],
            20,
        ),
        _offline_bullet(
            "behavioral_analyzer_offline_02", "BehavioralAnalyzer",
            "Accounts older than a year with 50+ transactions rarely commit first-party fraud",
            [("user_age_days", "gte", 365), ("total_transactions", "gte", 50)],
            -10,
        ),
        _offline_bullet(
            "velocity_checker_offline_01", "VelocityChecker",
            "More than 5 transactions per day of account age indicates card testing",
            [("daily_velocity", "gt", 5)],
            25,
        ),
        _offline_bullet(
            "merchant_risk_analyzer_offline_01", "MerchantRiskAnalyzer",
            "Merchants with 10+ fraud reports should be treated as compromised",
            [("merchant_fraud_reports", "gte", 10)],
            20,
        ),
        _offline_bullet(
            "merchant_risk_analyzer_offline_02", "MerchantRiskAnalyzer",
            "Highly rated merchants without fraud reports are low risk",
            [("merchant_rating", "gte", 4.5), ("merchant_fraud_reports", "eq", 0)],
            -10,
        ),
        _offline_bullet(
            "geographic_analyzer_offline_01", "GeographicAnalyzer",
            "Location change combined with night-time activity suggests account takeover",
            [("location_changed", "eq", True), ("is_night", "eq", True)],
            25,
        ),
        _offline_bullet(
            "geographic_analyzer_offline_02", "GeographicAnalyzer",
            "Daytime location change on an established account is usually travel",
            [("location_changed", "eq", True), ("is_night", "eq", False), ("user_age_days", "gte", 365)],
            -15,
        ),
    ]


CITIES = [
    "Seattle, WA", "Austin, TX", "Chicago, IL", "Denver, CO", "Boston, MA",
    "Miami, FL", "Portland, OR", "Atlanta, GA", "Phoenix, AZ", "New York, NY",
]
FOREIGN_CITIES = ["Lagos, Nigeria", "Bucharest, Romania", "Manila, Philippines", "Minsk, Belarus"]
GOOD_MERCHANTS = ["Amazon", "Target", "Costco", "Whole Foods", "Apple Store", "Home Depot"]
BAD_MERCHANTS = ["QuickCash Electronics", "GiftCardHub", "LuxWatch Outlet", "CryptoDeals24"]


def _time(rng: random.Random, night: bool) -> str:
    hour = rng.randint(0, 5) if night else rng.randint(8, 21)
    return f"{hour:02d}:{rng.randint(0, 59):02d}"


def _legitimate_transaction(rng: random.Random, index: int) -> Transaction:
    archetype = rng.choice(["established", "established", "traveler", "newcomer"])
    home = rng.choice(CITIES)

    if archetype == "newcomer":
        age = rng.randint(10, 60)
        history = rng.randint(1, 20)
        amount = round(rng.uniform(10, 150), 2)
        location = home
    elif archetype == "traveler":
        age = rng.randint(400, 3000)
        history = rng.randint(100, 900)
        amount = round(rng.uniform(200, 1500), 2)
        location = rng.choice([c for c in CITIES if c != home])
    else:
        age = rng.randint(365, 3000)
        history = rng.randint(50, 1000)
        amount = round(rng.uniform(5, 400), 2)
        location = home

    return Transaction(
        user_id=f"user_{index:04d}",
        user_age_days=age,
        total_transactions=history,
        amount=amount,
        time=_time(rng, night=rng.random() < 0.05),
        merchant=rng.choice(GOOD_MERCHANTS),
        merchant_rating=round(rng.uniform(3.8, 5.0), 1),
        merchant_fraud_reports=rng.randint(0, 2),
        location=location,
        previous_location=home,
    )


def _fraudulent_transaction(rng: random.Random, index: int) -> Transaction:
    archetype = rng.choice(["new_account", "card_testing", "account_takeover"])
    home = rng.choice(CITIES)

    if archetype == "new_account":
        age = rng.randint(1, 20)
        history = rng.randint(0, 2)
        amount = float(rng.choice([3000, 5000, 7500, 9900]))
        location = rng.choice(FOREIGN_CITIES)
        night = rng.random() < 0.7
    elif archetype == "card_testing":
        age = rng.randint(10, 45)
        history = age * rng.randint(6, 12)
        amount = round(rng.uniform(800, 2500), 2)
        location = home
        night = rng.random() < 0.6
    else:
        age = rng.randint(400, 2500)
        history = rng.randint(100, 800)
        amount = round(rng.uniform(1500, 6000), 2)
        location = rng.choice(FOREIGN_CITIES)
        night = rng.random() < 0.8

    return Transaction(
        user_id=f"user_{index:04d}",
        user_age_days=age,
        total_transactions=history,
        amount=amount,
        time=_time(rng, night=night),
        merchant=rng.choice(BAD_MERCHANTS),
        merchant_rating=round(rng.uniform(1.5, 3.6), 1),
        merchant_fraud_reports=rng.randint(3, 30),
        location=location,
        previous_location=home,
    )


def create_labeled_dataset(
    size: int = 60,
    fraud_ratio: float = 0.3,
    seed: int = 42,
) -> List[LabeledTransaction]:
    """Create a reproducible labeled dataset for experiments."""
    rng = random.Random(seed)
    dataset = []
    for index in range(size):
        is_fraud = rng.random() < fraud_ratio
        if is_fraud:
            transaction = _fraudulent_transaction(rng, index)
        else:
            transaction = _legitimate_transaction(rng, index)
        dataset.append(LabeledTransaction(transaction=transaction, is_fraud=is_fraud))
    return dataset


def initialize_sample_data() -> Dict[str, Any]:
    """Initialize all sample data."""
    transactions = create_sample_transactions()
    all_transactions = {**transactions["legitimate"], **transactions["fraudulent"]}

    return {
        "transactions": all_transactions,
        "legitimate_transactions": transactions["legitimate"],
        "fraudulent_transactions": transactions["fraudulent"],
        "all_transactions": list(all_transactions.values()),
        "offline_playbook": create_offline_playbook(),
        "labeled_dataset": create_labeled_dataset(),
    }
