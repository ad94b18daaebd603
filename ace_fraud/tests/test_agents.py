"""Tests for individual fraud detection analyzers and the aggregator."""

import pytest

from ace_fraud.database.models import AgentAnalysis, Recommendation
from ace_fraud.database.sample_data import initialize_sample_data
from ace_fraud.graph.state import create_initial_state
from ace_fraud.agents.pattern_detector import PatternDetector
from ace_fraud.agents.behavioral_analyzer import BehavioralAnalyzer
from ace_fraud.agents.velocity_checker import VelocityChecker
from ace_fraud.agents.merchant_risk_analyzer import MerchantRiskAnalyzer
from ace_fraud.agents.geographic_analyzer import GeographicAnalyzer
from ace_fraud.agents.registry import AnalyzerRegistry, degraded_analysis
from ace_fraud.agents.aggregator import RiskAggregator


ALL_ANALYZERS = [
    PatternDetector,
    BehavioralAnalyzer,
    VelocityChecker,
    MerchantRiskAnalyzer,
    GeographicAnalyzer,
]


@pytest.fixture
def sample_data():
    """Load sample data for tests."""
    return initialize_sample_data()


@pytest.fixture
def trusted_bob(sample_data):
    """Long-standing customer buying from a reputable merchant."""
    return sample_data["transactions"]["TXN001"]


@pytest.fixture
def sketchy_alice(sample_data):
    """Brand-new account, large night purchase, reported merchant, new country."""
    return sample_data["transactions"]["TXN101"]


@pytest.fixture
def offline_bullets(sample_data):
    return tuple(sample_data["offline_playbook"])


class FailingAnalyzer(PatternDetector):
    """Analyzer that always raises, for degradation tests."""

    def _score_signals(self, transaction):
        raise RuntimeError("feature store unavailable")


def make_analysis(name, score, confidence, recommendation=None, error=None):
    if recommendation is None:
        recommendation = Recommendation.DECLINE if score > 50 else Recommendation.APPROVE
    return AgentAnalysis(
        name=name,
        risk_score=score,
        findings=[f"{name} finding"],
        recommendation=recommendation,
        confidence=confidence,
        reasoning="test",
        error=error,
    )


class TestAnalyzerContract:
    """Properties every analyzer must satisfy."""

    @pytest.mark.parametrize("analyzer_cls", ALL_ANALYZERS)
    def test_output_ranges(self, analyzer_cls, sample_data):
        """Scores, confidences and findings stay within bounds."""
        analyzer = analyzer_cls()
        for txn in sample_data["all_transactions"]:
            result = analyzer.analyze(txn)

            assert result.name == analyzer.AGENT_NAME
            assert 0 <= result.risk_score <= 100
            assert 0 <= result.confidence <= 1
            assert result.findings
            assert result.error is None

    @pytest.mark.parametrize("analyzer_cls", ALL_ANALYZERS)
    def test_recommendation_follows_threshold(self, analyzer_cls, sample_data):
        """DECLINE iff the analyzer's score exceeds the threshold."""
        analyzer = analyzer_cls()
        for txn in sample_data["all_transactions"]:
            result = analyzer.analyze(txn)
            expected = Recommendation.DECLINE if result.risk_score > 50 else Recommendation.APPROVE
            assert result.recommendation == expected

    @pytest.mark.parametrize("analyzer_cls", ALL_ANALYZERS)
    def test_deterministic(self, analyzer_cls, sketchy_alice, offline_bullets):
        """Same transaction and bullets yield the same result."""
        analyzer = analyzer_cls()
        first = analyzer.analyze(sketchy_alice, offline_bullets)
        second = analyzer.analyze(sketchy_alice, offline_bullets)
        assert first == second

    @pytest.mark.parametrize("analyzer_cls", ALL_ANALYZERS)
    def test_matching_positive_bullets_never_lower_score(self, analyzer_cls, sketchy_alice, offline_bullets):
        """Offline playbook only raises risk for a clear fraud case."""
        analyzer = analyzer_cls()
        vanilla = analyzer.analyze(sketchy_alice)
        offline = analyzer.analyze(sketchy_alice, offline_bullets)

        assert offline.risk_score >= vanilla.risk_score
        assert offline.confidence >= vanilla.confidence


class TestPatternDetector:
    """Tests for PatternDetector."""

    def test_normal_purchase(self, trusted_bob):
        """Test analysis of a routine purchase."""
        result = PatternDetector().analyze(trusted_bob)

        assert result.risk_score == 5
        assert result.recommendation == Recommendation.APPROVE
        assert "No suspicious patterns" in result.findings

    def test_high_value_first_purchase(self, sketchy_alice):
        """Test detection of a large night-time first purchase."""
        result = PatternDetector().analyze(sketchy_alice)

        assert result.risk_score == 93
        assert result.recommendation == Recommendation.DECLINE
        assert any("First transaction" in f for f in result.findings)
        assert any("Late-night" in f for f in result.findings)


class TestBehavioralAnalyzer:
    """Tests for BehavioralAnalyzer."""

    def test_established_account(self, trusted_bob):
        result = BehavioralAnalyzer().analyze(trusted_bob)

        assert result.risk_score == 5
        assert "Well-established account" in result.findings

    def test_new_account_without_history(self, sketchy_alice):
        result = BehavioralAnalyzer().analyze(sketchy_alice)

        assert result.risk_score == 85
        assert "No transaction history" in result.findings
        assert "Sudden high-value anomaly" in result.findings


class TestVelocityChecker:
    """Tests for VelocityChecker."""

    def test_first_transaction(self, sketchy_alice):
        result = VelocityChecker().analyze(sketchy_alice)

        assert result.risk_score == 55
        assert "First transaction with no velocity data" in result.findings

    def test_high_velocity(self, sample_data):
        """Card-testing burst shows high transactions per day."""
        result = VelocityChecker().analyze(sample_data["transactions"]["TXN102"])

        assert any("High transaction velocity" in f for f in result.findings)


class TestMerchantRiskAnalyzer:
    """Tests for MerchantRiskAnalyzer."""

    def test_reputable_merchant(self, trusted_bob):
        result = MerchantRiskAnalyzer().analyze(trusted_bob)

        assert result.risk_score == 5
        assert "No fraud reports" in result.findings

    def test_reported_merchant(self, sketchy_alice):
        result = MerchantRiskAnalyzer().analyze(sketchy_alice)

        assert result.risk_score == 90
        assert "High-risk merchant profile" in result.findings


class TestGeographicAnalyzer:
    """Tests for GeographicAnalyzer."""

    def test_consistent_location(self, trusted_bob):
        result = GeographicAnalyzer().analyze(trusted_bob)

        assert result.risk_score == 5
        assert "Location consistent" in result.findings

    def test_location_change_at_night(self, sketchy_alice):
        result = GeographicAnalyzer().analyze(sketchy_alice)

        assert result.risk_score == 70
        assert any("Drastic location change" in f for f in result.findings)

    def test_missing_previous_location(self, trusted_bob):
        txn = trusted_bob.model_copy(update={"previous_location": None})
        result = GeographicAnalyzer().analyze(txn)

        assert result.risk_score == 10
        assert "No previous location on record" in result.findings


class TestPlaybookBullets:
    """Bullet selection and application inside an analyzer."""

    def test_applied_bullets_reported(self, sketchy_alice, offline_bullets):
        result = PatternDetector().analyze(sketchy_alice, offline_bullets)

        assert result.applied_bullets == ["pattern_detector_offline_01"]
        assert any(f.startswith("Playbook:") for f in result.findings)

    def test_other_nodes_bullets_ignored(self, sketchy_alice, offline_bullets):
        analyzer = PatternDetector()
        selected = analyzer.select_bullets(offline_bullets)

        assert selected
        assert all(b.node == "PatternDetector" for b in selected)

    def test_retired_bullets_ignored(self, sketchy_alice, offline_bullets):
        retired = tuple(b.model_copy(update={"active": False}) for b in offline_bullets)
        result = PatternDetector().analyze(sketchy_alice, retired)

        assert result.applied_bullets == []
        assert result.risk_score == 93

    def test_max_bullets_cap(self, offline_bullets):
        analyzer = PatternDetector(max_bullets=1)
        assert len(analyzer.select_bullets(offline_bullets)) == 1

    def test_negative_bullet_lowers_score(self, trusted_bob, offline_bullets):
        """Routine-purchase heuristic pulls the score to the floor."""
        result = PatternDetector().analyze(trusted_bob, offline_bullets)

        assert "pattern_detector_offline_02" in result.applied_bullets
        assert result.risk_score == 0


class TestAnalyzerRegistry:
    """Tests for AnalyzerRegistry."""

    def test_registry_order(self):
        registry = AnalyzerRegistry()
        assert registry.names == [
            "PatternDetector",
            "BehavioralAnalyzer",
            "VelocityChecker",
            "MerchantRiskAnalyzer",
            "GeographicAnalyzer",
        ]

    def test_unknown_analyzer(self):
        with pytest.raises(KeyError):
            AnalyzerRegistry().get("CreditBureau")

    def test_run_all_returns_every_analyzer(self, trusted_bob):
        results, errors = AnalyzerRegistry().run_all(trusted_bob)

        assert set(results) == set(AnalyzerRegistry().names)
        assert errors == []

    def test_failing_analyzer_degrades(self, sketchy_alice):
        """A raising analyzer is replaced by a neutral, zero-confidence result."""
        analyzers = [FailingAnalyzer()] + [cls() for cls in ALL_ANALYZERS[1:]]
        results, errors = AnalyzerRegistry(analyzers=analyzers).run_all(sketchy_alice)

        degraded = results["PatternDetector"]
        assert degraded.degraded
        assert degraded.risk_score == 50
        assert degraded.confidence == 0
        assert degraded.findings == ["Analyzer unavailable"]
        assert len(errors) == 1
        assert "feature store unavailable" in errors[0]
        assert not results["BehavioralAnalyzer"].degraded


class TestRiskAggregator:
    """Tests for RiskAggregator."""

    def _state(self, txn, results):
        state = create_initial_state(txn)
        state["analyzer_results"] = results
        return state

    def test_contributions_sum_to_one(self, sketchy_alice):
        results, _ = AnalyzerRegistry().run_all(sketchy_alice)
        update = RiskAggregator().aggregate(self._state(sketchy_alice, results))

        total = sum(entry.contribution for entry in update["risk_breakdown"].values())
        assert abs(total - 1.0) < 1e-6

    def test_clear_fraud_declined(self, sketchy_alice):
        results, _ = AnalyzerRegistry().run_all(sketchy_alice)
        update = RiskAggregator().aggregate(self._state(sketchy_alice, results))

        assert update["decision"] == Recommendation.DECLINE
        assert update["risk_score"] > 75
        assert "5/5 analyzers agree" in update["reasoning"]

    def test_score_equal_to_threshold_approves(self, trusted_bob):
        results = {
            name: make_analysis(name, 50.0, 0.7)
            for name in AnalyzerRegistry().names
        }
        update = RiskAggregator().aggregate(self._state(trusted_bob, results))

        assert update["risk_score"] == 50.0
        assert update["decision"] == Recommendation.APPROVE

    def test_risk_score_is_weighted_mean(self, trusted_bob):
        weights = {"A": 0.5, "B": 0.5}
        results = {
            "A": make_analysis("A", 80.0, 0.9),
            "B": make_analysis("B", 20.0, 0.3),
        }
        update = RiskAggregator(weights=weights).aggregate(self._state(trusted_bob, results))

        # contributions 0.75 / 0.25
        assert update["risk_score"] == 65.0
        assert update["risk_breakdown"]["A"].contribution == pytest.approx(0.75)

    def test_degraded_analyzer_excluded(self, sketchy_alice):
        results, _ = AnalyzerRegistry().run_all(sketchy_alice)
        results["VelocityChecker"] = degraded_analysis("VelocityChecker", "timeout")
        update = RiskAggregator().aggregate(self._state(sketchy_alice, results))

        assert update["risk_breakdown"]["VelocityChecker"].contribution == 0
        assert update["decision"] == Recommendation.DECLINE
        assert "Degraded analyzers excluded: VelocityChecker" in update["reasoning"]

    def test_all_degraded(self, trusted_bob):
        results = {
            name: degraded_analysis(name, "down")
            for name in AnalyzerRegistry().names
        }
        update = RiskAggregator().aggregate(self._state(trusted_bob, results))

        assert update["risk_score"] == 50.0
        assert update["decision"] == Recommendation.APPROVE
        assert update["confidence"] == 0.0

    def test_no_results(self, trusted_bob):
        update = RiskAggregator().aggregate(self._state(trusted_bob, {}))

        assert update["decision"] == Recommendation.APPROVE
        assert update["confidence"] == 0.0

    def test_confidence_bounds(self, sample_data):
        registry = AnalyzerRegistry()
        aggregator = RiskAggregator()
        for txn in sample_data["all_transactions"]:
            results, _ = registry.run_all(txn)
            update = aggregator.aggregate(self._state(txn, results))
            assert 0 <= update["confidence"] <= 0.99
