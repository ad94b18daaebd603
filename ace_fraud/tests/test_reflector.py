"""Tests for playbook reflectors."""

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from ace_fraud.config import LLMConfig
from ace_fraud.errors import ConfigurationError
from ace_fraud.database.models import AnalysisMode
from ace_fraud.database.playbook_store import PlaybookSnapshot, PlaybookStore
from ace_fraud.database.sample_data import initialize_sample_data
from ace_fraud.agents.reflector import LLMReflector, RuleBasedReflector
from ace_fraud.agents.registry import AnalyzerRegistry
from ace_fraud.graph.workflow import run_fraud_detection_sequential


@pytest.fixture
def sample_data():
    """Load sample data for tests."""
    return initialize_sample_data()


@pytest.fixture
def offline_store(sample_data):
    return PlaybookStore(sample_data["offline_playbook"])


def score(txn, mode, snapshot):
    return run_fraud_detection_sequential(txn, mode=mode, snapshot=snapshot)


class TestRuleBasedReflector:
    """Tests for RuleBasedReflector."""

    def test_correct_decision_credits_fired_bullets(self, sample_data, offline_store):
        """Fraud caught with positive bullets: all fired bullets are helpful, nothing new."""
        txn = sample_data["transactions"]["TXN101"]
        snapshot = offline_store.snapshot()
        result = score(txn, AnalysisMode.OFFLINE_ACE, snapshot)

        update = RuleBasedReflector().reflect(snapshot, txn, result.analyzer_results, is_fraud=True)

        assert update.base_version == snapshot.version
        assert update.new_bullets == []
        assert update.outcomes
        assert all(helpful for _, helpful in update.outcomes)
        fired = {bid for a in result.analyzer_results.values() for bid in a.applied_bullets}
        assert {bid for bid, _ in update.outcomes} == fired

    def test_wrong_label_debits_fired_bullets(self, sample_data, offline_store):
        txn = sample_data["transactions"]["TXN101"]
        snapshot = offline_store.snapshot()
        result = score(txn, AnalysisMode.OFFLINE_ACE, snapshot)

        update = RuleBasedReflector().reflect(snapshot, txn, result.analyzer_results, is_fraud=False)

        assert not any(helpful for _, helpful in update.outcomes)
        # Every analyzer recommended DECLINE, so each proposes a heuristic.
        assert {b.node for b in update.new_bullets} <= set(AnalyzerRegistry().names)
        assert all(b.risk_delta < 0 for b in update.new_bullets)

    def test_missed_fraud_drafts_matching_bullets(self, sample_data):
        """Analyzers that approved a fraud draft bullets that match the transaction."""
        txn = sample_data["transactions"]["TXN001"]
        snapshot = PlaybookSnapshot(version=0)
        result = score(txn, AnalysisMode.VANILLA, snapshot)

        update = RuleBasedReflector(risk_delta=15).reflect(snapshot, txn, result.analyzer_results, is_fraud=True)

        nodes = [b.node for b in update.new_bullets]
        # Geographic signals are all in their safe state, so nothing to describe.
        assert nodes == ["PatternDetector", "BehavioralAnalyzer", "VelocityChecker", "MerchantRiskAnalyzer"]
        for bullet in update.new_bullets:
            assert bullet.matches(txn)
            assert bullet.risk_delta == 15
            assert bullet.source == "online"
            assert bullet.content.startswith("Raise risk when")
            assert bullet.id.startswith(f"{bullet.node}_online_")

    def test_drafted_bullets_apply_to_store(self, sample_data):
        txn = sample_data["transactions"]["TXN001"]
        store = PlaybookStore()
        snapshot = store.snapshot()
        result = score(txn, AnalysisMode.ONLINE_ACE, snapshot)

        update = RuleBasedReflector().reflect(snapshot, txn, result.analyzer_results, is_fraud=True)
        store.apply(update)

        assert store.size == 4
        rescored = score(txn, AnalysisMode.ONLINE_ACE, store.snapshot())
        assert rescored.risk_score > result.risk_score

    def test_boolean_signals_for_legitimate_label(self, sample_data):
        """A false alarm on a daytime, same-location purchase describes the safe state."""
        txn = sample_data["transactions"]["TXN001"]
        conditions = RuleBasedReflector()._build_conditions("GeographicAnalyzer", txn, is_fraud=False)

        assert {(c.feature, c.operator, c.value) for c in conditions} == {
            ("location_changed", "eq", False),
            ("is_night", "eq", False),
        }


class TestLLMReflector:
    """Tests for LLMReflector with a fake chat model."""

    def test_llm_content_used(self, sample_data):
        llm = FakeListChatModel(responses=['{"content": "Treat any purchase by this profile as suspect"}'])
        reflector = LLMReflector(llm=llm)
        txn = sample_data["transactions"]["TXN001"]

        bullet = reflector.draft_bullet("PatternDetector", txn, is_fraud=True)

        assert bullet.content == "Treat any purchase by this profile as suspect"
        assert bullet.matches(txn)

    def test_unparseable_output_falls_back_to_rule_text(self, sample_data):
        llm = FakeListChatModel(responses=["I am not JSON"])
        reflector = LLMReflector(llm=llm)
        txn = sample_data["transactions"]["TXN001"]

        bullet = reflector.draft_bullet("PatternDetector", txn, is_fraud=True)

        assert bullet.content.startswith("Raise risk when")

    def test_empty_content_falls_back(self, sample_data):
        llm = FakeListChatModel(responses=['{"content": ""}'])
        bullet = LLMReflector(llm=llm).draft_bullet(
            "MerchantRiskAnalyzer", sample_data["transactions"]["TXN001"], is_fraud=True
        )
        assert bullet.content.startswith("Raise risk when")

    def test_long_content_truncated(self, sample_data):
        llm = FakeListChatModel(responses=['{"content": "' + "x" * 500 + '"}'])
        bullet = LLMReflector(llm=llm).draft_bullet(
            "PatternDetector", sample_data["transactions"]["TXN001"], is_fraud=True
        )
        assert len(bullet.content) == LLMReflector.MAX_CONTENT_LENGTH

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("GROQ_API_KEY", raising=False)
        with pytest.raises(ConfigurationError, match="Check API keys"):
            LLMReflector(llm_config=LLMConfig(provider="groq", api_key=None))
