"""Reflectors - turn labeled outcomes into playbook updates."""

import json
import math
import logging
import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.output_parsers import JsonOutputParser
from langchain_openai import ChatOpenAI, AzureChatOpenAI
from langchain_groq import ChatGroq

from ace_fraud.config import LLMConfig
from ace_fraud.errors import ConfigurationError
from ace_fraud.database.models import AgentAnalysis, Bullet, BulletCondition, Recommendation, Transaction
from ace_fraud.database.playbook_store import PlaybookSnapshot, PlaybookUpdate
from .registry import AnalyzerRegistry

logger = logging.getLogger(__name__)


def create_llm_from_config(llm_config: LLMConfig):
    """Create an LLM instance from configuration."""
    provider = llm_config.provider

    if provider == "groq":
        model = llm_config.model or "llama-3.3-70b-versatile"
        api_key = llm_config.api_key or os.getenv("GROQ_API_KEY")
        if not api_key:
            return None
        return ChatGroq(
            model=model,
            temperature=llm_config.temperature,
            api_key=api_key,
        )
    elif provider == "openai":
        model = llm_config.model or "gpt-4o"
        api_key = llm_config.api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            return None
        return ChatOpenAI(
            model=model,
            temperature=llm_config.temperature,
            api_key=api_key,
        )
    elif provider == "azure":
        api_key = llm_config.api_key or os.getenv("AZURE_OPENAI_API_KEY")
        endpoint = llm_config.azure_endpoint or os.getenv("AZURE_OPENAI_ENDPOINT")
        deployment = llm_config.azure_deployment or os.getenv("AZURE_OPENAI_DEPLOYMENT")
        api_version = llm_config.azure_api_version or os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview")

        if not all([api_key, endpoint, deployment]):
            return None

        azure_kwargs: Dict[str, Any] = {
            "azure_deployment": deployment,
            "azure_endpoint": endpoint,
            "api_key": api_key,
            "api_version": api_version,
        }
        # Some Azure deployments reject non-default temperatures.
        if llm_config.temperature is not None and float(llm_config.temperature) == 1.0:
            azure_kwargs["temperature"] = float(llm_config.temperature)

        return AzureChatOpenAI(**azure_kwargs)

    return None


class RuleBasedReflector:
    """
    Deterministic online-learning step.

    Bullets that fired are credited when their adjustment pushed toward the
    true label and debited otherwise. Every analyzer that recommended the
    wrong outcome proposes a new bullet describing this transaction on its
    own risk signals.
    """

    def __init__(self, registry: Optional[AnalyzerRegistry] = None, risk_delta: float = 20.0):
        self.registry = registry or AnalyzerRegistry()
        self.risk_delta = risk_delta

    def reflect(
        self,
        snapshot: PlaybookSnapshot,
        transaction: Transaction,
        analyzer_results: Dict[str, AgentAnalysis],
        is_fraud: bool,
    ) -> PlaybookUpdate:
        """
        Compute the playbook update for one labeled transaction.

        Args:
            snapshot: Playbook snapshot the analyzers read
            transaction: The scored transaction
            analyzer_results: Per-analyzer results from that snapshot
            is_fraud: Ground truth

        Returns:
            PlaybookUpdate based on snapshot.version
        """
        by_id = {b.id: b for b in snapshot.bullets}
        expected = Recommendation.DECLINE if is_fraud else Recommendation.APPROVE

        outcomes = []
        new_bullets = []
        for name, analysis in analyzer_results.items():
            for bullet_id in analysis.applied_bullets:
                bullet = by_id.get(bullet_id)
                if bullet is None:
                    continue
                helpful = (bullet.risk_delta > 0) == is_fraud and bullet.risk_delta != 0
                outcomes.append((bullet_id, helpful))

            if analysis.degraded or analysis.recommendation == expected:
                continue
            draft = self.draft_bullet(name, transaction, is_fraud)
            if draft is not None:
                new_bullets.append(draft)

        return PlaybookUpdate(base_version=snapshot.version, outcomes=outcomes, new_bullets=new_bullets)

    def draft_bullet(self, analyzer_name: str, transaction: Transaction, is_fraud: bool) -> Optional[Bullet]:
        """Describe this transaction on the analyzer's signals as a new heuristic."""
        conditions = self._build_conditions(analyzer_name, transaction, is_fraud)
        if not conditions:
            return None

        delta = self.risk_delta if is_fraud else -self.risk_delta
        return Bullet(
            id=f"{analyzer_name}_online_{uuid.uuid4().hex[:8]}",
            content=self._describe(conditions, is_fraud),
            node=analyzer_name,
            conditions=conditions,
            risk_delta=delta,
            source="online",
            created_at=datetime.now(),
        )

    def _build_conditions(
        self,
        analyzer_name: str,
        transaction: Transaction,
        is_fraud: bool,
    ) -> List[BulletCondition]:
        analyzer = self.registry.get(analyzer_name)
        conditions = []
        for feature, direction in analyzer.RISK_SIGNALS.items():
            value = getattr(transaction, feature)
            if direction == "true":
                # Boolean signals only describe the risky (or safe) state itself.
                if bool(value) == is_fraud:
                    conditions.append(BulletCondition(feature=feature, operator="eq", value=bool(value)))
                continue

            riskier_is_higher = direction == "higher"
            if is_fraud:
                operator = "gte" if riskier_is_higher else "lte"
            else:
                operator = "lte" if riskier_is_higher else "gte"
            if isinstance(value, float):
                # Round outward so the bullet still matches this transaction.
                scaled = value * 100
                value = (math.floor(scaled) if operator == "gte" else math.ceil(scaled)) / 100
            conditions.append(BulletCondition(feature=feature, operator=operator, value=value))
        return conditions

    @staticmethod
    def _describe(conditions: List[BulletCondition], is_fraud: bool) -> str:
        clauses = " and ".join(c.describe() for c in conditions)
        if is_fraud:
            return f"Raise risk when {clauses}"
        return f"Lower risk when {clauses}"


BULLET_WRITER_PROMPT = """You maintain a playbook of fraud detection heuristics for the {analyzer} analyzer.

The analyzer recommended the wrong outcome for this transaction.

## Transaction
{transaction}

## Ground Truth
{label}

## Heuristic Conditions
{conditions}

Write one concise, actionable heuristic (under 200 characters) that captures
these conditions and tells the analyzer to {direction} the risk score.

Respond in JSON:
{{
    "content": "<heuristic text>"
}}
"""


class LLMReflector(RuleBasedReflector):
    """
    Reflector that asks an LLM to phrase newly discovered heuristics.

    Conditions and adjustments stay rule-derived so bullets remain
    machine-checkable; only the bullet content comes from the model.
    """

    MAX_CONTENT_LENGTH = 300

    def __init__(
        self,
        llm=None,
        llm_config: Optional[LLMConfig] = None,
        registry: Optional[AnalyzerRegistry] = None,
        risk_delta: float = 20.0,
    ):
        super().__init__(registry=registry, risk_delta=risk_delta)
        if llm is None:
            llm = create_llm_from_config(llm_config or LLMConfig())
        if llm is None:
            raise ConfigurationError("Could not create LLM for reflector. Check API keys.")
        self.llm = llm
        self.prompt = ChatPromptTemplate.from_template(BULLET_WRITER_PROMPT)
        self.parser = JsonOutputParser()

    def draft_bullet(self, analyzer_name: str, transaction: Transaction, is_fraud: bool) -> Optional[Bullet]:
        draft = super().draft_bullet(analyzer_name, transaction, is_fraud)
        if draft is None:
            return None

        chain = self.prompt | self.llm | self.parser
        try:
            result = chain.invoke({
                "analyzer": analyzer_name,
                "transaction": json.dumps(transaction.model_dump(mode="json"), indent=2),
                "label": "FRAUD" if is_fraud else "LEGITIMATE",
                "conditions": "\n".join(f"- {c.describe()}" for c in draft.conditions),
                "direction": "raise" if is_fraud else "lower",
            })
        except Exception as e:
            logger.warning("LLM bullet writer failed for %s, using rule text: %s", analyzer_name, e)
            return draft

        content = result.get("content") if isinstance(result, dict) else None
        if not isinstance(content, str) or not content.strip():
            logger.warning("LLM bullet writer returned no content for %s", analyzer_name)
            return draft

        return draft.model_copy(update={"content": content.strip()[: self.MAX_CONTENT_LENGTH]})
