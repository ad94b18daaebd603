"""Configuration module for the ACE fraud detection engine."""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional
from dotenv import load_dotenv

from ace_fraud.errors import ConfigurationError

load_dotenv()


DEFAULT_ANALYZER_WEIGHTS = {
    "PatternDetector": 0.20,
    "BehavioralAnalyzer": 0.22,
    "VelocityChecker": 0.20,
    "MerchantRiskAnalyzer": 0.18,
    "GeographicAnalyzer": 0.20,
}


@dataclass
class LLMConfig:
    """LLM provider configuration."""
    provider: str = "groq"
    model: Optional[str] = None
    api_key: Optional[str] = None

    # Azure-specific settings
    azure_endpoint: Optional[str] = None
    azure_api_version: str = "2024-02-15-preview"
    azure_deployment: Optional[str] = None

    temperature: Optional[float] = 0.1
    max_tokens: int = 1024


@dataclass
class EngineConfig:
    """Scoring and learning behaviour."""
    decision_threshold: float = 50.0
    analyzer_weights: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_ANALYZER_WEIGHTS)
    )

    # Playbook selection and learning
    max_bullets_per_analyzer: int = 10
    prune_min_evaluations: int = 5
    prune_success_threshold: float = 0.3
    max_bullets_per_node: int = 25
    new_bullet_risk_delta: float = 20.0
    offline_playbook_path: Optional[str] = None

    # "rule" or "llm"
    reflector: str = "rule"
    log_level: str = "INFO"

    llm_config: LLMConfig = field(default_factory=LLMConfig)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def get_config() -> EngineConfig:
    """
    Get configuration from environment variables.

    Returns:
        EngineConfig with settings from environment
    """
    provider = os.getenv("LLM_PROVIDER", "groq")
    model = os.getenv("LLM_MODEL")

    # Get API key based on provider
    if provider == "azure":
        api_key = os.getenv("AZURE_OPENAI_API_KEY")
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")
        azure_api_version = os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview")
        azure_deployment = os.getenv("AZURE_OPENAI_DEPLOYMENT", model)
    elif provider == "openai":
        api_key = os.getenv("OPENAI_API_KEY")
        azure_endpoint = None
        azure_api_version = "2024-02-15-preview"
        azure_deployment = None
    else:  # groq
        api_key = os.getenv("GROQ_API_KEY")
        azure_endpoint = None
        azure_api_version = "2024-02-15-preview"
        azure_deployment = None

    llm_config = LLMConfig(
        provider=provider,
        model=model,
        api_key=api_key,
        azure_endpoint=azure_endpoint,
        azure_api_version=azure_api_version,
        azure_deployment=azure_deployment,
    )

    reflector = os.getenv("ACE_REFLECTOR", "rule").lower()
    if reflector not in ("rule", "llm"):
        raise ConfigurationError(f"ACE_REFLECTOR must be 'rule' or 'llm', got {reflector!r}")

    threshold = _env_float("ACE_DECISION_THRESHOLD", 50.0)
    if not 0.0 <= threshold <= 100.0:
        raise ConfigurationError(f"ACE_DECISION_THRESHOLD must be within 0-100, got {threshold}")

    return EngineConfig(
        decision_threshold=threshold,
        max_bullets_per_analyzer=_env_int("ACE_MAX_BULLETS_PER_ANALYZER", 10),
        prune_min_evaluations=_env_int("ACE_PRUNE_MIN_EVALUATIONS", 5),
        prune_success_threshold=_env_float("ACE_PRUNE_SUCCESS_THRESHOLD", 0.3),
        max_bullets_per_node=_env_int("ACE_MAX_BULLETS_PER_NODE", 25),
        new_bullet_risk_delta=_env_float("ACE_NEW_BULLET_RISK_DELTA", 20.0),
        offline_playbook_path=os.getenv("ACE_OFFLINE_PLAYBOOK") or None,
        reflector=reflector,
        log_level=os.getenv("ACE_LOG_LEVEL", "INFO").upper(),
        llm_config=llm_config,
    )


# Global config instance
_config: Optional[EngineConfig] = None


def get_engine_config() -> EngineConfig:
    """Get or create the global engine configuration."""
    global _config
    if _config is None:
        _config = get_config()
    return _config


def set_engine_config(config: EngineConfig) -> None:
    """Set the global engine configuration."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset configuration to reload from environment."""
    global _config
    _config = None
