from .base import BaseAnalyzer
from .pattern_detector import PatternDetector
from .behavioral_analyzer import BehavioralAnalyzer
from .velocity_checker import VelocityChecker
from .merchant_risk_analyzer import MerchantRiskAnalyzer
from .geographic_analyzer import GeographicAnalyzer
from .registry import AnalyzerRegistry
from .aggregator import RiskAggregator
from .reflector import RuleBasedReflector, LLMReflector

__all__ = [
    "BaseAnalyzer",
    "PatternDetector",
    "BehavioralAnalyzer",
    "VelocityChecker",
    "MerchantRiskAnalyzer",
    "GeographicAnalyzer",
    "AnalyzerRegistry",
    "RiskAggregator",
    "RuleBasedReflector",
    "LLMReflector",
]
