"""Project file discovery and classification."""

from migreport.discovery.classifier import CLASSIFICATION_RULES, classify_file_type
from migreport.discovery.engine import DiscoveryResult, FileDiscoveryEngine
from migreport.discovery.ignore import DEFAULT_IGNORE_PATTERNS, IgnoreRuleSet

__all__ = [
    "CLASSIFICATION_RULES",
    "DEFAULT_IGNORE_PATTERNS",
    "DiscoveryResult",
    "FileDiscoveryEngine",
    "IgnoreRuleSet",
    "classify_file_type",
]
