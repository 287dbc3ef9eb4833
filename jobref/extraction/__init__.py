"""
Job posting extraction: independent strategies fused into one validated record.
"""

from jobref.extraction.fusion import FusionEngine, enrich_description, run_strategy
from jobref.extraction.strategies import DEFAULT_STRATEGIES

__all__ = [
    "FusionEngine",
    "enrich_description",
    "run_strategy",
    "DEFAULT_STRATEGIES",
]
