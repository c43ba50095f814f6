"""
Search strategy implementations.

- ExactMatchStrategy: Identifier lookup with lenient fallback
- FallbackStrategy: Prefix/infix search that never raises
- KeywordStrategy: Weighted full-text search (strategy of last resort)
- SemanticStrategy: Concurrent vector + concept-aware searches
- HybridStrategy: Caller-requested keyword + vector search
"""

from .exact import ExactMatchStrategy
from .fallback import FallbackStrategy
from .hybrid import HybridStrategy
from .keyword import KeywordStrategy
from .semantic import SemanticStrategy

__all__ = [
    "ExactMatchStrategy",
    "FallbackStrategy",
    "HybridStrategy",
    "KeywordStrategy",
    "SemanticStrategy",
]
