"""ORM models aggregate exports (local cache DB)."""
from .cache import (  # noqa: F401
    AnalysisResult,
    Base,
    FeedCacheEntry,
)

__all__ = [
    "AnalysisResult",
    "Base",
    "FeedCacheEntry",
]
