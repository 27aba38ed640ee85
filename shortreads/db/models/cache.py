"""ORM models for the local cache DB (feed payloads + analysis results)."""
from __future__ import annotations

import datetime
import json
from typing import Any

from sqlalchemy import Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class FeedCacheEntry(Base):
    """Raw backend payload cached under a string key.

    ``fetched_at`` is a unix timestamp (float seconds) so TTL checks stay
    plain arithmetic.
    """

    __tablename__ = "feed_cache"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cache_key = Column(String(255), nullable=False, unique=True, index=True)
    payload = Column(Text, nullable=False, default="null")
    fetched_at = Column(Float, nullable=False)

    def load_payload(self) -> Any:
        try:
            return json.loads(self.payload or "null")
        except ValueError:
            return None

    def __repr__(self) -> str:  # pragma: no cover
        return f"<FeedCacheEntry key={self.cache_key} fetched_at={self.fetched_at}>"


class AnalysisResult(Base):
    """Literacy score for a text, keyed by SHA-256 of the normalized text."""

    __tablename__ = "analysis_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    text_sha256 = Column(String(64), nullable=False, unique=True, index=True)
    literacy_score = Column(Float, nullable=False)
    details = Column(Text, nullable=True)  # JSON object
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    def details_dict(self) -> dict:
        if not self.details:
            return {}
        try:
            value = json.loads(self.details)
        except ValueError:
            return {}
        return value if isinstance(value, dict) else {}

    def as_dict(self) -> dict:
        return {
            "text_sha256": self.text_sha256,
            "literacy_score": self.literacy_score,
            "details": self.details_dict(),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


__all__ = ["Base", "FeedCacheEntry", "AnalysisResult"]
