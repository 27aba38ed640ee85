"""Repository helpers for cached literacy analysis results."""
from __future__ import annotations

import datetime
import json
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from shortreads.db import app_session
from shortreads.db.models import AnalysisResult
from shortreads.utils.logging import get_logger

LOG = get_logger("analysis_repo")


def get_result(text_sha256: str) -> Optional[AnalysisResult]:
    with app_session() as session:
        return (
            session.query(AnalysisResult)
            .filter(AnalysisResult.text_sha256 == text_sha256)
            .one_or_none()
        )


def save_result(
    text_sha256: str,
    literacy_score: float,
    details: Optional[Dict[str, Any]] = None,
) -> AnalysisResult:
    encoded = json.dumps(details or {}, ensure_ascii=False)
    try:
        with app_session() as session:
            record = (
                session.query(AnalysisResult)
                .filter(AnalysisResult.text_sha256 == text_sha256)
                .one_or_none()
            )
            if record is None:
                record = AnalysisResult(
                    text_sha256=text_sha256,
                    literacy_score=literacy_score,
                    details=encoded,
                )
                session.add(record)
            else:
                record.literacy_score = literacy_score
                record.details = encoded
            return record
    except IntegrityError:
        # Another worker stored the same text first; its row is equivalent.
        LOG.debug("analysis result already stored sha=%s", text_sha256)
        existing = get_result(text_sha256)
        if existing is None:
            raise
        return existing


def purge_older_than(cutoff: datetime.datetime) -> int:
    """Drop results created before ``cutoff`` (naive UTC); returns count."""
    with app_session() as session:
        return (
            session.query(AnalysisResult)
            .filter(AnalysisResult.created_at < cutoff)
            .delete(synchronize_session=False)
        )


__all__ = ["get_result", "save_result", "purge_older_than"]
