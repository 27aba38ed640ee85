"""Literacy analysis via the external text-quality endpoint.

Request:  POST {SHORTREADS_ANALYSIS_URL}  {"text": "..."}
Response: {"literacy_score": 7.3, ...}  (``score`` accepted as an alias)

Scores are clamped to 0..10 and rounded to one decimal. Results are cached
in the local DB by SHA-256 of the whitespace-normalized text, so re-saving an
unchanged story never hits the endpoint twice.
"""
from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from shortreads import config
from shortreads.db.repositories import analysis_repo
from shortreads.utils.logging import get_logger

LOG = get_logger("analysis_service")

MIN_SCORE = 0.0
MAX_SCORE = 10.0
MAX_TEXT_CHARS = 50_000
_WS_RE = re.compile(r"\s+")


class AnalysisError(RuntimeError):
    """Raised when a text cannot be scored."""


@dataclass(frozen=True)
class AnalysisResult:
    score: float
    details: Dict[str, Any] = field(default_factory=dict)
    cached: bool = False

    def to_payload(self) -> Dict[str, Any]:
        return {"literacy_score": self.score, "details": self.details, "cached": self.cached}


def normalize_text(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def text_fingerprint(text: str) -> str:
    return hashlib.sha256(normalize_text(text).encode("utf-8")).hexdigest()


def clamp_score(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise AnalysisError("invalid_score") from exc
    if value != value:  # NaN
        raise AnalysisError("invalid_score")
    return round(min(MAX_SCORE, max(MIN_SCORE, value)), 1)


def _headers() -> Dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    key = config.analysis_api_key()
    if key:
        headers["Authorization"] = f"Bearer {key}"
    return headers


def _request_score(text: str) -> Dict[str, Any]:
    url = config.analysis_url()
    if not url:
        raise AnalysisError("analysis_not_configured")
    try:
        resp = requests.post(url, json={"text": text}, headers=_headers(), timeout=config.request_timeout())
    except requests.RequestException as exc:
        LOG.warning("analysis request failed error=%s", exc)
        raise AnalysisError("analysis_unreachable") from exc
    if resp.status_code != 200:
        LOG.warning("analysis http error status=%s body=%s", resp.status_code, resp.text[:200])
        raise AnalysisError("http_error")
    try:
        data = resp.json()
    except ValueError as exc:
        raise AnalysisError("invalid_json") from exc
    if not isinstance(data, dict):
        raise AnalysisError("invalid_payload")
    return data


def analyze_text(text: str, *, use_cache: bool = True) -> AnalysisResult:
    cleaned = normalize_text(text)
    if not cleaned:
        raise AnalysisError("text_required")
    if len(cleaned) > MAX_TEXT_CHARS:
        raise AnalysisError("text_too_long")
    fingerprint = text_fingerprint(cleaned)
    if use_cache:
        stored = analysis_repo.get_result(fingerprint)
        if stored is not None:
            return AnalysisResult(score=stored.literacy_score, details=stored.details_dict(), cached=True)

    data = _request_score(cleaned)
    raw_score = data.get("literacy_score", data.get("score"))
    if raw_score is None:
        raise AnalysisError("score_missing")
    score = clamp_score(raw_score)
    details = {k: v for k, v in data.items() if k not in ("literacy_score", "score")}
    analysis_repo.save_result(fingerprint, score, details)
    LOG.info("literacy analysis stored sha=%s score=%s", fingerprint[:12], score)
    return AnalysisResult(score=score, details=details, cached=False)


def try_analyze(text: str) -> Optional[AnalysisResult]:
    """Like :func:`analyze_text` but returns None when the service fails."""
    try:
        return analyze_text(text)
    except AnalysisError as exc:
        if str(exc) == "text_required":
            raise
        LOG.warning("literacy analysis unavailable: %s", exc)
        return None


__all__ = [
    "AnalysisError",
    "AnalysisResult",
    "normalize_text",
    "text_fingerprint",
    "clamp_score",
    "analyze_text",
    "try_analyze",
]
