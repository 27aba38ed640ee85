"""HTTP client for the hosted Postgres backend (REST, RPC and storage).

Every domain record lives there; row-level security decides what the public
key may touch. The service key is only used for server-side flows that must
bypass it (avatar upload, moderation decisions, notifications to other users).

Filters use the backend's query-string operators, e.g.
``{"id": eq(5), "status": in_(["pending", "published"])}``.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import requests

from shortreads import config
from shortreads.utils.logging import get_logger

LOG = get_logger("backend.client")

Rows = List[Dict[str, Any]]


class BackendError(RuntimeError):
    """Raised when the backend rejects a request or returns garbage."""

    def __init__(self, code: str, status: Optional[int] = None, details: Any = None):
        super().__init__(code)
        self.code = code
        self.status = status
        self.details = details

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code}
        if self.status is not None:
            payload["status"] = self.status
        if self.details is not None:
            payload["details"] = self.details
        return payload


class BackendUnavailableError(BackendError):
    """Network failure, timeout or missing configuration."""


class BackendNotFoundError(BackendError):
    """A single row was required but the query matched nothing."""


# ---------------- filter helpers ---------------

def _literal(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    return str(value)


def eq(value: Any) -> str:
    return f"eq.{_literal(value)}"


def neq(value: Any) -> str:
    return f"neq.{_literal(value)}"


def gte(value: Any) -> str:
    return f"gte.{_literal(value)}"


def lt(value: Any) -> str:
    return f"lt.{_literal(value)}"


def is_null(flag: bool = True) -> str:
    return "is.null" if flag else "not.is.null"


def in_(values: Iterable[Any]) -> str:
    parts = []
    for value in values:
        text = _literal(value)
        if any(ch in text for ch in ',()"'):
            text = '"' + text.replace('"', '\\"') + '"'
        parts.append(text)
    return "in.(" + ",".join(parts) + ")"


# ---------------- transport ---------------

def _base_url() -> str:
    base = config.backend_url()
    if not base:
        raise BackendUnavailableError("backend_not_configured")
    return base


def _api_key(service: bool) -> str:
    key = config.backend_service_key() if service else config.backend_anon_key()
    if not key:
        raise BackendUnavailableError("service_key_missing" if service else "backend_not_configured")
    return key


def _headers(service: bool, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    key = _api_key(service)
    headers = {
        "apikey": key,
        "Authorization": f"Bearer {key}",
        "Accept": "application/json",
    }
    if extra:
        headers.update(extra)
    return headers


def _request(
    method: str,
    path: str,
    *,
    service: bool = False,
    params: Optional[Mapping[str, Any]] = None,
    json_body: Any = None,
    data: Optional[bytes] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> requests.Response:
    url = _base_url() + path
    final_headers = _headers(service, headers)
    LOG.debug("backend %s %s params=%s service=%s", method, path, params, service)
    try:
        resp = requests.request(
            method,
            url,
            params=params,
            json=json_body,
            data=data,
            headers=final_headers,
            timeout=config.request_timeout(),
        )
    except requests.RequestException as exc:
        LOG.warning("backend request failed method=%s path=%s error=%s", method, path, exc)
        raise BackendUnavailableError("backend_unreachable", details=str(exc)) from exc
    if resp.status_code >= 400:
        try:
            details: Any = resp.json()
        except ValueError:
            details = resp.text
        LOG.warning("backend http error method=%s path=%s status=%s", method, path, resp.status_code)
        raise BackendError("http_error", resp.status_code, details)
    return resp


def _decode(resp: requests.Response) -> Any:
    if resp.status_code == 204 or not (resp.content or b"").strip():
        return None
    try:
        return resp.json()
    except ValueError as exc:
        raise BackendError("invalid_json", resp.status_code, resp.text) from exc


def _as_rows(payload: Any) -> Rows:
    if payload is None:
        return []
    if isinstance(payload, dict):
        return [payload]
    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    raise BackendError("invalid_payload", details=payload)


# ---------------- REST ---------------

def select(
    table: str,
    *,
    columns: str = "*",
    filters: Optional[Mapping[str, str]] = None,
    order: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    service: bool = False,
) -> Rows:
    params: Dict[str, Any] = {"select": columns}
    if filters:
        params.update(filters)
    if order:
        params["order"] = order
    if limit is not None:
        params["limit"] = int(limit)
    if offset:
        params["offset"] = int(offset)
    resp = _request("GET", f"/rest/v1/{table}", service=service, params=params)
    return _as_rows(_decode(resp))


def select_one(
    table: str,
    *,
    columns: str = "*",
    filters: Optional[Mapping[str, str]] = None,
    service: bool = False,
) -> Dict[str, Any]:
    rows = select(table, columns=columns, filters=filters, limit=1, service=service)
    if not rows:
        raise BackendNotFoundError("not_found", 404, {"table": table})
    return rows[0]


def insert(
    table: str,
    rows: Union[Dict[str, Any], Sequence[Dict[str, Any]]],
    *,
    service: bool = False,
    returning: bool = True,
) -> Rows:
    prefer = "return=representation" if returning else "return=minimal"
    resp = _request(
        "POST",
        f"/rest/v1/{table}",
        service=service,
        json_body=rows,
        headers={"Content-Type": "application/json", "Prefer": prefer},
    )
    return _as_rows(_decode(resp)) if returning else []


def upsert(
    table: str,
    rows: Union[Dict[str, Any], Sequence[Dict[str, Any]]],
    *,
    on_conflict: str,
    service: bool = False,
) -> Rows:
    resp = _request(
        "POST",
        f"/rest/v1/{table}",
        service=service,
        params={"on_conflict": on_conflict},
        json_body=rows,
        headers={
            "Content-Type": "application/json",
            "Prefer": "resolution=merge-duplicates,return=representation",
        },
    )
    return _as_rows(_decode(resp))


def update(
    table: str,
    values: Dict[str, Any],
    *,
    filters: Mapping[str, str],
    service: bool = False,
) -> Rows:
    if not filters:
        raise ValueError("update requires filters")
    resp = _request(
        "PATCH",
        f"/rest/v1/{table}",
        service=service,
        params=dict(filters),
        json_body=values,
        headers={"Content-Type": "application/json", "Prefer": "return=representation"},
    )
    return _as_rows(_decode(resp))


def delete(
    table: str,
    *,
    filters: Mapping[str, str],
    service: bool = False,
) -> int:
    if not filters:
        raise ValueError("delete requires filters")
    resp = _request(
        "DELETE",
        f"/rest/v1/{table}",
        service=service,
        params=dict(filters),
        headers={"Prefer": "return=representation"},
    )
    return len(_as_rows(_decode(resp)))


def rpc(function: str, params: Optional[Dict[str, Any]] = None, *, service: bool = False) -> Any:
    resp = _request(
        "POST",
        f"/rest/v1/rpc/{function}",
        service=service,
        json_body=params or {},
        headers={"Content-Type": "application/json"},
    )
    return _decode(resp)


# ---------------- storage ---------------

def upload_object(bucket: str, path: str, data: bytes, content_type: str, *, upsert: bool = True) -> None:
    """Store ``data`` at ``bucket/path`` with the service key."""
    _request(
        "POST",
        f"/storage/v1/object/{bucket}/{path.lstrip('/')}",
        service=True,
        data=data,
        headers={
            "Content-Type": content_type or "application/octet-stream",
            "x-upsert": "true" if upsert else "false",
        },
    )


def public_object_url(bucket: str, path: str) -> str:
    return f"{_base_url()}/storage/v1/object/public/{bucket}/{path.lstrip('/')}"


def is_configured(*, service: bool = False) -> bool:
    if not config.backend_url():
        return False
    key = config.backend_service_key() if service else config.backend_anon_key()
    return bool(key)


__all__ = [
    "BackendError",
    "BackendUnavailableError",
    "BackendNotFoundError",
    "eq",
    "neq",
    "gte",
    "lt",
    "is_null",
    "in_",
    "select",
    "select_one",
    "insert",
    "upsert",
    "update",
    "delete",
    "rpc",
    "upload_object",
    "public_object_url",
    "is_configured",
]
