"""Hosted backend access (REST, RPC and object storage)."""

from . import client
from .client import (
    BackendError,
    BackendNotFoundError,
    BackendUnavailableError,
)

__all__ = [
    "client",
    "BackendError",
    "BackendNotFoundError",
    "BackendUnavailableError",
]
