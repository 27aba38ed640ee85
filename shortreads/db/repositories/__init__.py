"""Repository helpers for the local cache DB."""
