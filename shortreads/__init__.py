"""Application package root.

Server-rendered pages and a JSON API for the short story reader. All domain
data lives in the hosted backend; this package only talks to it, scores the
feed and keeps a small local cache.
"""

__all__ = [
]
