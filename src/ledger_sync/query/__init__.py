"""One-shot request/response correlation over a shared connection."""

from .query import REQUEST_ID_KEY, Query, new_request_id

__all__ = ["REQUEST_ID_KEY", "Query", "new_request_id"]
