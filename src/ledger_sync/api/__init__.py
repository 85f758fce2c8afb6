"""
API server module for sync status endpoints.

Provides HTTP endpoints for:
- /health - Health check endpoint
- /status - Chain-sync progress
- /metrics - Prometheus metrics
"""

from .server import ApiServer, ApiServerConfig

__all__ = ["ApiServer", "ApiServerConfig"]
