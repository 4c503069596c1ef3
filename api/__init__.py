"""
HTTP shell for the storefront host.

This package provides a single FastAPI application that exposes:
- Store snapshots and cart/UI mutations
- Remote loading and retry
"""

from api.main import app, create_app

__all__ = ["app", "create_app"]
