"""
Settings for the host process.

Defaults mirror the values the storefront shipped with: 10% tax, free shipping
over 50, a 5-minute stale window, a 10-minute garbage-collection window, three
query retries and one mutation retry.

Settings can be loaded from a JSON file (NEXUS_SETTINGS_FILE) and a couple of
values can be overridden from the environment:
- NEXUS_STORAGE_PATH: where durable storage lives (memory-only if unset)
- NEXUS_API_BASE_URL: base URL shared by the backend service clients
"""

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class CartPricing(BaseModel):
    """Constants used to derive cart totals."""
    tax_rate: float = Field(default=0.10, ge=0)
    free_shipping_threshold: float = Field(default=50.0, ge=0)
    flat_shipping_fee: float = Field(default=5.99, ge=0)


class QueryDefaults(BaseModel):
    """Default cache and retry policy for the query client (seconds)."""
    stale_time: float = Field(default=5 * 60, ge=0)
    gc_time: float = Field(default=10 * 60, ge=0)
    retry: int = Field(default=3, ge=0)
    mutation_retry: int = Field(default=1, ge=0)
    retry_base_delay: float = Field(default=1.0, gt=0)
    retry_max_delay: float = Field(default=30.0, gt=0)
    refetch_on_window_focus: bool = True
    refetch_on_reconnect: bool = True


class RemoteSettings(BaseModel):
    """Where a remote is deployed and which Python package implements it."""
    name: str
    entry: str = Field(..., description="URL of the remote's manifest")
    package: str = Field(..., description="Import path the exposed modules live under")
    version: str = "1.0.0"


DEFAULT_REMOTES = [
    RemoteSettings(name="cart", entry="http://localhost:5174/remoteEntry.json", package="widgets"),
    RemoteSettings(name="analytics", entry="http://localhost:5181/remoteEntry.json", package="widgets"),
    RemoteSettings(name="order", entry="http://localhost:5176/remoteEntry.json", package="widgets"),
]


class Settings(BaseModel):
    """Top-level host settings."""
    host_version: str = "1.0.0"
    storage_path: Optional[Path] = None
    cart_storage_key: str = "cart"
    auth_token_key: str = "auth_token"
    api_base_url: str = "http://localhost:8080/api"
    request_timeout: float = Field(default=10.0, gt=0)
    event_history_size: int = Field(default=100, ge=0)
    pricing: CartPricing = Field(default_factory=CartPricing)
    query: QueryDefaults = Field(default_factory=QueryDefaults)
    remotes: list[RemoteSettings] = Field(default_factory=lambda: list(DEFAULT_REMOTES))


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Build settings from an optional JSON file plus environment overrides.

    Args:
        path: JSON settings file. Falls back to NEXUS_SETTINGS_FILE.

    Returns:
        Validated Settings
    """
    path = path or os.environ.get("NEXUS_SETTINGS_FILE")
    data: dict = {}
    if path:
        with open(path, "r") as f:
            data = json.load(f)

    if os.environ.get("NEXUS_STORAGE_PATH"):
        data["storage_path"] = os.environ["NEXUS_STORAGE_PATH"]
    if os.environ.get("NEXUS_API_BASE_URL"):
        data["api_base_url"] = os.environ["NEXUS_API_BASE_URL"]

    return Settings.model_validate(data)
