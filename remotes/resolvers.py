"""
Resolvers turn (remote definition, exposed module name) into a loaded module.

- ImportResolver imports `<package>.<module>` directly. Used when the remote's
  package is installed alongside the host.
- ManifestResolver first fetches the remote's manifest from its entry URL:

      {"name": "cart", "version": "1.2.0",
       "exposes": {"cart_badge": "widgets.cart_badge"}}

  and only imports what the manifest exposes.

Both raise RemoteLoadError; the loader turns that into a Failed value.
"""

import asyncio
import importlib
import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Optional, Protocol

import httpx

from remotes.registry import RemoteDefinition
from shared.errors import RemoteLoadError

logger = logging.getLogger("remote_resolver")


@dataclass(frozen=True)
class ResolvedRemote:
    module: ModuleType
    version: str


class RemoteResolver(Protocol):
    async def resolve(self, definition: RemoteDefinition, exposed_module: str) -> ResolvedRemote:
        ...


def _module_path(package: str, exposed_module: str) -> str:
    # "./CartBadge" style names are accepted as well as "cart_badge"
    name = exposed_module.removeprefix("./").replace("/", ".")
    return f"{package}.{name}" if package else name


def _import(definition: RemoteDefinition, exposed_module: str, path: str) -> ModuleType:
    try:
        return importlib.import_module(path)
    except ImportError as e:
        raise RemoteLoadError(definition.name, exposed_module, f"module '{path}' not found") from e


class ImportResolver:
    """Resolve exposed modules with importlib."""

    async def resolve(self, definition: RemoteDefinition, exposed_module: str) -> ResolvedRemote:
        module = _import(definition, exposed_module, _module_path(definition.package, exposed_module))
        version = getattr(module, "REMOTE_VERSION", definition.version)
        return ResolvedRemote(module=module, version=version)


class ManifestResolver:
    """
    Resolve exposed modules through the manifest published at the remote's entry URL.
    """

    def __init__(self, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    async def fetch_manifest(self, definition: RemoteDefinition, exposed_module: str) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(definition.entry)
                response.raise_for_status()
                manifest = response.json()
        except (httpx.HTTPError, ValueError, asyncio.TimeoutError) as e:
            raise RemoteLoadError(definition.name, exposed_module, f"manifest unavailable: {e}") from e
        if not isinstance(manifest, dict):
            raise RemoteLoadError(definition.name, exposed_module, "manifest is not a JSON object")
        return manifest

    async def resolve(self, definition: RemoteDefinition, exposed_module: str) -> ResolvedRemote:
        manifest = await self.fetch_manifest(definition, exposed_module)
        exposes = manifest.get("exposes") or {}
        path = exposes.get(exposed_module)
        if path is None:
            raise RemoteLoadError(definition.name, exposed_module, "not exposed by remote manifest")
        module = _import(definition, exposed_module, path)
        version = str(manifest.get("version", definition.version))
        logger.debug(f"Resolved {definition.name}/{exposed_module} -> {path} (v{version})")
        return ResolvedRemote(module=module, version=version)
