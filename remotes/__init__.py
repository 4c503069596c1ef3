"""
Runtime composition of remotes.

The host looks remotes up in the registry, resolves their exposed modules,
and mounts them with explicit access to the host context.
"""

from remotes.loader import Failed, LoadResult, Mounted, MountPoint, MountStatus, RemoteLoader
from remotes.registry import RemoteDefinition, RemoteRegistry
from remotes.resolvers import ImportResolver, ManifestResolver, ResolvedRemote

__all__ = [
    "RemoteLoader",
    "MountPoint",
    "MountStatus",
    "Mounted",
    "Failed",
    "LoadResult",
    "RemoteDefinition",
    "RemoteRegistry",
    "ImportResolver",
    "ManifestResolver",
    "ResolvedRemote",
]
