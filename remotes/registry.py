"""
Registry of known remotes.

Maps a stable remote name ("cart", "order", ...) to where it is deployed and
which package implements it. One entry per deployable unit.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from shared.config import RemoteSettings, Settings

logger = logging.getLogger("remote_registry")


@dataclass(frozen=True)
class RemoteDefinition:
    """
    Attributes:
        name: Stable identifier used by the host ("cart")
        entry: URL of the remote's manifest
        package: Import path the exposed modules live under
        version: Version the host was configured against
    """
    name: str
    entry: str
    package: str
    version: str = "1.0.0"

    @classmethod
    def from_settings(cls, remote: RemoteSettings) -> "RemoteDefinition":
        return cls(name=remote.name, entry=remote.entry, package=remote.package, version=remote.version)


class RemoteRegistry:
    """Lookup table of remote definitions."""

    def __init__(self, definitions: Iterable[RemoteDefinition] = ()):
        self._definitions: dict[str, RemoteDefinition] = {}
        for definition in definitions:
            self.register(definition)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteRegistry":
        return cls(RemoteDefinition.from_settings(r) for r in settings.remotes)

    def register(self, definition: RemoteDefinition) -> None:
        if definition.name in self._definitions:
            logger.warning(f"Replacing remote definition '{definition.name}'")
        self._definitions[definition.name] = definition

    def get(self, name: str) -> Optional[RemoteDefinition]:
        return self._definitions.get(name)

    def names(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, name: str) -> bool:
        return name in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
