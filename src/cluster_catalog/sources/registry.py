from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional

from cluster_catalog.common.errors import ConfigurationError, ErrorCode
from cluster_catalog.sources.models import ManagedExternal


class SourceRegistry:
    """
    Ordered collection of the ManagedExternals known to one cluster manager.

    Entries are indexed both by logical name and by raw source identifier so
    discovery can tell whether a backend source is already represented, even
    when the naming strategy gave it a different logical name.
    """

    def __init__(self, externals: Optional[Iterable[ManagedExternal]] = None):
        self._externals: List[ManagedExternal] = []
        self._by_name: Dict[str, ManagedExternal] = {}
        self._by_source: Dict[str, ManagedExternal] = {}
        for external in externals or []:
            self.add(external)

    def add(self, external: ManagedExternal) -> ManagedExternal:
        """
        Appends an external to the registry.

        Raises:
            ConfigurationError: If the logical name is already taken.
        """
        if external.name in self._by_name:
            raise ConfigurationError(
                f"Duplicate source name '{external.name}'",
                ErrorCode.DUPLICATE_SOURCE,
            )
        self._externals.append(external)
        self._by_name[external.name] = external
        # First registration wins the source index; later aliases stay reachable by name.
        self._by_source.setdefault(external.source, external)
        return external

    def get(self, name: str) -> Optional[ManagedExternal]:
        return self._by_name.get(name)

    def find_by_source(self, source: str) -> Optional[ManagedExternal]:
        return self._by_source.get(source)

    def unique_name(self, candidate: str) -> str:
        """Returns ``candidate`` if free, else the first free ``candidate-N`` (N >= 2)."""
        if candidate not in self._by_name:
            return candidate
        suffix = 2
        while f"{candidate}-{suffix}" in self._by_name:
            suffix += 1
        return f"{candidate}-{suffix}"

    def names(self) -> List[str]:
        return [e.name for e in self._externals]

    def snapshot(self) -> List[ManagedExternal]:
        """Returns a shallow copy of the entries in registration order."""
        return list(self._externals)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[ManagedExternal]:
        return iter(list(self._externals))

    def __len__(self) -> int:
        return len(self._externals)
