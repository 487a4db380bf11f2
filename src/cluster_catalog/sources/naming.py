"""Naming strategies map a raw source identifier to a logical source name."""
from typing import Callable

NamingStrategy = Callable[[str], str]


def source_name(source: str) -> str:
    """Default strategy: the logical name is the raw source identifier."""
    return source


def prefixed(prefix: str) -> NamingStrategy:
    """Returns a strategy that prepends ``prefix`` to every source identifier."""
    def _strategy(source: str) -> str:
        return f"{prefix}{source}"
    return _strategy


def cluster_scoped(cluster_name: str, separator: str = "-") -> NamingStrategy:
    """Returns a strategy that namespaces sources by cluster, e.g. ``c1-orders``."""
    return prefixed(f"{cluster_name}{separator}")
