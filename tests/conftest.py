import threading
import time
from typing import Any, Dict, List, Optional, Union

import pytest

from cluster_catalog.clusters.models import Cluster
from cluster_catalog.sources.models import Attribute, SourceSchema
from cluster_catalog.transports.base import Rows, Transport

Outcome = Union[List[str], Exception]


class FakeTransport(Transport):
    """In-process transport whose backend is a few dicts.

    ``schemas`` maps a source to its attribute names or to the exception its
    introspection raises. ``sources`` and ``version`` may also be exceptions.
    A ``LookupError`` plays the part of a missing table.
    """

    engine_type = "fake"

    def __init__(
        self,
        sources: Union[List[str], Exception, None] = None,
        schemas: Optional[Dict[str, Outcome]] = None,
        version: Union[str, Exception] = "1.0.0",
        delay: float = 0.0,
        concurrency_limit: int = 5,
        timeout: int = 40000,
        breaker: Any = None,
    ):
        super().__init__(
            "fake-host",
            timeout=timeout,
            concurrency_limit=concurrency_limit,
            cluster_name="fake",
            breaker=breaker,
        )
        self.sources = sources if sources is not None else []
        self.schemas = dict(schemas or {})
        self.version = version
        self.delay = delay
        self.closed = False
        self.calls: List[tuple] = []
        self._calls_lock = threading.Lock()
        self.active_introspections = 0
        self.max_active_introspections = 0

    @classmethod
    def is_source_error(cls, exc: BaseException) -> bool:
        return isinstance(exc, LookupError) or super().is_source_error(exc)

    def _record(self, operation: str, arg: Any = None) -> None:
        with self._calls_lock:
            self.calls.append((operation, arg))

    def count(self, operation: str) -> int:
        with self._calls_lock:
            return sum(1 for op, _ in self.calls if op == operation)

    def introspected(self) -> List[str]:
        with self._calls_lock:
            return [arg for op, arg in self.calls if op == "introspect"]

    def _send(self, query: Any) -> Rows:
        self._record("send", query)
        return [{"query": query}]

    def _fetch_version(self) -> str:
        self._record("version")
        if isinstance(self.version, Exception):
            raise self.version
        return self.version

    def _fetch_source_list(self) -> List[str]:
        self._record("source_list")
        if isinstance(self.sources, Exception):
            raise self.sources
        return list(self.sources)

    def _introspect(self, source: str) -> SourceSchema:
        self._record("introspect", source)
        with self._calls_lock:
            self.active_introspections += 1
            self.max_active_introspections = max(self.max_active_introspections, self.active_introspections)
        try:
            if self.delay:
                time.sleep(self.delay)
        finally:
            with self._calls_lock:
                self.active_introspections -= 1
        outcome = self.schemas.get(source, ["value"])
        if isinstance(outcome, Exception):
            raise outcome
        return SourceSchema(
            source=source,
            engine=self.engine_type,
            attributes=[Attribute(name=name) for name in outcome],
        )

    def _close(self) -> None:
        self.closed = True


class ChangeRecorder:
    """Listener that records every ``(name, schema)`` it receives."""

    def __init__(self):
        self.calls: List[tuple] = []

    def __call__(self, name, schema):
        self.calls.append((name, schema))

    @property
    def registrations(self) -> List[str]:
        return [name for name, schema in self.calls if schema is None]

    @property
    def schema_updates(self) -> List[str]:
        return [name for name, schema in self.calls if schema is not None]


@pytest.fixture
def fake_transport_cls():
    return FakeTransport


@pytest.fixture
def recorder():
    return ChangeRecorder()


@pytest.fixture
def relational_cluster():
    """A relational cluster that discovers its sources automatically."""
    return Cluster(name="c1", type="mysql", host="db:3306", database="app", source_list_scan="auto")


@pytest.fixture
def static_cluster():
    """A druid cluster that only manages statically configured sources."""
    return Cluster(name="c2", type="druid", host="broker:8082", version="0.22.1")
