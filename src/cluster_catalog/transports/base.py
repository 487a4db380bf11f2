from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional

import pybreaker
from pydantic import BaseModel, ConfigDict, SecretStr

from cluster_catalog.common.errors import ConfigurationError, ErrorCode, TransportError
from cluster_catalog.common.logger import get_logger
from cluster_catalog.sources.models import SourceSchema

logger = get_logger(__name__)

DEFAULT_CONCURRENCY_LIMIT = 5
DEFAULT_TIMEOUT_MS = 40000

Rows = List[Dict[str, Any]]


class TransportCredentials(BaseModel):
    """Connection credentials for engines that need them (relational)."""

    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[SecretStr] = None

    model_config = ConfigDict(frozen=True)

    @property
    def password_value(self) -> Optional[str]:
        return self.password.get_secret_value() if self.password is not None else None


class Transport(ABC):
    """
    Sends queries to one cluster and returns rows.

    Engine subclasses implement the blocking ``_send``, ``_fetch_version``,
    ``_fetch_source_list`` and ``_introspect`` hooks. The public coroutines run
    them in a worker thread and enforce, for every call:

    * the concurrency limit: excess calls wait on a semaphore instead of being
      rejected;
    * the per-call timeout (milliseconds);
    * the transport's circuit breaker, when one is attached.

    Every failure surfaces as ``TransportError``. Nothing is retried here.
    """

    engine_type: str = "unknown"
    requires_database: bool = False

    def __init__(
        self,
        host: Optional[str],
        timeout: int = DEFAULT_TIMEOUT_MS,
        concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT,
        credentials: Optional[TransportCredentials] = None,
        *,
        engine_type: Optional[str] = None,
        cluster_name: Optional[str] = None,
        breaker: Optional[pybreaker.CircuitBreaker] = None,
        introspection_strategy: Optional[str] = None,
    ):
        if concurrency_limit < 1:
            raise ConfigurationError(f"concurrency limit must be >= 1 (is {concurrency_limit})")
        self.host = host
        self.timeout = timeout or DEFAULT_TIMEOUT_MS
        self.concurrency_limit = concurrency_limit
        self.credentials = credentials
        if engine_type:
            self.engine_type = engine_type
        self.cluster_name = cluster_name or host or self.engine_type
        self.breaker = breaker
        self.introspection_strategy = introspection_strategy
        self._semaphore = asyncio.Semaphore(concurrency_limit)
        self._in_flight = 0
        self.max_in_flight = 0

    def __str__(self):
        return f"{self.cluster_name} ({self.engine_type})"

    @property
    def in_flight(self) -> int:
        """Number of calls currently holding a concurrency slot."""
        return self._in_flight

    async def send(self, query: Any) -> Rows:
        """Sends a raw engine query and returns its rows."""
        return await self._call("query", self._send, query)

    async def get_version(self) -> str:
        """Returns the backend's version string."""
        version = await self._call("version detection", self._fetch_version)
        return str(version)

    async def get_source_list(self) -> List[str]:
        """Returns the raw identifiers of every source on the backend."""
        sources = await self._call("source list", self._fetch_source_list)
        return [str(s) for s in sources]

    async def introspect(self, source: str) -> SourceSchema:
        """Returns the schema descriptor of one source."""
        return await self._call("introspection", self._introspect, source, source=source)

    async def close(self) -> None:
        """Releases connections held by the transport."""
        await asyncio.to_thread(self._close)

    @classmethod
    def is_source_error(cls, exc: BaseException) -> bool:
        """Whether ``exc`` concerns a single source rather than the backend.

        Such errors are excluded from the breaker count; the backend answered.
        """
        return isinstance(exc, TransportError) and exc.source is not None

    async def _call(self, operation: str, fn: Callable[..., Any], *args: Any, source: Optional[str] = None) -> Any:
        await self._semaphore.acquire()
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        # The slot is held until the worker thread returns, not until the caller stops waiting.
        worker = asyncio.ensure_future(asyncio.to_thread(self._guarded, fn, *args))
        worker.add_done_callback(self._release_slot)
        try:
            return await asyncio.wait_for(asyncio.shield(worker), timeout=self.timeout / 1000)
        except TransportError as e:
            e.cluster = e.cluster or self.cluster_name
            e.source = e.source or source
            raise
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"{operation} on {self} timed out after {self.timeout}ms",
                ErrorCode.TRANSPORT_TIMEOUT,
                cluster=self.cluster_name,
                source=source,
            ) from e
        except pybreaker.CircuitBreakerError as e:
            raise TransportError(
                f"{operation} on {self} rejected: circuit open",
                ErrorCode.CIRCUIT_OPEN,
                cluster=self.cluster_name,
                source=source,
            ) from e
        except Exception as e:
            raise TransportError(
                f"{operation} on {self} failed: {type(e).__name__}: {e}",
                ErrorCode.TRANSPORT_FAILURE,
                cluster=self.cluster_name,
                source=source,
            ) from e

    def _release_slot(self, worker: "asyncio.Future[Any]") -> None:
        self._in_flight -= 1
        self._semaphore.release()
        if not worker.cancelled():
            # Marks a late failure as retrieved once nobody awaits it.
            worker.exception()

    def _guarded(self, fn: Callable[..., Any], *args: Any) -> Any:
        if self.breaker is None:
            return fn(*args)
        return self.breaker.call(fn, *args)

    @abstractmethod
    def _send(self, query: Any) -> Rows:
        """Execute a raw query (blocking)."""
        pass

    @abstractmethod
    def _fetch_version(self) -> str:
        """Return the backend version (blocking)."""
        pass

    @abstractmethod
    def _fetch_source_list(self) -> List[str]:
        """Return the raw source identifiers (blocking)."""
        pass

    @abstractmethod
    def _introspect(self, source: str) -> SourceSchema:
        """Return the schema of one source (blocking)."""
        pass

    def _close(self) -> None:
        pass
