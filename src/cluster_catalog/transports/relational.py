import threading
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Engine, create_engine, inspect, text
from sqlalchemy import exc as sa_exc
from sqlalchemy import types as sqltypes
from sqlalchemy.engine import URL

from cluster_catalog.common.errors import ConfigurationError, ErrorCode, TransportError
from cluster_catalog.common.logger import get_logger
from cluster_catalog.sources.models import Attribute, AttributeType, SourceSchema
from cluster_catalog.transports.base import Rows, Transport

logger = get_logger(__name__)

DRIVERS: Dict[str, str] = {
    "mysql": "mysql+pymysql",
    "postgres": "postgresql+psycopg2",
}

DEFAULT_PORTS: Dict[str, int] = {
    "mysql": 3306,
    "postgres": 5432,
}

VERSION_QUERIES: Dict[str, str] = {
    "mysql": "SELECT VERSION()",
    "postgres": "SHOW server_version",
}


def _split_host(host: Optional[str], default_port: Optional[int]) -> Tuple[Optional[str], Optional[int]]:
    """Splits ``host[:port]`` into its parts."""
    if not host:
        return None, default_port
    if ":" in host:
        name, _, port = host.rpartition(":")
        if port.isdigit():
            return name, int(port)
    return host, default_port


def _normalize_type(sql_type: Any) -> AttributeType:
    """Maps a SQLAlchemy column type onto the shared attribute types."""
    if isinstance(sql_type, sqltypes.NullType):
        return AttributeType.NULL
    if isinstance(sql_type, sqltypes.Boolean):
        return AttributeType.BOOLEAN
    if isinstance(sql_type, (sqltypes.Integer, sqltypes.Numeric)):
        return AttributeType.NUMBER
    if isinstance(sql_type, (sqltypes.DateTime, sqltypes.Date, sqltypes.Time)):
        return AttributeType.TIME
    return AttributeType.STRING


def _native_type_name(sql_type: Any) -> str:
    try:
        return str(sql_type)
    except Exception:
        # NullType and some dialect types can not be compiled without a dialect
        return type(sql_type).__name__


class SQLAlchemyTransport(Transport):
    """
    Transport for the relational engines (MySQL, PostgreSQL).

    The SQLAlchemy engine is created on first use, so a missing DB driver shows
    up as a TransportError on the call instead of failing construction.
    """

    engine_type = "postgres"
    requires_database = True

    def __init__(self, host: Optional[str], *args: Any, engine: Optional[Engine] = None, **kwargs: Any):
        super().__init__(host, *args, **kwargs)
        if self.engine_type not in DRIVERS:
            raise ConfigurationError(
                f"SQLAlchemy transport does not support engine '{self.engine_type}'",
                ErrorCode.UNKNOWN_ENGINE,
            )
        self._engine: Optional[Engine] = engine
        self._engine_lock = threading.Lock()

    @property
    def url(self) -> URL:
        credentials = self.credentials
        hostname, port = _split_host(self.host, DEFAULT_PORTS.get(self.engine_type))
        return URL.create(
            DRIVERS[self.engine_type],
            username=credentials.user if credentials else None,
            password=credentials.password_value if credentials else None,
            host=hostname,
            port=port,
            database=credentials.database if credentials else None,
        )

    @classmethod
    def is_source_error(cls, exc: BaseException) -> bool:
        return isinstance(exc, sa_exc.NoSuchTableError) or super().is_source_error(exc)

    def _get_engine(self) -> Engine:
        with self._engine_lock:
            if self._engine is None:
                logger.info(f"Creating SQLAlchemy engine for {self}")
                self._engine = create_engine(
                    self.url,
                    pool_pre_ping=True,
                    pool_size=self.concurrency_limit,
                    max_overflow=0,
                    pool_timeout=self.timeout / 1000,
                )
            return self._engine

    def _send(self, query: Any) -> Rows:
        with self._get_engine().connect() as conn:
            result = conn.execute(text(str(query)))
            if not result.returns_rows:
                return []
            return [dict(row._mapping) for row in result.fetchall()]

    def _fetch_version(self) -> str:
        with self._get_engine().connect() as conn:
            version = conn.execute(text(VERSION_QUERIES[self.engine_type])).scalar()
        if version is None:
            raise TransportError(f"{self} returned no version", ErrorCode.VERSION_DETECTION_FAILED)
        return str(version)

    def _fetch_source_list(self) -> List[str]:
        inspector = inspect(self._get_engine())
        sources = list(inspector.get_table_names())
        try:
            views = inspector.get_view_names()
        except NotImplementedError:
            views = []
        sources.extend(v for v in views if v not in sources)
        return sources

    def _introspect(self, source: str) -> SourceSchema:
        inspector = inspect(self._get_engine())
        columns = inspector.get_columns(source)
        if not columns:
            raise TransportError(
                f"source '{source}' has no columns on {self}",
                ErrorCode.INTROSPECTION_FAILED,
                source=source,
            )

        attributes: List[Attribute] = []
        for col_info in columns:
            attributes.append(Attribute(
                name=col_info["name"],
                type=_normalize_type(col_info["type"]),
                native_type=_native_type_name(col_info["type"]),
            ))
        return SourceSchema(source=source, engine=self.engine_type, attributes=attributes)

    def _close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
