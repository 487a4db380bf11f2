from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, SecretStr, ValidationError, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cluster_catalog.common.errors import ConfigurationError, ErrorCode
from cluster_catalog.sources.models import ManagedExternal

NATIVE_CLUSTER = "native"
DEFAULT_CLUSTER_NAME = "druid"

DEFAULT_TIMEOUT = 40000
DEFAULT_SOURCE_LIST_REFRESH_INTERVAL = 15000
MIN_REFRESH_INTERVAL = 1000

DEFAULT_INTROSPECTION_STRATEGY = "segment-metadata-fallback"
INTROSPECTION_STRATEGIES = (
    "segment-metadata-fallback",
    "segment-metadata-only",
    "datasource-get",
)


class EngineType(str, Enum):
    """Backend engines a cluster can run.

    ``druid`` is the columnar real-time store; ``mysql`` and ``postgres``
    are the relational engines.
    """
    DRUID = "druid"
    MYSQL = "mysql"
    POSTGRES = "postgres"

    @property
    def is_relational(self) -> bool:
        return self in (EngineType.MYSQL, EngineType.POSTGRES)


class SourceListScan(str, Enum):
    DISABLE = "disable"
    AUTO = "auto"


class Cluster(BaseModel):
    """
    Immutable configuration for one backend cluster.

    Instances are never mutated; use ``with_changes`` to derive a new one.
    Field names accept both snake_case and the camelCase spelling used in
    configuration files (``sourceListScan``, ``sourceReintrospectInterval``...).

    Attributes:
        name: Unique cluster name. Can not be ``"native"``.
        type: Engine type. A cluster without one can not build a transport.
        host: Broker host (``host[:port]``, optionally with a scheme for druid).
        version: Known backend version; when set, version detection is skipped.
        timeout: Per-call transport timeout in milliseconds.
        source_list_scan: ``auto`` to discover sources on the backend.
        source_list_refresh_on_load: Rescan the source list whenever the catalog is loaded.
        source_list_refresh_interval: Source list rescan period in milliseconds.
        source_reintrospect_on_load: Reintrospect sources whenever the catalog is loaded.
        source_reintrospect_interval: Reintrospection period in milliseconds (off when unset).
        introspection_strategy: Druid only; how source schemas are introspected.
        database: Relational only; required.
        user: Relational only.
        password: Relational only.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="ignore",
    )

    name: str
    type: Optional[EngineType] = None
    host: Optional[str] = None
    version: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT
    source_list_scan: SourceListScan = SourceListScan.DISABLE
    source_list_refresh_on_load: bool = False
    source_list_refresh_interval: int = DEFAULT_SOURCE_LIST_REFRESH_INTERVAL
    source_reintrospect_on_load: bool = False
    source_reintrospect_interval: Optional[int] = None

    # Druid
    introspection_strategy: Optional[str] = None

    # SQLs
    database: Optional[str] = None
    user: Optional[str] = None
    password: Optional[SecretStr] = None

    @field_validator("timeout", mode="before")
    @classmethod
    def _default_timeout(cls, value: Any) -> Any:
        return value or DEFAULT_TIMEOUT

    @field_validator("source_list_refresh_interval", mode="before")
    @classmethod
    def _default_refresh_interval(cls, value: Any) -> Any:
        return value or DEFAULT_SOURCE_LIST_REFRESH_INTERVAL

    @field_validator("source_reintrospect_interval", mode="before")
    @classmethod
    def _empty_reintrospect_interval(cls, value: Any) -> Any:
        return value or None

    @field_validator("source_list_scan", "source_list_refresh_on_load", "source_reintrospect_on_load", mode="before")
    @classmethod
    def _none_is_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return cls.model_fields[info.field_name].default
        return value

    @model_validator(mode="before")
    @classmethod
    def _default_introspection_strategy(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        engine = data.get("type")
        strategy_key = "introspectionStrategy" if "introspectionStrategy" in data else "introspection_strategy"
        if engine in (EngineType.DRUID, EngineType.DRUID.value):
            if not data.get(strategy_key):
                data = {**data, strategy_key: DEFAULT_INTROSPECTION_STRATEGY}
        elif data.get(strategy_key) is not None:
            # Only meaningful for druid
            data = {**data, strategy_key: None}
        return data

    @model_validator(mode="after")
    def _check_invariants(self) -> "Cluster":
        if not self.name:
            raise ValueError("must have name")
        if self.name == NATIVE_CLUSTER:
            raise ValueError(f"cluster can not be called '{NATIVE_CLUSTER}'")

        if self.source_list_refresh_interval < MIN_REFRESH_INTERVAL:
            raise ValueError(
                f"can not set sourceListRefreshInterval to < {MIN_REFRESH_INTERVAL} "
                f"(is {self.source_list_refresh_interval})"
            )
        if self.source_reintrospect_interval is not None and self.source_reintrospect_interval < MIN_REFRESH_INTERVAL:
            raise ValueError(
                f"can not set sourceReintrospectInterval to < {MIN_REFRESH_INTERVAL} "
                f"(is {self.source_reintrospect_interval})"
            )

        if self.type == EngineType.DRUID and self.introspection_strategy not in INTROSPECTION_STRATEGIES:
            raise ValueError(
                f"unknown introspectionStrategy '{self.introspection_strategy}', "
                f"expected one of {list(INTROSPECTION_STRATEGIES)}"
            )
        if self.type is not None and self.type.is_relational and not self.database:
            raise ValueError(f"cluster '{self.name}' must specify a database")
        return self

    @classmethod
    def from_config(cls, raw: Mapping[str, Any]) -> "Cluster":
        """
        Builds a cluster from a configuration mapping.

        Accepts the legacy keys ``clusterName`` (name), ``druidHost`` and
        ``brokerHost`` (host). A mapping without any name becomes the default
        ``druid`` cluster.

        Raises:
            ConfigurationError: If the mapping does not describe a valid cluster.
        """
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Cluster configuration must be a mapping, got {type(raw).__name__}")

        params: Dict[str, Any] = dict(raw)
        name = params.pop("name", None) or params.pop("clusterName", None) or DEFAULT_CLUSTER_NAME
        host = params.pop("host", None) or params.pop("druidHost", None) or params.pop("brokerHost", None)
        params["name"] = name
        params["host"] = host

        try:
            return cls.model_validate(params)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid cluster '{name}': {e}", ErrorCode.INVALID_CLUSTER) from e

    def with_changes(self, **changes: Any) -> "Cluster":
        """Returns a new validated cluster with ``changes`` applied."""
        params = self.model_dump()
        if self.password is not None:
            params["password"] = self.password.get_secret_value()
        params.update(changes)
        try:
            return Cluster.model_validate(params)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid cluster '{self.name}': {e}", ErrorCode.INVALID_CLUSTER) from e

    def to_dict(self, include_secrets: bool = False) -> Dict[str, Any]:
        """Serializes to the camelCase config shape, omitting unset fields."""
        data = self.model_dump(by_alias=True, exclude_none=True, mode="json")
        if include_secrets and self.password is not None:
            data["password"] = self.password.get_secret_value()
        return data

    def to_client_cluster(self) -> "Cluster":
        """Returns a copy safe to hand to a UI: name only, no host or credentials."""
        return Cluster(name=self.name)

    @property
    def is_relational(self) -> bool:
        return self.type is not None and self.type.is_relational

    @property
    def password_value(self) -> Optional[str]:
        return self.password.get_secret_value() if self.password is not None else None

    def make_external(self, source: str, name: Optional[str] = None, auto_discovered: bool = True) -> ManagedExternal:
        """Creates a ManagedExternal bound to this cluster for a raw source identifier."""
        return ManagedExternal(
            name=name or source,
            source=source,
            auto_discovered=auto_discovered,
            cluster=self.name,
        )

    def __str__(self) -> str:
        return f"[Cluster {self.name}]"
