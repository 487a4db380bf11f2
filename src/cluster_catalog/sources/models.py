from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from cluster_catalog.common.errors import IntrospectionFailure


class AttributeType(str, Enum):
    """Normalized attribute types shared by every engine."""
    STRING = "STRING"
    NUMBER = "NUMBER"
    TIME = "TIME"
    BOOLEAN = "BOOLEAN"
    NULL = "NULL"


class Attribute(BaseModel):
    """One column of a source, with its engine type kept as ``native_type``."""

    name: str
    type: AttributeType = AttributeType.STRING
    native_type: Optional[str] = None

    model_config = ConfigDict(extra="allow", frozen=True)


class SourceSchema(BaseModel):
    """Schema descriptor produced by introspecting one source.

    The contents are engine specific (``native_type`` values, time attribute
    conventions); the manager treats the whole object as opaque.
    """

    source: str
    engine: str
    cluster: Optional[str] = None
    version: Optional[str] = None
    attributes: List[Attribute] = Field(default_factory=list)
    time_attribute: Optional[str] = None
    introspected_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(extra="allow", frozen=True)

    def attribute_names(self) -> List[str]:
        return [a.name for a in self.attributes]

    def get_attribute(self, name: str) -> Optional[Attribute]:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        return None


@dataclasses.dataclass(frozen=True)
class Unintrospected:
    """No introspection has completed for the source yet."""

    @property
    def schema(self) -> Optional[SourceSchema]:
        return None


@dataclasses.dataclass(frozen=True)
class Introspected:
    """The latest introspection succeeded."""
    schema: SourceSchema


@dataclasses.dataclass(frozen=True)
class Failed:
    """The latest introspection failed.

    ``last_schema`` keeps whatever schema was known before the failure so
    readers keep serving it.
    """
    failure: IntrospectionFailure
    last_schema: Optional[SourceSchema] = None

    @property
    def schema(self) -> Optional[SourceSchema]:
        return self.last_schema


IntrospectionState = Union[Unintrospected, Introspected, Failed]


@dataclasses.dataclass
class ManagedExternal:
    """
    One queryable source inside a cluster.

    Attributes:
        name: Logical name, unique within the owning manager.
        source: Raw source identifier on the backend (table, datasource).
        state: Tagged introspection state.
        auto_discovered: True if found by a source-list scan rather than configured.
        suppress_introspection: Operator override that skips schema discovery.
        cluster: Name of the cluster whose transport produced the schema.
    """
    name: str
    source: str
    state: IntrospectionState = dataclasses.field(default_factory=Unintrospected)
    auto_discovered: bool = False
    suppress_introspection: bool = False
    cluster: Optional[str] = None

    @property
    def schema_descriptor(self) -> Optional[SourceSchema]:
        return self.state.schema

    @property
    def is_introspected(self) -> bool:
        return isinstance(self.state, Introspected)

    @property
    def last_failure(self) -> Optional[IntrospectionFailure]:
        if isinstance(self.state, Failed):
            return self.state.failure
        return None

    def bind(self, cluster_name: str) -> "ManagedExternal":
        """Attaches the source to a manager for ``cluster_name``.

        A schema introspected through another cluster's transport is never
        carried over: the state resets to ``Unintrospected`` in that case.
        """
        schema = self.schema_descriptor
        if schema is not None and schema.cluster not in (None, cluster_name):
            self.state = Unintrospected()
        self.cluster = cluster_name
        return self

    def state_label(self) -> str:
        if isinstance(self.state, Introspected):
            return "introspected"
        if isinstance(self.state, Failed):
            return "failed"
        return "pending"
