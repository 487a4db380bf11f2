from typing import Any, Dict, List, Optional

import httpx

from cluster_catalog.common.errors import ErrorCode, TransportError
from cluster_catalog.common.logger import get_logger
from cluster_catalog.sources.models import Attribute, AttributeType, SourceSchema
from cluster_catalog.transports.base import Rows, Transport

logger = get_logger(__name__)

TIME_COLUMN = "__time"
DEFAULT_STRATEGY = "segment-metadata-fallback"

# Covers every segment; the broker narrows it to what exists.
ETERNITY_INTERVAL = "1000-01-01/3000-01-01"

NUMERIC_TYPES = {"LONG", "FLOAT", "DOUBLE"}


def _attribute_type(native_type: Optional[str]) -> AttributeType:
    native = (native_type or "").upper()
    if native == "STRING":
        return AttributeType.STRING
    if native in NUMERIC_TYPES:
        return AttributeType.NUMBER
    if native:
        # Complex metric columns (hyperUnique, thetaSketch...) are numeric measures.
        return AttributeType.NUMBER
    return AttributeType.STRING


class DruidTransport(Transport):
    """
    Transport for the columnar real-time store, speaking the broker's HTTP API.

    Introspection strategies:
        segment-metadata-fallback: segmentMetadata query, falling back to the
            datasource GET endpoint when the query fails.
        segment-metadata-only: segmentMetadata query only.
        datasource-get: the datasource GET endpoint only.
    """

    engine_type = "druid"

    def __init__(self, host: Optional[str], *args: Any, client: Optional[httpx.Client] = None, **kwargs: Any):
        super().__init__(host, *args, **kwargs)
        self.introspection_strategy = self.introspection_strategy or DEFAULT_STRATEGY
        self._client = client or httpx.Client(base_url=self.base_url, timeout=self.timeout / 1000)

    @property
    def base_url(self) -> str:
        host = self.host or "localhost:8082"
        if host.startswith(("http://", "https://")):
            return host
        return f"http://{host}"

    # Answers about one datasource; auth and throttling failures hit every source.
    SOURCE_STATUS_CODES = (400, 404)

    @classmethod
    def is_source_error(cls, exc: BaseException) -> bool:
        if isinstance(exc, httpx.HTTPStatusError):
            return exc.response.status_code in cls.SOURCE_STATUS_CODES
        return super().is_source_error(exc)

    def _get_json(self, path: str) -> Any:
        response = self._client.get(path)
        response.raise_for_status()
        return response.json()

    def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        response = self._client.post(path, json=payload)
        response.raise_for_status()
        return response.json()

    def _send(self, query: Any) -> Rows:
        if not isinstance(query, dict):
            raise TransportError(f"druid queries must be JSON objects, got {type(query).__name__}")
        result = self._post_json("/druid/v2/", query)
        return result if isinstance(result, list) else [result]

    def _fetch_version(self) -> str:
        status = self._get_json("/status")
        version = status.get("version") if isinstance(status, dict) else None
        if not version:
            raise TransportError(f"{self} /status did not report a version", ErrorCode.VERSION_DETECTION_FAILED)
        return str(version)

    def _fetch_source_list(self) -> List[str]:
        sources = self._get_json("/druid/v2/datasources")
        if not isinstance(sources, list):
            raise TransportError(f"{self} returned a malformed datasource list", ErrorCode.SOURCE_LIST_FAILED)
        return [str(s) for s in sources]

    def _introspect(self, source: str) -> SourceSchema:
        strategy = self.introspection_strategy
        if strategy == "datasource-get":
            return self._introspect_via_datasource_get(source)

        try:
            return self._introspect_via_segment_metadata(source)
        except (httpx.HTTPError, TransportError) as e:
            if strategy != "segment-metadata-fallback":
                raise
            logger.warning(
                f"segmentMetadata introspection of '{source}' on {self} failed ({e}); "
                f"falling back to datasource GET",
                extra={"source": source},
            )
            return self._introspect_via_datasource_get(source)

    def _introspect_via_segment_metadata(self, source: str) -> SourceSchema:
        query = {
            "queryType": "segmentMetadata",
            "dataSource": source,
            "intervals": [ETERNITY_INTERVAL],
            "merge": True,
            "analysisTypes": ["aggregators"],
            "lenientAggregatorMerge": True,
        }
        result = self._post_json("/druid/v2/", query)
        if not isinstance(result, list) or not result:
            raise TransportError(f"no segments found for '{source}'", ErrorCode.INTROSPECTION_FAILED, source=source)

        columns = result[0].get("columns") or {}
        attributes: List[Attribute] = []
        time_attribute = None
        for name, info in columns.items():
            native_type = (info or {}).get("type")
            if name == TIME_COLUMN:
                time_attribute = name
                attributes.append(Attribute(name=name, type=AttributeType.TIME, native_type=native_type))
                continue
            attributes.append(Attribute(name=name, type=_attribute_type(native_type), native_type=native_type))

        return SourceSchema(
            source=source,
            engine=self.engine_type,
            attributes=attributes,
            time_attribute=time_attribute,
        )

    def _introspect_via_datasource_get(self, source: str) -> SourceSchema:
        info = self._get_json(f"/druid/v2/datasources/{source}")
        if not isinstance(info, dict):
            raise TransportError(f"malformed datasource info for '{source}'", ErrorCode.INTROSPECTION_FAILED, source=source)

        attributes = [Attribute(name=TIME_COLUMN, type=AttributeType.TIME, native_type="LONG")]
        attributes.extend(
            Attribute(name=d, type=AttributeType.STRING, native_type="STRING")
            for d in info.get("dimensions", [])
        )
        attributes.extend(
            Attribute(name=m, type=AttributeType.NUMBER)
            for m in info.get("metrics", [])
        )
        return SourceSchema(
            source=source,
            engine=self.engine_type,
            attributes=attributes,
            time_attribute=TIME_COLUMN,
        )

    def _close(self) -> None:
        self._client.close()
