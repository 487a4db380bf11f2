import json

import httpx
import pytest

from cluster_catalog.common.errors import ErrorCode, TransportError
from cluster_catalog.common.resilience import create_breaker
from cluster_catalog.sources.models import AttributeType
from cluster_catalog.transports.druid import DruidTransport

SEGMENT_METADATA = [
    {
        "id": "merged",
        "columns": {
            "__time": {"type": "LONG"},
            "page": {"type": "STRING"},
            "added": {"type": "LONG"},
            "delta": {"type": "DOUBLE"},
            "unique_users": {"type": "hyperUnique"},
        },
    }
]

DATASOURCE_INFO = {"dimensions": ["page", "user"], "metrics": ["count", "added"]}


class FakeBroker:
    """Routes broker requests to canned responses and records them."""

    def __init__(self, segment_metadata_status=200):
        self.segment_metadata_status = segment_metadata_status
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        path = request.url.path
        if request.method == "GET" and path == "/status":
            return httpx.Response(200, json={"version": "0.22.1"})
        if request.method == "GET" and path == "/druid/v2/datasources":
            return httpx.Response(200, json=["wikipedia", "koalas"])
        if request.method == "GET" and path.startswith("/druid/v2/datasources/"):
            return httpx.Response(200, json=DATASOURCE_INFO)
        if request.method == "POST" and path == "/druid/v2/":
            body = json.loads(request.content)
            if body.get("queryType") == "segmentMetadata":
                if self.segment_metadata_status != 200:
                    return httpx.Response(self.segment_metadata_status, json={"error": "Unknown exception"})
                return httpx.Response(200, json=SEGMENT_METADATA)
            return httpx.Response(200, json=[{"timestamp": "2024-01-01T00:00:00Z", "result": {"count": 3}}])
        return httpx.Response(404)


def _transport(broker, strategy=None):
    client = httpx.Client(transport=httpx.MockTransport(broker), base_url="http://broker:8082")
    return DruidTransport(
        "broker:8082",
        client=client,
        cluster_name="wiki",
        introspection_strategy=strategy,
    )


@pytest.mark.asyncio
async def test_version_and_source_list():
    # Arrange
    transport = _transport(FakeBroker())

    # Act
    version = await transport.get_version()
    sources = await transport.get_source_list()

    # Assert
    assert version == "0.22.1"
    assert sources == ["wikipedia", "koalas"]


@pytest.mark.asyncio
async def test_segment_metadata_introspection_normalizes_types():
    # Arrange
    broker = FakeBroker()
    transport = _transport(broker)

    # Act
    schema = await transport.introspect("wikipedia")

    # Assert
    assert schema.engine == "druid"
    assert schema.time_attribute == "__time"
    assert schema.get_attribute("__time").type == AttributeType.TIME
    assert schema.get_attribute("page").type == AttributeType.STRING
    assert schema.get_attribute("added").type == AttributeType.NUMBER
    assert schema.get_attribute("delta").type == AttributeType.NUMBER
    assert schema.get_attribute("unique_users").type == AttributeType.NUMBER
    assert schema.get_attribute("unique_users").native_type == "hyperUnique"
    assert ("GET", "/druid/v2/datasources/wikipedia") not in broker.requests


@pytest.mark.asyncio
async def test_fallback_strategy_uses_datasource_get_when_query_fails():
    # Validates the default strategy because older brokers reject segmentMetadata.
    # Arrange
    broker = FakeBroker(segment_metadata_status=500)
    transport = _transport(broker)

    # Act
    schema = await transport.introspect("wikipedia")

    # Assert
    assert schema.attribute_names() == ["__time", "page", "user", "count", "added"]
    assert schema.get_attribute("user").type == AttributeType.STRING
    assert schema.get_attribute("count").type == AttributeType.NUMBER
    assert ("GET", "/druid/v2/datasources/wikipedia") in broker.requests


@pytest.mark.asyncio
async def test_segment_metadata_only_never_falls_back():
    # Arrange
    broker = FakeBroker(segment_metadata_status=500)
    transport = _transport(broker, strategy="segment-metadata-only")

    # Act
    with pytest.raises(TransportError) as exc_info:
        await transport.introspect("wikipedia")

    # Assert
    assert exc_info.value.error_code == ErrorCode.TRANSPORT_FAILURE
    assert exc_info.value.cluster == "wiki"
    assert ("GET", "/druid/v2/datasources/wikipedia") not in broker.requests


@pytest.mark.asyncio
async def test_datasource_get_strategy_skips_the_query():
    # Arrange
    broker = FakeBroker()
    transport = _transport(broker, strategy="datasource-get")

    # Act
    schema = await transport.introspect("koalas")

    # Assert
    assert schema.time_attribute == "__time"
    assert all(method == "GET" for method, _ in broker.requests)


@pytest.mark.asyncio
async def test_send_posts_native_queries():
    # Arrange
    transport = _transport(FakeBroker())

    # Act
    rows = await transport.send({"queryType": "timeseries", "dataSource": "wikipedia"})

    # Assert
    assert rows[0]["result"] == {"count": 3}


@pytest.mark.asyncio
async def test_send_rejects_non_json_queries():
    transport = _transport(FakeBroker())

    with pytest.raises(TransportError):
        await transport.send("SELECT * FROM wikipedia")


@pytest.mark.asyncio
async def test_close_closes_http_client():
    # Arrange
    client = httpx.Client(transport=httpx.MockTransport(FakeBroker()), base_url="http://broker")
    transport = DruidTransport("broker", client=client)

    # Act
    await transport.close()

    # Assert
    assert client.is_closed


def test_base_url_defaults_to_http():
    assert DruidTransport("broker:8082").base_url == "http://broker:8082"
    assert DruidTransport("https://broker").base_url == "https://broker"
    assert DruidTransport("broker").introspection_strategy == "segment-metadata-fallback"


@pytest.mark.asyncio
async def test_unknown_datasource_does_not_count_against_the_breaker():
    # Validates breaker scoping because a 404 for one datasource means the broker is up.
    # Arrange
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)), base_url="http://broker:8082")
    breaker = create_breaker("wiki-transport", fail_max=2, reset_timeout=60, exclude=[DruidTransport.is_source_error])
    transport = DruidTransport("broker:8082", client=client, cluster_name="wiki", breaker=breaker)

    # Act
    for _ in range(3):
        with pytest.raises(TransportError) as exc_info:
            await transport.introspect("missing")

    # Assert
    assert exc_info.value.error_code == ErrorCode.TRANSPORT_FAILURE
    assert exc_info.value.source == "missing"
    assert breaker.current_state == "closed"


@pytest.mark.parametrize("status, expected", [(400, True), (404, True), (401, False), (500, False), (503, False)])
def test_only_datasource_level_statuses_are_source_errors(status, expected):
    request = httpx.Request("GET", "http://broker:8082/druid/v2/datasources/wiki")
    response = httpx.Response(status, request=request)
    error = httpx.HTTPStatusError("failed", request=request, response=response)

    assert DruidTransport.is_source_error(error) is expected
    assert DruidTransport.is_source_error(httpx.ConnectError("refused")) is False
