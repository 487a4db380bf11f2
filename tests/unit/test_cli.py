import pytest
from typer.testing import CliRunner

from cluster_catalog.catalog import Catalog
from cluster_catalog.cli.console import state_markup
from cluster_catalog.cli.main import app
from cluster_catalog.manager.cluster_manager import ClusterManager

runner = CliRunner()

CONFIG_YAML = """
clusters:
  - name: shop
    type: postgres
    host: db
    database: shop
    password: s3cret
    sourceListScan: auto
sources:
  - name: audit
    cluster: shop
    source: audit_log
    suppressIntrospection: true
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "clusters.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


def test_transports_lists_builtin_engines():
    result = runner.invoke(app, ["transports"])

    assert result.exit_code == 0
    assert "druid" in result.output
    assert "postgres" in result.output


def test_clusters_prints_config_without_secrets(config_file):
    # Act
    result = runner.invoke(app, ["clusters", "--config", str(config_file)])

    # Assert
    assert result.exit_code == 0
    assert "shop" in result.output
    assert "s3cret" not in result.output
    assert "\"suppressIntrospection\": true" in result.output


def test_missing_config_exits_with_error(tmp_path):
    result = runner.invoke(app, ["inspect", "--config", str(tmp_path / "nope.yaml")])

    assert result.exit_code == 1
    assert "not found" in result.output


def test_inspect_prints_sources_table(config_file, fake_transport_cls, monkeypatch):
    # Arrange
    transport = fake_transport_cls(sources=["orders"], schemas={"orders": ["id", "total"]})

    def catalog_with_fake_transport(config, **kwargs):
        def manager_factory(cluster, **manager_kwargs):
            return ClusterManager(cluster, transport=transport, **manager_kwargs)
        return Catalog(config, manager_factory=manager_factory, **kwargs)

    monkeypatch.setattr("cluster_catalog.cli.commands.inspect.Catalog", catalog_with_fake_transport)

    # Act
    result = runner.invoke(app, ["inspect", "--config", str(config_file), "--cluster", "shop"])

    # Assert
    assert result.exit_code == 0, result.output
    assert "orders" in result.output
    assert "introspected" in result.output
    assert "suppressed" in result.output
    assert transport.closed


def test_state_markup_uses_theme_styles():
    assert state_markup("failed") == "[state.failed]failed[/]"
    assert state_markup("suppressed") == "[state.suppressed]suppressed[/]"
    assert state_markup("unknown") == "[dim]unknown[/]"
