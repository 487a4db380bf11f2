# cluster_catalog package

from .catalog import Catalog
from .manager import ChangeNotifier, ClusterManager, RefreshScheduler

# Also expose core models and errors
from .clusters.models import Cluster, EngineType, SourceListScan
from .clusters.config import CatalogFileConfig, load_catalog_config, parse_catalog_config
from .sources.models import Attribute, AttributeType, Failed, Introspected, ManagedExternal, SourceSchema, Unintrospected
from .common.errors import CatalogError, ConfigurationError, ErrorCode, IntrospectionFailure, TransportError
from .transports import Transport, build_transport
