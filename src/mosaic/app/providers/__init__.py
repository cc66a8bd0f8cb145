"""External service clients (NocoDB tables/forms, Grafana dashboards)."""

from .errors import ConsistencyTimeoutError, RemoteNotFoundError, RemoteServiceError
from .grafana_client import CreatedDashboard, GrafanaClient
from .nocodb_client import CreatedTable, NocodbClient, SharedForm

__all__ = [
    "ConsistencyTimeoutError",
    "CreatedDashboard",
    "CreatedTable",
    "GrafanaClient",
    "NocodbClient",
    "RemoteNotFoundError",
    "RemoteServiceError",
    "SharedForm",
]
