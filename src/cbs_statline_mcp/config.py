import os
from typing import Optional

# =============================================================================
# Environment
# =============================================================================

ENVIRONMENT = os.getenv("ENVIRONMENT", "production")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def _base_url(env_var: str, default: str) -> str:
    """Read a base URL from the environment, always ending in a slash."""
    value = os.getenv(env_var) or default
    return value if value.endswith("/") else f"{value}/"


def _http_timeout(env_var: str) -> Optional[float]:
    """
    Read the HTTP timeout in seconds.

    An unset or empty variable means no timeout: a slow CBS response stalls only
    the tool call waiting on it.
    """
    value = os.getenv(env_var, "").strip()
    if not value:
        return None
    return float(value)


# =============================================================================
# CBS Statline Endpoints
# =============================================================================

# OData v1 API: dataset search, Properties, Dimensions and Observations
ODATA_BASE_URL = _base_url("CBS_ODATA_BASE_URL", "https://datasets.cbs.nl/odata/v1/CBS/")

# OData Catalog: richer per-table metadata used to enrich search hits
CATALOG_TABLES_URL = os.getenv("CBS_CATALOG_TABLES_URL") or "https://opendata.cbs.nl/ODataCatalog/Tables"

# Legacy ODataApi: DataProperties lives on a different base than the v1 API
DATA_PROPERTIES_BASE_URL = _base_url("CBS_DATA_PROPERTIES_BASE_URL", "https://opendata.cbs.nl/ODataApi/OData/")

HTTP_TIMEOUT = _http_timeout("CBS_HTTP_TIMEOUT")

# =============================================================================
# Query Limits
# =============================================================================

DEFAULT_MAX_RESULTS = 10
DEFAULT_MAX_ROWS = 100
MAX_SAMPLE_CODES = 5
MAX_DESCRIPTION_LENGTH = 250
