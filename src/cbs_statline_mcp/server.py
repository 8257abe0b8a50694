import logging
from typing import Annotated, Any, Dict, List, Optional, Type

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from mcp.types import ToolAnnotations
from pydantic import BaseModel, Field

from .config import DEFAULT_MAX_RESULTS, DEFAULT_MAX_ROWS
from .execution import handle_tool_execution
from .main import app_lifespan
from .metadata import get_table_metadata
from .models import FindTablesInput, QueryDataInput, TableMetadataInput, decode
from .observations import query_observations
from .odata_client import StatlineGateway
from .search import find_tables

logger = logging.getLogger(__name__)

FIND_TABLES_TOOL = "find_statline_tables"
TABLE_METADATA_TOOL = "get_statline_table_metadata"
QUERY_DATA_TOOL = "query_statline_data"

# =============================================================================
# FastMCP Server Initialization
# =============================================================================

mcp = FastMCP("CBS Statline MCP", lifespan=app_lifespan)


def validate_arguments(tool_name: str, schema: Type[BaseModel], arguments: Dict[str, Any]):
    """Check tool arguments against the tool's input model before any CBS request is made."""
    result = decode(schema, arguments)
    if not result.ok:
        logger.warning(f"[{tool_name}] Rejected arguments {arguments}: {result.error}")
        messages = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in result.error.errors()
        )
        raise ToolError(f"Invalid arguments for tool '{tool_name}': {messages}")
    return result.value


# =============================================================================
# CBS Statline Tools
# =============================================================================

@mcp.tool(
    name=FIND_TABLES_TOOL,
    annotations=ToolAnnotations(title="Find CBS Statline Datasets", readOnlyHint=True, openWorldHint=True),
)
async def find_statline_tables(
    query: Annotated[str, Field(description="Keywords to search for (e.g., 'bevolking', 'inflatie')")],
    max_results: Annotated[
        int, Field(gt=0, description="Maximum number of datasets to return (default: 10)")
    ] = DEFAULT_MAX_RESULTS,
) -> str:
    """
    Searches CBS Statline for datasets (tables) matching keywords, ordered by modification date
    (most recent first).

    Returns a list with table id, title, summary, status (e.g., 'Regulier', 'Gediscontinueerd'),
    frequency, data period and modification date. Use the 'id' with the other tools.
    Tip: check 'status' before deciding to query data for a table. Start with broad keywords.
    """
    params = validate_arguments(FIND_TABLES_TOOL, FindTablesInput, {"query": query, "max_results": max_results})

    async with StatlineGateway() as gateway:
        return await handle_tool_execution(
            FIND_TABLES_TOOL,
            params.model_dump(),
            lambda: find_tables(gateway, params.query, params.max_results),
        )


@mcp.tool(
    name=TABLE_METADATA_TOOL,
    annotations=ToolAnnotations(title="Get CBS Dataset Metadata", readOnlyHint=True, openWorldHint=True),
)
async def get_statline_table_metadata(
    table_id: Annotated[str, Field(min_length=1, description="CBS Statline dataset identifier (e.g., '85644NED')")],
) -> str:
    """
    Retrieves detailed metadata for a CBS Statline dataset.

    Returns:
    1. 'properties': table info like Title, Summary, Status, Frequency. Check 'Status' before querying data.
    2. 'dimensions': dimensions available for filtering. Each has a 'key' (e.g., 'RegioS', 'Perioden'),
       a 'title' and 'sample_codes' (like {id: 'PV23', title: 'Overijssel'}). Use dimension keys and
       code ids in the 'filters' of query_statline_data.
    3. 'measures': data columns of the table, each with 'key' (e.g., 'NietGenormaliseerdeProductie_2'),
       'title', 'unit', etc. Use these keys in the 'select' of query_statline_data.
    """
    params = validate_arguments(TABLE_METADATA_TOOL, TableMetadataInput, {"table_id": table_id})

    async with StatlineGateway() as gateway:
        return await handle_tool_execution(
            TABLE_METADATA_TOOL,
            params.model_dump(),
            lambda: get_table_metadata(gateway, params.table_id),
        )


@mcp.tool(
    name=QUERY_DATA_TOOL,
    annotations=ToolAnnotations(title="Query CBS Statline Data", readOnlyHint=True, openWorldHint=True),
)
async def query_statline_data(
    table_id: Annotated[str, Field(min_length=1, description="CBS Statline dataset identifier (e.g., '85644NED')")],
    filters: Annotated[
        Dict[str, str],
        Field(
            description=(
                "Filters as key-value pairs. Keys are dimension keys from the metadata, values are codes "
                "of that dimension. Example: {'RegioS': 'GM0363', 'Perioden': '2023JJ00'}"
            )
        ),
    ],
    select: Annotated[
        Optional[List[str]],
        Field(description="Columns (dimension or measure keys, e.g. 'Value') to return. All columns when omitted."),
    ] = None,
    max_rows: Annotated[
        int, Field(gt=0, description="Maximum number of rows to return (default: 100)")
    ] = DEFAULT_MAX_ROWS,
) -> str:
    """
    Retrieves data rows (observations) from a CBS Statline table using 'filters' and optionally 'select'.

    - 'filters': object of dimension 'key's and code 'id's from the metadata.
    - 'select': optional list of column keys to return.
    - TIP: to find the right measure code (often filtered under a 'Measure' key) and value column
      (often 'Value'), first call this tool with your dimension filters, no 'select' and a small
      'max_rows' (1-5), then inspect the returned keys and values.
    - Example final query: filters {"RegioS": "PV23", "Perioden": "2023JJ00", "Measure": "M002195"},
      select ["Value", "RegioS"].
    Returns an array of data records. Check the table 'Status' first; querying discontinued tables may fail.
    """
    params = validate_arguments(
        QUERY_DATA_TOOL,
        QueryDataInput,
        {"table_id": table_id, "filters": filters, "select": select, "max_rows": max_rows},
    )

    async with StatlineGateway() as gateway:
        return await handle_tool_execution(
            QUERY_DATA_TOOL,
            params.model_dump(),
            lambda: query_observations(gateway, params.table_id, params.filters, params.select, params.max_rows),
        )


# =============================================================================
# Server Entry Point
# =============================================================================

if __name__ == "__main__":
    mcp.run()
