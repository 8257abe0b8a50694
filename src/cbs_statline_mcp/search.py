import logging
from typing import List, Optional

from .config import CATALOG_TABLES_URL, ODATA_BASE_URL
from .models import (
    TABLE_SUMMARIES,
    CatalogTable,
    CatalogTableResponse,
    DatasetSearchResponse,
    TableSummary,
    decode,
)
from .odata_client import StatlineGateway
from .utils import (
    build_identifier_filter,
    build_query_params,
    build_search_filter,
    build_url,
    split_search_terms,
)

logger = logging.getLogger(__name__)

DATASETS_ENDPOINT = f"{ODATA_BASE_URL}Datasets"

CATALOG_SELECT_FIELDS = (
    "Identifier,Title,Summary,ShortDescription,OutputStatus,Frequency,Period,MetaDataModified,Modified"
)

# =============================================================================
# Catalog Enrichment
# =============================================================================

async def fetch_catalog_table(gateway: StatlineGateway, table_id: str, context: str) -> Optional[CatalogTable]:
    """
    Fetch the OData Catalog entry of one table.

    Args:
        gateway: Gateway used for the request
        table_id: Identifier returned by the dataset search
        context: Logging context prefix

    Returns:
        The catalog entry, or None when the lookup failed or did not match exactly one table
    """
    params = build_query_params(
        filter_expr=build_identifier_filter(table_id),
        select=CATALOG_SELECT_FIELDS,
    )
    catalog_context = f"{context}.catalogFetch-{table_id}"
    data = await gateway.fetch(build_url(CATALOG_TABLES_URL, params), CatalogTableResponse, catalog_context)

    if data is None:
        logger.warning(
            f"[{catalog_context}] Did not find unique entry for ID {table_id} in catalog, or fetch/parse failed."
        )
        return None
    return data.value[0]


def summarize_catalog_table(table_id: str, entry: CatalogTable) -> dict:
    """
    Map a catalog entry onto the search result shape.

    Summary falls back to the short description, the metadata modification date
    is preferred over the general one, and a missing title is replaced by a
    placeholder naming the table.
    """
    return {
        "id": entry.identifier,
        "title": entry.title if entry.title is not None else f"Title missing for {table_id}",
        "summary": entry.summary if entry.summary is not None else entry.short_description,
        "status": entry.output_status,
        "frequency": entry.frequency,
        "period": entry.period,
        "modified": entry.metadata_modified if entry.metadata_modified is not None else entry.modified,
    }


# =============================================================================
# Search Pipeline
# =============================================================================

async def find_tables(gateway: StatlineGateway, query: str, max_results: int) -> Optional[List[TableSummary]]:
    """
    Search CBS Statline tables by keyword and enrich the hits with catalog metadata.

    The v1 dataset index handles the keyword search (most recently modified
    first, identifiers only); each hit is then looked up in the OData Catalog,
    one at a time. Hits whose lookup fails are left out of the result.

    Args:
        gateway: Gateway used for all requests
        query: Free-text keywords
        max_results: Maximum number of candidate tables

    Returns:
        Enriched summaries in search order, [] when nothing matched, or None on failure
    """
    context = "find_tables"

    search_terms = split_search_terms(query)
    filter_expr = build_search_filter(search_terms)
    if filter_expr is None:
        logger.warning(f"[{context}] Empty search query after processing.")
        return []

    params = build_query_params(
        filter_expr=filter_expr,
        select="Identifier",
        top=max_results,
        order_by="Modified desc",
    )
    initial_data = await gateway.fetch(build_url(DATASETS_ENDPOINT, params), DatasetSearchResponse, f"{context}.initialSearch")

    if initial_data is None:
        logger.error(f"[{context}] Initial dataset search failed for query: '{query}'")
        return None

    if not initial_data.value:
        logger.info(f"[{context}] Initial search returned no results for query: '{query}'")
        return []

    candidate_ids = [item.identifier for item in initial_data.value]
    logger.debug(f"[{context}] Found {len(candidate_ids)} candidate IDs from initial search.")

    # Catalog lookups run one at a time, in search order
    enriched = []
    for table_id in candidate_ids:
        entry = await fetch_catalog_table(gateway, table_id, context)
        if entry is None:
            logger.warning(f"[{context}] Skipping table {table_id} as catalog metadata fetch failed.")
            continue
        enriched.append(summarize_catalog_table(table_id, entry))

    result = decode(TABLE_SUMMARIES, enriched)
    if not result.ok:
        logger.error(f"[{context}] Internal error: enriched output failed validation: {result.error}")
        return None

    logger.info(f"[{context}] Returning {len(result.value)} enriched results for query: '{query}'.")
    return result.value
