import asyncio
import logging
from typing import Dict, List, Optional

import httpx

from .config import DATA_PROPERTIES_BASE_URL, MAX_DESCRIPTION_LENGTH, MAX_SAMPLE_CODES, ODATA_BASE_URL
from .models import (
    Code,
    CodesResponse,
    DataPropertiesResponse,
    DataProperty,
    Dimension,
    DimensionsResponse,
    RawTableProperties,
    TableMetadata,
    decode,
)
from .odata_client import StatlineGateway
from .utils import build_query_params, build_url, truncate_description

logger = logging.getLogger(__name__)

# Kinds that describe measures rather than filterable dimensions
NON_FILTER_KINDS = ("Measure", "Topic")

MEASURE_TYPE = "Topic"

SAMPLE_CODE_FIELDS = "Identifier,Title,Description"

# Properties copied into the metadata document, in output order
PROPERTY_FIELDS = (
    ("Title", "title"),
    ("Description", "description"),
    ("Modified", "modified"),
    ("Summary", "summary"),
    ("ShortDescription", "short_description"),
    ("Status", "status"),
    ("Frequency", "frequency"),
)

# =============================================================================
# CBS Metadata Queries
# =============================================================================

async def fetch_table_properties(gateway: StatlineGateway, table_id: str) -> Optional[Dict[str, str]]:
    """
    Fetch the /Properties of a table and keep the descriptive fields.

    Only fields CBS actually returned end up in the result; there are no
    placeholders for missing ones.

    Returns:
        Property name to value (e.g., {"Title": "Bevolking; kerncijfers", "Status": "Regulier"}),
        or None on failure
    """
    context = f"metadata.properties-{table_id}"
    url = build_url(f"{ODATA_BASE_URL}{table_id}/Properties", build_query_params())

    raw = await gateway.fetch(url, RawTableProperties, context)
    if raw is None:
        logger.warning(f"[{context}] Properties fetch returned no data.")
        return None

    properties = {}
    for remote_name, attribute in PROPERTY_FIELDS:
        value = getattr(raw, attribute)
        if value is not None:
            properties[remote_name] = value

    logger.debug(f"[{context}] Extracted {len(properties)} properties.")
    return properties


async def fetch_table_dimensions(gateway: StatlineGateway, table_id: str) -> Optional[List[Dimension]]:
    """Fetch the /Dimensions of a table (carries the CodesUrl used for sample codes)."""
    context = f"metadata.dimensions-{table_id}"
    url = build_url(f"{ODATA_BASE_URL}{table_id}/Dimensions", build_query_params())

    data = await gateway.fetch(url, DimensionsResponse, context)
    if data is None:
        logger.warning(f"[{context}] Dimensions fetch returned no data.")
        return None
    return data.value


async def fetch_data_properties(gateway: StatlineGateway, table_id: str) -> Optional[List[DataProperty]]:
    """
    Fetch the /DataProperties of a table from the ODataApi.

    This listing is the source of the table's measures (Type "Topic").
    """
    context = f"metadata.dataProperties-{table_id}"
    url = build_url(f"{DATA_PROPERTIES_BASE_URL}{table_id}/DataProperties", build_query_params())

    data = await gateway.fetch(url, DataPropertiesResponse, context)
    if data is None:
        logger.warning(f"[{context}] DataProperties fetch returned no data.")
        return None

    logger.debug(f"[{context}] Retrieved {len(data.value)} data properties.")
    return data.value


async def fetch_sample_codes(
    gateway: StatlineGateway,
    table_id: str,
    dimension_id: str,
    codes_url: str,
    max_codes: int = MAX_SAMPLE_CODES,
) -> Optional[List[Code]]:
    """
    Fetch the first few codes of a dimension.

    Args:
        gateway: Gateway used for the request
        table_id: Table the dimension belongs to (for logging)
        dimension_id: Dimension identifier (for logging)
        codes_url: CodesUrl from the /Dimensions listing
        max_codes: Number of codes to fetch

    Returns:
        Codes in CBS order, or None on failure
    """
    context = f"metadata.sampleCodes-{table_id}-{dimension_id}"
    params = build_query_params(select=SAMPLE_CODE_FIELDS, top=max_codes)

    try:
        url = build_url(codes_url, params)
    except (httpx.InvalidURL, ValueError) as e:
        logger.error(f"[{context}] Invalid CodesUrl {codes_url!r}: {e}")
        return None

    data = await gateway.fetch(url, CodesResponse, context)
    if data is None:
        return None
    return data.value


# =============================================================================
# Metadata Assembly
# =============================================================================

def wants_sample_codes(dimension: Dimension) -> bool:
    """Sample codes are fetched for filterable dimensions that advertise a CodesUrl."""
    return bool(dimension.codes_url) and dimension.kind not in NON_FILTER_KINDS


async def describe_dimension(gateway: StatlineGateway, table_id: str, dimension: Dimension) -> dict:
    """Build the output entry of one dimension, with sample codes where they apply."""
    entry = {
        "key": dimension.identifier,
        "title": dimension.title,
        "description": truncate_description(dimension.description, MAX_DESCRIPTION_LENGTH),
    }

    if wants_sample_codes(dimension):
        codes = await fetch_sample_codes(gateway, table_id, dimension.identifier, dimension.codes_url)
        if codes is None:
            logger.warning(
                f"[metadata.dimensions-{table_id}] No sample codes retrieved for dimension "
                f"{dimension.identifier} using URL {dimension.codes_url}."
            )
        else:
            entry["sample_codes"] = [{"id": code.identifier, "title": code.title} for code in codes]

    return entry


def describe_measures(data_properties: List[DataProperty]) -> List[dict]:
    """Measures are the data properties of type "Topic"."""
    return [
        {
            "key": prop.key,
            "title": prop.title,
            "description": truncate_description(prop.description, MAX_DESCRIPTION_LENGTH),
            "unit": prop.unit,
            "decimals": prop.decimals,
        }
        for prop in data_properties
        if prop.type == MEASURE_TYPE
    ]


async def get_table_metadata(gateway: StatlineGateway, table_id: str) -> Optional[TableMetadata]:
    """
    Collect properties, dimensions (with sample codes) and measures of a table.

    Properties, dimensions and data properties are fetched concurrently. The
    first two are required; without data properties the measures list is empty.
    Sample codes are fetched concurrently per dimension and are optional.

    Args:
        gateway: Gateway used for all requests
        table_id: CBS table identifier (e.g., "83625NED")

    Returns:
        Metadata document, or None when essential metadata could not be loaded
    """
    context = f"get_table_metadata-{table_id}"

    properties, dimensions, data_properties = await asyncio.gather(
        fetch_table_properties(gateway, table_id),
        fetch_table_dimensions(gateway, table_id),
        fetch_data_properties(gateway, table_id),
    )

    if properties is None or dimensions is None:
        logger.error(f"[{context}] Failed to retrieve essential base metadata (properties/dimensions).")
        return None

    logger.info(f"[{context}] Retrieved properties with Status: {properties.get('Status', 'N/A')}")

    dimension_entries = await asyncio.gather(
        *(describe_dimension(gateway, table_id, dimension) for dimension in dimensions)
    )

    if data_properties is None:
        logger.warning(f"[{context}] Failed to retrieve DataProperties, measures list will be empty.")
        measures = []
    else:
        measures = describe_measures(data_properties)
        logger.info(f"[{context}] Extracted {len(measures)} measures from DataProperties.")

    result = decode(
        TableMetadata,
        {
            "table_id": table_id,
            "properties": properties,
            "dimensions": list(dimension_entries),
            "measures": measures,
        },
    )
    if not result.ok:
        logger.error(f"[{context}] Internal error: metadata document failed validation: {result.error}")
        return None

    return result.value
