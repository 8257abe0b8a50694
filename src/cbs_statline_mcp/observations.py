import logging
from typing import List, Mapping, Optional, Sequence

from .config import DEFAULT_MAX_ROWS, ODATA_BASE_URL
from .models import OBSERVATIONS, ObservationRecord, ObservationsResponse, decode
from .odata_client import StatlineGateway
from .utils import build_equality_filter, build_query_params, build_select_clause, build_url

logger = logging.getLogger(__name__)


def build_observations_url(
    table_id: str,
    filters: Mapping[str, str],
    select: Optional[Sequence[str]] = None,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> str:
    """
    URL of the /Observations request for a table.

    Without filters the request is unfiltered but still capped at max_rows.
    """
    params = build_query_params(
        filter_expr=build_equality_filter(filters),
        select=build_select_clause(select),
        top=max_rows,
    )
    return build_url(f"{ODATA_BASE_URL}{table_id}/Observations", params)


async def query_observations(
    gateway: StatlineGateway,
    table_id: str,
    filters: Mapping[str, str],
    select: Optional[Sequence[str]] = None,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> Optional[List[ObservationRecord]]:
    """
    Fetch observation rows of a table.

    Args:
        gateway: Gateway used for the request
        table_id: CBS table identifier
        filters: Dimension key to code (e.g., {"Perioden": "2023JJ00"}); may be empty
        select: Columns to return, all columns when omitted
        max_rows: Row cap

    Returns:
        Rows as returned by CBS (an empty list is a valid answer), or None on failure
    """
    context = f"query_observations-{table_id}"

    url = build_observations_url(table_id, filters, select, max_rows)
    data = await gateway.fetch(url, ObservationsResponse, context)

    if data is None:
        logger.warning(f"[{context}] Observations fetch failed.")
        return None

    result = decode(OBSERVATIONS, data.value)
    if not result.ok:
        logger.error(f"[{context}] Internal error: observations failed validation: {result.error}")
        return None

    logger.debug(f"[{context}] Retrieved {len(result.value)} observations.")
    return result.value
