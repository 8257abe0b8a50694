from typing import Dict, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

# =============================================================================
# OData Query Builders
# =============================================================================

def escape_odata_string(value: str) -> str:
    """
    Escape a value for use inside an OData string literal.

    OData string literals are single-quoted; an embedded quote is written twice.

    Args:
        value: Raw value (e.g., "'s-Hertogenbosch")

    Returns:
        Escaped value (e.g., "''s-Hertogenbosch")
    """
    return value.replace("'", "''")


def split_search_terms(query: str) -> List[str]:
    """
    Normalize a raw search query into lower-cased, non-empty terms.

    Args:
        query: Free text as typed by the user (e.g., "  Bevolking  Gemeente ")

    Returns:
        Search terms (e.g., ["bevolking", "gemeente"]); empty for blank input
    """
    return [term.lower() for term in query.split() if term]


def build_search_filter(terms: Sequence[str]) -> Optional[str]:
    """
    Build the keyword $filter for the dataset index.

    Every term must appear in the title or the description (case-insensitive).

    Args:
        terms: Search terms from split_search_terms()

    Returns:
        Filter expression, or None when there are no terms and no query is possible
    """
    if not terms:
        return None

    clauses = []
    for term in terms:
        escaped = escape_odata_string(term)
        clauses.append(
            f"(contains(tolower(Title),'{escaped}') or contains(tolower(Description),'{escaped}'))"
        )
    return " and ".join(clauses)


def build_equality_filter(pairs: Mapping[str, str]) -> Optional[str]:
    """
    Build an `eq` $filter from key/value pairs, in mapping order.

    Args:
        pairs: Column key to value (e.g., {"Perioden": "2023JJ00", "RegioS": "GM0363"})

    Returns:
        Filter expression (e.g., "Perioden eq '2023JJ00' and RegioS eq 'GM0363'"),
        or None for an empty mapping
    """
    clauses = [f"{key} eq '{escape_odata_string(value)}'" for key, value in pairs.items()]
    return " and ".join(clauses) if clauses else None


def build_identifier_filter(table_id: str) -> str:
    """Filter matching a single table in the OData Catalog (identifier URL-encoded)."""
    return build_equality_filter({"Identifier": quote(table_id, safe="")})


def build_select_clause(columns: Optional[Sequence[str]]) -> Optional[str]:
    """Comma-joined $select value, or None when no columns are requested."""
    if not columns:
        return None
    return ",".join(columns)


def build_query_params(
    filter_expr: Optional[str] = None,
    select: Optional[str] = None,
    top: Optional[int] = None,
    order_by: Optional[str] = None,
) -> Dict[str, str]:
    """
    Assemble OData query parameters, leaving out clauses that were not given.

    The response format is always JSON.
    """
    params = {}
    if filter_expr:
        params["$filter"] = filter_expr
    if select:
        params["$select"] = select
    if top is not None:
        params["$top"] = str(top)
    params["$format"] = "json"
    if order_by:
        params["$orderby"] = order_by
    return params


def build_url(base: str, params: Mapping[str, str]) -> str:
    """
    Attach query parameters to a URL.

    Parameters already present on `base` are replaced by those in `params`,
    which lets CBS-provided URLs (like a dimension's CodesUrl) be narrowed.

    Args:
        base: Endpoint URL, possibly with its own query string
        params: Parameters from build_query_params()

    Returns:
        Complete, percent-encoded URL
    """
    return str(httpx.URL(base).copy_merge_params(dict(params)))


def truncate_description(description: Optional[str], max_length: int) -> Optional[str]:
    """
    Shorten long descriptions to `max_length` characters followed by "...".

    Args:
        description: Description text or None
        max_length: Longest description returned unchanged

    Returns:
        The description, truncated when longer than max_length
    """
    if description is None:
        return None
    if len(description) > max_length:
        return f"{description[:max_length]}..."
    return description
