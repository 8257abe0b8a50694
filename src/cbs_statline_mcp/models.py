from dataclasses import dataclass
from typing import Annotated, Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .config import DEFAULT_MAX_RESULTS, DEFAULT_MAX_ROWS

# =============================================================================
# CBS API Response Models
# =============================================================================

class CbsRecord(BaseModel):
    """
    Base for records returned by the CBS OData endpoints.

    CBS uses PascalCase field names; models expose snake_case attributes and
    read the remote names through aliases. Unknown fields are kept.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class DatasetRef(CbsRecord):
    """One hit from the v1 /Datasets search; only the identifier is requested."""
    identifier: str = Field(alias="Identifier")


class DatasetSearchResponse(BaseModel):
    value: List[DatasetRef]


class CatalogTable(CbsRecord):
    """
    Table entry from the OData Catalog.

    The catalog carries richer descriptive metadata than the v1 dataset index
    and is used to enrich search hits.
    """
    identifier: str = Field(alias="Identifier")
    title: Optional[str] = Field(None, alias="Title")
    summary: Optional[str] = Field(None, alias="Summary")
    short_description: Optional[str] = Field(None, alias="ShortDescription")  # fallback for summary
    output_status: Optional[str] = Field(None, alias="OutputStatus")  # e.g. "Regulier", "Gediscontinueerd"
    frequency: Optional[str] = Field(None, alias="Frequency")
    period: Optional[str] = Field(None, alias="Period")
    metadata_modified: Optional[str] = Field(None, alias="MetaDataModified")
    modified: Optional[str] = Field(None, alias="Modified")


class CatalogTableResponse(BaseModel):
    """Catalog lookup by identifier: anything but exactly one entry is a failure."""
    value: List[CatalogTable] = Field(min_length=1, max_length=1)


class RawTableProperties(CbsRecord):
    """Flat object returned by /{table}/Properties."""
    title: Optional[str] = Field(None, alias="Title")
    description: Optional[str] = Field(None, alias="Description")
    short_description: Optional[str] = Field(None, alias="ShortDescription")
    summary: Optional[str] = Field(None, alias="Summary")
    modified: Optional[str] = Field(None, alias="Modified")
    status: Optional[str] = Field(None, alias="Status")
    frequency: Optional[str] = Field(None, alias="Frequency")


class Dimension(CbsRecord):
    identifier: str = Field(alias="Identifier")
    title: str = Field(alias="Title")
    description: Optional[str] = Field(None, alias="Description")
    kind: Optional[str] = Field(None, alias="Kind")  # Dimension, TimeDimension, GeoDimension, Measure, Topic
    position: Optional[int] = Field(None, alias="Position")
    unit: Optional[str] = Field(None, alias="Unit")
    decimals: Optional[int] = Field(None, alias="Decimals")
    codes_url: Optional[str] = Field(None, alias="CodesUrl")
    groups_url: Optional[str] = Field(None, alias="GroupsUrl")


class DimensionsResponse(BaseModel):
    value: List[Dimension]


class Code(CbsRecord):
    identifier: str = Field(alias="Identifier")
    title: str = Field(alias="Title")
    description: Optional[str] = Field(None, alias="Description")


class CodesResponse(BaseModel):
    value: List[Code]


class DataProperty(CbsRecord):
    """Item from the ODataApi /DataProperties listing; Type "Topic" marks a measure."""
    key: str = Field(alias="Key")
    title: str = Field(alias="Title")
    description: Optional[str] = Field(None, alias="Description")
    type: str = Field(alias="Type")
    unit: Optional[str] = Field(None, alias="Unit")
    decimals: Optional[int] = Field(None, alias="Decimals")
    datatype: Optional[str] = Field(None, alias="Datatype")


class DataPropertiesResponse(BaseModel):
    value: List[DataProperty]


# Observation columns depend on the table and the $select, so rows stay free-form
ObservationValue = Union[str, int, float, bool, None]
ObservationRecord = Dict[str, ObservationValue]


class ObservationsResponse(BaseModel):
    value: List[ObservationRecord]


# =============================================================================
# Tool Input Models
# =============================================================================

class FindTablesInput(BaseModel):
    """Input for find_statline_tables. An empty query is valid and yields no results."""

    query: str = Field(..., description="Keywords to search for CBS Statline datasets (e.g. 'bevolking', 'inflatie')")
    max_results: int = Field(DEFAULT_MAX_RESULTS, gt=0, description="Maximum number of datasets to return")

    model_config = ConfigDict(extra="forbid")


class TableMetadataInput(BaseModel):
    """Input for get_statline_table_metadata."""

    table_id: str = Field(..., min_length=1, description="CBS Statline dataset identifier (e.g. '85644NED')")

    model_config = ConfigDict(extra="forbid")


class QueryDataInput(BaseModel):
    """Input for query_statline_data."""

    table_id: str = Field(..., min_length=1, description="CBS Statline dataset identifier (e.g. '85644NED')")
    filters: Dict[str, str] = Field(..., description="Dimension key to code value, e.g. {'Perioden': '2023JJ00'}")
    select: Optional[List[Annotated[str, Field(min_length=1)]]] = Field(
        None, description="Columns to return; all columns when omitted"
    )
    max_rows: int = Field(DEFAULT_MAX_ROWS, gt=0, description="Maximum number of observations to return")

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# Tool Output Models
# =============================================================================

class TableSummary(BaseModel):
    """Search hit enriched with catalog metadata."""
    id: str  # e.g. '83625NED'
    title: str
    summary: Optional[str] = None
    status: Optional[str] = None  # publication status, check before querying data
    frequency: Optional[str] = None
    period: Optional[str] = None  # e.g. '2010 t/m 2024'
    modified: Optional[str] = None  # metadata modification date as sent by CBS


class SampleCode(BaseModel):
    id: str  # usable as a value in query_statline_data filters
    title: str


class DimensionInfo(BaseModel):
    key: str  # usable as a key in query_statline_data filters
    title: str
    description: Optional[str] = None
    sample_codes: Optional[List[SampleCode]] = None


class MeasureInfo(BaseModel):
    key: str  # usable in query_statline_data select
    title: str
    description: Optional[str] = None
    unit: Optional[str] = None
    decimals: Optional[int] = None


class TableMetadata(BaseModel):
    """
    Metadata document for one table.

    Dimensions and measures keep the order in which CBS returned them.
    """
    table_id: str
    properties: Dict[str, str]
    dimensions: List[DimensionInfo]
    measures: List[MeasureInfo]


TABLE_SUMMARIES = TypeAdapter(List[TableSummary])
OBSERVATIONS = TypeAdapter(List[ObservationRecord])

# =============================================================================
# Decoding
# =============================================================================

T = TypeVar("T")
Schema = Union[Type[BaseModel], TypeAdapter]


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """Outcome of validating raw data against a schema: a value or the validation error."""
    value: Optional[T] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def decode(schema: Schema, raw: Any) -> DecodeResult:
    """
    Validate raw (JSON-compatible) data against a model class or TypeAdapter.

    Args:
        schema: Pydantic model class or TypeAdapter describing the expected shape
        raw: Parsed JSON or an assembled Python structure

    Returns:
        DecodeResult holding either the validated value or the ValidationError
    """
    try:
        if isinstance(schema, TypeAdapter):
            value = schema.validate_python(raw)
        else:
            value = schema.model_validate(raw)
    except ValidationError as e:
        return DecodeResult(error=e)
    return DecodeResult(value=value)
