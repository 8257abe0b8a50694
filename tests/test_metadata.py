#!/usr/bin/env python3
"""
Tests for the table metadata aggregator.
"""

import asyncio

import httpx
import pytest

from cbs_statline_mcp.config import DATA_PROPERTIES_BASE_URL, ODATA_BASE_URL
from cbs_statline_mcp.metadata import get_table_metadata
from cbs_statline_mcp.models import TableMetadata

TABLE_ID = "83625NED"
CODES_BASE = f"{ODATA_BASE_URL}{TABLE_ID}"

PROPERTIES = {
    "Identifier": TABLE_ID,
    "Title": "Bestaande koopwoningen; gemiddelde verkoopprijzen, regio",
    "Description": "Deze tabel bevat gemiddelde verkoopprijzen.",
    "Modified": "2024-03-01T02:00:00+01:00",
    "Status": "Regulier",
    "Frequency": "Perjaar",
    "Language": "nl",
}

DIMENSIONS = [
    {
        "Identifier": "Perioden",
        "Title": "Perioden",
        "Kind": "TimeDimension",
        "CodesUrl": f"{CODES_BASE}/PeriodenCodes",
    },
    {
        "Identifier": "RegioS",
        "Title": "Regio's",
        "Description": "Gemeenten, provincies en landsdelen.",
        "Kind": "GeoDimension",
        "CodesUrl": f"{CODES_BASE}/RegioSCodes",
    },
    {
        "Identifier": "Measure",
        "Title": "Onderwerpen",
        "Kind": "Measure",
        "CodesUrl": f"{CODES_BASE}/MeasureCodes",
    },
    {
        "Identifier": "Geslacht",
        "Title": "Geslacht",
        "Kind": "Dimension",
        "CodesUrl": None,
    },
]

CODES = {
    "PeriodenCodes": [
        {"Identifier": "2023JJ00", "Title": "2023"},
        {"Identifier": "2022JJ00", "Title": "2022"},
    ],
    "RegioSCodes": [
        {"Identifier": "NL01", "Title": "Nederland", "Description": None},
        {"Identifier": "GM0363", "Title": "Amsterdam"},
    ],
}

DATA_PROPERTIES = [
    {"Key": "Perioden", "Title": "Perioden", "Type": "TimeDimension"},
    {
        "Key": "GemiddeldeVerkoopprijs_1",
        "Title": "Gemiddelde verkoopprijs",
        "Description": "Gemiddelde prijs van verkochte woningen.",
        "Type": "Topic",
        "Unit": "euro",
        "Decimals": 0,
    },
    {"Key": "Groep", "Title": "Verkopen", "Type": "TopicGroup"},
    {"Key": "VerkochteWoningen_2", "Title": "Verkochte woningen", "Description": None, "Type": "Topic", "Unit": "aantal"},
]


def metadata_responder(properties=PROPERTIES, dimensions=DIMENSIONS, data_properties=DATA_PROPERTIES, codes=CODES):
    """Serve the CBS metadata endpoints; a None argument makes that endpoint fail."""

    def responder(url):
        text = str(url)
        if text.startswith(f"{DATA_PROPERTIES_BASE_URL}{TABLE_ID}/DataProperties"):
            return None if data_properties is None else {"value": data_properties}
        if text.startswith(f"{CODES_BASE}/Properties"):
            return properties
        if text.startswith(f"{CODES_BASE}/Dimensions"):
            return None if dimensions is None else {"value": dimensions}
        codes_name = url.path.rsplit("/", 1)[-1]
        if codes_name in codes:
            return None if codes[codes_name] is None else {"value": codes[codes_name]}
        raise AssertionError(f"Unexpected URL {url}")

    return responder


def requested_paths(gateway):
    return [httpx.URL(url).path.rsplit("/", 1)[-1] for url in gateway.calls]


def overlapping(responder):
    """Async responder that yields to the event loop before answering."""

    async def respond(url):
        await asyncio.sleep(0)
        return responder(url)

    return respond


@pytest.mark.asyncio
@pytest.mark.pipeline
class TestGetTableMetadata:

    async def test_full_document(self, make_gateway):
        gateway = make_gateway(metadata_responder())

        metadata = await get_table_metadata(gateway, TABLE_ID)

        assert isinstance(metadata, TableMetadata)
        assert metadata.table_id == TABLE_ID
        assert [dimension.key for dimension in metadata.dimensions] == ["Perioden", "RegioS", "Measure", "Geslacht"]
        assert [measure.key for measure in metadata.measures] == ["GemiddeldeVerkoopprijs_1", "VerkochteWoningen_2"]

    async def test_properties_keep_only_present_allow_listed_fields(self, make_gateway):
        gateway = make_gateway(metadata_responder())

        metadata = await get_table_metadata(gateway, TABLE_ID)

        assert metadata.properties == {
            "Title": "Bestaande koopwoningen; gemiddelde verkoopprijzen, regio",
            "Description": "Deze tabel bevat gemiddelde verkoopprijzen.",
            "Modified": "2024-03-01T02:00:00+01:00",
            "Status": "Regulier",
            "Frequency": "Perjaar",
        }
        assert "Summary" not in metadata.properties
        assert "Language" not in metadata.properties

    async def test_sample_codes_only_for_filterable_dimensions(self, make_gateway):
        gateway = make_gateway(metadata_responder())

        metadata = await get_table_metadata(gateway, TABLE_ID)
        dimensions = {dimension.key: dimension for dimension in metadata.dimensions}

        assert [(code.id, code.title) for code in dimensions["Perioden"].sample_codes] == [
            ("2023JJ00", "2023"),
            ("2022JJ00", "2022"),
        ]
        assert [code.id for code in dimensions["RegioS"].sample_codes] == ["NL01", "GM0363"]
        assert dimensions["Measure"].sample_codes is None
        assert dimensions["Geslacht"].sample_codes is None
        assert "MeasureCodes" not in requested_paths(gateway)

    async def test_sample_code_request_parameters(self, make_gateway):
        gateway = make_gateway(metadata_responder())

        await get_table_metadata(gateway, TABLE_ID)

        index = requested_paths(gateway).index("RegioSCodes")
        params = gateway.params_of(index)
        assert params["$top"] == "5"
        assert params["$select"] == "Identifier,Title,Description"
        assert params["$format"] == "json"

    async def test_request_count(self, make_gateway):
        gateway = make_gateway(metadata_responder())

        await get_table_metadata(gateway, TABLE_ID)

        assert sorted(requested_paths(gateway)) == sorted(
            ["Properties", "Dimensions", "DataProperties", "PeriodenCodes", "RegioSCodes"]
        )

    async def test_failed_sample_codes_leave_the_field_out(self, make_gateway):
        codes = dict(CODES)
        codes["RegioSCodes"] = None
        gateway = make_gateway(metadata_responder(codes=codes))

        metadata = await get_table_metadata(gateway, TABLE_ID)
        dimensions = {dimension.key: dimension for dimension in metadata.dimensions}

        assert dimensions["RegioS"].sample_codes is None
        assert dimensions["RegioS"].description == "Gemeenten, provincies en landsdelen."
        assert len(dimensions["Perioden"].sample_codes) == 2

    async def test_failed_data_properties_give_empty_measures(self, make_gateway):
        gateway = make_gateway(metadata_responder(data_properties=None))

        metadata = await get_table_metadata(gateway, TABLE_ID)

        assert metadata is not None
        assert metadata.measures == []
        assert metadata.properties["Title"] == PROPERTIES["Title"]
        assert len(metadata.dimensions) == 4

    async def test_failed_properties_fail_the_operation(self, make_gateway):
        gateway = make_gateway(metadata_responder(properties=None))

        assert await get_table_metadata(gateway, TABLE_ID) is None

    async def test_failed_dimensions_fail_the_operation(self, make_gateway):
        gateway = make_gateway(metadata_responder(dimensions=None))

        assert await get_table_metadata(gateway, TABLE_ID) is None

    async def test_measure_fields(self, make_gateway):
        gateway = make_gateway(metadata_responder())

        metadata = await get_table_metadata(gateway, TABLE_ID)
        price, sold = metadata.measures

        assert price.title == "Gemiddelde verkoopprijs"
        assert price.description == "Gemiddelde prijs van verkochte woningen."
        assert price.unit == "euro"
        assert price.decimals == 0
        assert sold.description is None
        assert sold.decimals is None

    async def test_long_descriptions_are_truncated(self, make_gateway, long_description):
        dimensions = [dict(DIMENSIONS[1], Description=long_description)]
        data_properties = [dict(DATA_PROPERTIES[1], Description=long_description)]
        gateway = make_gateway(metadata_responder(dimensions=dimensions, data_properties=data_properties))

        metadata = await get_table_metadata(gateway, TABLE_ID)

        for description in (metadata.dimensions[0].description, metadata.measures[0].description):
            assert len(description) == 253
            assert description == long_description[:250] + "..."

    async def test_dimension_order_follows_cbs(self, make_gateway):
        dimensions = list(reversed(DIMENSIONS))
        gateway = make_gateway(metadata_responder(dimensions=dimensions))

        metadata = await get_table_metadata(gateway, TABLE_ID)

        assert [dimension.key for dimension in metadata.dimensions] == ["Geslacht", "Measure", "RegioS", "Perioden"]

    async def test_invalid_codes_url_leaves_only_that_dimension_without_codes(self, make_gateway):
        dimensions = [dict(DIMENSIONS[0]), dict(DIMENSIONS[1], CodesUrl="https://datasets.cbs.nl:abc/x/RegioSCodes")]
        gateway = make_gateway(metadata_responder(dimensions=dimensions))

        metadata = await get_table_metadata(gateway, TABLE_ID)
        dimensions = {dimension.key: dimension for dimension in metadata.dimensions}

        assert dimensions["RegioS"].sample_codes is None
        assert dimensions["RegioS"].title == "Regio's"
        assert len(dimensions["Perioden"].sample_codes) == 2
        assert "RegioSCodes" not in requested_paths(gateway)


@pytest.mark.asyncio
@pytest.mark.pipeline
class TestMetadataConcurrency:

    async def test_facets_are_fetched_together(self, make_gateway):
        gateway = make_gateway(overlapping(metadata_responder()))

        await get_table_metadata(gateway, TABLE_ID)

        facets = ("Properties", "Dimensions", "DataProperties")
        counts = gateway.in_flight_for(lambda url: httpx.URL(url).path.rsplit("/", 1)[-1] in facets)
        assert len(counts) == 3
        assert max(counts) == 3

    async def test_sample_codes_are_fetched_together(self, make_gateway):
        gateway = make_gateway(overlapping(metadata_responder()))

        await get_table_metadata(gateway, TABLE_ID)

        counts = gateway.in_flight_for(lambda url: httpx.URL(url).path.endswith("Codes"))
        assert len(counts) == 2
        assert max(counts) == 2
