#!/usr/bin/env python3
"""
Pytest configuration and shared fixtures for the CBS Statline MCP tests.

No test touches the network: pipelines run against a scripted fake gateway,
and the real gateway runs on top of httpx.MockTransport.
"""

import inspect
import os
import sys

import httpx
import pytest

# Add src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from cbs_statline_mcp.models import decode  # noqa: E402


class FakeGateway:
    """
    Stand-in for StatlineGateway with scripted responses.

    The responder receives the parsed request URL and returns the raw JSON
    payload CBS would send, or None to simulate a failed request. It may also
    be a coroutine function, which lets requests overlap. Payloads are
    validated against the requested schema like the real gateway does, so a
    malformed payload also ends up as None.

    `in_flight_at_call` records, per request, how many requests were in flight
    once it started (itself included).
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls = []
        self.in_flight = 0
        self.in_flight_at_call = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def fetch(self, url, schema, context):
        self.calls.append(url)
        self.in_flight += 1
        self.in_flight_at_call.append(self.in_flight)
        try:
            payload = self.responder(httpx.URL(url))
            if inspect.isawaitable(payload):
                payload = await payload
        finally:
            self.in_flight -= 1
        if payload is None:
            return None
        result = decode(schema, payload)
        return result.value if result.ok else None

    def in_flight_for(self, predicate):
        """In-flight counts of the requests whose URL matches predicate."""
        return [count for url, count in zip(self.calls, self.in_flight_at_call) if predicate(url)]

    def params_of(self, index):
        """Decoded query parameters of the index-th request."""
        return dict(httpx.URL(self.calls[index]).params)


@pytest.fixture
def make_gateway():
    """Build a FakeGateway from a responder function."""
    return FakeGateway


@pytest.fixture
def long_description():
    return "Dit is een zeer uitgebreide beschrijving van de tabel. " * 10


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "pipeline: tests running a query pipeline against a fake gateway"
    )
