import logging
from typing import Optional

import httpx

from .config import HTTP_TIMEOUT
from .models import Schema, decode

logger = logging.getLogger(__name__)

# =============================================================================
# CBS OData Gateway
# =============================================================================

class StatlineGateway:
    """
    Fetch-and-validate access to the CBS Statline OData endpoints.

    Every remote call in the server goes through fetch(). Failures of any kind
    (network, HTTP status, JSON, schema) are logged here and reported to the
    caller as None; nothing is retried and nothing is kept between calls.

    The HTTP client can be injected, which is how tests run without network
    access (e.g., with httpx.MockTransport).
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = HTTP_TIMEOUT):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "StatlineGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self, url: str, schema: Schema, context: str):
        """
        GET a CBS endpoint and validate the JSON body.

        Args:
            url: Complete URL including OData query parameters
            schema: Model class or TypeAdapter the response must satisfy
            context: Label used to prefix log messages (e.g., "metadata.properties-83625NED")

        Returns:
            The validated response, or None on any failure
        """
        logger.debug(f"[{context}] Fetching URL: {url}")
        try:
            response = await self._client.get(url, headers={"Accept": "application/json"})

            if not response.is_success:
                logger.error(f"[{context}] API request failed status {response.status_code}: {response.text}")
                logger.error(f"[{context}] Failing URL was: {url}")
                return None

            raw_data = response.json()
        except ValueError as e:
            logger.error(f"[{context}] Response body is not valid JSON: {e}")
            logger.error(f"[{context}] URL whose response failed parsing: {url}")
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"[{context}] Network or fetch error for URL {url}: {e!r}")
            return None

        result = decode(schema, raw_data)
        if not result.ok:
            logger.error(f"[{context}] Failed to parse API response: {result.error}")
            logger.error(f"[{context}] URL whose response failed parsing: {url}")
            return None

        logger.debug(f"[{context}] Successfully fetched and parsed data.")
        return result.value
