"""
Paginated Graph API fetcher.

Follows `paging.next` continuation references, retries connection-level
failures with exponential backoff and rejects non-2xx responses.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional
from urllib.parse import parse_qs, urlparse

import httpx

logger = logging.getLogger(__name__)

# Query-string fields of `paging.next` never carried into the next request
EXCLUDED_FIELDS = ("access_token",)

# Failures that happen before any response is received
TRANSIENT_ERRORS = (httpx.ConnectError, httpx.TimeoutException)

StopPredicate = Callable[[Dict[str, Any]], bool]


class GraphAPIError(RuntimeError):
    """The Graph API answered with a non-success status code."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Response status code returned: {status_code}\nResponse body: {body}"
        )


def continuation_params(page: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """Extract the next-page params from a page, or None on the last page."""
    next_url = (page.get("paging") or {}).get("next")
    if not next_url:
        return None

    query = parse_qs(urlparse(next_url).query, keep_blank_values=True)
    return {
        field: values[0]
        for field, values in query.items()
        if field not in EXCLUDED_FIELDS
    }


class PaginatedFetcher:
    """Issues GET requests against the Graph API and walks result pages.

    The HTTP client is owned by the caller; its `base_url` must point at the
    Graph API host.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        access_token: str,
        api_version: str = "v2.7",
        retry_max: int = 5,
        retry_base_delay: float = 1.0,
    ):
        self.client = client
        self.access_token = access_token
        self.api_version = api_version
        self.retry_max = max(1, retry_max)
        self.retry_base_delay = retry_base_delay

    async def pages(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        stop_when: Optional[StopPredicate] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield every page of `endpoint`, starting from the first one.

        Args:
            endpoint: Path below the API version, e.g. "search" or "123/photos"
            params: Endpoint-specific query parameters
            stop_when: Called with each page after the consumer is done with it;
                returning True ends the iteration even if more pages exist

        Raises:
            GraphAPIError: On a non-2xx response
            httpx.TransportError: When connection retries are exhausted
        """
        query = dict(params or {})
        query["access_token"] = self.access_token
        path = f"/{self.api_version}/{endpoint.lstrip('/')}"

        page_number = 0
        while True:
            page = await self._get(path, query)
            page_number += 1
            logger.debug(f"Fetched page {page_number} of {endpoint}")

            yield page

            if stop_when is not None and stop_when(page):
                logger.debug(f"Stop condition met for {endpoint} after page {page_number}")
                return

            next_params = continuation_params(page)
            if next_params is None:
                return

            next_query = {**query, **next_params}
            if next_query == query:
                logger.warning(
                    f"Continuation of {endpoint} after page {page_number} does not advance,"
                    f" stopping: {page['paging']['next']}"
                )
                return
            query = next_query

    async def items(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[Dict[str, Any]]:
        """Yield the `data` items of every page of `endpoint`."""
        async for page in self.pages(endpoint, params):
            for item in page.get("data", []):
                yield item

    async def _get(self, path: str, query: Dict[str, Any]) -> Dict[str, Any]:
        """Single GET with retry on connection failure."""
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self.client.get(path, params=query)
                break
            except TRANSIENT_ERRORS as e:
                if attempt >= self.retry_max:
                    logger.error(f"Giving up on {path} after {attempt} attempts: {e}")
                    raise
                delay = self.retry_base_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"Connection failure on {path} (attempt {attempt}/{self.retry_max}),"
                    f" retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)

        if not response.is_success:
            raise GraphAPIError(response.status_code, response.text)

        return response.json()
