"""
Provider Client Adapter

Issues one logical request per data category to the people-data provider and
returns the decoded JSON exactly as received. All shape tolerance lives in
search.normalizers; this module only knows how to reach the provider.

Two routings are supported:
- through a proxy that holds the credentials: POST {"searchType", "body"}
- directly to the provider, sending the galaxy-* credential headers
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional, Mapping, Protocol

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from config_manager import ProviderConfig
from database.monitoring import provider_timer
from errors import ProviderError

logger = logging.getLogger(__name__)


class Category(str, Enum):
    """The eight data categories a search fans out to"""
    PERSON = "person"
    ADDRESS = "address"
    PHONE = "phone"
    SOCIAL = "social"
    CRIMINAL = "criminal"
    RELATIVES = "relatives"
    PROPERTY = "property"
    CONTACT_ENRICHMENT = "contact_enrichment"


class ProviderClient(Protocol):
    """Anything that can fetch raw provider JSON for one category"""

    async def fetch_category(self, category: Category, params: Mapping[str, Any]) -> Any:
        ...


def build_request_body(params: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate search params to the provider's request field names.

    Location is free text ("New York, NY") and goes in AddressLine2, the
    city/state line of the provider's address block.
    """
    body: Dict[str, Any] = {
        "FirstName": params.get("first_name"),
        "LastName": params.get("last_name"),
    }
    if params.get("age") is not None:
        body["Age"] = params["age"]
    if params.get("location"):
        body["AddressLine2"] = params["location"]
    return body


class HttpProviderClient:
    """httpx-based provider client with tenacity retries on transport errors"""

    def __init__(
        self,
        config: ProviderConfig,
        client: Optional[httpx.AsyncClient] = None,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 5.0
    ):
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._owns_client = client is None
        self._retry_min_wait = retry_min_wait
        self._retry_max_wait = retry_max_wait

    def _search_type(self, category: Category) -> str:
        try:
            return self._config.search_types[category.value]
        except KeyError:
            raise ProviderError(
                f"No provider search type configured for {category.value}",
                category=category.value
            )

    def _route(self, category: Category, search_type: str, body: Dict[str, Any]):
        """Return (url, headers, json payload) for one category request"""
        if self._config.proxy_url:
            return (
                self._config.proxy_url,
                {"Content-Type": "application/json"},
                {"searchType": search_type, "body": body},
            )

        url = self._config.endpoints.get(category.value) or self._config.base_url
        headers = {
            "Content-Type": "application/json",
            "galaxy-ap-name": self._config.api_key_name,
            "galaxy-ap-password": self._config.api_key_password,
            "galaxy-search-type": search_type,
            "galaxy-client-type": self._config.client_type,
        }
        return url, headers, body

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._config.max_retries),
            wait=wait_exponential(multiplier=1, min=self._retry_min_wait, max=self._retry_max_wait),
            retry=retry_if_exception_type(httpx.TransportError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True
        )
        async for attempt in retrying:
            with attempt:
                return await self._client.post(url, headers=headers, json=payload)

    async def fetch_category(self, category: Category, params: Mapping[str, Any]) -> Any:
        """Fetch raw JSON for one category.

        Raises:
            ProviderError: on transport failure after retries, an HTTP error
                status, or a body that is not JSON
        """
        category = Category(category)
        search_type = self._search_type(category)
        url, headers, payload = self._route(category, search_type, build_request_body(params))

        with provider_timer(category.value):
            try:
                response = await self._post(url, headers, payload)
            except httpx.TimeoutException as e:
                raise ProviderError(
                    f"Provider timed out for {category.value}: {e}",
                    category=category.value
                ) from e
            except httpx.TransportError as e:
                raise ProviderError(
                    f"Provider unreachable for {category.value}: {e}",
                    category=category.value
                ) from e

            if response.status_code >= 400:
                raise ProviderError(
                    f"Provider returned HTTP {response.status_code} for {category.value}",
                    category=category.value,
                    status_code=response.status_code
                )

            try:
                data = response.json()
            except ValueError as e:
                raise ProviderError(
                    f"Provider returned a non-JSON body for {category.value}",
                    category=category.value,
                    status_code=response.status_code
                ) from e

        logger.debug("Provider %s (%s) answered %s", category.value, search_type, response.status_code)
        return data

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it"""
        if self._owns_client:
            await self._client.aclose()
