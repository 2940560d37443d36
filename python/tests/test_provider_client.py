"""
Tests for the httpx provider client, using httpx.MockTransport.
"""

import json
import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import ProviderConfig
from errors import ProviderError
from providers.client import Category, HttpProviderClient, build_request_body

PARAMS = {'first_name': "John", 'last_name': "Doe", 'age': 35, 'location': "New York, NY"}


def make_client(handler, **config_overrides):
    config = ProviderConfig(
        base_url="https://provider.test/search",
        api_key_name="key-name",
        api_key_password="key-pass",
        **config_overrides
    )
    transport = httpx.MockTransport(handler)
    return HttpProviderClient(
        config,
        client=httpx.AsyncClient(transport=transport),
        retry_min_wait=0,
        retry_max_wait=0,
    )


class TestRequestBody:

    def test_all_fields(self):
        assert build_request_body(PARAMS) == {
            "FirstName": "John",
            "LastName": "Doe",
            "Age": 35,
            "AddressLine2": "New York, NY",
        }

    def test_optional_fields_left_out(self):
        assert build_request_body({'first_name': "John", 'last_name': "Doe", 'age': None, 'location': ""}) == {
            "FirstName": "John",
            "LastName": "Doe",
        }


class TestRouting:

    @pytest.mark.asyncio
    async def test_direct_request_headers(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={'persons': []})

        client = make_client(handler)
        data = await client.fetch_category(Category.PERSON, PARAMS)

        assert data == {'persons': []}
        request = seen[0]
        assert str(request.url) == "https://provider.test/search"
        assert request.headers["galaxy-ap-name"] == "key-name"
        assert request.headers["galaxy-ap-password"] == "key-pass"
        assert request.headers["galaxy-search-type"] == client._config.search_types['person']
        assert request.headers["galaxy-client-type"] == "Persona-Web"
        assert json.loads(request.content)["FirstName"] == "John"

    @pytest.mark.asyncio
    async def test_category_endpoint_override(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json=[])

        client = make_client(handler, endpoints={'address': "https://provider.test/address"})
        await client.fetch_category(Category.ADDRESS, PARAMS)
        await client.fetch_category(Category.PHONE, PARAMS)
        assert seen == ["https://provider.test/address", "https://provider.test/search"]

    @pytest.mark.asyncio
    async def test_proxy_request_body(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={'relatives': []})

        client = make_client(handler, proxy_url="https://proxy.test/provider")
        await client.fetch_category(Category.RELATIVES, PARAMS)

        request = seen[0]
        assert str(request.url) == "https://proxy.test/provider"
        assert "galaxy-ap-password" not in request.headers
        payload = json.loads(request.content)
        assert payload["searchType"] == client._config.search_types['relatives']
        assert payload["body"]["LastName"] == "Doe"

    @pytest.mark.asyncio
    async def test_unconfigured_search_type(self):
        client = make_client(lambda request: httpx.Response(200, json={}), search_types={})
        with pytest.raises(ProviderError) as exc_info:
            await client.fetch_category(Category.SOCIAL, PARAMS)
        assert exc_info.value.category == "social"


class TestFailures:

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(ProviderError) as exc_info:
            await client.fetch_category(Category.CRIMINAL, PARAMS)
        assert exc_info.value.status_code == 500
        assert exc_info.value.category == "criminal"

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        client = make_client(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
        with pytest.raises(ProviderError) as exc_info:
            await client.fetch_category(Category.PROPERTY, PARAMS)
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_transport_errors_are_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={'phones': []})

        client = make_client(handler, max_retries=3)
        assert await client.fetch_category(Category.PHONE, PARAMS) == {'phones': []}
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler, max_retries=2)
        with pytest.raises(ProviderError) as exc_info:
            await client.fetch_category(Category.ADDRESS, PARAMS)
        assert len(attempts) == 2
        assert "unreachable" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        client = make_client(handler, max_retries=1)
        with pytest.raises(ProviderError) as exc_info:
            await client.fetch_category(Category.PERSON, PARAMS)
        assert "timed out" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_http_errors_are_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(503)

        client = make_client(handler, max_retries=3)
        with pytest.raises(ProviderError):
            await client.fetch_category(Category.SOCIAL, PARAMS)
        assert len(attempts) == 1
