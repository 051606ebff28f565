"""Tests for organization lookups."""

from __future__ import annotations

import pytest
import respx
import structlog
from httpx import AsyncClient, Response

from multildap.exceptions import (
    OrganizationLookupError,
    OrganizationLookupWebError,
)
from multildap.storage.organization import (
    HTTPOrganizationStore,
    StaticOrganizationStore,
)


@pytest.mark.asyncio
async def test_static() -> None:
    store = StaticOrganizationStore({1: "Main Org.", 3: "Third Org."})
    assert await store.get_name(1) == "Main Org."
    assert await store.get_name(3) == "Third Org."
    assert await store.get_name(2) is None


@pytest.mark.asyncio
async def test_http(respx_mock: respx.Router) -> None:
    base_url = "https://grafana.example.com/api"
    respx_mock.get(f"{base_url}/orgs/1").mock(
        return_value=Response(200, json={"id": 1, "name": "Main Org."})
    )
    respx_mock.get(f"{base_url}/orgs/2").mock(return_value=Response(404))
    respx_mock.get(f"{base_url}/orgs/3").mock(
        return_value=Response(200, json={"id": 3})
    )
    respx_mock.get(f"{base_url}/orgs/4").mock(return_value=Response(500))
    logger = structlog.get_logger("multildap")

    async with AsyncClient() as http_client:
        store = HTTPOrganizationStore(
            url=base_url + "/", http_client=http_client, logger=logger
        )
        assert await store.get_name(1) == "Main Org."
        assert await store.get_name(2) is None
        with pytest.raises(OrganizationLookupError, match="invalid"):
            await store.get_name(3)
        with pytest.raises(OrganizationLookupWebError):
            await store.get_name(4)
