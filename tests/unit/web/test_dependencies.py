"""Tests for repairdesk.web.dependencies - tenant resolution."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from repairdesk.exceptions import TenantNotFoundError
from repairdesk.storage.tenant import TenantStorage
from repairdesk.web.dependencies import get_storage, get_tenant, get_tenant_id


def make_request(headers: dict[str, str] | None = None) -> Request:
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw})


@pytest.fixture
def org():
    return SimpleNamespace(id=7, slug="acme-repairs", name="Acme Repairs")


@pytest.mark.asyncio
async def test_tenant_from_header(org):
    lookup = AsyncMock(return_value=org)
    with patch("repairdesk.web.dependencies.get_organization", lookup):
        resolved = await get_tenant(make_request({"X-Organization-Id": "7"}), db=MagicMock())

    assert resolved is org
    assert lookup.await_args.args[1] == 7


@pytest.mark.asyncio
async def test_missing_header_uses_default_outside_production(org):
    lookup = AsyncMock(return_value=org)
    with patch("repairdesk.web.dependencies.get_organization", lookup):
        await get_tenant(make_request(), db=MagicMock())

    # DEFAULT_ORG_ID=1 from the test environment
    assert lookup.await_args.args[1] == 1


@pytest.mark.asyncio
async def test_missing_header_rejected_in_production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    from repairdesk.config import reset_config

    reset_config()

    with pytest.raises(HTTPException) as exc_info:
        await get_tenant(make_request(), db=MagicMock())

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_malformed_header_rejected():
    with pytest.raises(HTTPException) as exc_info:
        await get_tenant(make_request({"X-Organization-Id": "acme"}), db=MagicMock())

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_unknown_organization():
    with patch("repairdesk.web.dependencies.get_organization", AsyncMock(return_value=None)):
        with pytest.raises(TenantNotFoundError) as exc_info:
            await get_tenant(make_request({"X-Organization-Id": "99"}), db=MagicMock())

    assert exc_info.value.org_id == 99


@pytest.mark.asyncio
async def test_storage_bound_to_resolved_tenant(org):
    session = MagicMock()

    storage = await get_storage(org=org, db=session)

    assert isinstance(storage, TenantStorage)
    assert storage.org_id == 7
    assert storage.session is session
    assert await get_tenant_id(org=org) == 7
