"""Async test fixtures for FSBO tests using SQLite and fake GHL endpoints."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fsbo.database import get_db
from fsbo.ghl.client import GHLClient
from fsbo.ghl.rate_limit import RequestBudget
from fsbo.models.base import Base
from fsbo.models.token import GHLServiceToken
from fsbo.oauth.client import OAuthClient
from fsbo.schemas.property import ListingAgent, PropertyRecord

LOCATION_ID = "loc-test-1"


class FakeCRM:
    """In-memory GHL contacts API served through an httpx MockTransport."""

    def __init__(self, fail_addresses: set[str] | None = None, fail_search: bool = False):
        self.contacts: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_addresses = fail_addresses or set()
        self.fail_search = fail_search
        self.tokens_seen: list[str] = []

    def calls_to(self, method: str, path: str, exact: bool = False) -> list[tuple[str, str]]:
        """Recorded calls for ``method`` whose path equals or starts with ``path``."""
        return [
            c for c in self.calls
            if c[0] == method and (c[1] == path if exact else c[1].startswith(path))
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        self.tokens_seen.append(request.headers.get("authorization", ""))
        body = json.loads(request.content) if request.content else {}

        if request.method == "POST" and path == "/contacts/search":
            if self.fail_search:
                return httpx.Response(500, json={"message": "search unavailable"})
            phone = next(
                (f["value"] for f in body.get("filters", []) if f.get("field") == "phone"),
                None,
            )
            matches = [
                c for c in self.contacts.values()
                if c.get("locationId") == body.get("locationId") and c.get("phone") == phone
            ]
            return httpx.Response(200, json={"contacts": matches[: body.get("pageLimit", 20)]})

        if request.method == "POST" and path == "/contacts/":
            if body.get("address1") in self.fail_addresses:
                return httpx.Response(422, json={"message": "validation failed"})
            contact_id = f"contact-{len(self.contacts) + 1}"
            contact = {**body, "id": contact_id}
            self.contacts[contact_id] = contact
            return httpx.Response(201, json={"contact": contact})

        if request.method == "PUT" and path.startswith("/contacts/"):
            contact_id = path.rsplit("/", 1)[-1]
            if contact_id not in self.contacts:
                return httpx.Response(404, json={"message": "not found"})
            if body.get("address1") in self.fail_addresses:
                return httpx.Response(422, json={"message": "validation failed"})
            self.contacts[contact_id].update(body)
            return httpx.Response(200, json={"contact": self.contacts[contact_id]})

        return httpx.Response(404, json={"message": "unknown route"})

    def factory(self, access_token: str, location_id: str) -> GHLClient:
        return GHLClient(
            access_token,
            location_id,
            base_url="https://ghl.test",
            budget=RequestBudget(burst_limit=1000, window_seconds=10, daily_limit=1_000_000),
            transport=httpx.MockTransport(self.handler),
        )


class FakeTokenEndpoint:
    """GHL OAuth token endpoint double; records every form post."""

    def __init__(self, status_code: int = 200, location_id: str | None = LOCATION_ID):
        self.status_code = status_code
        self.location_id = location_id
        self.requests: list[httpx.Request] = []
        self.forms: list[dict[str, str]] = []
        self.issued = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.forms.append(form)
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "invalid_grant"})
        self.issued += 1
        data = {
            "access_token": f"access-{self.issued}",
            "refresh_token": f"refresh-{self.issued}",
            "expires_in": 86399,
            "token_type": "Bearer",
            "userType": "Location",
            "companyId": "company-1",
        }
        if self.location_id:
            data["locationId"] = self.location_id
        return httpx.Response(200, json=data)

    def client(self) -> OAuthClient:
        return OAuthClient(
            client_id="client-id",
            client_secret="client-secret",
            redirect_uri="http://test/oauth/callback",
            token_url="https://auth.test/oauth/token",
            transport=httpx.MockTransport(self.handler),
        )


class FakeSource:
    """Listing source returning a fixed set of properties."""

    def __init__(self, properties: list[PropertyRecord] | None = None, error: Exception | None = None):
        self.properties = properties or []
        self.error = error
        self.params_seen = []

    async def search(self, params):
        self.params_seen.append(params)
        if self.error:
            raise self.error
        return list(self.properties)


def make_property(index: int, phone: str = "N/A", address: str | None = None) -> PropertyRecord:
    return PropertyRecord(
        id=str(1000 + index),
        address=address or f"{index} Main St, Austin, TX 78701",
        city="Austin",
        state="TX",
        zipCode="78701",
        county="Travis",
        price=350000,
        beds=3,
        baths=2,
        sqft=1800,
        propertyType="SINGLE_FAMILY",
        zillowLink=f"https://www.zillow.com/homedetails/x/{1000 + index}_zpid/",
        listingAgent=ListingAgent(
            name="Property Owner", brokerName="For Sale By Owner", phone=phone,
        ),
    )


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def token(db: AsyncSession):
    record = GHLServiceToken(
        location_id=LOCATION_ID,
        access_token="access-0",
        refresh_token="refresh-0",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=12),
        company_id="company-1",
        max_searches_limit=100,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    return record


@pytest.fixture
def crm():
    return FakeCRM()


@pytest.fixture
def token_endpoint():
    return FakeTokenEndpoint()


@pytest_asyncio.fixture
async def client(engine, crm, token_endpoint):
    """HTTPX async test client against the FSBO app."""
    from fsbo.app import app
    from fsbo.routers import deps

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_client_factory] = lambda: crm.factory
    app.dependency_overrides[deps.get_oauth_client] = token_endpoint.client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
