"""
Test configuration and fixtures for the RoomFinder API.
Provides an in-memory backend, test data factories, and common test utilities.
"""

import io
import uuid
from typing import AsyncGenerator, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from PIL import Image

from roomfinder.backend import get_backend
from roomfinder.main import app
from roomfinder.schemas.listing import ListingResponse
from roomfinder.schemas.message import MessageRecord
from roomfinder.schemas.user import UserProfile, UserRole
from roomfinder.services.session import SessionProvider, SessionRegistry
from roomfinder.utils.dependencies import get_session_registry
from roomfinder.utils.file_utils import PendingImage

from tests.fake_backend import FakeClient, FakeStore


@pytest.fixture
def store() -> FakeStore:
    """Fresh in-memory backend for each test."""
    return FakeStore()


@pytest.fixture
def backend(store: FakeStore) -> FakeClient:
    """Anonymous client on the shared store."""
    return store.client()


@pytest.fixture
def registry(store: FakeStore) -> SessionRegistry:
    """Session registry whose sessions get their own fake clients."""
    async def client_factory():
        return store.client()

    return SessionRegistry(client_factory)


@pytest.fixture
def client(backend: FakeClient, registry: SessionRegistry) -> TestClient:
    """Synchronous test client (used for WebSocket routes) with the same overrides."""
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_session_registry] = lambda: registry
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
async def async_client(backend: FakeClient, registry: SessionRegistry) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with the backend and registry overridden."""
    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_session_registry] = lambda: registry

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    await registry.close_all()
    app.dependency_overrides.clear()


# Test data factories
class UserFactory:
    """Factory for creating identities with profile rows."""

    @staticmethod
    def create_user(
        store: FakeStore,
        email: Optional[str] = None,
        password: str = "testpassword123",
        name: str = "Test User",
        phone: str = "9800000000",
        role: UserRole = UserRole.TENANT,
        with_profile: bool = True
    ) -> UserProfile:
        """Register an identity and (optionally) its profile row."""
        email = email or f"test{uuid.uuid4().hex[:8]}@example.com"
        user_id = str(uuid.uuid4())
        store.identities[email] = {"id": user_id, "password": password}

        row = {"id": user_id, "email": email, "name": name, "phone": phone, "role": role.value}
        if with_profile:
            row = store.add_row("users", row)
        return UserProfile.model_validate(row)


class ListingFactory:
    """Factory for creating test listings."""

    @staticmethod
    def create_listing(
        store: FakeStore,
        owner_id: str,
        title: str = "Spacious Room",
        rent: float = 15000,
        location: str = "Thamel, Kathmandu",
        facilities: Optional[List[str]] = None,
        available: bool = True,
        images: Optional[List[str]] = None
    ) -> ListingResponse:
        row = store.add_row("listings", {
            "owner_id": owner_id,
            "title": title,
            "rent": rent,
            "location": location,
            "facilities": facilities if facilities is not None else ["WiFi"],
            "available": available,
            "images": images if images is not None else ["https://cdn.example.com/room.jpg"],
        })
        return ListingResponse.model_validate(row)


class MessageFactory:
    """Factory for creating messages directly in the store (no notifications)."""

    @staticmethod
    def create_message(
        store: FakeStore,
        listing_id: str,
        sender_id: str,
        receiver_id: str,
        body: str = "Hello"
    ) -> MessageRecord:
        row = store.add_row("messages", {
            "listing_id": listing_id,
            "sender_id": sender_id,
            "receiver_id": receiver_id,
            "message": body,
        })
        return MessageRecord.model_validate(row)


def make_png(width: int = 200, height: int = 200) -> bytes:
    """Encode a solid-colour PNG with Pillow."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=(200, 120, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def pending_image(png_bytes: bytes) -> PendingImage:
    return PendingImage(filename="room.png", content_type="image/png", content=png_bytes)


# Common test fixtures
@pytest.fixture
def owner(store: FakeStore) -> UserProfile:
    return UserFactory.create_user(
        store,
        email="owner@test.com",
        name="Ram Owner",
        phone="9811111111",
        role=UserRole.OWNER
    )


@pytest.fixture
def tenant(store: FakeStore) -> UserProfile:
    return UserFactory.create_user(
        store,
        email="tenant@test.com",
        name="Sita Tenant",
        phone="9822222222",
        role=UserRole.TENANT
    )


@pytest.fixture
def listing(store: FakeStore, owner: UserProfile) -> ListingResponse:
    return ListingFactory.create_listing(
        store,
        owner_id=owner.id,
        title="Sunny Room",
        rent=15000,
        location="Thamel, Kathmandu",
        facilities=["WiFi", "Parking"]
    )


async def signed_in_provider(store: FakeStore, email: str, password: str = "testpassword123") -> SessionProvider:
    """Initialize a provider on its own client and sign in."""
    provider = SessionProvider(store.client())
    await provider.initialize()
    await provider.sign_in(email, password)
    return provider


async def login(client: AsyncClient, email: str, password: str = "testpassword123") -> Dict[str, str]:
    """Sign in through the API and return the Authorization header."""
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
