"""
API tests exercising the HTTP and WebSocket surface end to end against the in-memory backend.
"""

import pytest
from starlette.websockets import WebSocketDisconnect

from roomfinder.schemas.user import UserRole
from tests.conftest import ListingFactory, MessageFactory, UserFactory, login

API = "/api/v1"


class TestHealthEndpoints:
    """Test health and shell endpoints."""

    @pytest.mark.asyncio
    async def test_root(self, async_client):
        response = await async_client.get("/")
        assert response.status_code == 200
        assert response.json()["api_prefix"] == API

    @pytest.mark.asyncio
    async def test_health(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["backend"] == "connected"

    @pytest.mark.asyncio
    async def test_health_reports_backend_failure(self, async_client, store):
        store.fail("select", "users")

        response = await async_client.get("/health")

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "HTTP_503"

    @pytest.mark.asyncio
    async def test_route_table(self, async_client):
        routes = {route["path"]: route["access"] for route in (await async_client.get(f"{API}/routes")).json()["routes"]}

        assert routes["/"] == "public"
        assert routes["/dashboard"] == "owner"
        assert routes["/chat"] == "authenticated"

    @pytest.mark.asyncio
    async def test_facilities(self, async_client):
        facilities = (await async_client.get(f"{API}/facilities")).json()["facilities"]
        assert "WiFi" in facilities and "Parking" in facilities


class TestAuthEndpoints:
    """Test sign-in, sign-up and sign-out over HTTP."""

    @pytest.mark.asyncio
    async def test_login_success(self, async_client, owner):
        response = await async_client.post(f"{API}/auth/login", json={
            "email": owner.email, "password": "testpassword123"
        })

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["id"] == owner.id
        assert data["user"]["role"] == "owner"
        assert data["message"] == "Logged in successfully!"

    @pytest.mark.asyncio
    async def test_login_bad_credentials(self, async_client, registry, owner):
        response = await async_client.post(f"{API}/auth/login", json={
            "email": owner.email, "password": "nope"
        })

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_ERROR"
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_signup_defaults_to_tenant(self, async_client, store):
        response = await async_client.post(f"{API}/auth/signup", json={
            "email": "New@Example.com", "password": "secret123", "name": "New User", "phone": "98000"
        })

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["role"] == "tenant"
        assert data["user"]["email"] == "new@example.com"
        assert data["profile_incomplete"] is False

    @pytest.mark.asyncio
    async def test_signup_rejects_short_password(self, async_client):
        response = await async_client.post(f"{API}/auth/signup", json={
            "email": "short@example.com", "password": "123"
        })

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_partial_signup_then_complete_profile(self, async_client, store):
        store.fail("insert", "users")

        response = await async_client.post(f"{API}/auth/signup", json={
            "email": "partial@example.com", "password": "secret123", "name": "Partial", "role": "owner"
        })

        assert response.status_code == 201
        data = response.json()
        assert data["profile_incomplete"] is True
        assert data["user"] is None
        headers = {"Authorization": f"Bearer {data['access_token']}"}

        me = await async_client.get(f"{API}/auth/me", headers=headers)
        assert me.json()["profile_incomplete"] is True

        blocked = await async_client.get(f"{API}/conversations", headers=headers)
        assert blocked.status_code == 401

        completed = await async_client.post(f"{API}/auth/profile", headers=headers, json={
            "name": "Partial", "phone": "98000", "role": "owner"
        })
        assert completed.status_code == 201
        assert completed.json()["user"]["role"] == "owner"

        dashboard = await async_client.get(f"{API}/dashboard", headers=headers)
        assert dashboard.status_code == 200

    @pytest.mark.asyncio
    async def test_complete_profile_failure_reports_conflict(self, async_client, store):
        store.fail("insert", "users")
        data = (await async_client.post(f"{API}/auth/signup", json={
            "email": "twice@example.com", "password": "secret123"
        })).json()
        headers = {"Authorization": f"Bearer {data['access_token']}"}
        store.fail("insert", "users")

        response = await async_client.post(f"{API}/auth/profile", headers=headers, json={"name": "Again"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "PROFILE_WRITE_ERROR"

    @pytest.mark.asyncio
    async def test_me_requires_token(self, async_client):
        response = await async_client.get(f"{API}/auth/me")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_REQUIRED"

    @pytest.mark.asyncio
    async def test_garbage_token(self, async_client):
        response = await async_client.get(f"{API}/auth/me", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_logout_invalidates_session(self, async_client, registry, tenant):
        headers = await login(async_client, tenant.email)

        response = await async_client.post(f"{API}/auth/logout", headers=headers)
        assert response.status_code == 200
        assert len(registry) == 0

        after = await async_client.get(f"{API}/auth/me", headers=headers)
        assert after.status_code == 401


class TestListingEndpoints:
    """Test browse, detail and contact over HTTP."""

    @pytest.mark.asyncio
    async def test_browse_with_search_and_filters(self, async_client, store, owner):
        ListingFactory.create_listing(store, owner.id, title="Match", rent=15000,
                                      location="Thamel, Kathmandu", facilities=["WiFi", "Parking"])
        ListingFactory.create_listing(store, owner.id, title="Too dear", rent=30000,
                                      location="Thamel, Kathmandu", facilities=["WiFi", "Parking"])
        ListingFactory.create_listing(store, owner.id, title="Hidden", rent=15000,
                                      location="Thamel, Kathmandu", available=False)

        response = await async_client.get(f"{API}/listings", params={
            "search": "thamel", "max_rent": 20000, "facilities": ["Parking"]
        })

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["listings"][0]["title"] == "Match"
        assert data["listings"][0]["owner"]["name"] == owner.name

    @pytest.mark.asyncio
    async def test_browse_default_rent_ceiling(self, async_client, store, owner):
        ListingFactory.create_listing(store, owner.id, title="Mansion", rent=90000)

        data = (await async_client.get(f"{API}/listings")).json()

        assert data["total"] == 0
        assert data["filters"]["max_rent"] == 50000

    @pytest.mark.asyncio
    async def test_browse_inverted_range(self, async_client):
        response = await async_client.get(f"{API}/listings", params={"min_rent": 5000, "max_rent": 100})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_detail_not_found(self, async_client):
        response = await async_client.get(f"{API}/listings/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_contact_requires_login(self, async_client, listing):
        response = await async_client.post(f"{API}/listings/{listing.id}/contact")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Please login to contact the owner"

    @pytest.mark.asyncio
    async def test_contact_owner_once(self, async_client, store, listing, tenant):
        headers = await login(async_client, tenant.email)

        first = await async_client.post(f"{API}/listings/{listing.id}/contact", headers=headers)
        second = await async_client.post(f"{API}/listings/{listing.id}/contact", headers=headers)

        assert first.json()["redirect_to"] == "/chat"
        assert first.json()["created"] is True
        assert second.json()["redirect_to"] == "/chat"
        assert second.json()["created"] is False
        assert len(store.tables["messages"]) == 1

    @pytest.mark.asyncio
    async def test_owner_cannot_contact_self(self, async_client, listing, owner):
        headers = await login(async_client, owner.email)

        response = await async_client.post(f"{API}/listings/{listing.id}/contact", headers=headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "SELF_CONTACT_REJECTED"


class TestOwnerFlow:
    """Test listing management as an owner."""

    @pytest.mark.asyncio
    async def test_tenant_cannot_open_dashboard(self, async_client, tenant):
        headers = await login(async_client, tenant.email)

        response = await async_client.get(f"{API}/dashboard", headers=headers)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_create_toggle_delete(self, async_client, store, owner, png_bytes):
        headers = await login(async_client, owner.email)

        created = await async_client.post(
            f"{API}/listings",
            headers=headers,
            data={
                "title": "Sunny Room",
                "rent": "15000",
                "location": "Thamel, Kathmandu",
                "facilities": ["WiFi", "Parking"],
            },
            files=[("files", ("room.png", png_bytes, "image/png"))]
        )
        assert created.status_code == 201, created.text
        assert created.json()["redirect_to"] == "/dashboard"
        listing_id = created.json()["listing_id"]

        dashboard = (await async_client.get(f"{API}/dashboard", headers=headers)).json()
        assert dashboard["stats"] == {"total": 1, "active": 1, "inactive": 0}
        assert dashboard["listings"][0]["facilities"] == ["WiFi", "Parking"]
        assert dashboard["listings"][0]["images"][0].endswith("-room.png")

        toggled = (await async_client.post(
            f"{API}/dashboard/listings/{listing_id}/toggle", headers=headers
        )).json()
        assert toggled["stats"] == {"total": 1, "active": 0, "inactive": 1}

        unconfirmed = await async_client.delete(f"{API}/dashboard/listings/{listing_id}", headers=headers)
        assert unconfirmed.status_code == 422
        assert store.find("listings", listing_id) is not None

        deleted = await async_client.delete(
            f"{API}/dashboard/listings/{listing_id}", headers=headers, params={"confirm": "true"}
        )
        assert deleted.status_code == 200
        assert deleted.json()["stats"]["total"] == 0

    @pytest.mark.asyncio
    async def test_create_requires_image(self, async_client, store, owner):
        headers = await login(async_client, owner.email)

        response = await async_client.post(f"{API}/listings", headers=headers, data={
            "title": "No pictures", "rent": "9000", "location": "Patan"
        })

        assert response.status_code == 422
        assert response.json()["error"]["message"] == "Please upload at least one image"
        assert store.tables["listings"] == []

    @pytest.mark.asyncio
    async def test_create_rejects_non_image(self, async_client, store, owner):
        headers = await login(async_client, owner.email)

        response = await async_client.post(
            f"{API}/listings",
            headers=headers,
            data={"title": "Room", "rent": "9000", "location": "Patan"},
            files=[("files", ("notes.txt", b"hello", "text/plain"))]
        )

        assert response.status_code == 422
        assert store.tables["listings"] == []

    @pytest.mark.asyncio
    async def test_edit_and_update(self, async_client, store, owner, png_bytes):
        listing = ListingFactory.create_listing(
            store, owner.id, images=["https://cdn/a.jpg", "https://cdn/b.jpg"]
        )
        headers = await login(async_client, owner.email)

        editor = (await async_client.get(f"{API}/listings/{listing.id}/edit", headers=headers)).json()
        assert editor["listing"]["id"] == listing.id
        assert "WiFi" in editor["facility_choices"]

        response = await async_client.put(
            f"{API}/listings/{listing.id}",
            headers=headers,
            data={
                "title": "Updated Room",
                "rent": "17000",
                "location": "Lalitpur",
                "facilities": ["Kitchen"],
                "available": "false",
                "keep_images": ["https://cdn/b.jpg"],
            },
            files=[("files", ("extra.png", png_bytes, "image/png"))]
        )

        assert response.status_code == 200, response.text
        assert response.json()["redirect_to"] == "/dashboard"
        row = store.find("listings", listing.id)
        assert row["title"] == "Updated Room"
        assert row["available"] is False
        assert row["images"][0] == "https://cdn/b.jpg"
        assert row["images"][1].endswith("-extra.png")

    @pytest.mark.asyncio
    async def test_preview_images(self, async_client, store, owner, png_bytes):
        listing = ListingFactory.create_listing(store, owner.id, images=["https://cdn/a.jpg", "https://cdn/b.jpg"])
        headers = await login(async_client, owner.email)

        response = await async_client.post(
            f"{API}/listings/images/preview",
            headers=headers,
            data={"listing_id": listing.id, "keep_images": ["https://cdn/a.jpg"]},
            files=[("files", ("extra.png", png_bytes, "image/png"))]
        )

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["existing"] == ["https://cdn/a.jpg"]
        assert data["pending"][0]["filename"] == "extra.png"
        assert data["pending"][0]["preview_url"].startswith("data:image/png;base64,")
        assert data["empty"] is False
        assert store.objects == {}

    @pytest.mark.asyncio
    async def test_tenant_cannot_preview_images(self, async_client, tenant, png_bytes):
        headers = await login(async_client, tenant.email)

        response = await async_client.post(
            f"{API}/listings/images/preview",
            headers=headers,
            files=[("files", ("room.png", png_bytes, "image/png"))]
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_cannot_edit_other_owners_listing(self, async_client, store, listing):
        other = UserFactory.create_user(store, email="rival@test.com", role=UserRole.OWNER)
        headers = await login(async_client, other.email)

        response = await async_client.get(f"{API}/listings/{listing.id}/edit", headers=headers)

        assert response.status_code == 404


class TestConversationEndpoints:
    """Test messaging over HTTP."""

    @pytest.mark.asyncio
    async def test_threads_history_and_send(self, async_client, store, owner, tenant, listing):
        MessageFactory.create_message(store, listing.id, tenant.id, owner.id, "Is it free?")
        MessageFactory.create_message(store, listing.id, owner.id, tenant.id, "Yes")
        headers = await login(async_client, tenant.email)

        rooms = (await async_client.get(f"{API}/conversations", headers=headers)).json()["rooms"]
        assert len(rooms) == 1
        assert rooms[0]["other_user"]["id"] == owner.id
        assert rooms[0]["last_message"]["message"] == "Yes"

        thread_url = f"{API}/conversations/{listing.id}/{owner.id}"
        history = (await async_client.get(thread_url, headers=headers)).json()
        assert [message["message"] for message in history["messages"]] == ["Is it free?", "Yes"]

        sent = await async_client.post(f"{thread_url}/messages", headers=headers, json={"body": "Great!"})
        assert sent.json() == {"sent": True, "message": "Great!"}

        blank = await async_client.post(f"{thread_url}/messages", headers=headers, json={"body": "  "})
        assert blank.json()["sent"] is False
        assert len(store.tables["messages"]) == 3

    @pytest.mark.asyncio
    async def test_cannot_message_self(self, async_client, store, owner, tenant, listing):
        MessageFactory.create_message(store, listing.id, tenant.id, owner.id, "private to owner")
        headers = await login(async_client, tenant.email)
        thread_url = f"{API}/conversations/{listing.id}/{tenant.id}"

        history = await async_client.get(thread_url, headers=headers)
        sent = await async_client.post(f"{thread_url}/messages", headers=headers, json={"body": "hello me"})

        assert history.status_code == 400
        assert sent.status_code == 400
        assert sent.json()["error"]["code"] == "SELF_CONTACT_REJECTED"
        assert len(store.tables["messages"]) == 1

    @pytest.mark.asyncio
    async def test_conversations_require_login(self, async_client):
        response = await async_client.get(f"{API}/conversations")
        assert response.status_code == 401


class TestConversationSocket:
    """Test the live conversation WebSocket."""

    def test_history_then_live_messages(self, client, store, owner, tenant, listing):
        MessageFactory.create_message(store, listing.id, owner.id, tenant.id, "Welcome")
        token = client.post(f"{API}/auth/login", json={
            "email": tenant.email, "password": "testpassword123"
        }).json()["access_token"]

        with client.websocket_connect(f"{API}/conversations/{listing.id}/{owner.id}/ws?token={token}") as ws:
            history = ws.receive_json()
            assert history["type"] == "history"
            assert [message["message"] for message in history["messages"]] == ["Welcome"]

            ws.send_json({"body": "Can I visit today?"})
            update = ws.receive_json()

            assert update["type"] == "message"
            assert update["message"]["message"] == "Can I visit today?"
            assert update["message"]["sender"]["id"] == tenant.id

    def test_rejects_invalid_token(self, client, listing, owner):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"{API}/conversations/{listing.id}/{owner.id}/ws?token=bad") as ws:
                ws.receive_json()

    def test_ignores_non_json_frames(self, client, store, owner, tenant, listing):
        token = client.post(f"{API}/auth/login", json={
            "email": tenant.email, "password": "testpassword123"
        }).json()["access_token"]

        with client.websocket_connect(f"{API}/conversations/{listing.id}/{owner.id}/ws?token={token}") as ws:
            assert ws.receive_json()["type"] == "history"

            ws.send_text("not json")
            ws.send_json({"body": "still here"})
            update = ws.receive_json()

            assert update["message"]["message"] == "still here"

    def test_rejects_conversation_with_self(self, client, store, tenant, listing):
        token = client.post(f"{API}/auth/login", json={
            "email": tenant.email, "password": "testpassword123"
        }).json()["access_token"]

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"{API}/conversations/{listing.id}/{tenant.id}/ws?token={token}") as ws:
                ws.receive_json()

        assert exc_info.value.code == 4400
        assert store.tables["messages"] == []
