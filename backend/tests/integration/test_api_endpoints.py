"""
Integration tests for the gateway API.

WHAT: Status, negotiation, catalog, wallet and shopping list endpoints plus error mapping
WHY: Ensure API contract compliance and consistent error bodies
HOW: FastAPI TestClient with an AppState wired around the fake data service
"""

import pytest
from fastapi.testclient import TestClient

from busqai.core.app_state import AppState
from busqai.dataservice.types import DataServiceTimeoutError
from busqai.main import app

from tests.fixtures.fake_data_service import FakeDataService

CHAT = "chat-1"
PRODUCT_ROW = {"id": "product-1", "seller_id": "seller-1", "title": "Hand-woven basket", "price": 50, "stock": 3}


@pytest.fixture
def service(backend):
    fake = FakeDataService(backend, user_id="buyer-1")
    fake.select_results["products"] = dict(PRODUCT_ROW)
    return fake


@pytest.fixture
def client(service, clean_db):
    """TestClient whose lifespan keeps one event loop for live subscriptions."""
    app.state.app_state = AppState.from_data_service(service)
    with TestClient(app) as test_client:
        yield test_client
    del app.state.app_state


def assert_error_body(response, code):
    body = response.json()
    assert set(body) == {"error", "message", "details", "timestamp"}
    assert body["error"] == code


@pytest.mark.integration
@pytest.mark.gateway
class TestStatusEndpoints:

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["components"]["data_service"]["available"] is True

    def test_status_reports_session(self, client):
        data = client.get("/api/v1/status").json()

        assert data["session"] == {"signed_in": True, "user_id": "buyer-1"}
        assert data["negotiations"]["open"] == 0

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"


@pytest.mark.integration
@pytest.mark.gateway
class TestNegotiationEndpoints:

    def test_open_offer_and_state(self, client, backend):
        backend.add_message(CHAT, "seller-1", "offer", "I offer Bs48.00", 48)

        opened = client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer", "product_id": "product-1"})
        assert opened.status_code == 200
        view = opened.json()
        assert view["phase"] == "ready"
        assert len(view["messages"]) == 1
        assert [q["amount"] for q in view["quick_offers"]] == [45.0, 40.0]
        assert view["product"]["title"] == "Hand-woven basket"

        sent = client.post(f"/api/v1/negotiations/{CHAT}/offer", json={"amount": 45})
        assert sent.status_code == 200
        body = sent.json()
        assert body["message_id"] is not None
        assert body["view"]["negotiation"]["last_offer"] == 45
        assert body["view"]["negotiation"]["offers_made"] == 2

        state = client.get(f"/api/v1/negotiations/{CHAT}/state").json()
        assert [m["id"] for m in state["messages"]][-1] == body["message_id"]

    def test_accept_then_refuse_further_offers(self, client, backend):
        offer = backend.add_message(CHAT, "seller-1", "offer", "I offer Bs48.00", 48)
        client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer"})

        accepted = client.post(f"/api/v1/negotiations/{CHAT}/accept", json={"message_id": offer["id"]})
        assert accepted.status_code == 200
        negotiation = accepted.json()["view"]["negotiation"]
        assert negotiation["status"] == "accepted"
        assert negotiation["final_price"] == 48
        assert accepted.json()["view"]["input_enabled"] is False
        assert backend.accepted[CHAT] == 48

        refused = client.post(f"/api/v1/negotiations/{CHAT}/offer", json={"amount": 40})
        assert refused.status_code == 409
        assert_error_body(refused, "ACTION_NOT_ALLOWED")

    def test_reject(self, client, backend):
        backend.add_message(CHAT, "seller-1", "offer", "I offer Bs48.00", 48)
        client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer"})

        response = client.post(f"/api/v1/negotiations/{CHAT}/reject")

        assert response.status_code == 200
        assert response.json()["view"]["negotiation"]["status"] == "rejected"

    def test_text_and_typing(self, client, backend):
        client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer"})

        text = client.post(f"/api/v1/negotiations/{CHAT}/text", json={"content": "Is it still available?"})
        typing = client.post(f"/api/v1/negotiations/{CHAT}/typing")

        assert text.status_code == 200
        assert text.json()["view"]["messages"][0]["content"] == "Is it still available?"
        assert typing.status_code == 202

    def test_unopened_chat(self, client):
        for response in (
            client.get("/api/v1/negotiations/chat-404/state"),
            client.post("/api/v1/negotiations/chat-404/offer", json={"amount": 45}),
            client.get("/api/v1/negotiations/chat-404/stream"),
        ):
            assert response.status_code == 404
            assert_error_body(response, "NEGOTIATION_NOT_FOUND")

    def test_invalid_payloads(self, client):
        client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer"})

        malformed = client.post(f"/api/v1/negotiations/{CHAT}/offer", json={"amount": "abc"})
        assert malformed.status_code == 400
        assert_error_body(malformed, "VALIDATION_ERROR")

        not_positive = client.post(f"/api/v1/negotiations/{CHAT}/offer", json={"amount": 0})
        assert not_positive.status_code == 400
        assert_error_body(not_positive, "VALIDATION_ERROR")

        bad_role = client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "admin"})
        assert bad_role.status_code == 400

    def test_load_failure_then_retry(self, client, service):
        service.fail_loads = DataServiceTimeoutError("Request timed out after 3 attempt(s)")

        failed = client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer"})
        assert failed.status_code == 502
        assert_error_body(failed, "LOAD_FAILED")
        assert failed.json()["details"]["retryable"] is True

        service.fail_loads = None
        retried = client.post(f"/api/v1/negotiations/{CHAT}/retry")
        assert retried.status_code == 200
        assert retried.json()["phase"] == "ready"

    def test_send_failure(self, client, service):
        client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer"})
        service.fail_sends = True

        response = client.post(f"/api/v1/negotiations/{CHAT}/offer", json={"amount": 45})

        assert response.status_code == 502
        assert_error_body(response, "SEND_FAILED")
        assert client.get(f"/api/v1/negotiations/{CHAT}/state").json()["messages"] == []

    def test_close(self, client):
        client.post(f"/api/v1/negotiations/{CHAT}/open", json={"role": "buyer"})

        closed = client.delete(f"/api/v1/negotiations/{CHAT}")

        assert closed.json() == {"chat_id": CHAT, "closed": True}
        assert client.get(f"/api/v1/negotiations/{CHAT}/state").status_code == 404


@pytest.mark.integration
@pytest.mark.gateway
class TestMarketplaceEndpoints:

    def test_list_products(self, client, service):
        service.select_results["products"] = [dict(PRODUCT_ROW, profiles={"id": "seller-1", "full_name": "Rosa"})]

        response = client.get("/api/v1/products", params={"q": "basket", "limit": 200})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["products"][0]["seller"] == {"kind": "profile", "id": "seller-1", "full_name": "Rosa"}

    def test_open_chat(self, client, service, backend):
        service.select_results["products"] = {**PRODUCT_ROW, "is_available": True, "is_visible": True}
        service.select_results["profiles"] = {"id": "seller-1", "user_type": "seller"}

        response = client.post("/api/v1/chats", json={"product_id": "product-1", "seller_id": "seller-1"})

        assert response.status_code == 200
        chat_id = response.json()["id"]
        assert len(backend.messages[chat_id]) == 1

    def test_wallet(self, client, service):
        service.select_results["wallets"] = {"balance": 120.5}

        balance = client.get("/api/v1/wallet").json()
        invalid = client.post("/api/v1/wallet/recharge", json={"amount": 10, "method": "cash"})

        assert balance == {"balance": 120.5, "currency": "Bs"}
        assert invalid.status_code == 400

    def test_auth_not_configured(self, client):
        response = client.post("/api/v1/auth/otp", json={"phone": "71234567"})

        assert response.status_code == 400
        assert_error_body(response, "AUTH_UNAVAILABLE")

    def test_shopping_list_crud(self, client):
        created = client.post("/api/v1/shopping-list", json={"name": "Rice", "quantity": 2})
        assert created.status_code == 201
        item_id = created.json()["id"]

        updated = client.patch(f"/api/v1/shopping-list/{item_id}", json={"done": True})
        assert updated.json()["done"] is True
        assert [item["name"] for item in client.get("/api/v1/shopping-list").json()] == ["Rice"]

        assert client.delete(f"/api/v1/shopping-list/{item_id}").status_code == 204
        missing = client.delete(f"/api/v1/shopping-list/{item_id}")
        assert missing.status_code == 404
        assert_error_body(missing, "ITEM_NOT_FOUND")
