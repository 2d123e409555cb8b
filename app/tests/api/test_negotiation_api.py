from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token
from app.db.session import get_db
from app.main import app
from app.models.enums import PostingType
from app.tests.factories import OWNER, SELLER, SELLER_2, create_requirement


def auth(user_id, role="SELLER"):
    token = create_access_token(user_id, {"role": role, "display_name": user_id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health_echoes_request_id(client):
    r = client.get("/api/v1/health", headers={"X-Request-Id": "req-123"})
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.headers["X-Request-Id"] == "req-123"


def test_offer_routes_require_a_token(client):
    r = client.get("/api/v1/offers")
    assert r.status_code in (401, 403)

    r = client.get("/api/v1/offers", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_offer_counter_accept_flow(client, db):
    req = create_requirement(db, quantity="1000")

    r = client.post(
        "/api/v1/offers",
        json={"requirement_id": str(req.id), "offered_unit_price": "100", "offered_quantity": "50"},
        headers=auth(SELLER),
    )
    assert r.status_code == 201, r.text
    offer = r.json()
    assert offer["offer_status"] == "PENDING"

    dup = client.post(
        "/api/v1/offers",
        json={"requirement_id": str(req.id), "offered_unit_price": "100", "offered_quantity": "5"},
        headers=auth(SELLER),
    )
    assert dup.status_code == 409
    assert dup.json()["error"] == "Conflict"

    r = client.post(
        f"/api/v1/offers/{offer['id']}/counter",
        json={"offered_unit_price": "90", "offered_quantity": "50"},
        headers=auth(OWNER, role="BUYER"),
    )
    assert r.status_code == 201, r.text
    link = r.json()
    assert link["counteroffer_number"] == 1
    assert link["offer_expiry_date"] == offer["offer_expiry_date"]

    r = client.post(f"/api/v1/counter-offers/{link['id']}/accept", headers=auth(SELLER))
    assert r.status_code == 200, r.text

    thread = client.get(f"/api/v1/offers/{offer['id']}/thread", headers=auth(OWNER, role="BUYER")).json()
    assert thread["root"]["offer_status"] == "ACCEPTED"
    assert Decimal(thread["root"]["offered_unit_price"]) == Decimal("90")
    assert Decimal(thread["root"]["original_price"]) == Decimal("100")
    assert [c["offer_status"] for c in thread["counter_offers"]] == ["ACCEPTED"]

    history = client.get(f"/api/v1/offers/{offer['id']}/history", headers=auth(SELLER)).json()
    assert {"CREATED", "COUNTERED", "ACCEPTED"} <= {h["action"] for h in history["items"]}

    r = client.get(f"/api/v1/offers/{offer['id']}", headers=auth(SELLER_2))
    assert r.status_code == 403
    assert r.json()["error"] == "Forbidden"


def test_invalid_transition_maps_to_conflict_status(client, db):
    req = create_requirement(db)
    offer = client.post(
        "/api/v1/offers",
        json={"requirement_id": str(req.id), "offered_unit_price": "10", "offered_quantity": "1"},
        headers=auth(SELLER),
    ).json()

    r = client.post(
        f"/api/v1/offers/{offer['id']}/status", json={"action": "REJECT"}, headers=auth(OWNER, role="BUYER")
    )
    assert r.status_code == 200
    assert r.json()["offer_status"] == "REJECTED"

    r = client.post(
        f"/api/v1/offers/{offer['id']}/status", json={"action": "ACCEPT"}, headers=auth(OWNER, role="BUYER")
    )
    assert r.status_code == 409
    assert r.json()["error"] == "InvalidState"


def test_listing_and_notifications(client, db):
    req = create_requirement(db)
    client.post(
        "/api/v1/offers",
        json={"requirement_id": str(req.id), "offered_unit_price": "10", "offered_quantity": "1"},
        headers=auth(SELLER),
    )

    listed = client.get(
        "/api/v1/offers", params={"requirement_id": str(req.id)}, headers=auth(OWNER, role="BUYER")
    ).json()
    assert listed["total"] == 1
    assert listed["items"][0]["offer_user_id"] == SELLER

    notes = client.get("/api/v1/notifications", headers=auth(OWNER, role="BUYER")).json()
    assert notes["total"] == 1
    note = notes["items"][0]
    assert note["notification_type"] == "NEW_OFFER"

    r = client.post(f"/api/v1/notifications/{note['id']}/read", headers=auth(SELLER))
    assert r.status_code == 403

    r = client.post(f"/api/v1/notifications/{note['id']}/read", headers=auth(OWNER, role="BUYER"))
    assert r.status_code == 200
    assert r.json()["is_read"] is True


def test_bid_allocation_endpoint(client, db):
    req = create_requirement(db, quantity="1000", posting_type=PostingType.BIDDING)
    bids = []
    for bidder in (SELLER, SELLER_2):
        r = client.post(
            "/api/v1/bids",
            json={"requirement_id": str(req.id), "price": "10", "quantity": "1000"},
            headers=auth(bidder),
        )
        assert r.status_code == 201, r.text
        bids.append(r.json()["id"])

    bad = client.post(
        f"/api/v1/requirements/{req.id}/allocations",
        json={"allocations": {bids[0]: "60", bids[1]: "39"}},
        headers=auth(OWNER, role="BUYER"),
    )
    assert bad.status_code == 422
    assert bad.json()["error"] == "InvalidArgument"

    ok = client.post(
        f"/api/v1/requirements/{req.id}/allocations",
        json={"allocations": {bids[0]: "60", bids[1]: "40"}},
        headers=auth(OWNER, role="BUYER"),
    )
    assert ok.status_code == 200, ok.text
    body = ok.json()
    assert Decimal(body["total_allocated"]) == Decimal("1000")
    assert sorted(Decimal(w["quantity"]) for w in body["winners"]) == [Decimal("400"), Decimal("600")]

    listed = client.get(f"/api/v1/requirements/{req.id}/bids", headers=auth(OWNER, role="BUYER")).json()
    assert {b["status"] for b in listed} == {"WON"}
