"""HTTP surface tests against an app wired to in-memory collaborators."""

from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from landhacker.core.security import HttpTokenVerifier
from landhacker.data.distance_client import MockDistance
from landhacker.main import create_app
from landhacker.models.mock_model import MockModel

AUTH = {"Authorization": "Bearer uid-1"}


@pytest.fixture
def client(store):
    return TestClient(create_app(store=store, distance=MockDistance(), model=MockModel()))


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_request_id_is_echoed(client):
    r = client.get("/v1/ping", headers={"X-Request-Id": "abc-123"})
    assert r.headers["X-Request-Id"] == "abc-123"
    assert client.get("/v1/ping").headers["X-Request-Id"]


def test_metrics_exposed(client):
    client.get("/v1/health")
    r = client.get("/v1/metrics")
    assert r.status_code == 200
    assert "http_requests_total" in r.text


class TestAuth:
    def test_missing_token(self, client):
        assert client.get("/api/user").status_code == 401

    def test_malformed_header(self, client):
        assert client.get("/api/user", headers={"Authorization": "uid-1"}).status_code == 401

    def test_unknown_user(self, client):
        r = client.get("/api/user", headers={"Authorization": "Bearer nobody"})
        assert r.status_code == 404

    def test_current_user(self, client):
        r = client.get("/api/user", headers=AUTH)
        assert r.status_code == 200
        assert r.json()["credits"] == 5
        assert r.json()["firebaseUid"] == "uid-1"

    def test_identity_outage_is_json_502(self, store):
        transport = httpx.MockTransport(lambda r: httpx.Response(503))
        verifier = HttpTokenVerifier("https://id.test", transport=transport)
        client = TestClient(create_app(store=store, distance=MockDistance(), model=MockModel(), verifier=verifier))

        r = client.get("/api/user", headers=AUTH)
        assert r.status_code == 502
        assert r.json() == {"message": "Identity service unavailable", "reason": "identity_unavailable"}


class TestLogin:
    def test_first_login_creates_account(self, client, store):
        headers = {"Authorization": "Bearer uid-new"}
        r = client.post("/api/auth/login", json={"email": "newbie@example.com"}, headers=headers)
        assert r.status_code == 200
        assert r.json()["username"] == "newbie"
        assert r.json()["credits"] == 0
        assert client.get("/api/user", headers=headers).status_code == 200

    def test_repeat_login_returns_same_account(self, client, store):
        headers = {"Authorization": "Bearer uid-new"}
        first = client.post("/api/auth/login", json={"email": "a@example.com", "username": "ann"}, headers=headers)
        second = client.post("/api/auth/login", json={"email": "a@example.com", "username": "ann"}, headers=headers)
        assert first.json()["id"] == second.json()["id"]
        assert len(store.users) == 2

    def test_existing_user_is_unchanged(self, client):
        r = client.post("/api/auth/login", json={"email": "landlord@example.com"}, headers=AUTH)
        assert r.json()["id"] == 1
        assert r.json()["credits"] == 5

    def test_taken_username(self, client):
        body = {"email": "x@example.com", "username": "landlord"}
        r = client.post("/api/auth/login", json=body, headers={"Authorization": "Bearer uid-other"})
        assert r.status_code == 409
        assert r.json()["reason"] == "conflict"

    def test_requires_token(self, client):
        assert client.post("/api/auth/login", json={"email": "x@example.com"}).status_code == 401


class TestParcels:
    def test_lists_only_own_parcels(self, client):
        r = client.get("/api/parcels", headers=AUTH)
        assert r.status_code == 200
        assert [p["id"] for p in r.json()] == [1]
        assert r.json()[0]["address"]["street"] == "1 Subject Rd"

    def test_created_parcel_can_be_analyzed(self, client, store):
        body = {
            "address": {"street": "9 New Rd", "city": "Austin", "state": "TX", "zipcode": "78701"},
            "latitude": 30.31, "longitude": -97.79, "acres": 11, "price": 264000,
        }
        r = client.post("/api/parcels", json=body, headers=AUTH)
        assert r.status_code == 200
        parcel_id = r.json()["id"]
        assert r.json()["userId"] == 1
        assert len(client.get("/api/parcels", headers=AUTH).json()) == 2

        analyzed = client.post(f"/api/parcels/{parcel_id}/analyze", headers=AUTH)
        assert analyzed.status_code == 200
        assert store.analyses[analyzed.json()["analysisId"]].parcel_id == parcel_id

    def test_rejects_bad_acreage(self, client):
        body = {
            "address": {"street": "9 New Rd", "city": "Austin", "state": "TX", "zipcode": "78701"},
            "latitude": 30.31, "longitude": -97.79, "acres": 0,
        }
        assert client.post("/api/parcels", json=body, headers=AUTH).status_code == 422

    def test_unknown_user(self, client):
        assert client.get("/api/parcels", headers={"Authorization": "Bearer nobody"}).status_code == 404



def test_acres_prices(client):
    r = client.post("/api/acres-prices", json={"city": "austin", "acres": 10, "zipCode": "78701"}, headers=AUTH)
    assert r.status_code == 200
    prices = r.json()["prices"]
    assert len(prices) == 5
    # Newest listing first
    assert prices[0]["address"] == "14 Comp Ln, Austin, TX 78701"
    assert prices[0]["pricePerAcre"] == 100000


def test_acres_prices_rejects_bad_acreage(client):
    r = client.post("/api/acres-prices", json={"city": "Austin", "acres": 0, "zipCode": "78701"}, headers=AUTH)
    assert r.status_code == 422


class TestAnalyses:
    def test_create_charges_and_lists(self, client, store, valid_estimate):
        body = {"parcelId": 1, "analysis": valid_estimate, "creditsUsed": 2}
        r = client.post("/api/analyses", json=body, headers=AUTH)
        assert r.status_code == 200
        assert r.json()["creditsUsed"] == 2
        assert store.users[1].credits == 3

        listed = client.get("/api/analyses/1", headers=AUTH).json()
        assert len(listed) == 1
        assert listed[0]["analysis"]["estimatedValue"] == 250000

    def test_out_of_band_estimate_is_corrected(self, client, store, valid_estimate):
        body = {"parcelId": 1, "analysis": dict(valid_estimate, estimatedValue=1_000_000, confidenceScore=0.95),
                "creditsUsed": 1}
        r = client.post("/api/analyses", json=body, headers=AUTH)
        assert r.status_code == 200
        stored = store.analyses[r.json()["id"]].analysis
        assert stored["estimatedValue"] == 250_000
        assert stored["confidenceScore"] == 0.7

    def test_insufficient_credits(self, client, store, valid_estimate):
        body = {"parcelId": 1, "analysis": valid_estimate, "creditsUsed": 6}
        r = client.post("/api/analyses", json=body, headers=AUTH)
        assert r.status_code == 400
        assert r.json() == {"message": "Insufficient credits", "reason": "insufficient_credits"}
        assert store.analyses == {}
        assert store.users[1].credits == 5

    def test_invalid_analysis_shape(self, client, store):
        body = {"parcelId": 1, "analysis": {"estimatedValue": 1}, "creditsUsed": 1}
        r = client.post("/api/analyses", json=body, headers=AUTH)
        assert r.status_code == 400
        assert r.json()["reason"] == "invalid_estimate_format"
        assert store.users[1].credits == 5

    def test_unknown_parcel(self, client, valid_estimate):
        body = {"parcelId": 999, "analysis": valid_estimate, "creditsUsed": 1}
        assert client.post("/api/analyses", json=body, headers=AUTH).status_code == 404

    def test_empty_list_for_unanalysed_parcel(self, client):
        assert client.get("/api/analyses/2", headers=AUTH).json() == []


class TestAnalyze:
    def test_runs_full_analysis(self, client, store):
        r = client.post("/api/parcels/1/analyze", headers=AUTH)
        assert r.status_code == 200
        data = r.json()
        assert 150_000 <= data["analysis"]["estimatedValue"] <= 350_000
        assert data["analysis"]["distanceInfo"]["nearestCity"] == "Austin, TX"
        assert data["summary"]["outlierCount"] == 1
        assert len(data["comparables"]) == 4
        assert store.users[1].credits == 4
        assert store.analyses[data["analysisId"]].parcel_id == 1

    def test_explicit_credit_cost(self, client, store):
        r = client.post("/api/parcels/1/analyze", json={"creditsUsed": 3}, headers=AUTH)
        assert r.status_code == 200
        assert store.users[1].credits == 2

    def test_ai_failure_is_502(self, store):
        model = AsyncMock()
        model.analyze_property.side_effect = RuntimeError("upstream 500")
        client = TestClient(create_app(store=store, distance=MockDistance(), model=model))

        r = client.post("/api/parcels/1/analyze", headers=AUTH)
        assert r.status_code == 502
        assert r.json() == {"message": "Failed to analyze property.", "reason": "ai_unavailable"}
        assert store.analyses == {}
        assert store.users[1].credits == 5

    def test_not_enough_credits(self, client, store):
        store.users[1].credits = 0
        r = client.post("/api/parcels/1/analyze", headers=AUTH)
        assert r.status_code == 400
        assert r.json()["reason"] == "insufficient_credits"

    def test_unknown_parcel(self, client):
        r = client.post("/api/parcels/999/analyze", headers=AUTH)
        assert r.status_code == 404
        assert r.json()["message"] == "Parcel not found"


def test_predict_price(client):
    body = {
        "address": "1 Subject Rd",
        "acres": 10,
        "priceComparisons": [
            {"address": "a", "acre": 10, "price": 240000},
            {"address": "b", "acres": 10, "price": 260000},
            {"address": "c", "acres": 10, "price": 900000},
        ],
    }
    r = client.post("/api/scrape/predict-price", json=body, headers=AUTH)
    assert r.status_code == 200
    data = r.json()
    assert data["predicted_price"] == 250000
    assert 0 < data["confidence_score"] <= 0.95
    assert data["reasoning"]


class TestMarketing:
    def test_from_parcel(self, client):
        body = {"parcelId": 1, "targetAudience": "hunters"}
        r = client.post("/api/marketing/description", json=body, headers=AUTH)
        assert r.status_code == 200
        assert "hunters" in r.json()["description"]
        assert "1 Subject Rd" in r.json()["description"]

    def test_from_details(self, client):
        body = {"propertyDetails": {"address": "Lot 7", "acres": 3}, "targetAudience": "builders"}
        r = client.post("/api/marketing/description", json=body, headers=AUTH)
        assert r.json()["description"].startswith("Lot 7: 3 acres")

    def test_requires_subject(self, client):
        r = client.post("/api/marketing/description", json={"targetAudience": "x"}, headers=AUTH)
        assert r.status_code == 400
