from datetime import timedelta

from jose import jwt

from models.stock import Stock
from utils.tokenJWT import create_access_token

from conftest import add_stock, count, files_under, png


def test_missing_token_is_401(client, public_dir):
    resp = client.post("/api/stocks", data={"code": "SKU1", "name": "Widget"}, files=[png()])
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"
    assert count(Stock) == 0
    assert files_under(public_dir) == []


def test_non_bearer_scheme_is_401(client):
    resp = client.post("/api/stocks", data={"code": "SKU1", "name": "Widget"},
                       headers={"Authorization": "Basic dXNlcjpwYXNz"})
    assert resp.status_code == 401


def test_token_signed_with_other_secret_is_400(client, public_dir):
    forged = jwt.encode({"sub": "eve@example.com", "id": 9, "name": "Eve", "role": "admin"},
                        "not-the-secret", algorithm="HS256")
    resp = client.post("/api/stocks", data={"code": "SKU1", "name": "Widget"}, files=[png()],
                       headers={"Authorization": f"Bearer {forged}"})
    assert resp.status_code == 400
    assert count(Stock) == 0
    assert files_under(public_dir) == []


def test_garbage_token_is_400(client):
    stock_id = add_stock()
    resp = client.delete(f"/api/stocks/{stock_id}", headers={"Authorization": "Bearer not.a.token"})
    assert resp.status_code == 400
    assert count(Stock) == 1


def test_expired_token_is_400(client):
    token = create_access_token({"sub": "ann@example.com", "id": 1, "name": "Ann", "role": "admin"},
                                expires_delta=timedelta(minutes=-5))
    resp = client.put("/api/stocks/1", data={"name": "x"}, headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 400


def test_token_without_name_claim_is_400(client):
    token = create_access_token({"sub": "ann@example.com"})
    resp = client.get("/api/stocks/export", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 400


def test_guard_runs_before_lookup(client):
    # Unknown id, no token: the guard answers first
    assert client.delete("/api/stocks/12345").status_code == 401


def test_listing_is_public(client):
    assert client.get("/api/stocks").status_code == 200
