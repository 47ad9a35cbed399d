from io import BytesIO

import pandas as pd

from models.stock import Stock
from utils.spreadsheet import EXPORT_COLUMNS

from conftest import add_category, add_stock, count

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _workbook(rows, columns=None):
    buffer = BytesIO()
    pd.DataFrame(rows, columns=columns).to_excel(buffer, index=False, engine="openpyxl")
    return buffer.getvalue()


def _upload(client, headers, content):
    return client.post(
        "/api/stocks/import",
        files={"file": ("stocks.xlsx", content, XLSX)},
        headers=headers,
    )


def test_export_uses_fixed_columns(client, auth_headers):
    cat = add_category("Fasteners")
    add_stock(code="B1", name="Bolt", price=0.5, category_id=cat, images=["http://x/public/uploads/B1/1-a.png"])
    add_stock(code="N1", name="Nut")

    resp = client.get("/api/stocks/export", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith(XLSX)
    assert "attachment" in resp.headers["content-disposition"]

    df = pd.read_excel(BytesIO(resp.content), sheet_name="Stocks", engine="openpyxl")
    assert list(df.columns) == EXPORT_COLUMNS
    assert "reorderLevel" not in df.columns
    assert list(df["code"]) == ["B1", "N1"]
    assert df.loc[0, "category"] == "Fasteners"
    assert df.loc[0, "images"] == "http://x/public/uploads/B1/1-a.png"


def test_export_requires_token(client):
    assert client.get("/api/stocks/export").status_code == 401


def test_import_fills_defaults(client, auth_headers):
    cat = add_category("Paint")
    content = _workbook(
        [
            {"code": "P1", "name": "Primer", "price": 12.5, "inStock": 4, "categoryId": cat,
             "rating": 5, "status": 1, "reorderLevel": 2, "createdBy": "Importer"},
            {"code": "P2", "name": "Thinner", "price": None, "inStock": None, "categoryId": None,
             "rating": None, "status": None, "reorderLevel": None, "createdBy": None},
        ],
        columns=["code", "name", "price", "inStock", "categoryId", "rating", "status", "reorderLevel", "createdBy"],
    )

    resp = _upload(client, auth_headers, content)
    assert resp.status_code == 201
    assert resp.json()["count"] == 2

    body = client.get("/api/stocks", params={"sort": "code", "order": "asc"}).json()
    first, second = body["data"]
    assert first["categoryId"] == cat
    assert first["rating"] == 5
    assert first["status"] == 1
    assert first["reorderLevel"] == 2
    assert first["createdBy"] == "Importer"

    assert second["rating"] == 3
    assert second["status"] == 0
    assert second["price"] == 0
    assert second["inStock"] == 0
    assert second["categoryId"] is None
    assert second["description"] == ""
    assert second["images"] == []
    assert second["createdBy"] == "Ann"


def test_import_missing_columns_use_defaults(client, auth_headers):
    content = _workbook([{"code": 1001, "name": "Clamp"}])
    resp = _upload(client, auth_headers, content)
    assert resp.status_code == 201

    stock = client.get("/api/stocks").json()["data"][0]
    assert stock["code"] == "1001"
    assert stock["rating"] == 3
    assert stock["status"] == 0
    assert stock["discountPercentage"] == 0


def test_import_is_all_or_nothing(client, auth_headers):
    content = _workbook([
        {"code": "OK1", "name": "Fine", "categoryId": None},
        {"code": "BAD", "name": "Broken", "categoryId": 404},
    ])
    resp = _upload(client, auth_headers, content)
    assert resp.status_code == 400
    assert "Row 3" in resp.json()["detail"]
    assert count(Stock) == 0


def test_import_rejects_unreadable_file(client, auth_headers):
    resp = _upload(client, auth_headers, b"definitely not a workbook")
    assert resp.status_code == 400
    assert count(Stock) == 0


def test_import_requires_token(client):
    resp = client.post("/api/stocks/import", files={"file": ("s.xlsx", _workbook([{"code": "A"}]), XLSX)})
    assert resp.status_code == 401
    assert count(Stock) == 0
