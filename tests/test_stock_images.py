from pathlib import Path

from fastapi.testclient import TestClient

from config import settings
from main import app
from models.stock import Stock
from utils.attachments import AttachmentManager, get_attachments

from conftest import add_stock, count, files_under, png


def _create(client, headers, *images, code="SKU1"):
    return client.post(
        "/api/stocks",
        data={"code": code, "name": "Widget", "price": "9.99"},
        files=list(images),
        headers=headers,
    )


def test_create_with_two_images(client, auth_headers, public_dir):
    resp = _create(client, auth_headers, png("front.png", b"front"), png("back.png", b"back"))
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["price"] == 9.99
    assert len(data["images"]) == 2
    assert all("/SKU1/" in url for url in data["images"])
    # Upload order is kept
    assert data["images"][0].endswith("-front.png")
    assert data["images"][1].endswith("-back.png")
    assert data["images"][0].startswith("http://testserver/public/uploads/SKU1/")

    stored = sorted((public_dir / "uploads" / "SKU1").iterdir())
    assert len(stored) == 2
    assert {p.read_bytes() for p in stored} == {b"front", b"back"}


def test_create_rejects_too_many_images(client, auth_headers, public_dir):
    resp = _create(client, auth_headers, *[png(f"{i}.png") for i in range(5)])
    assert resp.status_code == 400
    assert count(Stock) == 0
    assert files_under(public_dir) == []


def test_create_rejects_non_images(client, auth_headers, public_dir):
    resp = _create(client, auth_headers, ("images", ("notes.txt", b"hello", "text/plain")))
    assert resp.status_code == 400
    assert files_under(public_dir) == []


def test_filename_cannot_escape_code_directory(client, auth_headers, public_dir):
    resp = _create(client, auth_headers, png("../../evil.png"), code="../x")
    assert resp.status_code == 201
    for url in resp.json()["data"]["images"]:
        assert ".." not in url
    assert all(p == "uploads" or p.startswith("uploads/") for p in files_under(public_dir))


def test_update_replaces_images_and_cleans_directory(client, auth_headers, public_dir):
    created = _create(client, auth_headers, png("a.png"), png("b.png")).json()["data"]
    old_paths = [public_dir / "uploads" / "SKU1" / url.rsplit("/", 1)[1] for url in created["images"]]
    assert all(p.exists() for p in old_paths)

    resp = client.put(f"/api/stocks/{created['id']}", files=[png("c.png", b"new")], headers=auth_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["warnings"] == []
    images = body["data"]["images"]
    assert len(images) == 1
    assert images[0].endswith("-c.png")

    remaining = list((public_dir / "uploads" / "SKU1").iterdir())
    assert [p.name for p in remaining] == [images[0].rsplit("/", 1)[1]]
    assert not any(p.exists() for p in old_paths)


def test_update_without_images_keeps_files(client, auth_headers, public_dir):
    created = _create(client, auth_headers, png("a.png")).json()["data"]
    before = files_under(public_dir)

    resp = client.put(f"/api/stocks/{created['id']}", data={"name": "Renamed"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["images"] == created["images"]
    assert files_under(public_dir) == before


def test_update_reports_foreign_image_urls(client, auth_headers, public_dir):
    stock_id = add_stock(code="EXT", images=["https://cdn.example.com/img.png"])
    resp = client.put(f"/api/stocks/{stock_id}", files=[png("local.png")], headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["warnings"] == ["Not a managed upload: https://cdn.example.com/img.png"]
    assert len(resp.json()["data"]["images"]) == 1


def test_delete_removes_image_directory(client, auth_headers, public_dir):
    created = _create(client, auth_headers, png("a.png"), png("b.png")).json()["data"]
    other = _create(client, auth_headers, png("z.png"), code="SKU2").json()["data"]
    assert (public_dir / "uploads" / "SKU1").is_dir()

    resp = client.delete(f"/api/stocks/{created['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["warnings"] == []
    assert not (public_dir / "uploads" / "SKU1").exists()
    # Other stocks keep their directory
    assert (public_dir / "uploads" / "SKU2").is_dir()
    assert client.get(f"/api/stocks/{other['id']}").status_code == 200


def test_delete_keeps_directory_shared_with_same_code(client, auth_headers, public_dir):
    first = _create(client, auth_headers, png("a.png", b"a")).json()["data"]
    second = _create(client, auth_headers, png("b.png", b"b")).json()["data"]

    resp = client.delete(f"/api/stocks/{first['id']}", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["warnings"] == []

    kept = public_dir / "uploads" / "SKU1" / second["images"][0].rsplit("/", 1)[1]
    assert kept.read_bytes() == b"b"
    assert files_under(public_dir) == ["uploads", "uploads/SKU1", f"uploads/SKU1/{kept.name}"]

    # The last stock using the directory takes it along
    client.delete(f"/api/stocks/{second['id']}", headers=auth_headers)
    assert not (public_dir / "uploads" / "SKU1").exists()


def test_delete_keeps_images_of_stock_whose_code_changed(client, auth_headers, public_dir):
    moved = _create(client, auth_headers, png("a.png", b"a")).json()["data"]
    client.put(f"/api/stocks/{moved['id']}", data={"code": "SKU9"}, headers=auth_headers)
    newcomer = _create(client, auth_headers, png("b.png", b"b")).json()["data"]

    client.delete(f"/api/stocks/{newcomer['id']}", headers=auth_headers)
    image = public_dir / "uploads" / "SKU1" / moved["images"][0].rsplit("/", 1)[1]
    assert image.read_bytes() == b"a"


def test_update_with_new_code_drops_old_empty_directory(client, auth_headers, public_dir):
    created = _create(client, auth_headers, png("a.png")).json()["data"]

    resp = client.put(
        f"/api/stocks/{created['id']}",
        data={"code": "SKU2"},
        files=[png("c.png", b"new")],
        headers=auth_headers,
    )
    assert resp.status_code == 200
    assert all("/SKU2/" in url for url in resp.json()["data"]["images"])
    assert not (public_dir / "uploads" / "SKU1").exists()
    assert len(list((public_dir / "uploads" / "SKU2").iterdir())) == 1


def test_delete_without_images_touches_no_files(client, auth_headers, public_dir):
    _create(client, auth_headers, png("a.png"), code="KEEP")
    stock_id = add_stock(code="PLAIN")
    before = files_under(public_dir)

    resp = client.delete(f"/api/stocks/{stock_id}", headers=auth_headers)
    assert resp.status_code == 200
    assert files_under(public_dir) == before


def test_uploaded_images_are_served_statically(auth_headers):
    manager = AttachmentManager(settings.PUBLIC_DIR, "http://testserver")
    app.dependency_overrides[get_attachments] = lambda: manager
    try:
        client = TestClient(app)
        resp = _create(client, auth_headers, png("served.png", b"pixels"), code="STATIC")
        url = resp.json()["data"]["images"][0]
        served = client.get(url)
        assert served.status_code == 200
        assert served.content == b"pixels"
        client.delete(f"/api/stocks/{resp.json()['data']['id']}", headers=auth_headers)
        assert not (Path(settings.PUBLIC_DIR) / "uploads" / "STATIC").exists()
    finally:
        app.dependency_overrides.pop(get_attachments, None)
