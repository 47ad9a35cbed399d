import os
import tempfile

# Configure the app before anything imports config.settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["APP_URL"] = "http://testserver"
os.environ["PUBLIC_DIR"] = tempfile.mkdtemp(prefix="stockroom-public-")

import pytest
from fastapi.testclient import TestClient

from database import Base, SessionLocal, engine
from main import app
from models.category import Category
from models.stock import Stock
from utils.attachments import AttachmentManager, get_attachments
from utils.tokenJWT import create_access_token


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def public_dir(tmp_path):
    path = tmp_path / "public"
    path.mkdir()
    return path


@pytest.fixture
def attachments(public_dir):
    manager = AttachmentManager(public_dir, "http://testserver")
    app.dependency_overrides[get_attachments] = lambda: manager
    yield manager
    app.dependency_overrides.pop(get_attachments, None)


@pytest.fixture
def client(attachments):
    return TestClient(app)


def make_token(name="Ann", role="admin", user_id=1, email="ann@example.com"):
    return create_access_token({"sub": email, "id": user_id, "name": name, "role": role})


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def staff_headers():
    token = make_token(name="Sam", role="staff", user_id=2, email="sam@example.com")
    return {"Authorization": f"Bearer {token}"}


def add_category(name="Tools", **fields):
    with SessionLocal() as db:
        category = Category(name=name, **fields)
        db.add(category)
        db.commit()
        return category.id


def add_stock(code="SKU", name="Item", **fields):
    with SessionLocal() as db:
        stock = Stock(code=code, name=name, **fields)
        db.add(stock)
        db.commit()
        return stock.id


def count(model, *criteria):
    with SessionLocal() as db:
        return db.query(model).filter(*criteria).count()


def png(name="photo.png", payload=b"\x89PNG\r\n\x1a\nfake"):
    return ("images", (name, payload, "image/png"))


def files_under(path):
    return sorted(p.relative_to(path).as_posix() for p in path.rglob("*"))
