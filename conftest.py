"""
Fixtures compartidas.

La aplicación se ejecuta contra SQLite en memoria; el esquema se crea y
se elimina en cada test. Los tokens de contexto se firman con la misma
clave que valida la API.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "false"

import pytest
from datetime import date
from fastapi.testclient import TestClient
from uuid import uuid4

from textil.main import app
from textil.core.config import settings
from textil.database.database import Base, SessionLocal, sync_engine
from textil.modules.auth.utils import create_context_token


# ===== FIXTURES =====

@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=sync_engine)
    yield
    Base.metadata.drop_all(bind=sync_engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api():
    return TestClient(app)


@pytest.fixture
def tenant_id():
    return uuid4()


@pytest.fixture
def make_headers(tenant_id):
    """Cabeceras Authorization para un rol dado"""
    def _make(role="admin", full_name="Ana Admin", tenant=None):
        token = create_context_token(uuid4(), tenant or tenant_id, role, full_name)
        return {"Authorization": f"Bearer {token}"}
    return _make


@pytest.fixture
def admin_headers(make_headers):
    return make_headers("admin", "Ana Admin")


@pytest.fixture
def user_headers(make_headers):
    return make_headers("user", "Pedro Operario")


@pytest.fixture
def client_record(api, admin_headers):
    response = api.post("/clients/", json={"name": "Confecciones Norte"}, headers=admin_headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def special_client_record(api, admin_headers):
    response = api.post("/clients/", json={"name": settings.SPECIAL_CLIENT_NAME}, headers=admin_headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def make_product(api, admin_headers):
    def _make(reference="CAM-001", price="5.00", client_id=None):
        payload = {"reference": reference, "model_name": f"Modelo {reference}", "price": price}
        if client_id:
            payload["client_id"] = client_id
        response = api.post("/products/", json=payload, headers=admin_headers)
        assert response.status_code == 201
        return response.json()
    return _make


@pytest.fixture
def make_entry(api, user_headers):
    """Crear una entrada con una línea por producto: [(product, {talla: cantidad})]"""
    def _make(client_id, lines, code=None, headers=None):
        payload = {
            "client_id": client_id,
            "items": [
                {"product_id": product["id"], "size_quantities": sizes}
                for product, sizes in lines
            ],
        }
        if code:
            payload["code"] = code
        response = api.post("/entries/", json=payload, headers=headers or user_headers)
        assert response.status_code == 201, response.text
        return response.json()
    return _make


@pytest.fixture
def deliver(api, user_headers):
    """Registrar una entrega: {indice_linea: {talla: cantidad}}"""
    def _deliver(entry, quantities, delivery_date=None, expected_status=201):
        payload = {
            "entry_id": entry["id"],
            "items": [
                {"entry_item_id": entry["items"][index]["id"], "size_quantities": sizes}
                for index, sizes in quantities.items()
            ],
        }
        if delivery_date:
            payload["delivery_date"] = delivery_date.isoformat()
        response = api.post("/deliveries/", json=payload, headers=user_headers)
        assert response.status_code == expected_status, response.text
        return response.json()
    return _deliver


@pytest.fixture
def delivered_entry(client_record, make_product, make_entry, deliver):
    """Entrada {S:10, M:10} entregada por completo a 5.00 la unidad"""
    product = make_product("CAM-001", "5.00")
    entry = make_entry(client_record["id"], [(product, {"S": 10, "M": 10})])
    deliver(entry, {0: {"S": 10}}, date(2024, 3, 1))
    deliver(entry, {0: {"M": 10}}, date(2024, 3, 5))
    return entry
