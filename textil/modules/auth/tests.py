"""
Tests del contexto de autenticación y de la aplicación.
"""
from datetime import timedelta
from uuid import uuid4

from textil.modules.auth.utils import create_context_token


class TestAuthContext:
    def test_expired_token(self, api, tenant_id):
        token = create_context_token(uuid4(), tenant_id, "admin", "Ana", expires_delta=timedelta(minutes=-1))
        response = api.get("/entries/", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_garbage_token(self, api):
        response = api.get("/entries/", headers={"Authorization": "Bearer no-es-un-jwt"})
        assert response.status_code == 401

    def test_unknown_role(self, api, make_headers):
        assert api.get("/entries/", headers=make_headers("invitado")).status_code == 403

    def test_health(self, api):
        response = api.get("/health")
        assert response.json()["status"] == "healthy"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
